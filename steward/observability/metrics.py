"""Prometheus metrics for Steward.

Counters and histograms for task evaluation, the human control protocol,
event delivery and the scheduling endpoints.
"""

from prometheus_client import Counter, Histogram

# Evaluation metrics
EVALUATIONS = Counter(
    "steward_evaluations_total",
    "Task evaluations by decision action and outcome",
    labelnames=["action", "outcome"],
)

EVALUATION_LATENCY = Histogram(
    "steward_evaluation_latency_seconds",
    "Time spent deciding a single task evaluation",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

EVALUATION_TIMEOUTS = Counter(
    "steward_evaluation_timeouts_total",
    "Task evaluations that exceeded their time bound",
)

# Human control protocol
OVERRIDES_SET = Counter(
    "steward_overrides_total",
    "Override set/clear calls",
    labelnames=["overridden"],
)

REPROCESS_REQUESTS = Counter(
    "steward_reprocess_requests_total",
    "Accepted reprocess requests",
    labelnames=["suppressed"],
)

# Event bus
EVENTS_PUBLISHED = Counter(
    "steward_events_published_total",
    "Events published on the bus",
    labelnames=["event_type"],
)

EVENT_DELIVERY_FAILURES = Counter(
    "steward_event_delivery_failures_total",
    "Listener invocations that raised",
    labelnames=["event_type", "error_type"],
)

# Scheduling
CONFLICT_CHECKS = Counter(
    "steward_conflict_checks_total",
    "Conflict checks by result",
    labelnames=["has_conflicts"],
)

SUGGESTION_REQUESTS = Counter(
    "steward_suggestion_requests_total",
    "Slot suggestion requests by result",
    labelnames=["result"],
)

SUGGESTION_CANDIDATES = Histogram(
    "steward_suggestion_candidates",
    "Candidate slots generated per suggestion request",
    buckets=(0, 5, 10, 25, 50, 100, 200, 500),
)

# SLA
SLA_EVENTS = Counter(
    "steward_sla_events_total",
    "SLA threshold events emitted",
    labelnames=["kind"],
)
