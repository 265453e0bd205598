"""Observability: structured logging and metrics.

Provides standardized observability primitives using structlog for logging
and Prometheus for metrics. Tracing is wired at the API layer through the
OpenTelemetry FastAPI instrumentation.
"""
