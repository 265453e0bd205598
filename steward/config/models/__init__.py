"""Configuration model exports.

    from steward.config.models import OrchestrationConfig, SchedulingConfig
"""

from steward.config.models.api import APIConfig
from steward.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    TracingConfig,
)
from steward.config.models.orchestration import (
    EventBusConfig,
    LockConfig,
    NotificationsConfig,
    OrchestrationConfig,
    SLAConfig,
)
from steward.config.models.scheduling import RankingWeights, SchedulingConfig

__all__ = [
    "APIConfig",
    "EventBusConfig",
    "LockConfig",
    "LoggingConfig",
    "MetricsConfig",
    "NotificationsConfig",
    "ObservabilityConfig",
    "OrchestrationConfig",
    "RankingWeights",
    "SLAConfig",
    "SchedulingConfig",
    "TracingConfig",
]
