"""Orchestration configuration models.

These sections are handed to the orchestration components through their
constructors; nothing in the engine reads process-wide toggles.
"""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr, model_validator

LockBackend = Literal["inmemory", "redis"]


class LockConfig(BaseModel):
    """Per-task evaluation lock configuration."""

    backend: LockBackend = Field(
        default="inmemory",
        description="inmemory for a single process, redis for several workers",
    )
    redis_url: SecretStr | None = Field(
        default=None,
        description="Redis URL when backend is redis (from STEWARD_ORCHESTRATION__LOCK__REDIS_URL)",
    )
    lock_timeout_seconds: int = Field(
        default=60,
        ge=1,
        description="Auto-release time for a held distributed lock",
    )
    blocking_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long an evaluation waits for the task lock; at least the evaluation bound",
    )


class EventBusConfig(BaseModel):
    """In-process event bus configuration."""

    history_size: int = Field(
        default=100,
        ge=0,
        description="Delivered events kept for replay",
    )
    max_delivery_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Deliveries per listener before an event is dropped",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Delay before redelivering a failed event",
    )


class OrchestrationConfig(BaseModel):
    """Task orchestration configuration."""

    enabled: bool = Field(
        default=True,
        description="Subscribe the evaluation runner to trigger events",
    )
    evaluation_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for one task evaluation",
    )
    max_commit_attempts: int = Field(
        default=3,
        ge=1,
        description="Re-evaluations after a stale-version commit",
    )
    lock: LockConfig = Field(default_factory=LockConfig)
    bus: EventBusConfig = Field(default_factory=EventBusConfig)

    @model_validator(mode="after")
    def _check_lock_bounds(self) -> "OrchestrationConfig":
        # A queued event must outwait the evaluation holding the lock
        if self.lock.blocking_timeout_seconds < self.evaluation_timeout_seconds:
            raise ValueError(
                "lock.blocking_timeout_seconds must be >= evaluation_timeout_seconds"
            )
        if self.lock.lock_timeout_seconds < self.evaluation_timeout_seconds:
            raise ValueError("lock.lock_timeout_seconds must be >= evaluation_timeout_seconds")
        return self


class SLAConfig(BaseModel):
    """SLA monitoring configuration."""

    enabled: bool = Field(default=False, description="Run the SLA poll loop")
    warning_threshold: float = Field(
        default=0.8,
        gt=0,
        description="Fraction of typical minutes that triggers a warning",
    )
    breach_threshold: float = Field(
        default=1.0,
        gt=0,
        description="Fraction of typical minutes that counts as a breach",
    )
    poll_interval_seconds: int = Field(default=300, ge=1)
    max_tasks_per_batch: int = Field(default=500, ge=1)


class NotificationsConfig(BaseModel):
    """Operator notification configuration."""

    enabled: bool = Field(default=True, description="Send operator notifications")
    operator_emails: list[str] = Field(
        default_factory=list,
        description="Recipients for override and failure notices",
    )
    operator_phones: list[str] = Field(
        default_factory=list,
        description="SMS recipients for evaluation failures",
    )
