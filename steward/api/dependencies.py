"""Dependency injection for API routes.

Provides FastAPI dependencies for the stores, the event bus and the
services used by API endpoints. Instances are created once from settings
and reused; tests replace them through ``app.dependency_overrides`` or
:func:`reset_dependencies`.
"""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends

from steward.config import Settings
from steward.config import get_settings as load_settings
from steward.decisions.store import DecisionLogStore
from steward.decisions.stores import InMemoryDecisionLogStore
from steward.directory.store import UserDirectory
from steward.directory.stores import InMemoryUserDirectory
from steward.events.bus import EventBus
from steward.events.inmemory import InMemoryEventBus
from steward.notifications import (
    InMemoryNotificationSender,
    NotificationSender,
    OverrideNotifier,
)
from steward.observability.logging import get_logger
from steward.orchestration import (
    EvaluationRunner,
    InProcessTaskMutex,
    IntakeService,
    OverrideController,
    RedisTaskMutex,
    ReprocessCoordinator,
    SLAMonitor,
    TaskMutex,
)
from steward.scheduling import AvailabilityService, ConflictService, SuggestionEngine
from steward.scheduling.store import CommitmentStore
from steward.scheduling.stores import InMemoryCommitmentStore
from steward.tasks.store import TaskStore
from steward.tasks.stores import InMemoryTaskStore

logger = get_logger(__name__)

# Client instances - shared across components
_redis_client: redis.Redis | None = None

# Store and bus instances - created once and reused
_task_store: TaskStore | None = None
_decision_log: DecisionLogStore | None = None
_commitment_store: CommitmentStore | None = None
_user_directory: UserDirectory | None = None
_event_bus: EventBus | None = None
_task_mutex: TaskMutex | None = None
_notification_sender: NotificationSender | None = None

# Services
_evaluation_runner: EvaluationRunner | None = None
_override_controller: OverrideController | None = None
_reprocess_coordinator: ReprocessCoordinator | None = None
_intake_service: IntakeService | None = None
_sla_monitor: SLAMonitor | None = None
_notifier: OverrideNotifier | None = None
_conflict_service: ConflictService | None = None
_suggestion_engine: SuggestionEngine | None = None
_availability_service: AvailabilityService | None = None


def get_settings() -> Settings:
    """Get application settings."""
    return load_settings()


def get_redis_client() -> redis.Redis:
    """Get the shared Redis client used by the distributed task lock.

    Raises:
        RuntimeError: If the redis lock backend has no URL configured
    """
    global _redis_client
    if _redis_client is None:
        lock_config = get_settings().orchestration.lock
        if lock_config.redis_url is None:
            raise RuntimeError("orchestration.lock.redis_url is required for the redis backend")
        url = lock_config.redis_url.get_secret_value()
        _redis_client = redis.from_url(url, decode_responses=True)
        logger.info("redis_client_connected", url=url.split("@")[-1])  # Log without credentials
    return _redis_client


def get_task_store() -> TaskStore:
    global _task_store
    if _task_store is None:
        _task_store = InMemoryTaskStore()
    return _task_store


def get_decision_log() -> DecisionLogStore:
    global _decision_log
    if _decision_log is None:
        _decision_log = InMemoryDecisionLogStore()
    return _decision_log


def get_commitment_store() -> CommitmentStore:
    global _commitment_store
    if _commitment_store is None:
        _commitment_store = InMemoryCommitmentStore()
    return _commitment_store


def get_user_directory() -> UserDirectory:
    global _user_directory
    if _user_directory is None:
        _user_directory = InMemoryUserDirectory()
    return _user_directory


def get_event_bus() -> EventBus:
    """Get the event bus, configured from ``orchestration.bus``."""
    global _event_bus
    if _event_bus is None:
        config = get_settings().orchestration.bus
        _event_bus = InMemoryEventBus(
            history_size=config.history_size,
            max_delivery_attempts=config.max_delivery_attempts,
            retry_backoff_seconds=config.retry_backoff_seconds,
        )
    return _event_bus


def get_task_mutex() -> TaskMutex:
    """Get the per-task lock for the configured backend."""
    global _task_mutex
    if _task_mutex is None:
        config = get_settings().orchestration.lock
        if config.backend == "redis":
            _task_mutex = RedisTaskMutex(
                get_redis_client(),
                lock_timeout=config.lock_timeout_seconds,
                blocking_timeout=config.blocking_timeout_seconds,
            )
        else:
            _task_mutex = InProcessTaskMutex(blocking_timeout=config.blocking_timeout_seconds)
        logger.info("task_mutex_created", backend=config.backend)
    return _task_mutex


def get_notification_sender() -> NotificationSender:
    global _notification_sender
    if _notification_sender is None:
        _notification_sender = InMemoryNotificationSender()
    return _notification_sender


def get_evaluation_runner() -> EvaluationRunner:
    global _evaluation_runner
    if _evaluation_runner is None:
        _evaluation_runner = EvaluationRunner(
            get_task_store(),
            get_decision_log(),
            get_event_bus(),
            get_task_mutex(),
            get_settings().orchestration,
        )
    return _evaluation_runner


def get_override_controller() -> OverrideController:
    global _override_controller
    if _override_controller is None:
        _override_controller = OverrideController(get_task_store(), get_event_bus())
    return _override_controller


def get_reprocess_coordinator() -> ReprocessCoordinator:
    global _reprocess_coordinator
    if _reprocess_coordinator is None:
        _reprocess_coordinator = ReprocessCoordinator(
            get_task_store(), get_user_directory(), get_event_bus()
        )
    return _reprocess_coordinator


def get_intake_service() -> IntakeService:
    global _intake_service
    if _intake_service is None:
        _intake_service = IntakeService(get_task_store(), get_event_bus())
    return _intake_service


def get_sla_monitor() -> SLAMonitor:
    global _sla_monitor
    if _sla_monitor is None:
        _sla_monitor = SLAMonitor(get_task_store(), get_event_bus(), get_settings().sla)
    return _sla_monitor


def get_notifier() -> OverrideNotifier:
    global _notifier
    if _notifier is None:
        _notifier = OverrideNotifier(get_notification_sender(), get_settings().notifications)
    return _notifier


def get_conflict_service() -> ConflictService:
    global _conflict_service
    if _conflict_service is None:
        _conflict_service = ConflictService(get_commitment_store(), get_user_directory())
    return _conflict_service


def get_suggestion_engine() -> SuggestionEngine:
    global _suggestion_engine
    if _suggestion_engine is None:
        _suggestion_engine = SuggestionEngine(
            get_commitment_store(), get_user_directory(), get_settings().scheduling
        )
    return _suggestion_engine


def get_availability_service() -> AvailabilityService:
    global _availability_service
    if _availability_service is None:
        _availability_service = AvailabilityService(
            get_commitment_store(), get_user_directory(), get_settings().scheduling
        )
    return _availability_service


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
TaskStoreDep = Annotated[TaskStore, Depends(get_task_store)]
DecisionLogDep = Annotated[DecisionLogStore, Depends(get_decision_log)]
EventBusDep = Annotated[EventBus, Depends(get_event_bus)]
EvaluationRunnerDep = Annotated[EvaluationRunner, Depends(get_evaluation_runner)]
OverrideControllerDep = Annotated[OverrideController, Depends(get_override_controller)]
ReprocessCoordinatorDep = Annotated[ReprocessCoordinator, Depends(get_reprocess_coordinator)]
IntakeServiceDep = Annotated[IntakeService, Depends(get_intake_service)]
ConflictServiceDep = Annotated[ConflictService, Depends(get_conflict_service)]
SuggestionEngineDep = Annotated[SuggestionEngine, Depends(get_suggestion_engine)]
AvailabilityServiceDep = Annotated[AvailabilityService, Depends(get_availability_service)]


async def reset_dependencies() -> None:
    """Reset all cached dependencies.

    Closes the Redis client if one was opened. Useful for testing.
    """
    global _redis_client, _task_store, _decision_log, _commitment_store
    global _user_directory, _event_bus, _task_mutex, _notification_sender
    global _evaluation_runner, _override_controller, _reprocess_coordinator
    global _intake_service, _sla_monitor, _notifier
    global _conflict_service, _suggestion_engine, _availability_service

    if _redis_client is not None:
        await _redis_client.aclose()

    _redis_client = None
    _task_store = None
    _decision_log = None
    _commitment_store = None
    _user_directory = None
    _event_bus = None
    _task_mutex = None
    _notification_sender = None
    _evaluation_runner = None
    _override_controller = None
    _reprocess_coordinator = None
    _intake_service = None
    _sla_monitor = None
    _notifier = None
    _conflict_service = None
    _suggestion_engine = None
    _availability_service = None
