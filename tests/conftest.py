"""Shared test fixtures for the Steward test suite."""

import os
from collections.abc import AsyncGenerator, Generator

import pytest

from steward.config import get_settings
from steward.config.models import OrchestrationConfig, SchedulingConfig
from steward.decisions.stores import InMemoryDecisionLogStore
from steward.directory.stores import InMemoryUserDirectory
from steward.events.inmemory import InMemoryEventBus
from steward.orchestration import (
    EvaluationRunner,
    InProcessTaskMutex,
    OverrideController,
    ReprocessCoordinator,
)
from steward.scheduling.stores import InMemoryCommitmentStore
from steward.tasks.models import TaskTemplate
from steward.tasks.stores import InMemoryTaskStore
from tests.factories import TemplateFactory, UserFactory

os.environ.setdefault("STEWARD_ENV", "test")


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def decision_log() -> InMemoryDecisionLogStore:
    return InMemoryDecisionLogStore()


@pytest.fixture
def commitment_store() -> InMemoryCommitmentStore:
    return InMemoryCommitmentStore()


@pytest.fixture
def user_directory() -> InMemoryUserDirectory:
    """Directory holding the requesting operator."""
    return InMemoryUserDirectory(users=[UserFactory.create(id="operator-1")])


@pytest.fixture
async def bus() -> AsyncGenerator[InMemoryEventBus, None]:
    """Bus without retry delays, not yet started; stopped after the test."""
    bus = InMemoryEventBus(history_size=100, max_delivery_attempts=3, retry_backoff_seconds=0)
    yield bus
    await bus.stop()


@pytest.fixture
def orchestration_config() -> OrchestrationConfig:
    return OrchestrationConfig(evaluation_timeout_seconds=2.0)


@pytest.fixture
def scheduling_config() -> SchedulingConfig:
    return SchedulingConfig()


@pytest.fixture
async def template(task_store: InMemoryTaskStore) -> TaskTemplate:
    """Template requiring two steps, saved in the task store."""
    template = TemplateFactory.create()
    await task_store.save_template(template)
    return template


@pytest.fixture
def runner(
    task_store: InMemoryTaskStore,
    decision_log: InMemoryDecisionLogStore,
    bus: InMemoryEventBus,
    orchestration_config: OrchestrationConfig,
) -> EvaluationRunner:
    return EvaluationRunner(
        task_store,
        decision_log,
        bus,
        InProcessTaskMutex(blocking_timeout=1.0),
        orchestration_config,
    )


@pytest.fixture
def override_controller(
    task_store: InMemoryTaskStore, bus: InMemoryEventBus
) -> OverrideController:
    return OverrideController(task_store, bus)


@pytest.fixture
def reprocess_coordinator(
    task_store: InMemoryTaskStore,
    user_directory: InMemoryUserDirectory,
    bus: InMemoryEventBus,
) -> ReprocessCoordinator:
    return ReprocessCoordinator(task_store, user_directory, bus)
