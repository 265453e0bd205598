"""Fixtures for API route tests.

The app comes from the real factory with every service dependency
overridden, so the middleware and exception handlers are exercised.
TestClient is used without a context manager: the lifespan (bus start,
subscriptions) does not run.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from steward.api.app import create_app
from steward.api.dependencies import (
    get_availability_service,
    get_conflict_service,
    get_decision_log,
    get_evaluation_runner,
    get_event_bus,
    get_intake_service,
    get_override_controller,
    get_reprocess_coordinator,
    get_suggestion_engine,
    get_task_store,
    reset_dependencies,
)
from steward.config.models import SchedulingConfig
from steward.decisions.stores import InMemoryDecisionLogStore
from steward.directory.stores import InMemoryUserDirectory
from steward.events.inmemory import InMemoryEventBus
from steward.orchestration import (
    EvaluationRunner,
    IntakeService,
    OverrideController,
    ReprocessCoordinator,
)
from steward.scheduling.availability import AvailabilityService
from steward.scheduling.conflicts import ConflictService
from steward.scheduling.stores import InMemoryCommitmentStore
from steward.scheduling.suggestions import SuggestionEngine
from steward.tasks.stores import InMemoryTaskStore


@pytest.fixture
async def app(
    task_store: InMemoryTaskStore,
    decision_log: InMemoryDecisionLogStore,
    bus: InMemoryEventBus,
    runner: EvaluationRunner,
    override_controller: OverrideController,
    reprocess_coordinator: ReprocessCoordinator,
    commitment_store: InMemoryCommitmentStore,
    user_directory: InMemoryUserDirectory,
    scheduling_config: SchedulingConfig,
) -> FastAPI:
    """Create test FastAPI app backed by in-memory stores."""
    await reset_dependencies()

    app = create_app()
    app.dependency_overrides[get_task_store] = lambda: task_store
    app.dependency_overrides[get_decision_log] = lambda: decision_log
    app.dependency_overrides[get_event_bus] = lambda: bus
    app.dependency_overrides[get_evaluation_runner] = lambda: runner
    app.dependency_overrides[get_override_controller] = lambda: override_controller
    app.dependency_overrides[get_reprocess_coordinator] = lambda: reprocess_coordinator
    app.dependency_overrides[get_intake_service] = lambda: IntakeService(task_store, bus)
    app.dependency_overrides[get_conflict_service] = lambda: ConflictService(
        commitment_store, user_directory
    )
    app.dependency_overrides[get_suggestion_engine] = lambda: SuggestionEngine(
        commitment_store, user_directory, scheduling_config
    )
    app.dependency_overrides[get_availability_service] = lambda: AvailabilityService(
        commitment_store, user_directory, scheduling_config
    )
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client."""
    return TestClient(app)
