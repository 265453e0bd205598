"""Unit tests for task endpoints."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from steward.api.dependencies import get_evaluation_runner, get_override_controller
from steward.decisions.models import DecisionLogEntry, DecisionOutcome
from steward.decisions.stores import InMemoryDecisionLogStore
from steward.errors import DependencyError, EvaluationTimeoutError
from steward.events.inmemory import InMemoryEventBus
from steward.events.models import EventType
from steward.tasks.models import ActionType, Task, TaskStatus, TaskTemplate, utc_now
from steward.tasks.stores import InMemoryTaskStore
from tests.factories import TaskFactory


@pytest.fixture
async def task(task_store: InMemoryTaskStore) -> Task:
    return await task_store.create(TaskFactory.create(status=TaskStatus.IN_PROGRESS))


@pytest.fixture
async def overridden_task(task_store: InMemoryTaskStore) -> Task:
    return await task_store.create(TaskFactory.create(overridden=True))


@pytest.fixture
async def decisions(task: Task, decision_log: InMemoryDecisionLogStore) -> list[DecisionLogEntry]:
    """Three decisions one minute apart, oldest first."""
    start = utc_now()
    entries = [
        DecisionLogEntry(
            task_id=task.id,
            org_id=task.org_id,
            template_id=task.template_id,
            event_id=uuid4(),
            event_type=EventType.DATA_CORRECTED.value,
            action=ActionType.UPDATE,
            outcome=DecisionOutcome.APPLIED,
            from_status=TaskStatus.IN_PROGRESS,
            to_status=TaskStatus.IN_PROGRESS,
            rationale=f"update {i}",
            timestamp=start + timedelta(minutes=i),
        )
        for i in range(3)
    ]
    for entry in entries:
        await decision_log.append(entry)
    return entries


class TestGetTask:
    """Tests for GET /v1/tasks/{task_id}."""

    def test_returns_camel_case_snapshot(
        self, client: TestClient, task: Task, decisions: list[DecisionLogEntry]
    ) -> None:
        response = client.get(f"/v1/tasks/{task.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["task"]["id"] == str(task.id)
        assert data["task"]["templateId"] == task.template_id
        assert data["task"]["status"] == "in_progress"
        assert data["task"]["override"]["overridden"] is False
        assert data["task"]["reprocessRequestCount"] == 0
        assert [d["rationale"] for d in data["decisions"]] == ["update 2", "update 1", "update 0"]
        assert data["decisions"][0]["fromStatus"] == "in_progress"

    def test_unknown_task(self, client: TestClient) -> None:
        response = client.get(f"/v1/tasks/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_malformed_id(self, client: TestClient) -> None:
        response = client.get("/v1/tasks/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"


class TestListDecisions:
    """Tests for GET /v1/tasks/{task_id}/decisions."""

    def test_chronological_with_limit(
        self, client: TestClient, task: Task, decisions: list[DecisionLogEntry]
    ) -> None:
        response = client.get(
            f"/v1/tasks/{task.id}/decisions", params={"limit": 2, "newestFirst": "false"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [d["rationale"] for d in data["items"]] == ["update 0", "update 1"]

    def test_limit_bounds(self, client: TestClient, task: Task) -> None:
        response = client.get(f"/v1/tasks/{task.id}/decisions", params={"limit": 0})

        assert response.status_code == 400


class TestOverride:
    """Tests for POST /v1/tasks/{task_id}/override."""

    def test_engage(self, client: TestClient, task: Task, bus: InMemoryEventBus) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/override",
            json={"overridden": True, "reason": "VIP guest", "actorId": "operator-1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["suppressed"] is True
        assert data["task"]["override"]["overridden"] is True
        assert data["task"]["override"]["byUserId"] == "operator-1"
        assert "suppressed" in data["message"]
        [event] = bus.history(event_type=EventType.OVERRIDE_SET)
        assert data["eventId"] == str(event.id)
        assert data["correlationId"] == event.correlation_id

    def test_clear(self, client: TestClient, overridden_task: Task) -> None:
        response = client.post(
            f"/v1/tasks/{overridden_task.id}/override", json={"overridden": False}
        )

        assert response.status_code == 200
        assert response.json()["suppressed"] is False

    def test_missing_field(self, client: TestClient, task: Task) -> None:
        response = client.post(f"/v1/tasks/{task.id}/override", json={"reason": "x"})

        assert response.status_code == 400
        body = response.json()["error"]
        assert body["code"] == "INVALID_REQUEST"
        assert any("overridden" in d["field"] for d in body["details"])

    def test_unknown_task(self, client: TestClient) -> None:
        response = client.post(f"/v1/tasks/{uuid4()}/override", json={"overridden": True})

        assert response.status_code == 404

    def test_dependency_failure(self, app: FastAPI, client: TestClient) -> None:
        controller = MagicMock()
        controller.set_override = AsyncMock(side_effect=DependencyError("task update failed"))
        app.dependency_overrides[get_override_controller] = lambda: controller

        response = client.post(f"/v1/tasks/{uuid4()}/override", json={"overridden": True})

        assert response.status_code == 502
        assert response.json()["error"] == {
            "code": "DEPENDENCY_ERROR",
            "message": "task update failed",
            "details": None,
        }


class TestReprocess:
    """Tests for POST /v1/tasks/{task_id}/reprocess."""

    def test_accepted(self, client: TestClient, task: Task, bus: InMemoryEventBus) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/reprocess",
            json={"requestedByUserId": "operator-1", "reason": "guest updated"},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["suppressed"] is False
        assert data["task"]["reprocessRequestCount"] == 1
        assert len(bus.history(event_type=EventType.REPROCESS_REQUESTED)) == 1

    def test_repeated_requests_are_all_kept(self, client: TestClient, task: Task) -> None:
        for _ in range(3):
            response = client.post(
                f"/v1/tasks/{task.id}/reprocess", json={"requestedByUserId": "operator-1"}
            )

        assert response.status_code == 202
        assert response.json()["task"]["reprocessRequestCount"] == 3

    def test_suppressed_while_overridden(self, client: TestClient, overridden_task: Task) -> None:
        response = client.post(
            f"/v1/tasks/{overridden_task.id}/reprocess", json={"requestedByUserId": "operator-1"}
        )

        assert response.status_code == 202
        data = response.json()
        assert data["suppressed"] is True
        assert "suppressed" in data["message"]

    def test_unknown_user(self, client: TestClient, task: Task) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/reprocess", json={"requestedByUserId": "nobody"}
        )

        assert response.status_code == 404

    def test_empty_user(self, client: TestClient, task: Task) -> None:
        response = client.post(f"/v1/tasks/{task.id}/reprocess", json={"requestedByUserId": ""})

        assert response.status_code == 400


class TestClose:
    """Tests for POST /v1/tasks/{task_id}/close."""

    def test_close(self, client: TestClient, task: Task) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/close", json={"actorId": "operator-1", "reason": "duplicate"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["task"]["status"] == "closed"
        assert data["message"] == "Task closed from in_progress"
        assert data["decision"]["action"] == "close"
        assert data["decision"]["eventType"] == "manual:close"
        assert data["decision"]["metadata"]["closed_by"] == "operator-1"

    def test_close_twice_conflicts(self, client: TestClient, task: Task) -> None:
        client.post(f"/v1/tasks/{task.id}/close", json={})
        response = client.post(f"/v1/tasks/{task.id}/close", json={})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT_STATE"

    def test_timeout(self, app: FastAPI, client: TestClient) -> None:
        runner = MagicMock()
        runner.close_task = AsyncMock(
            side_effect=EvaluationTimeoutError("Task is locked", timeout_seconds=5.0)
        )
        app.dependency_overrides[get_evaluation_runner] = lambda: runner

        response = client.post(f"/v1/tasks/{uuid4()}/close", json={})

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "EVALUATION_TIMEOUT"


class TestAssignTask:
    """Tests for POST /v1/tasks."""

    def test_creates_task(
        self, client: TestClient, template: TaskTemplate, bus: InMemoryEventBus
    ) -> None:
        response = client.post(
            "/v1/tasks",
            json={
                "orgId": "org-1",
                "templateId": template.id,
                "intakeId": "intake-42",
                "data": {"guests": 4},
            },
        )

        assert response.status_code == 201
        task = response.json()["task"]
        assert task["status"] == "not_started"
        assert task["templateId"] == template.id
        assert task["intakeId"] == "intake-42"
        assert task["pipelineKey"] == "bookings"
        assert task["data"] == {"guests": 4}
        [event] = bus.history(event_type=EventType.INTAKE_ASSIGNED)
        assert event.payload["taskId"] == task["id"]

    def test_unknown_template(self, client: TestClient) -> None:
        response = client.post("/v1/tasks", json={"orgId": "org-1", "templateId": "NOPE"})

        assert response.status_code == 404

    def test_priority_out_of_range(self, client: TestClient, template: TaskTemplate) -> None:
        response = client.post(
            "/v1/tasks",
            json={"orgId": "org-1", "templateId": template.id, "priority": 9},
        )

        assert response.status_code == 400


class TestCorrections:
    """Tests for POST /v1/tasks/{task_id}/corrections."""

    def test_accepted(self, client: TestClient, task: Task, bus: InMemoryEventBus) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/corrections",
            json={"completedSteps": ["collect_details"], "data": {"guests": 6}},
        )

        assert response.status_code == 202
        data = response.json()
        assert data["suppressed"] is False
        assert data["message"] == "Correction accepted; evaluation scheduled"
        [event] = bus.history(event_type=EventType.DATA_CORRECTED)
        assert data["eventId"] == str(event.id)
        assert event.payload["completedSteps"] == ["collect_details"]

    def test_suppressed_while_overridden(self, client: TestClient, overridden_task: Task) -> None:
        response = client.post(
            f"/v1/tasks/{overridden_task.id}/corrections", json={"unblock": True}
        )

        assert response.status_code == 202
        assert response.json()["suppressed"] is True
        assert "suppressed due to override" in response.json()["message"]

    def test_empty_correction(self, client: TestClient, task: Task) -> None:
        response = client.post(f"/v1/tasks/{task.id}/corrections", json={})

        assert response.status_code == 400

    def test_unknown_task(self, client: TestClient) -> None:
        response = client.post(f"/v1/tasks/{uuid4()}/corrections", json={"unblock": True})

        assert response.status_code == 404


class TestExternalTrigger:
    """Tests for POST /v1/tasks/{task_id}/triggers."""

    def test_accepted(self, client: TestClient, task: Task, bus: InMemoryEventBus) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/triggers",
            json={"source": "crm", "changes": {"blocker": "awaiting deposit", "org_id": "x"}},
        )

        assert response.status_code == 202
        [event] = bus.history(event_type=EventType.EXTERNAL_TRIGGER)
        assert event.payload["source"] == "crm"
        assert event.payload["blocker"] == "awaiting deposit"
        assert event.org_id == task.org_id

    def test_reserved_change_key(self, client: TestClient, task: Task) -> None:
        response = client.post(
            f"/v1/tasks/{task.id}/triggers",
            json={"source": "crm", "changes": {"correlationId": "c-1"}},
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "changes"


class TestRequestContext:
    def test_request_id_echoed(self, client: TestClient, task: Task) -> None:
        response = client.get(f"/v1/tasks/{task.id}", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client: TestClient) -> None:
        response = client.get(f"/v1/tasks/{uuid4()}")

        assert response.headers["X-Request-ID"]
