"""Unit tests for scheduling endpoints."""

from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from steward.directory.stores import InMemoryUserDirectory
from steward.scheduling.models import Commitment
from steward.scheduling.stores import InMemoryCommitmentStore
from tests.factories import CommitmentFactory, UserFactory

MONDAY = datetime(2026, 3, 2, tzinfo=UTC)


def at(hour: int, minute: int = 0) -> datetime:
    return MONDAY.replace(hour=hour, minute=minute)


@pytest.fixture
async def standup(commitment_store: InMemoryCommitmentStore) -> Commitment:
    commitment = CommitmentFactory.create(at(10), title="Standup")
    await commitment_store.save(commitment)
    return commitment


class TestCheckConflicts:
    """Tests for POST /v1/scheduling/{user_id}/conflicts."""

    def test_conflict_reported(self, client: TestClient, standup: Commitment) -> None:
        response = client.post(
            "/v1/scheduling/user-1/conflicts",
            json={"startTime": at(10, 30).isoformat(), "endTime": at(11, 30).isoformat()},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["hasConflicts"] is True
        assert data["totalConflicts"] == 1
        assert data["severity"] == "medium"
        [conflict] = data["userConflicts"]
        assert conflict["eventId"] == str(standup.id)
        assert conflict["title"] == "Standup"
        assert conflict["conflictType"] == "partial_overlap"
        assert conflict["conflictScore"] == 50.0
        assert conflict["overlapMinutes"] == 30

    def test_back_to_back_is_free(self, client: TestClient, standup: Commitment) -> None:
        response = client.post(
            "/v1/scheduling/user-1/conflicts",
            json={"startTime": at(11).isoformat(), "endTime": at(12).isoformat()},
        )

        assert response.json()["hasConflicts"] is False
        assert response.json()["severity"] == "none"

    def test_excluded_commitment(self, client: TestClient, standup: Commitment) -> None:
        response = client.post(
            "/v1/scheduling/user-1/conflicts",
            json={
                "startTime": at(10).isoformat(),
                "endTime": at(11).isoformat(),
                "excludeEventId": str(standup.id),
            },
        )

        assert response.json()["hasConflicts"] is False

    @pytest.mark.asyncio
    async def test_participants(
        self,
        client: TestClient,
        commitment_store: InMemoryCommitmentStore,
        user_directory: InMemoryUserDirectory,
    ) -> None:
        await user_directory.save(UserFactory.create(id="user-2"))
        await commitment_store.save(CommitmentFactory.create(at(10), owner_id="user-2"))

        response = client.post(
            "/v1/scheduling/user-1/conflicts",
            json={
                "startTime": at(10).isoformat(),
                "endTime": at(11).isoformat(),
                "participantAddresses": ["user-2@example.com", "guest@elsewhere.com"],
            },
        )

        data = response.json()
        checked, unknown = data["participantConflicts"]
        assert checked["status"] == "checked"
        assert len(checked["conflicts"]) == 1
        assert unknown["status"] == "not_evaluated"
        assert data["severity"] == "high"

    def test_reversed_interval(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scheduling/user-1/conflicts",
            json={"startTime": at(11).isoformat(), "endTime": at(10).isoformat()},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REQUEST"
        assert error["details"] == [{"field": "endTime", "message": error["message"]}]


class TestSuggestSlots:
    """Tests for POST /v1/scheduling/{user_id}/suggestions."""

    def test_ranked_suggestions(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scheduling/user-1/suggestions",
            json={"durationMinutes": 45, "preferredDates": ["2026-03-02"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert 1 <= len(data["suggestions"]) <= 5
        assert data["suggestions"][0]["rank"] == 1
        assert data["totalCandidates"] > 0
        assert data["dayLoad"][0]["date"] == "2026-03-02"
        assert data["analysisContext"]

    def test_preferred_dates_accept_datetimes(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scheduling/user-1/suggestions",
            json={"durationMinutes": 30, "preferredDates": ["2026-03-02T14:00:00Z"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["totalCandidates"] == 16
        assert data["dayLoad"][0]["date"] == "2026-03-02"
        assert all(s["startTime"].startswith("2026-03-02") for s in data["suggestions"])

    def test_out_of_range_duration(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scheduling/user-1/suggestions", json={"durationMinutes": 5}
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "durationMinutes"

    def test_unknown_period(self, client: TestClient) -> None:
        response = client.post(
            "/v1/scheduling/user-1/suggestions",
            json={"durationMinutes": 30, "preferredPeriod": "night"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_fully_booked_returns_empty_list(
        self, client: TestClient, commitment_store: InMemoryCommitmentStore
    ) -> None:
        await commitment_store.save(CommitmentFactory.create(at(0), all_day=True, end=at(0)))

        response = client.post(
            "/v1/scheduling/user-1/suggestions",
            json={"durationMinutes": 30, "preferredDates": ["2026-03-02"]},
        )

        assert response.status_code == 200
        assert response.json()["suggestions"] == []
        assert response.json()["conflictFreeCount"] == 0


class TestAvailability:
    """Tests for GET /v1/scheduling/{user_id}/availability."""

    def test_free_blocks(self, client: TestClient, standup: Commitment) -> None:
        response = client.get(
            "/v1/scheduling/user-1/availability",
            params={"startDate": "2026-03-02", "endDate": "2026-03-02"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == "user-1"
        [day] = data["days"]
        assert day["date"] == "2026-03-02"
        assert [b["durationMinutes"] for b in day["freeBlocks"]] == [60, 360]
        assert day["load"]["eventCount"] == 1

    def test_defaults_to_a_week(self, client: TestClient) -> None:
        response = client.get("/v1/scheduling/user-1/availability")

        assert response.status_code == 200
        assert len(response.json()["days"]) == 5

    def test_reversed_range(self, client: TestClient) -> None:
        response = client.get(
            "/v1/scheduling/user-1/availability",
            params={"startDate": "2026-03-05", "endDate": "2026-03-02"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "endDate"
