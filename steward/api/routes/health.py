"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from steward import __version__
from steward.api.dependencies import (
    DecisionLogDep,
    EventBusDep,
    SettingsDep,
    TaskStoreDep,
)
from steward.api.exceptions import ResourceNotFoundError
from steward.api.models.health import ComponentHealth, HealthResponse, HealthStatus
from steward.events.bus import EventBus
from steward.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _check_store_health(store: object, name: str) -> ComponentHealth:
    """Stores are considered healthy once instantiated."""
    start = time.time()
    if store is None:
        return ComponentHealth(name=name, status="unhealthy", message="Store not initialized")
    return ComponentHealth(name=name, status="healthy", latency_ms=(time.time() - start) * 1000)


def _check_bus_health(bus: EventBus) -> ComponentHealth:
    """A bus that is not dispatching still accepts events but delivers none."""
    running = getattr(bus, "running", True)
    if running:
        return ComponentHealth(name="event_bus", status="healthy")
    return ComponentHealth(
        name="event_bus",
        status="degraded",
        message="Dispatcher not running; events are queued",
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    task_store: TaskStoreDep,
    decision_log: DecisionLogDep,
    bus: EventBusDep,
) -> HealthResponse:
    """Check service health status.

    Returns the overall health status of the service along with
    the status of individual components.
    """
    logger.debug("health_check_request")

    components = [
        _check_store_health(task_store, "task_store"),
        _check_store_health(decision_log, "decision_log"),
        _check_bus_health(bus),
    ]

    overall_status: HealthStatus
    if any(c.status == "unhealthy" for c in components):
        overall_status = "unhealthy"
    elif any(c.status == "degraded" for c in components):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    logger.debug("health_check_completed", status=overall_status)

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        timestamp=datetime.now(UTC),
    )


@router.get("/metrics")
async def get_metrics(settings: SettingsDep) -> Response:
    """Get Prometheus metrics in text format for scraping."""
    if not settings.observability.metrics.enabled:
        raise ResourceNotFoundError("Metrics are disabled")

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
