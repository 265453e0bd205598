"""API route registration.

This module provides helper functions for registering API routers
with the FastAPI application.
"""

from fastapi import APIRouter, FastAPI

from steward.observability.logging import get_logger

logger = get_logger(__name__)


def create_v1_router() -> APIRouter:
    """Create the v1 API router with all routes.

    Returns:
        APIRouter with all v1 routes registered
    """
    router = APIRouter(prefix="/v1")

    from steward.api.routes.scheduling import router as scheduling_router
    from steward.api.routes.tasks import router as tasks_router

    router.include_router(tasks_router, tags=["Tasks"])
    router.include_router(scheduling_router, tags=["Scheduling"])

    logger.debug("v1_router_created", routes=["tasks", "scheduling"])

    return router


def register_routes(app: FastAPI) -> None:
    """Register all routes with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.include_router(create_v1_router())

    # Health and metrics live at root level
    from steward.api.routes.health import router as health_router

    app.include_router(health_router, tags=["Health"])

    logger.info("routes_registered")
