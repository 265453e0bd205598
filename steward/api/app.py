"""FastAPI application factory.

Creates and configures the FastAPI application with middleware,
exception handlers, route registration and the lifespan that starts the
event bus and its consumers.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from pydantic import ValidationError

from steward import __version__
from steward.api.dependencies import (
    get_event_bus,
    get_evaluation_runner,
    get_notifier,
    get_settings,
    get_sla_monitor,
)
from steward.api.exceptions import StewardAPIError, from_engine_error
from steward.api.middleware.context import RequestContextMiddleware
from steward.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from steward.api.routes import register_routes
from steward.errors import StewardError
from steward.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the bus consumers, start the bus and the SLA monitor."""
    settings = get_settings()
    bus = get_event_bus()

    if settings.orchestration.enabled:
        await get_evaluation_runner().subscribe()
    await get_notifier().subscribe(bus)
    await bus.start()

    monitor = get_sla_monitor() if settings.sla.enabled else None
    if monitor is not None:
        await monitor.start()

    logger.info(
        "app_started",
        orchestration_enabled=settings.orchestration.enabled,
        sla_enabled=settings.sla.enabled,
    )
    try:
        yield
    finally:
        if monitor is not None:
            await monitor.stop()
        await bus.stop()
        logger.info("app_stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a fully configured FastAPI app with:
    - CORS middleware
    - Request context middleware
    - Global exception handlers
    - OpenTelemetry instrumentation (when tracing is enabled)
    - All API routes registered

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()
    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_pii=log_config.redact_pii,
    )

    app = FastAPI(
        title="Steward API",
        description="Task orchestration and scheduling decision engine",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=settings.api.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    _register_exception_handlers(app)
    register_routes(app)

    if settings.observability.tracing.enabled:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("opentelemetry_instrumentation_enabled")

    logger.info(
        "app_created",
        debug=settings.debug,
        cors_origins=settings.api.cors_origins,
    )

    return app


def _error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: list[ErrorDetail] | None = None,
) -> JSONResponse:
    response = ErrorResponse(error=ErrorBody(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers.

    Args:
        app: FastAPI application
    """

    @app.exception_handler(StewardAPIError)
    async def steward_api_error_handler(request: Request, exc: StewardAPIError) -> JSONResponse:
        """Handle StewardAPIError and its subclasses."""
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        details = [ErrorDetail(field=exc.field, message=exc.message)] if exc.field else None
        return _error_response(exc.status_code, exc.error_code, exc.message, details)

    @app.exception_handler(StewardError)
    async def engine_error_handler(request: Request, exc: StewardError) -> JSONResponse:
        """Translate engine errors raised by the services."""
        return await steward_api_error_handler(request, from_engine_error(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle FastAPI request validation errors."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
        )
        details = [
            ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"])
            for error in exc.errors()
        ]
        return _error_response(
            400, ErrorCode.INVALID_REQUEST, "Request validation failed", details
        )

    @app.exception_handler(ValidationError)
    async def pydantic_validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        logger.warning(
            "pydantic_validation_error",
            errors=exc.errors(),
            path=request.url.path,
        )
        details = [
            ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"])
            for error in exc.errors()
        ]
        return _error_response(400, ErrorCode.INVALID_REQUEST, "Data validation failed", details)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")

    logger.debug("exception_handlers_registered")
