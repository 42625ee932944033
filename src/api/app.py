"""FastAPI application entry point with global error handling."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import (
    activities,
    ai,
    auth,
    dashboard,
    deals,
    health,
    leads,
    notifications,
    pipeline,
    properties,
    tasks,
)
from core.config import get_settings
from core.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    LLMError,
    MissingReferenceError,
    NotFoundError,
    RateLimitError,
    RealtyCRMError,
    ServiceUnavailableError,
    ValidationError,
)
from core.logging_config import (
    REQUEST_ID_HEADER,
    bind_request_context,
    current_request_context,
    get_logger,
    reset_request_context,
    setup_logging,
)

LOGGER = get_logger(__name__)
SETTINGS = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Sets up logging and creates missing tables. Startup continues when the
    database is unreachable so health checks can still answer.
    """
    setup_logging(level=SETTINGS.log_level, json_format=SETTINGS.log_format == "json")

    LOGGER.info(
        "API application starting",
        extra={"extra_data": {
            "environment": SETTINGS.environment,
            "enabled_services": SETTINGS.get_enabled_services(),
            "enforce_status_transitions": SETTINGS.enforce_status_transitions,
        }},
    )

    from core.db import init_db, validate_database

    db_status = validate_database()
    if db_status["status"] == "error":
        LOGGER.error(
            "Database validation failed - app will start without database",
            extra={"extra_data": {"errors": db_status["errors"]}},
        )
    elif db_status["status"] == "missing_tables":
        LOGGER.warning(
            "Missing database tables detected - creating",
            extra={"extra_data": {"missing": db_status["tables_missing"]}},
        )
        init_result = init_db()
        if init_result["status"] == "error":
            LOGGER.error(
                "Failed to create missing tables",
                extra={"extra_data": {"error": init_result.get("error")}},
            )

    yield
    LOGGER.info("API application shutting down")


def _error_response(status_code: int, exc: RealtyCRMError, message: str = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.error_code, "message": message or str(exc)},
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance with:
        - CORS middleware
        - Request id binding for logs
        - Global exception handlers
        - All API routes under ``/api``
    """
    application = FastAPI(
        title="Realty CRM",
        description="Real estate CRM: leads, listings, deals, tasks and an AI assistant",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    application.add_middleware(
        CORSMiddleware,
        allow_origins=SETTINGS.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # -------------------------------------------------------------------------
    # Request Context Middleware
    # -------------------------------------------------------------------------

    @application.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Bind a request id for log records and echo it on the response."""
        token = bind_request_context(request.headers.get(REQUEST_ID_HEADER, "")[:64] or None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            context = current_request_context()
            response.headers[REQUEST_ID_HEADER] = context.request_id
            LOGGER.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={"extra_data": {
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                }},
            )
            return response
        finally:
            reset_request_context(token)

    # -------------------------------------------------------------------------
    # Global Exception Handlers
    # -------------------------------------------------------------------------

    @application.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(404, exc)

    @application.exception_handler(MissingReferenceError)
    async def missing_reference_handler(
        request: Request, exc: MissingReferenceError
    ) -> JSONResponse:
        """A write referenced a row that does not exist."""
        LOGGER.warning(f"Missing reference: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(422, exc)

    @application.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        LOGGER.warning(f"Validation error: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(400, exc)

    @application.exception_handler(RateLimitError)
    async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
        LOGGER.warning(f"Rate limit hit: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(429, exc)

    @application.exception_handler(ServiceUnavailableError)
    async def service_unavailable_handler(
        request: Request, exc: ServiceUnavailableError
    ) -> JSONResponse:
        LOGGER.error(f"Service unavailable: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(503, exc)

    @application.exception_handler(ExternalServiceError)
    async def external_service_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        LOGGER.error(f"External service error: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(502, exc)

    @application.exception_handler(LLMError)
    async def llm_handler(request: Request, exc: LLMError) -> JSONResponse:
        LOGGER.error(f"LLM error: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(502, exc)

    @application.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        LOGGER.error(f"Configuration error: {exc}")
        return _error_response(500, exc, message="Service misconfiguration")

    @application.exception_handler(RealtyCRMError)
    async def app_error_handler(request: Request, exc: RealtyCRMError) -> JSONResponse:
        """Handle all other application errors."""
        LOGGER.error(f"Application error: {exc}", exc_info=True)
        return _error_response(500, exc)

    # -------------------------------------------------------------------------
    # Include Routers
    # -------------------------------------------------------------------------
    application.include_router(health.router, prefix="/api/health", tags=["Health"])
    application.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    application.include_router(leads.router, prefix="/api/leads", tags=["Leads"])
    application.include_router(properties.router, prefix="/api/properties", tags=["Properties"])
    application.include_router(deals.router, prefix="/api/deals", tags=["Deals"])
    application.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
    application.include_router(activities.router, prefix="/api/activities", tags=["Activities"])
    application.include_router(
        notifications.router, prefix="/api/notifications", tags=["Notifications"]
    )
    application.include_router(pipeline.router, prefix="/api/pipeline", tags=["Pipeline"])
    application.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
    application.include_router(ai.router, prefix="/api/ai", tags=["AI"])

    return application


# Create the application instance
app = create_app()
