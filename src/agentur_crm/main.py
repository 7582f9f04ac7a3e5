"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentur_crm import __version__
from agentur_crm.api import appointments, auth, customers, dashboards, finance, health, office, team
from agentur_crm.config import get_settings, validate_production_settings
from agentur_crm.core.exceptions import CrmError
from agentur_crm.core.log_setup import get_logger, setup_logging
from agentur_crm.db import close_db, init_db


def crm_exception_handler(request: Request, exc: CrmError) -> JSONResponse:
    """Render application errors with their German user message.

    The wrapped cause is logged but never sent to the client.
    """
    log = get_logger(__name__)
    log_method = log.warning if exc.status_code < 500 else log.error
    log_method(
        "Request failed",
        error_code=exc.error_code,
        error=exc.message,
        cause=str(exc.cause) if exc.cause else None,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with structured response.

    Provides consistent error format across all HTTP errors.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": _status_code_to_error_type(exc.status_code),
            "message": str(exc.detail),
            "status_code": exc.status_code,
        },
    )


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with field information.

    Only malformed requests end up here (bad path ids, non-JSON bodies).
    Missing or invalid form fields are reported by the stores.
    """
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        errors.append({
            "field": field or "request",
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": "Ungültige Anfrage.",
            "details": errors,
        },
    )


def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Logs the error and returns a generic 500 response without exposing
    internal details outside debug mode.
    """
    log = get_logger(__name__)
    log.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )

    settings = get_settings()
    detail = str(exc) if settings.debug else "Ein unerwarteter Fehler ist aufgetreten."

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": detail,
        },
    )


def _status_code_to_error_type(status_code: int) -> str:
    """Map HTTP status codes to error type strings."""
    error_types = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        500: "internal_error",
        503: "service_unavailable",
    }
    return error_types.get(status_code, "error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    log = get_logger(__name__)

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        service_name="agentur-crm",
    )

    log.info(
        "Starting Agentur CRM",
        version=__version__,
        environment=settings.environment,
    )

    for problem in validate_production_settings(settings):
        log.warning("Configuration problem", problem=problem)

    log.info("Initializing database")
    await init_db()
    log.info("Database initialized successfully")

    yield

    log.info("Shutting down Agentur CRM")
    await close_db()
    log.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Agentur CRM",
        description="Customer, pipeline and bookkeeping back office",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Exception handlers (most specific first)
    app.add_exception_handler(CrmError, crm_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, prefix="/api/v1", tags=["Auth"])
    app.include_router(customers.router, prefix="/api/v1", tags=["Customers"])
    app.include_router(appointments.router, prefix="/api/v1", tags=["Appointments"])
    app.include_router(finance.router, prefix="/api/v1", tags=["Finance"])
    app.include_router(team.router, prefix="/api/v1", tags=["Team"])
    app.include_router(office.router, prefix="/api/v1", tags=["Office"])
    app.include_router(dashboards.router, prefix="/api/v1", tags=["Dashboards"])

    return app


# Create application instance
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "agentur_crm.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
