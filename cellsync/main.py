"""cellsync API - Main FastAPI Application."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cellsync.api.routes import integrations
from cellsync.core.circuit_breaker import CircuitBreakerOpen, get_all_circuit_breakers
from cellsync.core.config import settings
from cellsync.core.exceptions import CellSyncException, sanitize_error


def _configure_logging() -> None:
    """Set up logging based on LOG_FORMAT.

    json: Structured JSON via python-json-logger (for production).
    text: Human-readable format (for local development).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicate output
    root_logger.handlers.clear()

    handler = logging.StreamHandler()

    if settings.LOG_FORMAT == "json":
        from pythonjsonlogger.json import JsonFormatter

        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "service",
            },
            static_fields={"app": "cellsync-api"},
        )
        handler.setFormatter(formatter)
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)


_configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> Any:
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting cellsync API (env=%s)", settings.APP_ENV)
    if not settings.composio_configured:
        logger.warning("COMPOSIO_API_KEY not configured - CRM sync DISABLED")
    yield
    logger.info("Shutting down cellsync API...")


app = FastAPI(
    title="cellsync API",
    description="CRM contact synchronization for SMS agent cells",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(integrations.router, prefix="/api/v1")


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, Any]:
    """Liveness check with the state of each circuit breaker."""
    breakers = [breaker.snapshot() for breaker in get_all_circuit_breakers().values()]
    return {"status": "healthy", "circuit_breakers": breakers}


@app.exception_handler(CellSyncException)
async def cellsync_exception_handler(request: Request, exc: CellSyncException) -> JSONResponse:
    """Render domain errors as ``{error, details, code, request_id}``."""
    request_id = str(uuid.uuid4())
    logger.warning(
        "cellsync exception occurred",
        extra={
            "code": exc.code,
            "status_code": exc.status_code,
            "request_id": request_id,
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details.get("upstream"),
            "code": exc.code,
            "request_id": request_id,
        },
    )


@app.exception_handler(CircuitBreakerOpen)
async def circuit_breaker_handler(request: Request, exc: CircuitBreakerOpen) -> JSONResponse:
    request_id = str(uuid.uuid4())
    logger.warning(
        "Request refused, circuit open for %s",
        exc.service_name,
        extra={"request_id": request_id, "path": request.url.path},
    )
    return JSONResponse(
        status_code=503,
        content={
            "error": sanitize_error(exc),
            "details": None,
            "code": "SERVICE_UNAVAILABLE",
            "request_id": request_id,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "details": None,
            "code": "HTTP_ERROR",
            "request_id": str(uuid.uuid4()),
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions globally."""
    request_id = str(uuid.uuid4())
    logger.exception(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={"request_id": request_id, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": sanitize_error(exc),
            "details": None,
            "code": "INTERNAL_ERROR",
            "request_id": request_id,
        },
    )
