"""
Travel Admin Backend — FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes configuration, middleware, route mounting and lifecycle
       management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
       The database handle and object store are built here and stored on
       `app.state`; tests pass their own.
Who:   Called by uvicorn (uvicorn app.main:app) or `travel-admin` (run()).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────┐ ┌──────┐ ┌─────────┐  │
    │  │  Req ID  │→│  Logging    │→│ GZip │→│  CORS   │  │
    │  └──────────┘ └─────────────┘ └──────┘ └─────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  /api/products  /api/notices  /api/representatives  │
    │  /  /health  /test  /mongodb-status  /media         │
    │                                                     │
    │  Exception Handlers:                                │
    │  Validation/Storage/Write→400  NotFound→404  DB→500 │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → database supervisor started
    Shutdown: supervisor cancelled → pool disposed
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import __version__
from app.config import Settings, settings as default_settings
from app.database import Database
from app.exceptions import (
    DatabaseError,
    NotFoundError,
    StorageError,
    TravelAdminError,
    ValidationError,
    WriteFailedError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import health, media
from app.routes.resources import build_router
from app.schemas.records import Envelope
from app.services.attachments import AttachmentLifecycleManager
from app.services.object_store import ObjectStore, build_object_store
from app.services.resources import RESOURCES

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str) -> None:
    """
    Configure logging for the entire application.

    Format: 2024-01-15T12:00:00 [INFO] app.services.attachments: ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings
    database: Database = app.state.database

    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Travel Admin Backend starting up...")

    try:
        config.validate_required_for_production()
    except ValueError as e:
        # Not fatal: reads and image-less writes still work
        logger.error("Configuration error: %s", str(e))

    # Connects in the background; requests are served meanwhile
    database.start()

    logger.info("Object store backend: %s", type(app.state.object_store).__name__)
    logger.info("Server ready at http://%s:%d", config.host, config.port)
    logger.info("=" * 60)

    yield

    logger.info("Travel Admin Backend shutting down...")
    await database.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, message: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=Envelope(success=False, message=message, error=error).render(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to status codes and the error envelope.

    Handler hierarchy:
        ValidationError         → 400
        StorageError            → 400 (image could not be stored)
        WriteFailedError        → 400
        NotFoundError           → 404
        DatabaseError           → 500
        TravelAdminError (base) → 500
        RequestValidationError  → 400
        HTTPException           → its own status
        Exception (fallback)    → 500

    Responses never include stack traces, SQL or storage keys; those go to
    the server log only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return _error_response(400, exc.message, exc.error_code)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, exc.message, exc.error_code)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        rid = request_id_var.get("")
        logger.error("[%s] Storage error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(400, exc.message, exc.error_code)

    @app.exception_handler(WriteFailedError)
    async def handle_write_failed(request: Request, exc: WriteFailedError):
        rid = request_id_var.get("")
        logger.error("[%s] Write failed: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(400, exc.message, exc.error_code)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, exc.message, exc.error_code)

    @app.exception_handler(TravelAdminError)
    async def handle_app_error(request: Request, exc: TravelAdminError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return _error_response(500, exc.message, exc.error_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error_response(400, message, ValidationError.error_code)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error = "not_found" if exc.status_code == 404 else "http_error"
        return _error_response(exc.status_code, str(exc.detail), error)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return _error_response(
            500,
            "An unexpected error occurred. Please try again.",
            "internal_server_error",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    config: Optional[Settings] = None,
    database: Optional[Database] = None,
    object_store: Optional[ObjectStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config:        settings (defaults to the module singleton)
        database:      database handle (defaults to one built from config)
        object_store:  image backend (defaults to OBJECT_STORE_BACKEND)
    """
    config = config or default_settings

    app = FastAPI(
        title="Travel Admin API",
        description=(
            "Admin API for travel packages, notices and representatives. "
            "Records may carry one image hosted on an object store."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.database = database or Database.from_settings(config)
    app.state.object_store = object_store or build_object_store(config)
    app.state.attachments = AttachmentLifecycleManager(app.state.object_store)

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    for descriptor in RESOURCES:
        app.include_router(build_router(descriptor))
    app.include_router(media.router)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the module-level app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)


if __name__ == "__main__":
    run()
