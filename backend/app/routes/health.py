"""
Travel Admin Backend — Health & Status Routes
===============================================

What:  Liveness checks, the database status endpoint and the service index.
Why:   Load balancers and the admin dashboard poll these to decide whether
       the API can take traffic.
How:   Read the connection state the database supervisor maintains; none of
       these routes opens a database connection itself.

Routes:
    GET /                 service description + endpoint directory
    GET /health           liveness + database state
    GET /test             plain liveness
    GET /mongodb-status   database connection state (path kept for existing
                          dashboard clients)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from app import __version__
from app.database import ConnectionState, Database
from app.schemas.records import DatabaseStatusResponse, HealthResponse
from app.services.resources import RESOURCES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


def _database(request: Request) -> Database:
    return request.app.state.database


def endpoint_directory() -> Dict[str, str]:
    endpoints = {
        "health": "GET /health",
        "test": "GET /test",
        "mongodbStatus": "GET /mongodb-status",
    }
    for descriptor in RESOURCES:
        label = descriptor.label
        plural = descriptor.plural
        plural_label = plural.capitalize()
        endpoints[f"getAll{plural_label}"] = f"GET /api/{plural}"
        endpoints[f"create{label}"] = f"POST /api/{plural}"
        if descriptor.upload_route:
            endpoints[f"create{label}WithImage"] = f"POST /api/{plural}/with-image"
        endpoints[f"update{label}"] = f"PUT /api/{plural}/:id"
        endpoints[f"delete{label}"] = f"DELETE /api/{plural}/:id"
    return endpoints


@router.get("/", summary="Service description and endpoint directory")
async def index(request: Request) -> Dict[str, Any]:
    database = _database(request)
    return {
        "success": True,
        "message": "Travel Admin API is running",
        "version": __version__,
        "database": "Connected" if database.is_connected else "Disconnected",
        "endpoints": endpoint_directory(),
    }


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(request: Request) -> HealthResponse:
    database = _database(request)
    return HealthResponse(
        message="Server is healthy!",
        database="Connected" if database.is_connected else "Disconnected",
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/test", summary="Liveness check")
async def test() -> Dict[str, Any]:
    return {
        "success": True,
        "message": "Server is working!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get(
    "/mongodb-status",
    response_model=DatabaseStatusResponse,
    response_model_by_alias=True,
    summary="Database connection state",
)
async def database_status(request: Request) -> DatabaseStatusResponse:
    state = _database(request).state
    connected = state == ConnectionState.CONNECTED
    return DatabaseStatusResponse(
        connected=connected,
        connection_state=state.label,
        message="Database Connected" if connected else "Database Disconnected",
    )
