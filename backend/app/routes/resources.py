"""
Travel Admin Backend — Resource Route Handlers
================================================

What:  GET/POST/PUT/DELETE handlers for every record type.
Why:   The handlers are identical across record types, so they are built
       once by `build_router(descriptor)` instead of being copied per type.
How:   Each handler reads the request (JSON or form), delegates to the
       ResourceService and wraps the envelope in a JSONResponse.

Routes per record type R:
    GET    /api/R              list, newest first               200
    POST   /api/R              create, optional `image` file    201
    POST   /api/R/with-image   same as above (representatives)  201
    PUT    /api/R/{id}         partial update, optional image   200
    DELETE /api/R/{id}         delete                           200

Errors are raised as application exceptions and rendered by the global
handlers in main.py.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.database import get_db_session
from app.exceptions import ValidationError
from app.services.attachments import AttachmentLifecycleManager
from app.services.object_store import Upload
from app.services.resource_service import ResourceService
from app.services.resources import ResourceDescriptor

logger = logging.getLogger(__name__)

# Multipart field carrying the image
IMAGE_FIELD = "image"


def get_lifecycle(request: Request) -> AttachmentLifecycleManager:
    return request.app.state.attachments


async def read_payload(request: Request) -> Tuple[Dict[str, Any], Optional[Upload]]:
    """
    Read text fields and the optional image from a JSON or form request.

    Repeated form keys (features=a&features=b) become lists. An empty file
    input (no filename, no bytes) counts as no image.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError(message="Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError(message="Request body must be a JSON object")
        return body, None

    form = await request.form()
    payload: Dict[str, Any] = {}
    upload: Optional[Upload] = None

    for key in form.keys():
        values = form.getlist(key)
        if key == IMAGE_FIELD:
            files = [v for v in values if isinstance(v, UploadFile)]
            if files:
                upload = await _read_upload(files[0])
            continue
        texts = [v for v in values if isinstance(v, str)]
        if texts:
            payload[key] = texts[0] if len(texts) == 1 else texts

    return payload, upload


async def _read_upload(file: UploadFile) -> Optional[Upload]:
    try:
        content = await file.read()
    finally:
        await file.close()

    if not content and not file.filename:
        return None

    logger.info(
        "Received image: filename=%s, size=%d bytes",
        file.filename or "unknown",
        len(content),
    )
    return Upload(
        content=content,
        content_type=file.content_type or "",
        filename=file.filename or "",
    )


def build_router(descriptor: ResourceDescriptor, service: Optional[ResourceService] = None) -> APIRouter:
    """Router with the CRUD endpoints for one record type."""
    service = service or ResourceService(descriptor)
    plural = descriptor.plural
    router = APIRouter(prefix=f"/api/{plural}", tags=[plural.capitalize()])

    async def list_records(
        db: AsyncSession = Depends(get_db_session),
    ) -> JSONResponse:
        envelope = await service.list_records(db)
        return JSONResponse(status_code=200, content=envelope.render())

    async def create_record(
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        lifecycle: AttachmentLifecycleManager = Depends(get_lifecycle),
    ) -> JSONResponse:
        payload, upload = await read_payload(request)
        envelope = await service.create_record(db, lifecycle, payload, upload)
        return JSONResponse(status_code=201, content=envelope.render())

    async def update_record(
        record_id: str,
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        lifecycle: AttachmentLifecycleManager = Depends(get_lifecycle),
    ) -> JSONResponse:
        rid = service.parse_id(record_id)
        payload, upload = await read_payload(request)
        envelope = await service.update_record(db, lifecycle, rid, payload, upload)
        return JSONResponse(status_code=200, content=envelope.render())

    async def delete_record(
        record_id: str,
        db: AsyncSession = Depends(get_db_session),
        lifecycle: AttachmentLifecycleManager = Depends(get_lifecycle),
    ) -> JSONResponse:
        rid = service.parse_id(record_id)
        envelope = await service.delete_record(db, lifecycle, rid)
        return JSONResponse(status_code=200, content=envelope.render())

    router.add_api_route(
        "",
        list_records,
        methods=["GET"],
        summary=f"List all {plural}, newest first",
    )
    router.add_api_route(
        "",
        create_record,
        methods=["POST"],
        status_code=201,
        summary=f"Create a {descriptor.name}",
    )
    if descriptor.upload_route:
        router.add_api_route(
            "/with-image",
            create_record,
            methods=["POST"],
            status_code=201,
            summary=f"Create a {descriptor.name} with an image (multipart form)",
        )
    router.add_api_route(
        "/{record_id}",
        update_record,
        methods=["PUT"],
        summary=f"Update a {descriptor.name}; omitted fields are kept",
    )
    router.add_api_route(
        "/{record_id}",
        delete_record,
        methods=["DELETE"],
        summary=f"Delete a {descriptor.name} and its image",
    )
    return router
