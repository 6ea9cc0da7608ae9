"""
Travel Admin Backend — Media Route
====================================

What:  Serves images stored by the local object-store backend.
Why:   The local backend hands out `/media/<handle>` locators; something has
       to answer them. With the S3 backend locators point at the bucket and
       this route always answers 404.
"""

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from app.exceptions import NotFoundError
from app.services.object_store import LocalObjectStore

router = APIRouter(tags=["Media"])


@router.get(
    "/media/{file_path:path}",
    summary="Serve a locally stored image",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found"},
    },
)
async def serve_media(file_path: str, request: Request) -> FileResponse:
    store = request.app.state.object_store
    if not isinstance(store, LocalObjectStore):
        raise NotFoundError(resource="file", resource_id=file_path)

    # StorageError (400) on traversal attempts
    full_path = store.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
