"""
Travel Admin Backend — Object Store Client
============================================

What:  Stores record images on a remote object host and deletes them again.
Why:   Records only keep two strings (locator + handle); the bytes live in an
       object store. Every backend shares the same input checks so bad
       uploads are rejected before any byte leaves the process.
How:   `ObjectStore` implements validation, resizing, key generation and
       error translation; backends implement `_put` / `_remove`.
Who:   Called by the attachment lifecycle manager only.

Backends:
    S3ObjectStore:     any S3-compatible host through boto3 (production)
    LocalObjectStore:  files under STORAGE_ROOT written with aiofiles,
                       served back at /media (development)

Input checks (all raise StorageError(reason="invalid_input")):
    1. Empty payload
    2. Size over 5 MiB
    3. Declared format outside {jpeg, png, gif, webp}, judged by the
       content type and the filename extension
    4. Actual format outside the same set, judged by the header bytes
       (python-magic), which catches renamed files
    5. Pillow cannot read the image

Resizing:
    Images larger than 800x600 are scaled down to fit inside that box,
    keeping aspect ratio and format. Smaller images and animations are
    stored byte-for-byte.

Handle layout:
    <folder>/<YYYY>/<MM>/<DD>/<uuid><ext>   e.g. travel-packages/2024/01/15/ab12....jpg
    UUID names carry no user input (no traversal, no collisions).
"""

import asyncio
import io
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles
import boto3
import magic
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from PIL import Image, UnidentifiedImageError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from app.exceptions import StorageError

logger = logging.getLogger(__name__)

# ── Accepted Formats ──────────────────────────────────────────────────────
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

# Content types that say nothing about the format
GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

# Canonical content type and Pillow encoder per stored extension
EXTENSION_FORMATS = {
    ".jpg": ("image/jpeg", "JPEG"),
    ".png": ("image/png", "PNG"),
    ".gif": ("image/gif", "GIF"),
    ".webp": ("image/webp", "WEBP"),
}

MAX_ASSET_BYTES = 5 * 1024 * 1024

# Stored images fit inside this box (width, height)
MAX_DIMENSIONS = (800, 600)

# libmagic only needs the file header
SNIFF_BYTES = 2048


@dataclass(frozen=True)
class Asset:
    """A stored image: `locator` for readers, `handle` for deletion."""

    locator: str
    handle: str

    @classmethod
    def of(cls, record) -> Optional["Asset"]:
        """The record's asset, or None unless both halves are present."""
        locator = getattr(record, "image", "") or ""
        handle = getattr(record, "image_handle", "") or ""
        if locator and handle:
            return cls(locator=locator, handle=handle)
        return None


@dataclass(frozen=True)
class Upload:
    """An image received with a request, not yet stored."""

    content: bytes
    content_type: str = ""
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


class ObjectStore(ABC):
    """
    Contract shared by every backend.

        store(upload)  -> Asset          raises StorageError
        delete(handle) -> None           raises StorageError

    Callers reclaiming old assets must treat StorageError from delete() as
    non-fatal; the lifecycle manager does exactly that.
    """

    def __init__(self, folder: str = "travel-packages"):
        self.folder = folder.strip("/")

    # ── Validation ────────────────────────────────────────────────────────

    def validate(self, upload: Upload) -> str:
        """
        Check size and format before any transfer.

        Returns:
            The extension to store the object under (".jpg", ".png", ...),
            taken from the detected format.
        """
        if upload.size == 0:
            raise StorageError(
                message="Uploaded image is empty.",
                reason=StorageError.INVALID_INPUT,
            )

        # Size first: nothing else needs to look at oversized payloads
        if upload.size > MAX_ASSET_BYTES:
            max_mb = MAX_ASSET_BYTES / (1024 * 1024)
            raise StorageError(
                message=(
                    f"Image size ({upload.size / (1024 * 1024):.1f}MB) exceeds "
                    f"maximum of {max_mb:.0f}MB."
                ),
                reason=StorageError.INVALID_INPUT,
                context={"size": upload.size, "max_size": MAX_ASSET_BYTES},
            )

        # Declared format: content type and extension must both be acceptable
        # when present; at least one of them must say something
        content_type = (upload.content_type or "").split(";")[0].strip().lower()
        ext = Path(upload.filename or "").suffix.lower()

        type_known = content_type not in GENERIC_CONTENT_TYPES
        if type_known and content_type not in ALLOWED_CONTENT_TYPES:
            raise self._format_error(content_type or ext)
        if ext and ext not in ALLOWED_EXTENSIONS:
            raise self._format_error(ext)
        if not type_known and not ext:
            raise self._format_error(content_type or "unknown")

        # Actual format: the header bytes decide, whatever the name says
        detected = self.detect_content_type(upload.content)
        if detected not in ALLOWED_CONTENT_TYPES:
            raise self._format_error(detected)
        return ALLOWED_CONTENT_TYPES[detected]

    @staticmethod
    def detect_content_type(content: bytes) -> str:
        """MIME type from the file's magic bytes (e.g. JPEG starts FF D8 FF)."""
        try:
            return magic.from_buffer(content[:SNIFF_BYTES], mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise StorageError(
                message="Could not verify image type.",
                reason=StorageError.INVALID_INPUT,
                context={"error": str(e)},
            )

    @staticmethod
    def _format_error(detected: str) -> StorageError:
        return StorageError(
            message=(
                f"Image format '{detected}' is not supported. "
                f"Allowed formats: jpg, jpeg, png, gif, webp"
            ),
            reason=StorageError.INVALID_INPUT,
            context={"detected": detected},
        )

    @staticmethod
    def fit_within_bounds(content: bytes, extension: str) -> bytes:
        """
        Scale the image down to fit MAX_DIMENSIONS, keeping its format.

        Returns the original bytes when no resize is needed, so small
        uploads are stored unchanged.

        Raises:
            StorageError(invalid_input) when Pillow cannot read the image.
        """
        _, pil_format = EXTENSION_FORMATS[extension]
        try:
            with Image.open(io.BytesIO(content)) as image:
                max_width, max_height = MAX_DIMENSIONS
                if image.width <= max_width and image.height <= max_height:
                    return content
                # thumbnail() would keep only the first frame
                if getattr(image, "is_animated", False):
                    return content

                image.thumbnail(MAX_DIMENSIONS)
                buffer = io.BytesIO()
                options = {"quality": 90} if pil_format in ("JPEG", "WEBP") else {}
                image.save(buffer, format=pil_format, **options)
                return buffer.getvalue()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise StorageError(
                message="Uploaded image could not be read.",
                reason=StorageError.INVALID_INPUT,
                context={"error_type": type(e).__name__},
            )

    def generate_handle(self, extension: str) -> str:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        return f"{self.folder}/{date_dir}/{uuid.uuid4()}{extension}"

    # ── Operations ────────────────────────────────────────────────────────

    async def store(self, upload: Upload) -> Asset:
        """Validate, resize, then upload under a fresh handle."""
        extension = self.validate(upload)
        content_type, _ = EXTENSION_FORMATS[extension]

        # Decoding and re-encoding is CPU work; keep it off the event loop
        content = await asyncio.to_thread(self.fit_within_bounds, upload.content, extension)
        handle = self.generate_handle(extension)

        try:
            locator = await self._put(handle, content, content_type)
        except StorageError:
            raise
        except Exception as e:
            # Backend-specific failures all look the same to callers
            logger.error("Image upload failed for %s: %s", handle, str(e))
            raise StorageError(
                message="Failed to upload image. Please try again.",
                reason=StorageError.UPLOAD_FAILED,
                context={"handle": handle, "error_type": type(e).__name__},
            )

        logger.info("Image stored: %s (%d bytes, received %d)", handle, len(content), upload.size)
        return Asset(locator=locator, handle=handle)

    async def delete(self, handle: str) -> None:
        """Delete the object behind `handle`. Missing objects are not an error."""
        # Records without an image carry an empty handle
        if not handle:
            return
        try:
            await self._remove(handle)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                message="Failed to delete image.",
                reason=StorageError.DELETE_FAILED,
                context={"handle": handle, "error": str(e)},
            )
        logger.info("Image deleted: %s", handle)

    @abstractmethod
    async def _put(self, handle: str, content: bytes, content_type: str) -> str:
        """Upload bytes under `handle`; return the public locator."""

    @abstractmethod
    async def _remove(self, handle: str) -> None:
        """Delete the object under `handle`."""


# ══════════════════════════════════════════════════════════════════════════
# S3 Backend
# ══════════════════════════════════════════════════════════════════════════

# Network-level failures worth another attempt; ClientError (access denied,
# quota, bad request) is final
TRANSIENT_S3_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
)


class S3ObjectStore(ObjectStore):
    """
    S3-compatible backend.

    boto3 is synchronous, so every call runs in a worker thread to keep the
    event loop free. Uploads retry transient network errors with exponential
    backoff + jitter; deletes are attempted exactly once.
    """

    def __init__(
        self,
        bucket: str,
        *,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        access_key_id: str = "",
        secret_access_key: str = "",
        public_base_url: Optional[str] = None,
        folder: str = "travel-packages",
        retry_attempts: int = 3,
        retry_min_wait: float = 1.0,
        retry_max_wait: float = 8.0,
        client=None,
    ):
        super().__init__(folder=folder)
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.retry_attempts = retry_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

        # An injected client (e.g. under botocore Stubber) is used as-is
        if client is None:
            # Empty keys fall through to the default AWS credential chain
            credentials = {}
            if access_key_id and secret_access_key:
                credentials = {
                    "aws_access_key_id": access_key_id,
                    "aws_secret_access_key": secret_access_key,
                }
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                **credentials,
            )
        self._client = client
        logger.info("S3ObjectStore initialized with bucket=%s folder=%s", bucket, self.folder)

    @classmethod
    def from_settings(cls, settings) -> "S3ObjectStore":
        return cls(
            settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            public_base_url=settings.s3_public_base_url,
            folder=settings.asset_folder,
            retry_attempts=settings.upload_retry_attempts,
            retry_min_wait=settings.upload_retry_min_wait,
            retry_max_wait=settings.upload_retry_max_wait,
        )

    def locator_for(self, handle: str) -> str:
        # CDN or bucket website first, then path-style for custom endpoints
        # (MinIO, R2), then the AWS virtual-hosted URL
        if self.public_base_url:
            return f"{self.public_base_url}/{handle}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{handle}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{handle}"

    def _require_bucket(self) -> None:
        if not self.bucket:
            raise StorageError(
                message="Image storage is not configured.",
                reason=StorageError.NOT_CONFIGURED,
            )

    async def _put(self, handle: str, content: bytes, content_type: str) -> str:
        self._require_bucket()
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_S3_ERRORS),
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential_jitter(
                    initial=self.retry_min_wait,
                    max=self.retry_max_wait,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                # Only network-level errors are retried; see TRANSIENT_S3_ERRORS
                with attempt:
                    await asyncio.to_thread(
                        self._client.put_object,
                        Bucket=self.bucket,
                        Key=handle,
                        Body=content,
                        ContentType=content_type,
                    )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error("S3 rejected upload of %s: %s", handle, code)
            raise StorageError(
                message="Image storage rejected the upload.",
                reason=StorageError.UPLOAD_FAILED,
                context={"handle": handle, "code": code},
            )
        return self.locator_for(handle)

    async def _remove(self, handle: str) -> None:
        self._require_bucket()
        # S3 answers 204 for missing keys, so a repeated reclaim is harmless
        await asyncio.to_thread(
            self._client.delete_object,
            Bucket=self.bucket,
            Key=handle,
        )


# ══════════════════════════════════════════════════════════════════════════
# Local Backend
# ══════════════════════════════════════════════════════════════════════════


class LocalObjectStore(ObjectStore):
    """
    Development backend writing under a storage root.

    Directory Structure:
        storage/
        └── travel-packages/
            └── 2024/01/15/
                ├── a1b2c3d4-....jpg
                └── e5f6g7h8-....png

    Locators are `<base_url>/<handle>`; the app serves them from /media.
    """

    def __init__(
        self,
        storage_root: str,
        *,
        base_url: str = "/media",
        folder: str = "travel-packages",
    ):
        super().__init__(folder=folder)
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        logger.info("LocalObjectStore initialized with storage_root=%s", self.storage_root)

    @classmethod
    def from_settings(cls, settings) -> "LocalObjectStore":
        return cls(settings.storage_root, folder=settings.asset_folder)

    def resolve(self, handle: str) -> Path:
        """
        Absolute path for a handle, refusing anything outside the root.

        Raises:
            StorageError(invalid_input) on traversal attempts (../../etc/passwd)
        """
        # resolve() collapses ".." and symlinks before the containment check
        path = (self.storage_root / handle).resolve()
        if path != self.storage_root and self.storage_root not in path.parents:
            raise StorageError(
                message="Invalid file path",
                reason=StorageError.INVALID_INPUT,
                context={"handle": handle},
            )
        return path

    async def _put(self, handle: str, content: bytes, content_type: str) -> str:
        path = self.resolve(handle)
        try:
            # Date directories are created on first use
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, str(e))
            raise StorageError(
                message="Failed to save uploaded image. Please try again.",
                reason=StorageError.UPLOAD_FAILED,
                context={"path": str(path), "os_error": str(e)},
            )
        return f"{self.base_url}/{handle}"

    async def _remove(self, handle: str) -> None:
        # A file removed by hand is not a reclaim failure
        path = self.resolve(handle)
        if path.exists():
            os.remove(path)
        else:
            logger.debug("Delete: file already gone: %s", handle)


def build_object_store(settings) -> ObjectStore:
    """Backend selected by OBJECT_STORE_BACKEND."""
    if settings.object_store_backend == "local":
        return LocalObjectStore.from_settings(settings)
    return S3ObjectStore.from_settings(settings)
