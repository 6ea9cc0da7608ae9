"""
Travel Admin Backend — Object Store Tests
===========================================

What:  Input checks and resizing shared by every backend, the local backend
       on a temp directory, and the S3 backend against a stubbed boto3 client.
"""

import io
import os
from unittest.mock import MagicMock

import boto3
import pytest
from PIL import Image
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber

from app.exceptions import StorageError
from app.services.object_store import (
    MAX_ASSET_BYTES,
    Asset,
    LocalObjectStore,
    S3ObjectStore,
    Upload,
)
from fakes import FakeObjectStore, image_bytes


class TestValidation:
    """Every backend rejects bad input before any transfer."""

    def setup_method(self):
        self.store = FakeObjectStore()

    def test_empty_upload_rejected(self):
        with pytest.raises(StorageError) as exc_info:
            self.store.validate(Upload(content=b"", content_type="image/jpeg", filename="a.jpg"))
        assert exc_info.value.reason == StorageError.INVALID_INPUT

    def test_oversized_upload_rejected(self):
        upload = Upload(content=b"x" * (MAX_ASSET_BYTES + 1), content_type="image/png", filename="a.png")
        with pytest.raises(StorageError, match="exceeds"):
            self.store.validate(upload)

    def test_exactly_max_size_accepted(self, sample_png_bytes):
        content = sample_png_bytes + b"\x00" * (MAX_ASSET_BYTES - len(sample_png_bytes))
        upload = Upload(content=content, content_type="image/png", filename="a.png")
        assert self.store.validate(upload) == ".png"

    @pytest.mark.parametrize(
        "content_type,filename",
        [
            ("application/pdf", "doc.pdf"),
            ("image/svg+xml", "logo.svg"),
            ("application/octet-stream", "run.exe"),
            ("", ""),
        ],
    )
    def test_unsupported_format_rejected(self, content_type, filename, sample_image_bytes):
        upload = Upload(content=sample_image_bytes, content_type=content_type, filename=filename)
        with pytest.raises(StorageError, match="not supported") as exc_info:
            self.store.validate(upload)
        assert exc_info.value.reason == StorageError.INVALID_INPUT

    def test_jpeg_extension_normalized(self, sample_image_bytes):
        upload = Upload(content=sample_image_bytes, content_type="image/jpeg", filename="photo.JPEG")
        assert self.store.validate(upload) == ".jpg"

    def test_missing_filename_uses_detected_format(self, sample_png_bytes):
        upload = Upload(content=sample_png_bytes, content_type="image/png", filename="")
        assert self.store.validate(upload) == ".png"

    def test_generic_content_type_with_image_extension_accepted(self):
        upload = Upload(content=image_bytes("GIF"), content_type="application/octet-stream", filename="a.gif")
        assert self.store.validate(upload) == ".gif"

    def test_renamed_non_image_rejected(self):
        upload = Upload(content=b"%PDF-1.4 not an image", content_type="image/jpeg", filename="brochure.jpg")
        with pytest.raises(StorageError, match="not supported") as exc_info:
            self.store.validate(upload)
        assert exc_info.value.reason == StorageError.INVALID_INPUT
        assert exc_info.value.context["detected"] == "application/pdf"

    def test_extension_follows_header_bytes_not_filename(self, sample_png_bytes):
        upload = Upload(content=sample_png_bytes, content_type="image/jpeg", filename="photo.jpg")
        assert self.store.validate(upload) == ".png"

    def test_handle_layout(self):
        handle = self.store.generate_handle(".png")
        parts = handle.split("/")
        assert parts[0] == "travel-packages"
        assert len(parts) == 5
        assert parts[-1].endswith(".png")


class TestResize:
    """Stored images fit inside MAX_DIMENSIONS."""

    @pytest.mark.asyncio
    async def test_large_image_scaled_down(self):
        store = FakeObjectStore()
        upload = Upload(content=image_bytes("JPEG", (1600, 1200)), content_type="image/jpeg", filename="big.jpg")

        asset = await store.store(upload)

        with Image.open(io.BytesIO(store.objects[asset.handle])) as stored:
            assert stored.size == (800, 600)
            assert stored.format == "JPEG"

    @pytest.mark.asyncio
    async def test_aspect_ratio_kept(self):
        store = FakeObjectStore()
        upload = Upload(content=image_bytes("PNG", (1200, 300)), content_type="image/png", filename="wide.png")

        asset = await store.store(upload)

        with Image.open(io.BytesIO(store.objects[asset.handle])) as stored:
            assert stored.size == (800, 200)
            assert stored.format == "PNG"

    @pytest.mark.asyncio
    async def test_small_image_stored_unchanged(self, jpeg_upload):
        store = FakeObjectStore()

        asset = await store.store(jpeg_upload)

        assert store.objects[asset.handle] == jpeg_upload.content

    @pytest.mark.asyncio
    async def test_undecodable_image_rejected_before_upload(self):
        store = FakeObjectStore()
        upload = Upload(content=b"\x89PNG\r\n\x1a\n" + b"\x00" * 32, content_type="image/png", filename="a.png")

        with pytest.raises(StorageError) as exc_info:
            await store.store(upload)

        assert exc_info.value.reason == StorageError.INVALID_INPUT
        assert store.puts == []


class TestStoreAndDelete:

    @pytest.mark.asyncio
    async def test_backend_failure_becomes_upload_failed(self, jpeg_upload):
        store = FakeObjectStore()
        store.fail_store = True
        with pytest.raises(StorageError) as exc_info:
            await store.store(jpeg_upload)
        assert exc_info.value.reason == StorageError.UPLOAD_FAILED

    @pytest.mark.asyncio
    async def test_delete_failure_becomes_delete_failed(self):
        store = FakeObjectStore()
        store.fail_delete = True
        with pytest.raises(StorageError) as exc_info:
            await store.delete("travel-packages/a.jpg")
        assert exc_info.value.reason == StorageError.DELETE_FAILED

    @pytest.mark.asyncio
    async def test_delete_empty_handle_is_noop(self):
        store = FakeObjectStore()
        await store.delete("")
        assert store.deletes == []

    def test_asset_requires_both_halves(self):
        record = MagicMock(image="https://cdn/a.jpg", image_handle="")
        assert Asset.of(record) is None
        record.image_handle = "travel-packages/a.jpg"
        assert Asset.of(record) == Asset("https://cdn/a.jpg", "travel-packages/a.jpg")


class TestLocalObjectStore:

    @pytest.mark.asyncio
    async def test_store_writes_file_and_returns_media_locator(self, temp_storage, jpeg_upload):
        store = LocalObjectStore(temp_storage)

        asset = await store.store(jpeg_upload)

        assert asset.locator == f"/media/{asset.handle}"
        path = store.resolve(asset.handle)
        assert path.read_bytes() == jpeg_upload.content

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, temp_storage, jpeg_upload):
        store = LocalObjectStore(temp_storage)
        asset = await store.store(jpeg_upload)

        await store.delete(asset.handle)

        assert not os.path.exists(store.resolve(asset.handle))

    @pytest.mark.asyncio
    async def test_delete_missing_file_is_not_an_error(self, temp_storage):
        store = LocalObjectStore(temp_storage)
        await store.delete("travel-packages/2024/01/01/gone.jpg")

    def test_resolve_rejects_traversal(self, temp_storage):
        store = LocalObjectStore(temp_storage)
        with pytest.raises(StorageError):
            store.resolve("../../etc/passwd")


class TestS3ObjectStore:

    def _client(self):
        return boto3.client(
            "s3",
            region_name="us-east-1",
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        )

    @pytest.mark.asyncio
    async def test_store_puts_object_and_builds_public_locator(self, jpeg_upload):
        client = self._client()
        store = S3ObjectStore(
            "travel-bucket",
            public_base_url="https://cdn.example.com/",
            client=client,
        )

        with Stubber(client) as stubber:
            stubber.add_response("put_object", {"ETag": '"abc"'})
            asset = await store.store(jpeg_upload)
            stubber.assert_no_pending_responses()

        assert asset.handle.startswith("travel-packages/")
        assert asset.locator == f"https://cdn.example.com/{asset.handle}"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, jpeg_upload):
        client = self._client()
        store = S3ObjectStore("travel-bucket", client=client, retry_min_wait=0, retry_max_wait=0)

        with Stubber(client) as stubber:
            stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
            with pytest.raises(StorageError) as exc_info:
                await store.store(jpeg_upload)
            stubber.assert_no_pending_responses()

        assert exc_info.value.reason == StorageError.UPLOAD_FAILED
        assert exc_info.value.context["code"] == "AccessDenied"

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, jpeg_upload):
        client = MagicMock()
        client.put_object.side_effect = [
            EndpointConnectionError(endpoint_url="https://s3.example.com"),
            {"ETag": '"abc"'},
        ]
        store = S3ObjectStore("travel-bucket", client=client, retry_min_wait=0, retry_max_wait=0)

        asset = await store.store(jpeg_upload)

        assert client.put_object.call_count == 2
        assert asset.locator == f"https://travel-bucket.s3.us-east-1.amazonaws.com/{asset.handle}"

    @pytest.mark.asyncio
    async def test_delete_object(self):
        client = self._client()
        store = S3ObjectStore("travel-bucket", client=client)

        with Stubber(client) as stubber:
            stubber.add_response(
                "delete_object",
                {},
                {"Bucket": "travel-bucket", "Key": "travel-packages/a.jpg"},
            )
            await store.delete("travel-packages/a.jpg")
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_missing_bucket_is_not_configured(self, jpeg_upload):
        store = S3ObjectStore("", client=MagicMock())
        with pytest.raises(StorageError) as exc_info:
            await store.store(jpeg_upload)
        assert exc_info.value.reason == StorageError.NOT_CONFIGURED
