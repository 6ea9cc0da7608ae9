"""
Travel Admin Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Tests run against a real SQLite database (aiosqlite, one temp file per
       test) and a fake object store that records every call and can be
       told to fail.

Fixture Hierarchy (all function-scoped):
    ├── fake_store:          FakeObjectStore (no network)
    ├── lifecycle:           AttachmentLifecycleManager over fake_store
    ├── database:            connected Database with the schema created
    ├── db_session:          AsyncSession on that database
    ├── test_client:         HTTPX AsyncClient wired to create_app(...)
    ├── temp_storage:        directory for the local backend
    └── sample_image_bytes / sample_png_bytes
"""

import os
import tempfile

# Override settings BEFORE any app import: app.config builds its singleton
# at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["OBJECT_STORE_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="travel_admin_test_")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.config import Settings
from app.database import Database
from app.services.attachments import AttachmentLifecycleManager
from app.services.object_store import Upload
from fakes import FakeObjectStore, image_bytes


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_store():
    return FakeObjectStore()


@pytest.fixture
def lifecycle(fake_store):
    return AttachmentLifecycleManager(fake_store)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        object_store_backend="local",
        storage_root=str(tmp_path / "storage"),
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def database(test_settings):
    """
    Connected database with every table created.

    ASGITransport does not run the app lifespan, so the supervisor is never
    started in API tests; connect() sets the state it would have set.
    """
    db = Database.from_settings(test_settings)
    await db.connect()
    await db.create_schema()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_client(test_settings, database, fake_store):
    """
    HTTPX AsyncClient talking to a fresh app instance.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from app.main import create_app

    app = create_app(test_settings, database=database, object_store=fake_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Small real JPEG (10x10), well inside the resize bounds."""
    return image_bytes("JPEG")


@pytest.fixture
def sample_png_bytes():
    return image_bytes("PNG")


@pytest.fixture
def jpeg_upload(sample_image_bytes):
    return Upload(content=sample_image_bytes, content_type="image/jpeg", filename="photo.jpg")
