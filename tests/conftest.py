"""Shared fixtures. Environment is pinned before storeaudit is imported."""

import io
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="storeaudit-tests-")
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["MEDIA_DIR"] = os.path.join(_TMP_DIR, "media")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["AUDIT_TIMEZONE"] = "UTC"
os.environ["ENFORCE_DAILY_AUDIT_LIMIT"] = "false"
os.environ["PERMISSION_FLAGS_PATH"] = os.path.join(_TMP_DIR, "permissions.json")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from PIL import Image as PILImage  # noqa: E402

import storeaudit.domain  # noqa: E402,F401
from storeaudit.db.base import Base, async_session_factory, engine  # noqa: E402
from storeaudit.main import app  # noqa: E402
from storeaudit.schemas.store import StoreCreate  # noqa: E402
from storeaudit.services.store import StoreService  # noqa: E402


@pytest_asyncio.fixture
async def db():
    """Fresh schema per test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db):
    async with async_session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(db):
    """API client bound to the ASGI app (no network)."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest_asyncio.fixture
async def store(session):
    """A committed store, status not_audited."""
    created = await StoreService(session).create_store(StoreCreate(store_name="Test Store 1"))
    await session.commit()
    return created


@pytest.fixture
def jpeg_bytes():
    """A plain 320x240 JPEG."""
    buf = io.BytesIO()
    PILImage.new("RGB", (320, 240), (220, 220, 220)).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def media_dir():
    return os.environ["MEDIA_DIR"]
