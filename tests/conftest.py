"""Pytest configuration for content_hub tests."""
import io
import os
import tempfile

# settings are read at import time
_TMP = tempfile.mkdtemp(prefix="content-hub-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP}/app.db")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP, "uploads"))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import NullPool

from content_hub.core.identity import Identity
from content_hub.core.security import create_access_token
from content_hub.database import Base, build_engine, get_async_session
from content_hub.main import app
from content_hub.services import files as file_service
from content_hub.services import shares as share_service
from content_hub.services import users as user_service
from content_hub.storage.backend import get_storage
from content_hub.storage.local import LocalStorage


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path}/test.db"


@pytest_asyncio.fixture
async def engine(db_url):
    test_engine = build_engine(db_url, poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "blobs")


@pytest_asyncio.fixture
async def client(session_maker, storage):
    async def _session_override():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _session_override
    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def identity_of(user) -> Identity:
    return Identity(user_id=user.id, role=user.role)


@pytest.fixture
def make_user(session):
    async def _make(username: str, role: str = "user", password: str = "secret-pass"):
        return await user_service.create_user(session, username, password, role)
    return _make


@pytest.fixture
def make_file(session, storage):
    async def _make(owner, content: bytes = b"hello world", filename: str = "hello.txt", mime: str = "text/plain"):
        return await file_service.upload(
            session,
            storage,
            owner_id=owner.id,
            fileobj=io.BytesIO(content),
            filename=filename,
            content_type=mime,
        )
    return _make


@pytest.fixture
def make_share(session):
    async def _make(creator, db_file, **options):
        return await share_service.create_share(session, identity_of(creator), db_file.id, **options)
    return _make


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user("root", role="admin")


@pytest_asyncio.fixture
async def alice(make_user):
    return await make_user("alice")


@pytest_asyncio.fixture
async def bob(make_user):
    return await make_user("bob")


@pytest.fixture
def headers_for():
    return auth_headers
