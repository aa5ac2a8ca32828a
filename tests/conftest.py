"""
Shared test fixtures for the StaffDesk test suite.

Each test gets its own in-memory database (aiosqlite + StaticPool) and its
own upload directory; the app's ``get_db`` and asset manager dependencies
are overridden to point at them.
"""

import os
import sys
import tempfile
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="staffdesk-uploads-")

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from staffdesk.api.v1.deps import get_db
from staffdesk.core.security import get_password_hash
from staffdesk.db.base import Base
from staffdesk.db.init_db import ensure_default_admin
from staffdesk.db.session import enable_sqlite_foreign_keys
from staffdesk.main import app
from staffdesk.models.user import ROLE_USER, User
from staffdesk.services.assets import AssetManager, get_asset_manager

API = "/api/v1"


@pytest.fixture
async def engine():
    """Fresh in-memory database with all tables."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def assets(tmp_path) -> AssetManager:
    return AssetManager(tmp_path / "profiles", 5 * 1024 * 1024)


@pytest.fixture
async def async_client(session_factory, assets) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_asset_manager] = lambda: assets

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Users & logins ──────────────────────────────────────────────────
@pytest.fixture
def make_user(session_factory):
    """Insert a user row directly."""

    async def _make(
        username: str,
        password: str = "pw123456",
        name: str | None = None,
        role: str = ROLE_USER,
        **extra,
    ) -> User:
        async with session_factory() as session:
            user = User(
                username=username,
                hashed_password=get_password_hash(password),
                name=name or username.title(),
                role=role,
                **extra,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make


@pytest.fixture
def login(async_client):
    """Log in and return Authorization headers (the cookie jar is cleared)."""

    async def _login(username: str, password: str) -> dict[str, str]:
        resp = await async_client.post(
            f"{API}/auth/login", data={"username": username, "password": password}
        )
        assert resp.status_code == 200, resp.text
        async_client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login


@pytest.fixture
async def admin_headers(session_factory, login) -> dict[str, str]:
    await ensure_default_admin(session_factory)
    return await login("admin", "admin123")


@pytest.fixture
async def alice(make_user) -> User:
    return await make_user("alice", "pw123456", "Alice A")


@pytest.fixture
async def alice_headers(alice, login) -> dict[str, str]:
    return await login("alice", "pw123456")
