"""
Smart Mobility Backend - Test Configuration (conftest.py)
==========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test that touches storage gets a fresh in-memory SQLite database
       (aiosqlite, StaticPool so all sessions share the one connection) with
       the schema created from the ORM metadata. Unit tests that only need
       to check calls use AsyncMock stores instead.

Fixture Hierarchy (all function-scoped):
    db_engine ─▶ db_session ─▶ route_store / user_store ─▶ route_service
                           └▶ make_user
    clock: FakeClock, one second later on every call
    mock_route_store / mock_user_store: AsyncMock(spec=...) stores
    app ─▶ test_client: FastAPI app on the same database, httpx ASGITransport
"""

import os

# Override settings for testing BEFORE any smart_mobility import: the
# settings singleton is read once at import time.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["AUTH_STRATEGY"] = "token"
os.environ["JWT_SECRET"] = "test-jwt-secret-not-for-production-use"
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator, Optional  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import smart_mobility.models  # noqa: E402,F401
from smart_mobility.auth.passwords import hash_password  # noqa: E402
from smart_mobility.config import Settings  # noqa: E402
from smart_mobility.database import Base, get_db_session  # noqa: E402
from smart_mobility.models.user import PROVIDER_LOCAL, User  # noqa: E402
from smart_mobility.services.route_service import RouteService  # noqa: E402
from smart_mobility.stores.base import RouteStore, UserStore  # noqa: E402
from smart_mobility.stores.sql import SqlRouteStore, SqlUserStore  # noqa: E402

from factories import TEST_PASSWORD, FakeClock  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_engine():
    """A fresh in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def route_store(db_session) -> SqlRouteStore:
    return SqlRouteStore(db_session)


@pytest.fixture
def user_store(db_session) -> SqlUserStore:
    return SqlUserStore(db_session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def route_service(route_store, user_store, clock) -> RouteService:
    return RouteService(route_store, user_store, clock=clock)


@pytest.fixture
def make_user(user_store):
    """
    Factory fixture creating persisted users.

    Usage:
        user = await make_user(email="ana@example.com")
    """
    counter = {"n": 0}

    async def _make_user(
        name: str = "Test Rider",
        email: Optional[str] = None,
        password: Optional[str] = TEST_PASSWORD,
    ) -> User:
        counter["n"] += 1
        user = User(
            name=name,
            email=email or f"rider{counter['n']}@example.com",
            password_hash=hash_password(password) if password else None,
            provider=PROVIDER_LOCAL,
            total_trips=0,
        )
        return await user_store.add(user)

    return _make_user


# ══════════════════════════════════════════════════════════════════════════
# Mock Stores
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mock_route_store():
    """RouteStore whose every method is an AsyncMock."""
    return AsyncMock(spec=RouteStore)


@pytest.fixture
def mock_user_store():
    return AsyncMock(spec=UserStore)


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        environment="development",
        auth_strategy="token",
        jwt_secret="test-jwt-secret-not-for-production-use",
        google_client_id="",
    )


@pytest.fixture
def app(app_settings, db_engine):
    """
    FastAPI app whose requests run against the test database.

    Each request gets its own session from the test engine, committed on
    success and rolled back on error, the same contract as production.
    """
    from smart_mobility.main import create_app

    application = create_app(app_settings)
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def registered(test_client) -> dict:
    """Registers one account through the API; returns token, user and headers."""
    response = await test_client.post(
        "/api/auth/register",
        json={"name": "Ana Rider", "email": "ana@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "token": body["token"],
        "user": body["user"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }
