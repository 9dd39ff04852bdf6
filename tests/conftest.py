"""
Pytest configuration and shared fixtures.

This file provides common fixtures for all tests.

Each test runs against its own in-memory SQLite database (aiosqlite) built
from the SQLModel metadata. Redis and the payment gateway are replaced by
in-process fakes through FastAPI dependency overrides.
"""

import os
from collections.abc import AsyncGenerator

# Settings are read once at import time, so the environment must be in place
# before anything under app/ is imported.
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec"
os.environ["ENVIRONMENT"] = "development"

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from app import models  # noqa: E402, F401
from app.core.database import get_db  # noqa: E402
from app.core.redis import get_redis  # noqa: E402
from app.main import app as main_app  # noqa: E402
from app.models.hierarchy import Batches, Districts, Places, Units  # noqa: E402
from app.models.user import UserRole, Users  # noqa: E402
from app.services.razorpay import get_payment_gateway  # noqa: E402
from tests.helpers import FakeGateway, FakeRedis, make_user, session_cookie  # noqa: E402


# =============================================================================
# Database / App / Client
# =============================================================================


@pytest.fixture(scope="function")
async def engine():
    """
    Create a fresh in-memory database for each test function.

    StaticPool keeps the single connection alive so every session sees the
    same database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test."""
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="function")
def app(db_session: AsyncSession, fake_redis: FakeRedis, gateway: FakeGateway) -> FastAPI:
    """
    Create FastAPI app with test database session, fake Redis and fake gateway.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[FakeRedis, None]:
        yield fake_redis

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_redis] = override_get_redis
    main_app.dependency_overrides[get_payment_gateway] = lambda: gateway

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/v1/stats")
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
async def batch(db_session: AsyncSession) -> Batches:
    """A batch with a zero total."""
    batch = Batches(name="Batch 2010", slug="batch-2010", year=2010)
    db_session.add(batch)
    await db_session.commit()
    await db_session.refresh(batch)
    return batch


@pytest.fixture
async def other_batch(db_session: AsyncSession) -> Batches:
    batch = Batches(name="Batch 2015", slug="batch-2015", year=2015)
    db_session.add(batch)
    await db_session.commit()
    await db_session.refresh(batch)
    return batch


@pytest.fixture
async def place(db_session: AsyncSession) -> Places:
    """A place inside a district."""
    district = Districts(name="Malappuram")
    db_session.add(district)
    await db_session.flush()
    place = Places(name="Tirur", district_id=district.id)
    db_session.add(place)
    await db_session.commit()
    await db_session.refresh(place)
    return place


@pytest.fixture
async def unit(db_session: AsyncSession) -> Units:
    unit = Units(name="Unit A")
    db_session.add(unit)
    await db_session.commit()
    await db_session.refresh(unit)
    return unit


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> Users:
    return await make_user(db_session, UserRole.SUPERADMIN, "admin@example.com")


@pytest.fixture
async def coordinator_user(db_session: AsyncSession, batch: Batches) -> Users:
    return await make_user(db_session, UserRole.COORDINATOR, "coord@example.com", batch.id)


@pytest.fixture
def admin_client(client: AsyncClient, admin_user: Users) -> AsyncClient:
    """Client carrying a SUPERADMIN session cookie."""
    client.cookies.update(session_cookie(admin_user))
    return client


@pytest.fixture
def coordinator_client(client: AsyncClient, coordinator_user: Users) -> AsyncClient:
    """Client carrying a COORDINATOR session cookie."""
    client.cookies.update(session_cookie(coordinator_user))
    return client
