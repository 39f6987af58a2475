"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from dropnow.database import get_session
from dropnow.main import app
from dropnow.models import Driver, Ride, RideStatus, User
from dropnow.models.base import utcnow
from dropnow.services.auth import create_token
from dropnow.services.rate_limit import get_rate_limiter


@pytest.fixture(autouse=True)
def mock_queue():
    """Mock the SAQ queue to avoid Redis connections in tests."""
    mock_job = MagicMock()
    mock_job.id = "test-job-id"
    mock_job.key = "test-job-key"

    with patch("dropnow.tasks.queue.queue.enqueue", new_callable=AsyncMock) as mock_enqueue:
        mock_enqueue.return_value = mock_job
        yield mock_enqueue


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Start every test with empty rate limit windows."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
async def test_engine(tmp_path):
    """Create a throwaway SQLite database per test.

    A file (not :memory:) so several connections can race on one token.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Database session for arranging and inspecting test data.

    Requests run on their own sessions, so fixtures commit rather than flush.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        async with session_factory() as request_session:
            yield request_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def user(session: AsyncSession) -> User:
    """Create a test staff user."""
    user = User(email="test@example.com", name="Test User", is_admin=False)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def admin_user(session: AsyncSession) -> User:
    """Create a test admin user."""
    user = User(email="admin@example.com", name="Admin User", is_admin=True)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def driver(session: AsyncSession) -> Driver:
    """Create a test driver."""
    driver = Driver(
        external_id="DRV-42",
        first_name="Dana",
        last_name="Driver",
        email="dana@example.com",
        phone="+15550100",
    )
    session.add(driver)
    await session.commit()
    return driver


@pytest.fixture
async def ride(session: AsyncSession, driver: Driver) -> Ride:
    """Create an assigned ride for the test driver."""
    ride = Ride(
        ride_number="R-1001",
        status=RideStatus.ASSIGNED,
        pickup_address="1 Airport Way",
        dropoff_address="200 Market St",
        pickup_time=utcnow() + timedelta(hours=2),
        passenger_name="Pat Passenger",
        driver_id=driver.id,
    )
    session.add(ride)
    await session.commit()
    return ride


@pytest.fixture
def user_token(user: User) -> str:
    """Create a JWT token for the test user."""
    return create_token(user)


@pytest.fixture
def admin_token(admin_user: User) -> str:
    """Create a JWT token for the admin user."""
    return create_token(admin_user)


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    """Create authorization headers for the test user."""
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    """Create authorization headers for the admin user."""
    return {"Authorization": f"Bearer {admin_token}"}


# Helper to make authenticated requests
class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.put(url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)


@pytest.fixture
def admin_client(client: AsyncClient, admin_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated admin test client."""
    return AuthenticatedClient(client, admin_headers)
