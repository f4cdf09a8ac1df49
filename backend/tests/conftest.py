"""
Shared test fixtures and configuration for the performance tracker backend tests.
"""
import os
from datetime import timedelta
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)

from tests.utils.factories import TEST_PASSWORD, login


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_request():
    """Create a mock FastAPI request object."""
    request = MagicMock()
    request.cookies = {}
    request.client = MagicMock()
    request.client.host = "127.0.0.1"
    request.headers = {}
    request.url = MagicMock()
    request.url.path = "/api/v1/test"
    request.method = "GET"
    request.state = MagicMock(spec=[])
    return request


@pytest.fixture
def admin_principal():
    from app.core.session import Principal
    return Principal(id=1, role="admin", email="admin@example.com", full_name="Admin User")


@pytest.fixture
def manager_principal():
    from app.core.session import Principal
    return Principal(
        id=7,
        role="manager",
        email="manager@example.com",
        full_name="Mira Manager",
        employee_id="EMPa1b2c",
        manager_id="MNGa1b2c",
        department="Software",
        designation="Engineering Manager",
    )


@pytest.fixture
def valid_jwt_token():
    """Generate a valid admin access token for testing."""
    from app.core.security import create_access_token
    return create_access_token(subject="1", role="admin", expires_delta=timedelta(hours=1))


@pytest.fixture
def expired_jwt_token():
    """Generate an expired admin access token for testing."""
    from app.core.security import create_access_token
    return create_access_token(subject="1", role="admin", expires_delta=timedelta(seconds=-1))


# ============ In-memory database and HTTP client ============

@pytest_asyncio.fixture
async def db_engine():
    from app.db.base import Base

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_auth_state():
    """Login lockouts and the token blacklist are process-wide."""
    from app.core import login_tracker
    from app.core.rate_limiter import limiter
    from app.core.token_blacklist import clear_blacklist

    limiter.enabled = False
    login_tracker._login_tracker = None
    clear_blacklist()
    yield
    login_tracker._login_tracker = None
    clear_blacklist()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with ``get_db`` bound to the test database."""
    from app.api.deps import get_db
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============ Seed data ============

@pytest_asyncio.fixture
async def admin_user(db_session):
    from app.core.security import get_password_hash
    from app.models.user import User

    user = User(
        full_name="Admin User",
        email="admin@example.com",
        password_hash=get_password_hash(TEST_PASSWORD),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_client(client, admin_user):
    """Client holding an admin session cookie."""
    await login(client, admin_user.email)
    return client
