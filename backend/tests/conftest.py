"""
Pytest configuration and shared fixtures for the order tracking tests.

Provides an in-memory SQLite DB session, an httpx client bound to the FastAPI
app, an in-memory order store and a fixed clock for the tracking simulation.
"""
import os

# Test-only settings; must be in place before config.settings is created
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-pytest-only")
os.environ.setdefault("ENVIRONMENT", "development")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from services.order_store import InMemoryOrderStore
from services.status_events import StatusEventBus, get_status_events
from tests.factories import make_order


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    import db_models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client against the FastAPI app with the in-memory database.

    The app lifespan is not run, so no background watcher exists unless a
    test installs one.
    """
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


# ── Tracking Fixtures ────────────────────────────────────────────────


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def memory_store() -> InMemoryOrderStore:
    return InMemoryOrderStore([make_order()])


@pytest.fixture
def event_bus() -> StatusEventBus:
    return StatusEventBus()


@pytest.fixture
def recorded_events():
    """Collect every StatusChanged emitted on the process-wide bus during a test."""
    received = []
    unsubscribe = get_status_events().subscribe(received.append)
    yield received
    unsubscribe()


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture
async def sample_user(db_session: AsyncSession):
    """Create a sample customer in the test DB."""
    from db_models import User
    from middleware.auth import hash_password

    user = User(username="asha", email="asha@example.com", password_hash=hash_password("secret123"))
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(sample_user):
    return {"X-User-Id": str(sample_user.id)}


@pytest.fixture
def sample_cart() -> list[dict]:
    return [
        {"name": "Masala Dosa", "price": 120.0, "quantity": 2},
        {"name": "Filter Coffee", "price": 40.0, "quantity": 1, "image": "coffee.jpg"},
    ]
