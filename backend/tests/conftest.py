"""
Pytest configuration and shared test fixtures.

Every test gets a fresh in-memory SQLite database with the full schema,
a handful of users and one item from each catalog. API tests talk to the
real application over ``httpx.ASGITransport`` with the database dependency
pointed at the test session and real bearer tokens.
"""

import os

# Settings are cached on first use, so the test environment must be in place
# before anything under ``src`` is imported.
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.core.security import create_access_token
from src.database.connection import get_db
from src.database.models import (
    Base,
    Door,
    DoorAccessory,
    Moulding,
    User,
    UserRole,
)
from src.main import app


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create an in-memory SQLite engine with every table created.

    StaticPool keeps the single in-memory database alive across
    connections for the duration of the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a session configured like the application's session factory.
    """
    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


# ============================================================================
# Users
# ============================================================================


async def _create_user(
    session: AsyncSession,
    name: str,
    email: str,
    role: UserRole = UserRole.USER,
    phone: str = "+998901234567",
) -> User:
    user = User(name=name, email=email, phone=phone, role=role, is_active=True)
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def customer(db_session: AsyncSession) -> User:
    """A regular customer with contact details."""
    return await _create_user(db_session, "Aziza Karimova", "aziza@example.com")


@pytest.fixture
async def other_customer(db_session: AsyncSession) -> User:
    """A second customer, used for ownership isolation checks."""
    return await _create_user(
        db_session, "Bekzod Tursunov", "bekzod@example.com", phone="+998907654321"
    )


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    """An administrator."""
    return await _create_user(
        db_session, "Shop Admin", "admin@example.com", role=UserRole.ADMIN
    )


# ============================================================================
# Catalog
# ============================================================================


@pytest.fixture
async def door(db_session: AsyncSession) -> Door:
    """An active door priced at 100.00 with no discount."""
    item = Door(
        name="Oak Classic",
        description="Solid oak interior door",
        price=Decimal("100.00"),
        final_price=None,
        image_urls=["https://cdn.example.com/doors/oak-1.jpg", "https://cdn.example.com/doors/oak-2.jpg"],
        is_active=True,
    )
    db_session.add(item)
    await db_session.commit()
    return item


@pytest.fixture
async def discounted_door(db_session: AsyncSession) -> Door:
    """A door whose final price undercuts its list price."""
    item = Door(
        name="Walnut Modern",
        price=Decimal("300.00"),
        final_price=Decimal("250.00"),
        image_urls=[],
        is_active=True,
    )
    db_session.add(item)
    await db_session.commit()
    return item


@pytest.fixture
async def accessory(db_session: AsyncSession) -> DoorAccessory:
    """A door handle priced at 20.00."""
    item = DoorAccessory(
        name="Brass Handle",
        material="brass",
        price=Decimal("20.00"),
        stock_quantity=50,
        image_urls=["https://cdn.example.com/accessories/handle.jpg"],
    )
    db_session.add(item)
    await db_session.commit()
    return item


@pytest.fixture
async def moulding(db_session: AsyncSession) -> Moulding:
    """A moulding priced at 15.50 with a customer-facing title."""
    item = Moulding(
        name="MLD-200",
        title="Classic Frame 200",
        article="A-200",
        size="2100x70",
        price=Decimal("15.50"),
        image_urls=[],
    )
    db_session.add(item)
    await db_session.commit()
    return item


# ============================================================================
# Checkout
# ============================================================================


@pytest.fixture
def delivery_time() -> datetime:
    return datetime(2026, 11, 2, 10, 0, tzinfo=timezone(timedelta(hours=5)))


@pytest.fixture
def checkout_payload(delivery_time: datetime) -> dict:
    """JSON body for a valid checkout request."""
    return {
        "delivery_address": "12 Amir Temur Ave, Tashkent",
        "order_type": "full_set",
        "preferred_delivery_time": delivery_time.isoformat(),
        "comment": "Call before arrival",
        "installation_notes": "Third floor, no lift",
        "delivery_notes": "Leave at reception",
    }


# ============================================================================
# HTTP Client
# ============================================================================


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an asynchronous test client bound to the test database.

    Example:
        async def test_health_endpoint_async(async_client):
            response = await async_client.get("/health")
            assert response.status_code == 200
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """
    Build a bearer token header for a user.

    Example:
        response = await async_client.get("/api/v1/basket", headers=auth_headers(customer))
    """

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
