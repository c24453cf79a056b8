"""
PropRecon - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from proprecon.config import Settings, settings
from proprecon.database import Base, get_async_session
from proprecon.models import (
    MonthlyReconciliation,
    Property,
    PropertyOwner,
    ReconciliationStatus,
)
from main import app
from tests.fixtures.factories import make_mid_term_booking, make_short_term_booking


# In-memory SQLite shared across the connections of one engine
TEST_DATABASE_URL = settings.test_database_url


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestSessionLocal = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def max_policy_settings() -> Settings:
    return Settings(management_fee_policy="max_with_minimum", default_management_fee_percentage=15.0)


@pytest.fixture
def additive_policy_settings() -> Settings:
    return Settings(management_fee_policy="additive", default_management_fee_percentage=15.0)


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def test_owner(db_session: AsyncSession) -> PropertyOwner:
    """Create a property owner."""
    owner = PropertyOwner(
        id=uuid4(),
        name="Dana Whitfield",
        email="dana@example.com",
        service_type="full_service",
    )
    db_session.add(owner)
    await db_session.commit()
    return owner


@pytest_asyncio.fixture
async def test_property(db_session: AsyncSession, test_owner: PropertyOwner) -> Property:
    """Create a managed property with a 15% management fee."""
    prop = Property(
        id=uuid4(),
        name="Lakeview Cottage",
        owner_id=test_owner.id,
        management_fee_percentage=Decimal("15.00"),
    )
    db_session.add(prop)
    await db_session.commit()
    return prop


@pytest_asyncio.fixture
async def orphan_property(db_session: AsyncSession) -> Property:
    """Property with no owner assigned."""
    prop = Property(
        id=uuid4(),
        name="Unassigned Loft",
        owner_id=None,
        management_fee_percentage=Decimal("20.00"),
    )
    db_session.add(prop)
    await db_session.commit()
    return prop


@pytest_asyncio.fixture
async def january_bookings(db_session: AsyncSession, test_property: Property):
    """One $1000 five-night stay and one full-month $3000 lease in January 2025."""
    booking = make_short_term_booking(test_property.id)
    lease = make_mid_term_booking(test_property.id)
    db_session.add_all([booking, lease])
    await db_session.commit()
    return booking, lease


@pytest_asyncio.fixture
async def preview_reconciliation(
    db_session: AsyncSession,
    test_property: Property,
) -> MonthlyReconciliation:
    """Placeholder record as written by the owner-portal preview job."""
    recon = MonthlyReconciliation(
        id=uuid4(),
        property_id=test_property.id,
        owner_id=test_property.owner_id,
        reconciliation_month=date(2025, 1, 1),
        status=ReconciliationStatus.PREVIEW,
    )
    db_session.add(recon)
    await db_session.commit()
    return recon
