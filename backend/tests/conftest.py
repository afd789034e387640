"""
Test Configuration — Fixtures for async DB, test client, and mock data.

Uses per-test transactions with SAVEPOINT/rollback so each test gets a
clean database state while sharing the same session-level schema.
"""

import os

# Settings are read at import time; keep tests off the broker.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("ANALYTICS_REFRESH_ON_WRITE", "false")

from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from api.deps import get_db
from api.main import app
from db.repository import SqlAnalyticsRepository
from db.session import Base

# Use in-memory SQLite for tests.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

GAUZE_SERIES = [10, 12, 11, 13, 12]
SYRINGE_SERIES = [10, 20, 30, 40, 50]
GLOVES_SERIES = [50, 40, 30, 20, 10]


def recent_days(count: int, today: date | None = None) -> list[date]:
    """The last `count` days, oldest first, ending today."""
    end = today or date.today()
    return [end - timedelta(days=offset) for offset in range(count - 1, -1, -1)]


def consumption_rows(item_id: int, values, today: date | None = None):
    from db.models import ConsumptionRecord

    return [
        ConsumptionRecord(item_id=item_id, consumption_date=day, consumed_quantity=Decimal(value))
        for day, value in zip(recent_days(len(values), today), values)
    ]


@pytest.fixture(scope="session")
async def test_engine():
    """Create a test database engine and build all tables once."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create a test session wrapped in a transaction that rolls back after each test."""
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        # Commits inside app code release a SAVEPOINT instead of ending our transaction
        session = AsyncSession(bind=conn, expire_on_commit=False, join_transaction_mode="create_savepoint")

        await conn.begin_nested()  # SAVEPOINT

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def repository(test_db):
    return SqlAnalyticsRepository(test_db)


@pytest.fixture
def make_consumption():
    """Factory: ConsumptionRecord rows for the last len(values) days."""
    return consumption_rows


@pytest.fixture
async def client(test_db):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """
    One category, four items, five days of consumption for three of them.

      gauze   [10, 12, 11, 13, 12]  steady
      syringe [10, 20, 30, 40, 50]  rising
      gloves  [50, 40, 30, 20, 10]  falling, below reorder level
      masks   no records
    """
    from db.models import Category, Item

    category = Category(name="Medical Supplies", description="Consumables")
    test_db.add(category)
    await test_db.flush()

    def _item(code: str, name: str, quantity: int, reorder: int) -> Item:
        return Item(
            item_code=code,
            item_name=name,
            category_id=category.category_id,
            current_quantity=Decimal(quantity),
            reorder_level=Decimal(reorder),
        )

    gauze = _item("MED-001", "Gauze", 100, 20)
    syringe = _item("MED-002", "Syringe", 500, 100)
    gloves = _item("MED-003", "Gloves", 20, 50)
    masks = _item("MED-004", "Masks", 0, 10)
    test_db.add_all([gauze, syringe, gloves, masks])
    await test_db.flush()

    test_db.add_all(consumption_rows(gauze.item_id, GAUZE_SERIES))
    test_db.add_all(consumption_rows(syringe.item_id, SYRINGE_SERIES))
    test_db.add_all(consumption_rows(gloves.item_id, GLOVES_SERIES))
    await test_db.flush()

    await test_db.commit()

    return {
        "category": category,
        "gauze": gauze,
        "syringe": syringe,
        "gloves": gloves,
        "masks": masks,
    }
