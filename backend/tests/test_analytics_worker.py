import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import Settings
from db.session import Base
from workers.analytics import (
    REFRESH_TASK_NAME,
    publish_correlation_refresh,
    recalculate_all_correlations,
    recalculate_all_statistics,
    refresh_item_analytics,
)


@pytest.fixture
def worker_db(tmp_path, monkeypatch):
    """File-backed SQLite seeded with three items; settings point the workers at it."""
    from db.models import ConsumptionRecord, Item

    db_url = f"sqlite+aiosqlite:///{tmp_path / 'analytics.db'}"
    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    today = date.today()
    item_ids: list[int] = []

    async def _seed() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as db:
            items = [
                Item(item_code="W-1", item_name="Saline", current_quantity=Decimal(40)),
                Item(item_code="W-2", item_name="Tape", current_quantity=Decimal(40)),
                Item(item_code="W-3", item_name="Splints", current_quantity=Decimal(40)),
            ]
            db.add_all(items)
            await db.flush()
            for item, values in zip(items[:2], ([3, 5, 7, 9, 11], [6, 10, 14, 18, 22])):
                for offset, value in enumerate(values):
                    db.add(
                        ConsumptionRecord(
                            item_id=item.item_id,
                            consumption_date=today - timedelta(days=len(values) - 1 - offset),
                            consumed_quantity=Decimal(value),
                        )
                    )
            await db.commit()
            item_ids.extend(item.item_id for item in items)

    asyncio.run(_seed())

    monkeypatch.setattr("core.config.get_settings", lambda: Settings(database_url=db_url))

    yield {"engine": engine, "session_factory": session_factory, "item_ids": item_ids}

    asyncio.run(engine.dispose())


def _count_edges(session_factory) -> int:
    from db.models import ItemCorrelation

    async def _count():
        async with session_factory() as db:
            result = await db.execute(select(func.count()).select_from(ItemCorrelation))
            return result.scalar_one()

    return asyncio.run(_count())


def test_recalculate_all_statistics_task(worker_db):
    result = recalculate_all_statistics.run()

    assert result["status"] == "success"
    assert result["total_items"] == 3
    assert result["updated"] == 2
    assert result["no_data"] == 1
    assert result["run_id"] == "manual"


def test_recalculate_all_correlations_task(worker_db):
    result = recalculate_all_correlations.run()

    assert result["status"] == "success"
    assert result["total_pairs"] == 1
    assert result["significant_correlations"] == 1
    assert _count_edges(worker_db["session_factory"]) == 1

    forced = recalculate_all_correlations.run(force=True)
    assert forced["status"] == "success"
    assert forced["force"] is True
    assert _count_edges(worker_db["session_factory"]) == 1


def test_refresh_item_analytics_task(worker_db):
    saline_id = worker_db["item_ids"][0]
    result = refresh_item_analytics.run(item_id=saline_id)

    assert result["status"] == "success"
    assert result["total_correlations"] == 1
    assert _count_edges(worker_db["session_factory"]) == 1


def test_refresh_unknown_item_is_logged_not_raised(worker_db):
    result = refresh_item_analytics.run(item_id=999_999)

    assert result["status"] == "failed"
    assert "999999" in result["error"]


def test_publish_sends_refresh_task(monkeypatch):
    sent: list[tuple[str, dict]] = []

    def _capture_send_task(task_name: str, kwargs: dict):
        sent.append((task_name, kwargs))

    monkeypatch.setattr("workers.analytics.celery_app.send_task", _capture_send_task)

    assert publish_correlation_refresh(42) is True
    assert sent == [(REFRESH_TASK_NAME, {"item_id": 42})]


def test_publish_swallows_broker_errors(monkeypatch):
    def _broker_down(task_name: str, kwargs: dict):
        raise ConnectionError("redis unavailable")

    monkeypatch.setattr("workers.analytics.celery_app.send_task", _broker_down)

    assert publish_correlation_refresh(42) is False
