"""
Batch Statistics Orchestrator — Recompute item snapshots in one pass.

Avoids one consumption query per item:
  1. load the target items once
  2. load every consumption record in the window once
  3. group records by item in memory
  4. build a snapshot per item (NO_DATA sentinel when it has no records)
  5. persist all snapshots in a single batch write + commit

A failing item is recorded in the summary errors and excluded from the
success count; the batch always runs to the end.
"""

import time
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

import structlog

from analytics.exceptions import CategoryNotFoundError
from analytics.repository import AnalyticsRepository
from analytics.statistics import build_snapshot
from analytics.timeseries import build_series, group_by_item, lookback_window
from analytics.types import ItemRef, ItemStatisticsSnapshot

logger = structlog.get_logger()


class BatchStatisticsService:
    def __init__(self, repository: AnalyticsRepository, window_days: int = 30):
        self.repository = repository
        self.window_days = window_days

    async def recalculate_all_statistics(
        self,
        window_days: int | None = None,
        today: date | None = None,
    ) -> dict[str, Any]:
        items = await self.repository.get_all_items()
        return await self._recalculate(items, window_days or self.window_days, today, restrict_records=False)

    async def recalculate_statistics_for_items(
        self,
        item_ids: Sequence[int],
        window_days: int | None = None,
        today: date | None = None,
    ) -> dict[str, Any]:
        items = await self.repository.get_items_by_ids(list(item_ids))
        return await self._recalculate(items, window_days or self.window_days, today)

    async def recalculate_statistics_for_category(
        self,
        category_id: int,
        window_days: int | None = None,
        today: date | None = None,
    ) -> dict[str, Any]:
        if await self.repository.get_category(category_id) is None:
            raise CategoryNotFoundError(category_id)
        items = await self.repository.get_items_by_category(category_id)
        summary = await self._recalculate(items, window_days or self.window_days, today)
        summary["category_id"] = category_id
        return summary

    async def _recalculate(
        self,
        items: Sequence[ItemRef],
        window_days: int,
        today: date | None,
        restrict_records: bool = True,
    ) -> dict[str, Any]:
        started = time.perf_counter()
        start_date, end_date = lookback_window(window_days, today)
        calculated_at = datetime.utcnow()

        logger.info("statistics.batch_started", items=len(items), window_days=window_days)

        item_ids = [item.item_id for item in items] if restrict_records else None
        records = await self.repository.get_consumption_between(start_date, end_date, item_ids) if items else []
        records_by_item = group_by_item(records)

        snapshots: list[ItemStatisticsSnapshot] = []
        updated = 0
        no_data = 0
        errors = []

        for item in items:
            try:
                item_records = records_by_item.get(item.item_id, [])
                if not item_records:
                    snapshots.append(ItemStatisticsSnapshot.no_data(item.item_id, calculated_at))
                    no_data += 1
                    continue

                snapshots.append(
                    build_snapshot(
                        item,
                        build_series(item_records),
                        today=end_date,
                        calculated_at=calculated_at,
                    )
                )
                updated += 1
            except Exception as exc:  # noqa: BLE001
                errors.append({"item_id": item.item_id, "item_name": item.name, "error": str(exc)})
                logger.error("statistics.item_failed", item_id=item.item_id, error=str(exc))

        if snapshots:
            await self.repository.save_items_statistics(snapshots)
        await self.repository.commit()

        summary = {
            "total_items": len(items),
            "updated": updated,
            "no_data": no_data,
            "failed": len(errors),
            "errors": errors,
            "total_records": len(records),
            "window_days": window_days,
            "elapsed_seconds": round(time.perf_counter() - started, 3),
            "timestamp": calculated_at,
        }
        logger.info(
            "statistics.batch_completed",
            total_items=summary["total_items"],
            updated=updated,
            no_data=no_data,
            failed=summary["failed"],
            elapsed_seconds=summary["elapsed_seconds"],
        )
        return summary
