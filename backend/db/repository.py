"""
SQL Analytics Repository — AsyncSession-backed AnalyticsRepository.

Maps ORM rows to analytics value types on read and merges snapshots and
edges back into rows on write. Writes are flushed but never committed
here; the calling service decides when its unit of work ends.
"""

from collections.abc import Sequence
from datetime import date

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from analytics.repository import AnalyticsRepository
from analytics.types import (
    CategoryRef,
    ConsumptionObservation,
    CorrelationEdge,
    CorrelationType,
    ItemRef,
    ItemStatisticsSnapshot,
)
from db.models import Category, ConsumptionRecord, Item, ItemCorrelation


def _item_ref(row: Item, category_name: str | None) -> ItemRef:
    return ItemRef(
        item_id=row.item_id,
        name=row.item_name,
        code=row.item_code,
        category_id=row.category_id,
        category_name=category_name,
        current_quantity=row.current_quantity,
        reorder_level=row.reorder_level,
    )


def _observation(row: ConsumptionRecord) -> ConsumptionObservation:
    return ConsumptionObservation(
        item_id=row.item_id,
        consumption_date=row.consumption_date,
        consumed_quantity=row.consumed_quantity,
        received_quantity=row.received_quantity,
        opening_stock=row.opening_stock,
        closing_stock=row.closing_stock,
    )


def _edge(row: ItemCorrelation) -> CorrelationEdge:
    return CorrelationEdge(
        correlation_id=row.correlation_id,
        item1_id=row.item1_id,
        item2_id=row.item2_id,
        coefficient=row.correlation_coefficient,
        correlation_type=CorrelationType(row.correlation_type),
        data_points=row.data_points or 0,
        confidence_level=row.confidence_level,
        is_active=row.is_active,
        category_id=row.category_id,
        last_calculated=row.last_calculated,
    )


def _apply_snapshot(row: Item, snapshot: ItemStatisticsSnapshot) -> None:
    row.avg_daily_consumption = snapshot.mean
    row.consumption_std_dev = snapshot.std_dev
    row.coefficient_of_variation = snapshot.coefficient_of_variation
    row.volatility_classification = snapshot.volatility.value
    row.consumption_trend = snapshot.trend.value
    row.consumption_pattern = snapshot.pattern.value
    row.forecast_next_period = snapshot.forecast_next_period
    row.coverage_days = snapshot.coverage_days
    row.expected_stockout_date = snapshot.expected_stockout_date
    row.statistics_updated_at = snapshot.calculated_at


class SqlAnalyticsRepository(AnalyticsRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    def _items_query(self):
        return select(Item, Category.name).outerjoin(Category, Item.category_id == Category.category_id)

    async def _fetch_items(self, query) -> list[ItemRef]:
        result = await self.db.execute(query.order_by(Item.item_id))
        return [_item_ref(row, category_name) for row, category_name in result.all()]

    # ── Items & categories ────────────────────────────────────────────

    async def get_item(self, item_id: int) -> ItemRef | None:
        result = await self.db.execute(self._items_query().where(Item.item_id == item_id))
        row = result.first()
        return _item_ref(row[0], row[1]) if row else None

    async def get_category(self, category_id: int) -> CategoryRef | None:
        category = await self.db.get(Category, category_id)
        return CategoryRef(category_id=category.category_id, name=category.name) if category else None

    async def get_all_items(self) -> list[ItemRef]:
        return await self._fetch_items(self._items_query())

    async def get_items_by_ids(self, item_ids: Sequence[int]) -> list[ItemRef]:
        if not item_ids:
            return []
        return await self._fetch_items(self._items_query().where(Item.item_id.in_(list(item_ids))))

    async def get_items_by_category(self, category_id: int) -> list[ItemRef]:
        return await self._fetch_items(self._items_query().where(Item.category_id == category_id))

    # ── Consumption observations ─────────────────────────────────────

    async def get_item_consumption(
        self,
        item_id: int,
        start_date: date,
        end_date: date,
    ) -> list[ConsumptionObservation]:
        result = await self.db.execute(
            select(ConsumptionRecord)
            .where(
                ConsumptionRecord.item_id == item_id,
                ConsumptionRecord.consumption_date >= start_date,
                ConsumptionRecord.consumption_date <= end_date,
            )
            .order_by(ConsumptionRecord.consumption_date)
        )
        return [_observation(row) for row in result.scalars().all()]

    async def get_consumption_between(
        self,
        start_date: date,
        end_date: date,
        item_ids: Sequence[int] | None = None,
    ) -> list[ConsumptionObservation]:
        query = select(ConsumptionRecord).where(
            ConsumptionRecord.consumption_date >= start_date,
            ConsumptionRecord.consumption_date <= end_date,
        )
        if item_ids is not None:
            if not item_ids:
                return []
            query = query.where(ConsumptionRecord.item_id.in_(list(item_ids)))

        result = await self.db.execute(query.order_by(ConsumptionRecord.item_id, ConsumptionRecord.consumption_date))
        return [_observation(row) for row in result.scalars().all()]

    # ── Statistics snapshots ─────────────────────────────────────────

    async def save_item_statistics(self, snapshot: ItemStatisticsSnapshot) -> None:
        row = await self.db.get(Item, snapshot.item_id)
        if row is None:
            return
        _apply_snapshot(row, snapshot)
        await self.db.flush()

    async def save_items_statistics(self, snapshots: Sequence[ItemStatisticsSnapshot]) -> None:
        by_id = {snapshot.item_id: snapshot for snapshot in snapshots}
        if not by_id:
            return
        result = await self.db.execute(select(Item).where(Item.item_id.in_(list(by_id))))
        for row in result.scalars().all():
            _apply_snapshot(row, by_id[row.item_id])
        await self.db.flush()

    # ── Correlation edges ────────────────────────────────────────────

    async def _find_correlation_row(self, item_a: int, item_b: int) -> ItemCorrelation | None:
        result = await self.db.execute(
            select(ItemCorrelation).where(
                or_(
                    and_(ItemCorrelation.item1_id == item_a, ItemCorrelation.item2_id == item_b),
                    and_(ItemCorrelation.item1_id == item_b, ItemCorrelation.item2_id == item_a),
                )
            )
        )
        return result.scalars().first()

    async def find_correlation(self, item_a: int, item_b: int) -> CorrelationEdge | None:
        row = await self._find_correlation_row(item_a, item_b)
        return _edge(row) if row else None

    async def save_correlation(self, edge: CorrelationEdge) -> CorrelationEdge:
        row = None
        if edge.correlation_id is not None:
            row = await self.db.get(ItemCorrelation, edge.correlation_id)
        if row is None:
            row = await self._find_correlation_row(edge.item1_id, edge.item2_id)

        if row is None:
            row = ItemCorrelation(
                item1_id=edge.item1_id,
                item2_id=edge.item2_id,
                data_points=edge.data_points,
                confidence_level=edge.confidence_level,
                category_id=edge.category_id,
            )
            self.db.add(row)

        row.correlation_coefficient = edge.coefficient
        row.correlation_type = edge.correlation_type.value
        row.is_active = edge.is_active
        row.last_calculated = edge.last_calculated
        await self.db.flush()

        edge.correlation_id = row.correlation_id
        return edge

    async def delete_all_correlations(self) -> int:
        result = await self.db.execute(delete(ItemCorrelation))
        await self.db.flush()
        return result.rowcount or 0

    async def get_significant_correlations(self, item_id: int, threshold: float) -> list[CorrelationEdge]:
        strength = func.abs(ItemCorrelation.correlation_coefficient)
        result = await self.db.execute(
            select(ItemCorrelation)
            .where(
                ItemCorrelation.is_active.is_(True),
                or_(ItemCorrelation.item1_id == item_id, ItemCorrelation.item2_id == item_id),
                strength >= threshold,
            )
            .order_by(strength.desc())
        )
        return [_edge(row) for row in result.scalars().all()]

    async def get_active_correlations(self) -> list[CorrelationEdge]:
        result = await self.db.execute(select(ItemCorrelation).where(ItemCorrelation.is_active.is_(True)))
        return [_edge(row) for row in result.scalars().all()]

    # ── Counts ───────────────────────────────────────────────────────

    async def _count(self, model) -> int:
        result = await self.db.execute(select(func.count()).select_from(model))
        return result.scalar_one()

    async def count_items(self) -> int:
        return await self._count(Item)

    async def count_categories(self) -> int:
        return await self._count(Category)

    async def count_consumption_records(self) -> int:
        return await self._count(ConsumptionRecord)

    async def count_correlations(self) -> int:
        return await self._count(ItemCorrelation)

    # ── Unit of work ─────────────────────────────────────────────────

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    def savepoint(self):
        return self.db.begin_nested()
