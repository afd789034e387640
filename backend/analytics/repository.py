"""
Analytics Repository — Collaborator interface for the engine.

The calculators are pure; everything they read or persist goes through
this interface, which is injected into each service constructor. The
SQLAlchemy implementation lives in db.repository; tests can substitute
any other implementation.

Lifecycle of one engine call:
    1. get_* / count_*          — load reference data and raw observations
    2. (pure computation)
    3. save_* / delete_*        — stage derived artifacts
    4. commit()                 — make them visible in one unit of work
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from datetime import date

from analytics.types import (
    CategoryRef,
    ConsumptionObservation,
    CorrelationEdge,
    ItemRef,
    ItemStatisticsSnapshot,
)


class AnalyticsRepository(ABC):
    # ── Items & categories ────────────────────────────────────────────

    @abstractmethod
    async def get_item(self, item_id: int) -> ItemRef | None: ...

    @abstractmethod
    async def get_category(self, category_id: int) -> CategoryRef | None: ...

    @abstractmethod
    async def get_all_items(self) -> list[ItemRef]: ...

    @abstractmethod
    async def get_items_by_ids(self, item_ids: Sequence[int]) -> list[ItemRef]: ...

    @abstractmethod
    async def get_items_by_category(self, category_id: int) -> list[ItemRef]: ...

    # ── Consumption observations ─────────────────────────────────────

    @abstractmethod
    async def get_item_consumption(
        self,
        item_id: int,
        start_date: date,
        end_date: date,
    ) -> list[ConsumptionObservation]:
        """Observations for one item with start_date <= date <= end_date."""
        ...

    @abstractmethod
    async def get_consumption_between(
        self,
        start_date: date,
        end_date: date,
        item_ids: Sequence[int] | None = None,
    ) -> list[ConsumptionObservation]:
        """Observations for all items (or the given subset) in one query."""
        ...

    # ── Statistics snapshots ─────────────────────────────────────────

    @abstractmethod
    async def save_item_statistics(self, snapshot: ItemStatisticsSnapshot) -> None: ...

    @abstractmethod
    async def save_items_statistics(self, snapshots: Sequence[ItemStatisticsSnapshot]) -> None: ...

    # ── Correlation edges ────────────────────────────────────────────

    @abstractmethod
    async def find_correlation(self, item_a: int, item_b: int) -> CorrelationEdge | None:
        """Edge for the unordered pair {item_a, item_b}, if any."""
        ...

    @abstractmethod
    async def save_correlation(self, edge: CorrelationEdge) -> CorrelationEdge: ...

    @abstractmethod
    async def delete_all_correlations(self) -> int: ...

    @abstractmethod
    async def get_significant_correlations(self, item_id: int, threshold: float) -> list[CorrelationEdge]:
        """Active edges touching item_id with |coefficient| >= threshold, strongest first."""
        ...

    @abstractmethod
    async def get_active_correlations(self) -> list[CorrelationEdge]: ...

    # ── Counts (debug / dashboard) ───────────────────────────────────

    @abstractmethod
    async def count_items(self) -> int: ...

    @abstractmethod
    async def count_categories(self) -> int: ...

    @abstractmethod
    async def count_consumption_records(self) -> int: ...

    @abstractmethod
    async def count_correlations(self) -> int: ...

    # ── Unit of work ─────────────────────────────────────────────────

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    @abstractmethod
    def savepoint(self) -> AbstractAsyncContextManager:
        """Scope whose writes are discarded on error without ending the unit of work."""
        ...
