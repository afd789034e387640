"""
Correlation Graph Manager — Pairwise item correlation edges.

Sweeps the item set, upserts one edge per unordered pair and serves the
read views built on those edges (recommendations, summary statistics).

Sweep rules:
  - n items → n(n−1)/2 unordered pairs, each evaluated once
  - a pair with insufficient data is skipped, not stored
  - an existing edge is updated in place (coefficient, type, timestamp);
    otherwise a new edge records the size of the date union it used
  - each pair is written inside its own savepoint; a pair that raises
    is rolled back to it and reported in the summary errors, and the
    sweep continues
  - everything is committed once, after the sweep
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog

from analytics.correlation import (
    SIGNIFICANCE_THRESHOLD,
    STRONG_THRESHOLD,
    CorrelationCalculator,
    classify_correlation,
    is_significant,
)
from analytics.exceptions import ItemNotFoundError
from analytics.numeric import ZERO, divide, total
from analytics.repository import AnalyticsRepository
from analytics.timeseries import MIN_DATA_POINTS, TimeSeriesExtractor, lookback_window
from analytics.types import CorrelationEdge, CorrelationType, ItemRef

logger = structlog.get_logger()

TOP_CORRELATIONS_LIMIT = 10


class CorrelationGraphService:
    def __init__(
        self,
        repository: AnalyticsRepository,
        window_days: int = 90,
        min_data_points: int = MIN_DATA_POINTS,
        significance_threshold: Decimal | float = SIGNIFICANCE_THRESHOLD,
        strong_threshold: Decimal | float = STRONG_THRESHOLD,
        confidence_level: Decimal | float = Decimal("95"),
    ):
        self.repository = repository
        self.window_days = window_days
        self.min_data_points = min_data_points
        self.significance_threshold = Decimal(str(significance_threshold))
        self.strong_threshold = Decimal(str(strong_threshold))
        self.confidence_level = Decimal(str(confidence_level))
        self.calculator = CorrelationCalculator(TimeSeriesExtractor(repository, min_data_points))

    # ── Calculation paths ────────────────────────────────────────────

    async def _upsert_edge(
        self,
        item1: ItemRef,
        item2: ItemRef,
        coefficient: Decimal,
        data_points: int,
        calculated_at: datetime,
    ) -> CorrelationEdge:
        edge = await self.repository.find_correlation(item1.item_id, item2.item_id)
        if edge is not None:
            edge.coefficient = coefficient
            edge.correlation_type = classify_correlation(coefficient)
            edge.last_calculated = calculated_at
        else:
            edge = CorrelationEdge(
                item1_id=item1.item_id,
                item2_id=item2.item_id,
                coefficient=coefficient,
                correlation_type=classify_correlation(coefficient),
                data_points=data_points,
                confidence_level=self.confidence_level,
                is_active=True,
                category_id=item1.category_id,
                last_calculated=calculated_at,
            )
        return await self.repository.save_correlation(edge)

    async def _correlate(
        self,
        item1: ItemRef,
        item2: ItemRef,
        start_date: date,
        end_date: date,
        calculated_at: datetime,
    ) -> CorrelationEdge | None:
        result = await self.calculator.calculate_item_pair_correlation(
            item1.item_id, item2.item_id, start_date, end_date
        )
        if result is None:
            return None
        coefficient, data_points = result
        return await self._upsert_edge(item1, item2, coefficient, data_points, calculated_at)

    async def calculate_all_correlations(self, today: date | None = None) -> dict[str, Any]:
        items = await self.repository.get_all_items()
        logger.info("correlation.sweep_started", items=len(items))

        if len(items) < 2:
            return {
                "error": "Need at least 2 items to calculate correlations",
                "total_items": len(items),
                "total_pairs": 0,
                "significant_correlations": 0,
            }

        start_date, end_date = lookback_window(self.window_days, today)
        calculated_at = datetime.utcnow()
        total_pairs = 0
        significant = []
        errors = []

        for i, item1 in enumerate(items):
            for item2 in items[i + 1 :]:
                try:
                    async with self.repository.savepoint():
                        edge = await self._correlate(item1, item2, start_date, end_date, calculated_at)
                except Exception as exc:  # noqa: BLE001
                    errors.append({"item1_id": item1.item_id, "item2_id": item2.item_id, "error": str(exc)})
                    logger.error(
                        "correlation.pair_failed",
                        item1_id=item1.item_id,
                        item2_id=item2.item_id,
                        error=str(exc),
                    )
                    continue

                if edge is None:
                    continue
                total_pairs += 1
                if is_significant(edge.coefficient, self.significance_threshold):
                    significant.append(
                        {
                            "item1_id": item1.item_id,
                            "item1": item1.name,
                            "item2_id": item2.item_id,
                            "item2": item2.name,
                            "correlation": edge.coefficient,
                            "type": edge.correlation_type.value,
                        }
                    )

        await self.repository.commit()

        significant.sort(key=lambda c: abs(c["correlation"]), reverse=True)
        summary = {
            "total_items": len(items),
            "total_pairs": total_pairs,
            "significant_correlations": len(significant),
            "threshold": self.significance_threshold,
            "top_correlations": significant[:TOP_CORRELATIONS_LIMIT],
            "errors": errors,
            "last_updated": calculated_at,
        }
        logger.info(
            "correlation.sweep_completed",
            total_pairs=total_pairs,
            significant=len(significant),
            errors=len(errors),
        )
        return summary

    async def calculate_item_correlations(self, item_id: int, today: date | None = None) -> dict[str, Any]:
        target = await self.repository.get_item(item_id)
        if target is None:
            raise ItemNotFoundError(item_id)

        others = [item for item in await self.repository.get_all_items() if item.item_id != item_id]
        start_date, end_date = lookback_window(self.window_days, today)
        calculated_at = datetime.utcnow()
        correlations = []

        logger.info("correlation.item_started", item_id=item_id, candidates=len(others))

        for other in others:
            try:
                async with self.repository.savepoint():
                    edge = await self._correlate(target, other, start_date, end_date, calculated_at)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "correlation.pair_failed",
                    item1_id=item_id,
                    item2_id=other.item_id,
                    error=str(exc),
                )
                continue

            if edge is None:
                continue
            correlations.append(
                {
                    "item_id": other.item_id,
                    "item_name": other.name,
                    "category": other.category_name or "Unknown",
                    "correlation": edge.coefficient,
                    "type": edge.correlation_type.value,
                    "is_significant": is_significant(edge.coefficient, self.significance_threshold),
                }
            )

        await self.repository.commit()

        correlations.sort(key=lambda c: abs(c["correlation"]), reverse=True)
        return {
            "item_id": item_id,
            "item_name": target.name,
            "total_correlations": len(correlations),
            "correlations": correlations,
            "strong_positive": [c for c in correlations if c["correlation"] > self.strong_threshold],
            "strong_negative": [c for c in correlations if c["correlation"] < -self.strong_threshold],
        }

    async def force_recalculate_all_correlations(self, today: date | None = None) -> dict[str, Any]:
        deleted = await self.repository.delete_all_correlations()
        logger.info("correlation.reset", deleted=deleted)
        summary = await self.calculate_all_correlations(today)
        summary["deleted_edges"] = deleted
        return summary

    # ── Read paths ───────────────────────────────────────────────────

    async def get_recommendations(self, item_id: int, limit: int = 5) -> list[dict[str, Any]]:
        """Significant neighbours of an item, strongest first, with their reorder status."""
        edges = await self.repository.get_significant_correlations(item_id, float(self.significance_threshold))
        edges.sort(key=lambda e: abs(e.coefficient), reverse=True)
        logger.info("correlation.recommendations", item_id=item_id, significant=len(edges))

        recommendations = []
        for edge in edges[:limit]:
            related = await self.repository.get_item(edge.other_item(item_id))
            if related is None:
                continue
            recommendations.append(
                {
                    "item_id": related.item_id,
                    "item_name": related.name,
                    "correlation": edge.coefficient,
                    "correlation_type": edge.correlation_type.value,
                    "current_stock": related.current_quantity,
                    "reorder_level": related.reorder_level,
                    "needs_reorder": related.needs_reorder,
                }
            )
        return recommendations

    async def get_correlation_statistics(self) -> dict[str, Any]:
        edges = await self.repository.get_active_correlations()
        if not edges:
            return {"total_correlations": 0, "message": "No correlations calculated yet"}

        coefficients = [edge.coefficient for edge in edges]
        return {
            "total_correlations": len(edges),
            "average_correlation": divide(total(coefficients), Decimal(len(coefficients))),
            "max_correlation": max(coefficients, default=ZERO),
            "min_correlation": min(coefficients, default=ZERO),
            "strong_positive_count": sum(
                1 for e in edges if e.correlation_type == CorrelationType.STRONG_POSITIVE
            ),
            "strong_negative_count": sum(
                1 for e in edges if e.correlation_type == CorrelationType.STRONG_NEGATIVE
            ),
            "significant_count": sum(1 for c in coefficients if is_significant(c, self.significance_threshold)),
            "significant_threshold": self.significance_threshold,
            "min_data_points": self.min_data_points,
            "last_updated": datetime.utcnow(),
        }

    async def get_debug_info(self, today: date | None = None) -> dict[str, Any]:
        start_date, end_date = lookback_window(30, today)
        recent = await self.repository.get_consumption_between(start_date, end_date)
        return {
            "total_items": await self.repository.count_items(),
            "total_consumption_records": await self.repository.count_consumption_records(),
            "total_correlations": await self.repository.count_correlations(),
            "recent_consumption_records": len(recent),
            "min_data_points_required": self.min_data_points,
            "significance_threshold": self.significance_threshold,
        }
