"""
Item Statistics Calculator — Descriptive + one-period forecast statistics.

Turns one item's daily consumption series into the numbers that drive
reorder decisions:

  - mean / median / sample std / CV / percentiles
  - volatility class from |CV|
  - trend from a least-squares slope over the day index
  - day-of-week seasonality and weekday vs weekend averages
  - consumption pattern from the share of zero days
  - one-period forecast and stock coverage

Two volatility schemes coexist. The five-tier scheme feeds the on-demand
statistics view, category statistics and the nightly batch. The coarser
three-tier scheme is what the per-item refresh after a consumption write
stores on the item row.
"""

import math
from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog

from analytics.exceptions import CategoryNotFoundError, ItemNotFoundError
from analytics.numeric import (
    ZERO,
    coefficient_of_variation,
    divide,
    mean,
    median,
    percentile,
    quantize,
    standard_deviation,
    total,
)
from analytics.repository import AnalyticsRepository
from analytics.timeseries import (
    DailySeries,
    build_series,
    daily_totals,
    group_by_item,
    lookback_window,
)
from analytics.types import (
    ConsumptionPattern,
    ItemRef,
    ItemStatisticsSnapshot,
    Trend,
    Volatility,
)

logger = structlog.get_logger()

# |CV| strictly above threshold → class; checked top-down
VOLATILITY_THRESHOLDS: tuple[tuple[Decimal, Volatility], ...] = (
    (Decimal("0.75"), Volatility.VERY_HIGH),
    (Decimal("0.50"), Volatility.HIGH),
    (Decimal("0.25"), Volatility.MEDIUM),
    (Decimal("0.10"), Volatility.LOW),
)

COARSE_VOLATILITY_THRESHOLDS: tuple[tuple[Decimal, Volatility], ...] = (
    (Decimal("0.5"), Volatility.HIGH),
    (Decimal("0.3"), Volatility.MEDIUM),
    (Decimal("0.15"), Volatility.LOW),
)

TREND_SLOPE_THRESHOLD = Decimal("0.1")
TREND_MIN_POINTS = 3

SPORADIC_ZERO_RATIO = 0.7
IRREGULAR_ZERO_RATIO = 0.3

FORECAST_GROWTH = Decimal("1.1")
FORECAST_DECAY = Decimal("0.9")

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

HIGHLY_VOLATILE = {Volatility.HIGH, Volatility.VERY_HIGH}


def classify_volatility(cv: Decimal | None) -> Volatility:
    """Five-tier volatility: VERY_HIGH > 0.75 ≥ HIGH > 0.50 ≥ MEDIUM > 0.25 ≥ LOW > 0.10 ≥ VERY_LOW."""
    if cv is None:
        return Volatility.UNKNOWN
    abs_cv = abs(cv)
    for threshold, volatility in VOLATILITY_THRESHOLDS:
        if abs_cv > threshold:
            return volatility
    return Volatility.VERY_LOW


def classify_volatility_coarse(cv: Decimal | None) -> Volatility:
    """Three-tier volatility used by the post-write refresh: HIGH > 0.5 ≥ MEDIUM > 0.3 ≥ LOW."""
    if cv is None:
        return Volatility.UNKNOWN
    abs_cv = abs(cv)
    for threshold, volatility in COARSE_VOLATILITY_THRESHOLDS:
        if abs_cv > threshold:
            return volatility
    # Anything at or below 0.15 stays in the bottom tier
    return Volatility.LOW


def trend_slope(values: Sequence[Decimal]) -> Decimal:
    """Least-squares slope of value vs index: (nΣxy − ΣxΣy) / (nΣx² − (Σx)²)."""
    n = len(values)
    if n < 2:
        return ZERO
    sum_x = Decimal(n * (n - 1) // 2)
    sum_x2 = Decimal((n - 1) * n * (2 * n - 1) // 6)
    sum_y = total(values)
    sum_xy = total(Decimal(i) * y for i, y in enumerate(values))

    numerator = n * sum_xy - sum_x * sum_y
    denominator = n * sum_x2 - sum_x * sum_x
    return divide(numerator, denominator, 10)


def analyze_trend(values: Sequence[Decimal]) -> Trend:
    """
    Direction of the least-squares slope, relative to the series mean.

    A slope of 0.5 units/day is flat for an item consuming 100/day and a
    steep climb for one consuming 2/day, so the slope is expressed as a
    fraction of the mean before it is compared with ±0.1. This differs
    from a raw-slope rule for high-volume items: [100, 101, 102, 103, 104]
    has a slope of 1 (INCREASING on raw slope) but is STABLE here, since
    it grows by about 1% of its mean per day. A zero mean falls back to
    the raw slope.
    """
    if len(values) < TREND_MIN_POINTS:
        return Trend.INSUFFICIENT_DATA

    slope = trend_slope(values)
    center = mean(values)
    relative = divide(slope, center, 10) if center != 0 else slope

    if relative > TREND_SLOPE_THRESHOLD:
        return Trend.INCREASING
    if relative < -TREND_SLOPE_THRESHOLD:
        return Trend.DECREASING
    return Trend.STABLE


def detect_seasonality(series: DailySeries) -> dict[str, Any]:
    """Per-weekday means plus weekday (Mon–Fri) vs weekend (Sat–Sun) averages."""
    by_weekday: dict[int, list[Decimal]] = defaultdict(list)
    for day, value in zip(series.dates, series.values):
        by_weekday[day.weekday()].append(value)

    day_means = {weekday: mean(values) for weekday, values in sorted(by_weekday.items())}

    weekday_means = [m for weekday, m in day_means.items() if weekday < 5]
    weekend_means = [m for weekday, m in day_means.items() if weekday >= 5]

    return {
        "day_of_week_pattern": {DAY_NAMES[weekday]: m for weekday, m in day_means.items()},
        "weekday_average": mean(weekday_means) if weekday_means else quantize(ZERO),
        "weekend_average": mean(weekend_means) if weekend_means else quantize(ZERO),
    }


def analyze_consumption_pattern(values: Sequence[Decimal]) -> ConsumptionPattern:
    if not values:
        return ConsumptionPattern.NO_DATA

    zero_days = sum(1 for v in values if v == 0)
    zero_ratio = zero_days / len(values)

    if zero_ratio > SPORADIC_ZERO_RATIO:
        return ConsumptionPattern.SPORADIC
    if zero_ratio > IRREGULAR_ZERO_RATIO:
        return ConsumptionPattern.IRREGULAR
    return ConsumptionPattern.REGULAR


def forecast_next_period(values: Sequence[Decimal], trend: Trend) -> Decimal:
    if not values:
        return quantize(ZERO)

    last_value = values[-1]
    if trend == Trend.INCREASING:
        return quantize(last_value * FORECAST_GROWTH)
    if trend == Trend.DECREASING:
        return quantize(last_value * FORECAST_DECAY)
    return mean(values)


def calculate_coverage(
    current_stock: Decimal | None,
    mean_consumption: Decimal,
    today: date | None = None,
) -> tuple[int, date | None]:
    """(coverage days, expected stockout date). Days round up; zero when mean is zero."""
    if current_stock is None or mean_consumption <= 0:
        return 0, None

    coverage_days = max(0, math.ceil(current_stock / mean_consumption))
    if coverage_days <= 0:
        return 0, None
    return coverage_days, (today or date.today()) + timedelta(days=coverage_days)


def build_snapshot(
    item: ItemRef,
    series: DailySeries,
    classify: Callable[[Decimal | None], Volatility] = classify_volatility,
    today: date | None = None,
    calculated_at: datetime | None = None,
) -> ItemStatisticsSnapshot:
    """Pure snapshot for one item; NO_DATA sentinel when the series is empty."""
    calculated_at = calculated_at or datetime.utcnow()
    if not series.values:
        return ItemStatisticsSnapshot.no_data(item.item_id, calculated_at)

    values = series.values
    mean_value = mean(values)
    std_value = standard_deviation(values, mean_value)
    cv = coefficient_of_variation(mean_value, std_value)
    trend = analyze_trend(values)
    coverage_days, stockout_date = calculate_coverage(item.current_quantity, mean_value, today)

    return ItemStatisticsSnapshot(
        item_id=item.item_id,
        mean=mean_value,
        std_dev=std_value,
        coefficient_of_variation=cv,
        volatility=classify(cv),
        trend=trend,
        pattern=analyze_consumption_pattern(values),
        forecast_next_period=forecast_next_period(values, trend),
        coverage_days=coverage_days,
        expected_stockout_date=stockout_date,
        calculated_at=calculated_at,
    )


def describe_series(
    item: ItemRef,
    series: DailySeries,
    period_days: int,
    today: date | None = None,
) -> dict[str, Any]:
    """Full statistics report for one item over a window."""
    values = series.values
    snapshot = build_snapshot(item, series, today=today)
    max_value = max(values)
    min_value = min(values)
    days_with_activity = sum(1 for v in values if v > 0)

    return {
        "item_id": item.item_id,
        "item_name": item.name,
        "period_days": period_days,
        "total_records": series.observation_count,
        "mean": snapshot.mean,
        "median": median(values),
        "standard_deviation": snapshot.std_dev,
        "coefficient_of_variation": snapshot.coefficient_of_variation,
        "max": max_value,
        "min": min_value,
        "range": max_value - min_value,
        "volatility_classification": snapshot.volatility.value,
        "is_highly_volatile": snapshot.volatility in HIGHLY_VOLATILE,
        "trend": snapshot.trend.value,
        "consumption_pattern": snapshot.pattern.value,
        "days_with_activity": days_with_activity,
        "activity_rate": divide(Decimal(days_with_activity), Decimal(max(period_days, 1)), 2),
        "seasonality": detect_seasonality(series),
        "total_consumption": total(values),
        "percentile_25": percentile(values, 25),
        "percentile_75": percentile(values, 75),
        "percentile_90": percentile(values, 90),
        "forecast_next_period": snapshot.forecast_next_period,
        "coverage_days": snapshot.coverage_days,
        "expected_stockout_date": snapshot.expected_stockout_date,
    }


class ItemStatisticsService:
    """Single-item, category and dashboard statistics over the repository."""

    def __init__(
        self,
        repository: AnalyticsRepository,
        window_days: int = 30,
        on_statistics_updated: Callable[[int], Any] | None = None,
    ):
        self.repository = repository
        self.window_days = window_days
        self.on_statistics_updated = on_statistics_updated

    async def _require_item(self, item_id: int) -> ItemRef:
        item = await self.repository.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    async def compute_item_statistics(
        self,
        item_id: int,
        window_days: int | None = None,
        today: date | None = None,
    ) -> dict[str, Any] | None:
        """
        Statistics report for one item.

        Returns None when the item has no consumption in the window.
        Raises ItemNotFoundError for an unknown item.
        """
        days = window_days or self.window_days
        item = await self._require_item(item_id)
        start_date, end_date = lookback_window(days, today)

        observations = await self.repository.get_item_consumption(item_id, start_date, end_date)
        if not observations:
            logger.info("statistics.no_data", item_id=item_id, window_days=days)
            return None

        return describe_series(item, build_series(observations), days, today=end_date)

    async def update_item_statistics(self, item_id: int, today: date | None = None) -> ItemStatisticsSnapshot:
        """
        Recompute and persist one item's snapshot after a consumption write.

        Uses the three-tier volatility scheme. The correlation refresh hook
        runs after the commit; its failure is logged and never undoes the
        snapshot.
        """
        item = await self._require_item(item_id)
        start_date, end_date = lookback_window(self.window_days, today)
        observations = await self.repository.get_item_consumption(item_id, start_date, end_date)

        snapshot = build_snapshot(
            item,
            build_series(observations),
            classify=classify_volatility_coarse,
            today=end_date,
        )
        await self.repository.save_item_statistics(snapshot)
        await self.repository.commit()

        logger.info(
            "statistics.item_updated",
            item_id=item_id,
            mean=str(snapshot.mean),
            std_dev=str(snapshot.std_dev),
            cv=str(snapshot.coefficient_of_variation),
            volatility=snapshot.volatility.value,
        )

        if self.on_statistics_updated is not None:
            try:
                self.on_statistics_updated(item_id)
            except Exception as exc:  # noqa: BLE001
                logger.error("statistics.refresh_hook_failed", item_id=item_id, error=str(exc))

        return snapshot

    async def compute_category_statistics(
        self,
        category_id: int,
        window_days: int | None = None,
        today: date | None = None,
    ) -> dict[str, Any] | None:
        """Aggregate + per-item ranking for a category. None when it has no consumption."""
        days = window_days or self.window_days
        category = await self.repository.get_category(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)

        items = {item.item_id: item for item in await self.repository.get_items_by_category(category_id)}
        start_date, end_date = lookback_window(days, today)
        records = await self.repository.get_consumption_between(start_date, end_date, list(items)) if items else []
        if not records:
            return None

        item_stats = []
        item_totals = []
        for item_id, item_records in group_by_item(records).items():
            item = items.get(item_id)
            if item is None:
                continue
            values = build_series(item_records).values
            item_total = total(values)
            item_mean = mean(values)
            item_totals.append(item_total)
            item_stats.append(
                {
                    "item_id": item_id,
                    "item_name": item.name,
                    "total_consumption": item_total,
                    "avg_consumption": item_mean,
                    "cv": coefficient_of_variation(item_mean, standard_deviation(values, item_mean)),
                }
            )

        item_stats.sort(key=lambda s: s["total_consumption"], reverse=True)

        totals_mean = mean(item_totals)
        category_cv = coefficient_of_variation(totals_mean, standard_deviation(item_totals, totals_mean))

        return {
            "category_id": category.category_id,
            "category_name": category.name,
            "period_days": days,
            "total_items": len(item_stats),
            "total_records": len(records),
            "total_consumption": total(item_totals),
            "category_cv": category_cv,
            "category_volatility": classify_volatility(category_cv).value,
            "item_statistics": item_stats,
            "top_consuming_items": item_stats[:5],
        }

    async def compute_dashboard_statistics(
        self,
        window_days: int | None = None,
        today: date | None = None,
    ) -> dict[str, Any]:
        """Totals, active counts and a zero-filled daily consumption series."""
        days = window_days or self.window_days
        start_date, end_date = lookback_window(days, today)

        items = await self.repository.get_all_items()
        records = await self.repository.get_consumption_between(start_date, end_date)
        series = daily_totals(records, start_date, end_date)

        active_item_ids = {r.item_id for r in records if r.consumed > 0}
        active_category_ids = {
            item.category_id for item in items if item.item_id in active_item_ids and item.category_id is not None
        }
        total_consumption = total(value for _, value in series)

        return {
            "period_days": days,
            "start_date": start_date,
            "end_date": end_date,
            "total_items": len(items),
            "total_categories": await self.repository.count_categories(),
            "active_items": len(active_item_ids),
            "active_categories": len(active_category_ids),
            "items_needing_reorder": sum(1 for item in items if item.needs_reorder),
            "total_records": len(records),
            "total_consumption": total_consumption,
            "average_daily_consumption": divide(total_consumption, Decimal(len(series))),
            "daily_consumption": [{"date": day, "consumed": value} for day, value in series],
        }
