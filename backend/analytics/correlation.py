"""
Correlation Calculator — Pearson r between two aligned consumption series.

    r = Σ(xi − x̄)(yi − ȳ) / sqrt( Σ(xi − x̄)² · Σ(yi − ȳ)² )

Means are taken at 10 fractional digits, products accumulate exactly, and
the ratio is rounded half-up to 4 digits, then clamped into [-1, 1] to
absorb rounding overshoot. A constant series has no variance; its
correlation is reported as 0 rather than dividing by zero.

Classification (by |r|):
    ≥ 0.7  STRONG_*      ≥ 0.4  MODERATE_*      ≥ 0.2  WEAK_*      else NO_CORRELATION
"Significant" means |r| ≥ threshold (default 0.3); "strong" means |r| > 0.7.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal, localcontext

from analytics.numeric import (
    ANALYTICS_CONTEXT,
    INTERNAL_SCALE,
    ONE,
    ZERO,
    divide,
    sqrt,
    total,
)
from analytics.timeseries import TimeSeriesExtractor
from analytics.types import CorrelationType

SIGNIFICANCE_THRESHOLD = Decimal("0.3")
STRONG_THRESHOLD = Decimal("0.7")

# (|r| lower bound, positive type, negative type); checked top-down
CORRELATION_BANDS: tuple[tuple[Decimal, CorrelationType, CorrelationType], ...] = (
    (Decimal("0.7"), CorrelationType.STRONG_POSITIVE, CorrelationType.STRONG_NEGATIVE),
    (Decimal("0.4"), CorrelationType.MODERATE_POSITIVE, CorrelationType.MODERATE_NEGATIVE),
    (Decimal("0.2"), CorrelationType.WEAK_POSITIVE, CorrelationType.WEAK_NEGATIVE),
)


def pearson_correlation(x: Sequence[Decimal], y: Sequence[Decimal]) -> Decimal:
    """Pearson coefficient at 4 digits, clamped to [-1, 1]; 0 for degenerate input."""
    if len(x) != len(y) or not x:
        return ZERO

    n = Decimal(len(x))
    mean_x = divide(total(x), n, INTERNAL_SCALE)
    mean_y = divide(total(y), n, INTERNAL_SCALE)

    numerator = ZERO
    sum_sq_x = ZERO
    sum_sq_y = ZERO
    with localcontext(ANALYTICS_CONTEXT):
        for xi, yi in zip(x, y):
            dx = xi - mean_x
            dy = yi - mean_y
            numerator += dx * dy
            sum_sq_x += dx * dx
            sum_sq_y += dy * dy

    if sum_sq_x == 0 or sum_sq_y == 0:
        return ZERO

    with localcontext(ANALYTICS_CONTEXT):
        denominator = sqrt(sum_sq_x) * sqrt(sum_sq_y)
    if denominator == 0:
        return ZERO

    return clamp_coefficient(divide(numerator, denominator))


def clamp_coefficient(value: Decimal) -> Decimal:
    if value > ONE:
        return ONE
    if value < -ONE:
        return -ONE
    return value


def classify_correlation(coefficient: Decimal) -> CorrelationType:
    magnitude = abs(coefficient)
    for lower_bound, positive, negative in CORRELATION_BANDS:
        if magnitude >= lower_bound:
            return positive if coefficient > 0 else negative
    return CorrelationType.NO_CORRELATION


def is_significant(coefficient: Decimal, threshold: Decimal | float = SIGNIFICANCE_THRESHOLD) -> bool:
    return abs(coefficient) >= Decimal(str(threshold))


def is_strong(coefficient: Decimal, threshold: Decimal | float = STRONG_THRESHOLD) -> bool:
    return abs(coefficient) > Decimal(str(threshold))


class CorrelationCalculator:
    """Extraction + Pearson for one item pair."""

    def __init__(self, extractor: TimeSeriesExtractor):
        self.extractor = extractor

    async def calculate_item_pair_correlation(
        self,
        item1_id: int,
        item2_id: int,
        start_date: date,
        end_date: date,
    ) -> tuple[Decimal, int] | None:
        """(coefficient, data points) over the union of dates, or None for insufficient data."""
        pair = await self.extractor.pair_series(item1_id, item2_id, start_date, end_date)
        if pair is None:
            return None
        return pearson_correlation(pair.first, pair.second), pair.data_points
