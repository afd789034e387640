"""
Time-Series Extractor — Raw observations → date-aligned Decimal series.

Single item: one value per observed date, ordered by date. A NULL consumed
quantity reads as zero; two rows on the same date are summed.

Item pair: the UNION of dates observed for either item, so a day with
activity on only one side still contributes a zero for the other. The pair
is "insufficient data" (None) when either item has fewer than
MIN_DATA_POINTS raw observations or the union has fewer than
MIN_DATA_POINTS dates.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

import structlog

from analytics.numeric import ZERO
from analytics.repository import AnalyticsRepository
from analytics.types import ConsumptionObservation

logger = structlog.get_logger()

MIN_DATA_POINTS = 5


@dataclass(frozen=True)
class DailySeries:
    dates: tuple[date, ...]
    values: tuple[Decimal, ...]
    observation_count: int

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class AlignedPair:
    dates: tuple[date, ...]
    first: tuple[Decimal, ...]
    second: tuple[Decimal, ...]

    @property
    def data_points(self) -> int:
        return len(self.dates)


def lookback_window(days: int, today: date | None = None) -> tuple[date, date]:
    """(today − days, today), inclusive on both ends."""
    end = today or date.today()
    return end - timedelta(days=days), end


def daily_values(observations: Iterable[ConsumptionObservation]) -> dict[date, Decimal]:
    by_date: dict[date, Decimal] = {}
    for obs in observations:
        by_date[obs.consumption_date] = by_date.get(obs.consumption_date, ZERO) + obs.consumed
    return by_date


def build_series(observations: Sequence[ConsumptionObservation]) -> DailySeries:
    by_date = daily_values(observations)
    ordered = sorted(by_date)
    return DailySeries(
        dates=tuple(ordered),
        values=tuple(by_date[d] for d in ordered),
        observation_count=len(observations),
    )


def align_pair(
    first: Sequence[ConsumptionObservation],
    second: Sequence[ConsumptionObservation],
    min_data_points: int = MIN_DATA_POINTS,
) -> AlignedPair | None:
    """Zero-filled union alignment of two items' observations, or None."""
    if len(first) < min_data_points or len(second) < min_data_points:
        return None

    values1 = daily_values(first)
    values2 = daily_values(second)
    all_dates = sorted(set(values1) | set(values2))
    if len(all_dates) < min_data_points:
        return None

    return AlignedPair(
        dates=tuple(all_dates),
        first=tuple(values1.get(d, ZERO) for d in all_dates),
        second=tuple(values2.get(d, ZERO) for d in all_dates),
    )


def group_by_item(observations: Iterable[ConsumptionObservation]) -> dict[int, list[ConsumptionObservation]]:
    grouped: dict[int, list[ConsumptionObservation]] = defaultdict(list)
    for obs in observations:
        grouped[obs.item_id].append(obs)
    return dict(grouped)


def daily_totals(
    observations: Iterable[ConsumptionObservation],
    start_date: date,
    end_date: date,
) -> list[tuple[date, Decimal]]:
    """Total consumption across items for every date in the window, gaps as zero."""
    by_date = daily_values(observations)
    days = (end_date - start_date).days
    return [
        (start_date + timedelta(days=offset), by_date.get(start_date + timedelta(days=offset), ZERO))
        for offset in range(days + 1)
    ]


class TimeSeriesExtractor:
    """Fetches observations through the repository and aligns them."""

    def __init__(self, repository: AnalyticsRepository, min_data_points: int = MIN_DATA_POINTS):
        self.repository = repository
        self.min_data_points = min_data_points

    async def item_observations(self, item_id: int, start_date: date, end_date: date) -> list[ConsumptionObservation]:
        return await self.repository.get_item_consumption(item_id, start_date, end_date)

    async def item_series(self, item_id: int, start_date: date, end_date: date) -> DailySeries:
        observations = await self.item_observations(item_id, start_date, end_date)
        return build_series(observations)

    async def pair_series(
        self,
        item1_id: int,
        item2_id: int,
        start_date: date,
        end_date: date,
    ) -> AlignedPair | None:
        records1 = await self.item_observations(item1_id, start_date, end_date)
        records2 = await self.item_observations(item2_id, start_date, end_date)

        pair = align_pair(records1, records2, self.min_data_points)
        if pair is None:
            logger.debug(
                "timeseries.insufficient_data",
                item1_id=item1_id,
                item2_id=item2_id,
                item1_records=len(records1),
                item2_records=len(records2),
            )
        return pair
