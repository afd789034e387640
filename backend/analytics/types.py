"""
Analytics Value Types

Plain values passed between the repository and the calculators. The engine
never hands ORM rows to a calculator: the repository maps rows into these
types on the way in and merges snapshots/edges back on the way out.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class Volatility(str, Enum):
    """Volatility bucket derived from |CV|."""

    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"
    NO_DATA = "NO_DATA"
    UNKNOWN = "UNKNOWN"


class Trend(str, Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class ConsumptionPattern(str, Enum):
    REGULAR = "REGULAR"
    IRREGULAR = "IRREGULAR"
    SPORADIC = "SPORADIC"
    NO_DATA = "NO_DATA"


class CorrelationType(str, Enum):
    STRONG_POSITIVE = "STRONG_POSITIVE"
    MODERATE_POSITIVE = "MODERATE_POSITIVE"
    WEAK_POSITIVE = "WEAK_POSITIVE"
    NO_CORRELATION = "NO_CORRELATION"
    WEAK_NEGATIVE = "WEAK_NEGATIVE"
    MODERATE_NEGATIVE = "MODERATE_NEGATIVE"
    STRONG_NEGATIVE = "STRONG_NEGATIVE"


@dataclass(frozen=True)
class CategoryRef:
    category_id: int
    name: str


@dataclass(frozen=True)
class ItemRef:
    """Read-only view of an item as the engine needs it."""

    item_id: int
    name: str
    code: str | None = None
    category_id: int | None = None
    category_name: str | None = None
    current_quantity: Decimal | None = None
    reorder_level: Decimal | None = None

    @property
    def needs_reorder(self) -> bool:
        if self.current_quantity is None or self.reorder_level is None:
            return False
        return self.current_quantity <= self.reorder_level


@dataclass(frozen=True)
class ConsumptionObservation:
    """One item-day of stock movement. Engine treats it as read-only."""

    item_id: int
    consumption_date: date
    consumed_quantity: Decimal | None = None
    received_quantity: Decimal | None = None
    opening_stock: Decimal | None = None
    closing_stock: Decimal | None = None

    @property
    def consumed(self) -> Decimal:
        return self.consumed_quantity if self.consumed_quantity is not None else Decimal("0")


@dataclass(frozen=True)
class ItemStatisticsSnapshot:
    """Derived statistics persisted onto the item row."""

    item_id: int
    mean: Decimal
    std_dev: Decimal
    coefficient_of_variation: Decimal
    volatility: Volatility
    trend: Trend
    pattern: ConsumptionPattern
    forecast_next_period: Decimal
    coverage_days: int
    expected_stockout_date: date | None
    calculated_at: datetime

    @classmethod
    def no_data(cls, item_id: int, calculated_at: datetime) -> "ItemStatisticsSnapshot":
        """Sentinel for items without any consumption in the window."""
        zero = Decimal("0")
        return cls(
            item_id=item_id,
            mean=zero,
            std_dev=zero,
            coefficient_of_variation=zero,
            volatility=Volatility.NO_DATA,
            trend=Trend.INSUFFICIENT_DATA,
            pattern=ConsumptionPattern.NO_DATA,
            forecast_next_period=zero,
            coverage_days=0,
            expected_stockout_date=None,
            calculated_at=calculated_at,
        )


@dataclass
class CorrelationEdge:
    """Pairwise association between two items' consumption series."""

    item1_id: int
    item2_id: int
    coefficient: Decimal
    correlation_type: CorrelationType
    data_points: int = 0
    confidence_level: Decimal = Decimal("95")
    is_active: bool = True
    category_id: int | None = None
    last_calculated: datetime = field(default_factory=datetime.utcnow)
    correlation_id: int | None = None

    def other_item(self, item_id: int) -> int:
        return self.item2_id if self.item1_id == item_id else self.item1_id

    def involves(self, item_a: int, item_b: int) -> bool:
        return {self.item1_id, self.item2_id} == {item_a, item_b}
