"""
Numeric Primitives — Fixed-precision statistics on Decimal values.

Every statistic the engine stores or returns is rounded ROUND_HALF_UP to
4 fractional digits so results are identical on every platform. Variance
and the Newton steps of the square root run at 10 fractional digits; sums
of squares and cross products accumulate inside ANALYTICS_CONTEXT (50
significant digits) so large quantities never lose precision mid-sum.

    mean     = Σx / n                                   (4 dp)
    std      = sqrt( Σ(x − mean)² / (n − 1) )           (variance at 10 dp)
    cv       = std / mean                               (0 when mean = 0)
    p-th pct = sorted[ ceil(p/100 × n) − 1 ]            (index clamped)
"""

import math
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Context, Decimal, localcontext

ANALYTICS_CONTEXT = Context(prec=50, rounding=ROUND_HALF_UP)

SCALE = 4  # Reported precision
INTERNAL_SCALE = 10  # Variance / Newton-step precision

ZERO = Decimal("0")
ONE = Decimal("1")
TWO = Decimal("2")

SQRT_TOLERANCE = Decimal("0.0001")
SQRT_MAX_ITERATIONS = 10


def to_decimal(value) -> Decimal:
    """Coerce repository values (None, int, float, str, Decimal) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the short repr instead of the binary expansion
        return Decimal(str(value))
    return Decimal(value)


def quantize(value: Decimal, places: int = SCALE) -> Decimal:
    """Round half-up to a fixed number of fractional digits."""
    return value.quantize(Decimal(1).scaleb(-places), context=ANALYTICS_CONTEXT)


def divide(numerator: Decimal, denominator: Decimal, places: int = SCALE) -> Decimal:
    return quantize(ANALYTICS_CONTEXT.divide(numerator, denominator), places)


def total(values: Iterable[Decimal]) -> Decimal:
    with localcontext(ANALYTICS_CONTEXT):
        return sum(values, ZERO)


def mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return divide(total(values), Decimal(len(values)))


def median(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    ordered = sorted(values)
    size = len(ordered)
    middle = size // 2
    if size % 2 == 0:
        return divide(ordered[middle - 1] + ordered[middle], TWO)
    return ordered[middle]


def sqrt(value: Decimal) -> Decimal:
    """
    Square root by Newton–Raphson, seeded from the float estimate.

    Each refinement x' = (x + value / x) / 2 is rounded to 10 digits. Stops
    once successive approximations differ by less than 1e-4, or after 10
    iterations.
    """
    if value < 0:
        raise ArithmeticError("Square root of negative number")
    if value == 0:
        return ZERO

    x = Decimal(math.sqrt(float(value)))
    for _ in range(SQRT_MAX_ITERATIONS):
        step = divide(value, x, INTERNAL_SCALE)
        nx = divide(x + step, TWO, INTERNAL_SCALE)
        if abs(nx - x) < SQRT_TOLERANCE:
            break
        x = nx
    return x


def sum_of_squared_deviations(values: Sequence[Decimal], center: Decimal) -> Decimal:
    with localcontext(ANALYTICS_CONTEXT):
        return sum(((v - center) ** 2 for v in values), ZERO)


def standard_deviation(values: Sequence[Decimal], center: Decimal | None = None) -> Decimal:
    """Sample standard deviation (n − 1). Zero for fewer than two values."""
    if len(values) <= 1:
        return ZERO
    if center is None:
        center = mean(values)
    squares = sum_of_squared_deviations(values, center)
    variance = divide(squares, Decimal(len(values) - 1), INTERNAL_SCALE)
    return quantize(sqrt(variance))


def coefficient_of_variation(mean_value: Decimal, std_value: Decimal) -> Decimal:
    """std / mean; zero when the mean is zero."""
    if mean_value == 0:
        return ZERO
    return divide(std_value, mean_value)


def percentile(values: Sequence[Decimal], p: float) -> Decimal:
    """Nearest-rank percentile: sorted[ceil(p/100 × n) − 1], index clamped."""
    if not values:
        return ZERO
    ordered = sorted(values)
    size = len(ordered)
    index = math.ceil(to_decimal(p) * size / 100) - 1
    index = max(0, min(index, size - 1))
    return ordered[index]
