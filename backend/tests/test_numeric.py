"""
Tests for the numeric primitives — Decimal statistics at fixed precision.

Covers:
  - Half-up rounding to 4 digits
  - Mean / median / sample standard deviation / CV
  - Newton square root (incl. negative input)
  - Nearest-rank percentiles
"""

from decimal import Decimal

import pytest

from analytics.numeric import (
    coefficient_of_variation,
    divide,
    mean,
    median,
    percentile,
    quantize,
    sqrt,
    standard_deviation,
    to_decimal,
)


def _d(*values) -> list[Decimal]:
    return [Decimal(str(v)) for v in values]


# ── Rounding & Coercion ────────────────────────────────────────────────


class TestRounding:
    def test_half_up(self):
        assert quantize(Decimal("0.00005")) == Decimal("0.0001")
        assert quantize(Decimal("-0.00005")) == Decimal("-0.0001")
        assert quantize(Decimal("1.23444")) == Decimal("1.2344")

    def test_divide_rounds_to_scale(self):
        assert divide(Decimal(1), Decimal(3)) == Decimal("0.3333")
        assert divide(Decimal(2), Decimal(3)) == Decimal("0.6667")
        assert divide(Decimal(2), Decimal(3), 10) == Decimal("0.6666666667")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(7) == Decimal("7")


# ── Descriptive Statistics ─────────────────────────────────────────────


class TestDescriptive:
    def test_mean_is_sum_over_count(self):
        assert mean(_d(10, 12, 11, 13, 12)) == Decimal("11.6000")

    def test_mean_of_empty_is_zero(self):
        assert mean([]) == 0

    def test_median_odd_and_even(self):
        assert median(_d(3, 1, 2)) == Decimal("2")
        assert median(_d(4, 1, 3, 2)) == Decimal("2.5000")
        assert median([]) == 0

    def test_sample_standard_deviation(self):
        """Σ(x−x̄)² = 5.2 over n−1 = 4 → sqrt(1.3) ≈ 1.1402."""
        assert standard_deviation(_d(10, 12, 11, 13, 12)) == Decimal("1.1402")

    def test_single_value_has_zero_std(self):
        assert standard_deviation(_d(42)) == 0
        assert standard_deviation([]) == 0

    def test_constant_series_has_zero_std(self):
        assert standard_deviation(_d(5, 5, 5, 5)) == 0

    def test_cv(self):
        assert coefficient_of_variation(Decimal("11.6"), Decimal("1.1402")) == Decimal("0.0983")

    def test_cv_with_zero_mean_is_zero(self):
        assert coefficient_of_variation(Decimal("0"), Decimal("3.5")) == 0


# ── Square Root ────────────────────────────────────────────────────────


class TestSqrt:
    @pytest.mark.parametrize(
        "value,expected",
        [("0", "0"), ("1", "1.0000"), ("2", "1.4142"), ("1.3", "1.1402"), ("1000000", "1000.0000")],
    )
    def test_known_roots(self, value, expected):
        assert quantize(sqrt(Decimal(value))) == Decimal(expected)

    def test_negative_raises(self):
        with pytest.raises(ArithmeticError):
            sqrt(Decimal("-1"))


# ── Percentiles ────────────────────────────────────────────────────────


class TestPercentile:
    def test_nearest_rank(self):
        values = _d(1, 2, 3, 4, 5, 6, 7, 8, 9, 10)
        assert percentile(values, 25) == Decimal("3")
        assert percentile(values, 75) == Decimal("8")
        assert percentile(values, 90) == Decimal("9")

    def test_fiftieth_percentile_is_near_median(self):
        values = _d(10, 12, 11, 13, 12)
        assert percentile(values, 50) == median(values)

    def test_fiftieth_percentile_of_even_length_is_a_middle_element(self):
        values = _d(4, 1, 3, 2)
        assert median(values) == Decimal("2.5")
        assert percentile(values, 50) == Decimal("2")
        assert percentile(values, 50) in sorted(values)[1:3]

    def test_bounds_are_clamped(self):
        values = _d(4, 2, 9)
        assert percentile(values, 0) == Decimal("2")
        assert percentile(values, 100) == Decimal("9")

    def test_empty_is_zero(self):
        assert percentile([], 90) == 0
