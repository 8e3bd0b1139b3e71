"""
Aggregation primitives: safe arithmetic, grouping, growth, enum aliases.
"""
import math

import pytest

from bizpulse.sales_analytics.aggregations import (
    Dimension,
    Measure,
    safe_divide,
    percent_change,
    market_share,
    clamp,
    sum_by,
    group_by,
    distinct_count,
    distinct_values,
    growth_rate,
)
from bizpulse.sales_analytics.metrics import SalesMetrics

from conftest import make_rows


@pytest.mark.parametrize("numerator", [0, 1, -1, 1e300, -1e-300, 42.5])
def test_safe_divide_by_zero_is_zero(numerator) -> None:
    assert safe_divide(numerator, 0) == 0
    assert safe_divide(numerator, 0.0) == 0


@pytest.mark.parametrize("numerator,denominator", [(1, 3), (-5, 7), (1e308, 1e-10), (0, -2)])
def test_safe_divide_is_finite(numerator, denominator) -> None:
    assert math.isfinite(safe_divide(numerator, denominator))


def test_safe_divide_non_finite_denominator() -> None:
    assert safe_divide(1, float('inf')) == 0
    assert safe_divide(1, float('nan')) == 0


def test_percent_helpers() -> None:
    assert percent_change(150, 100) == 50
    assert percent_change(10, 0) == 0
    assert market_share(25, 100) == 25
    assert market_share(25, 0) == 0
    assert clamp(120, -50, 50) == 50
    assert clamp(-120, -50, 50) == -50


def test_aggregates_scenario() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan', 'gSales': 1000, 'fGP': 200, 'Cases': 50},
        {'year': 2024, 'month': 'Feb', 'gSales': 1500, 'fGP': 225, 'Cases': 60},
    )
    result = SalesMetrics(rows).calculate_aggregates()

    assert result.total_revenue == 2500
    assert result.total_margin == 425
    assert result.total_volume == 110
    assert result.avg_margin == pytest.approx(17.0)
    assert result.growth_rate == pytest.approx(50.0)


def test_aggregates_empty_rows_are_zero() -> None:
    result = SalesMetrics(make_rows()).calculate_aggregates()
    assert result.total_revenue == 0
    assert result.avg_margin == 0
    assert result.unique_brands == 0


def test_dimension_aliases() -> None:
    assert Dimension.resolve('Business') is Dimension.BUSINESS_AREA
    assert Dimension.resolve('businessArea') is Dimension.BUSINESS_AREA
    assert Dimension.resolve('brand') is Dimension.BRAND
    assert Dimension.resolve('Sub-Cat') is Dimension.SUB_CATEGORY
    assert Dimension.resolve('subCategory') is Dimension.SUB_CATEGORY
    assert Dimension.resolve('nonsense') is None


def test_measure_aliases() -> None:
    assert Measure.resolve('gSales') is Measure.GSALES
    assert Measure.resolve('fGP') is Measure.FGP
    assert Measure.resolve('Cases') is Measure.CASES
    assert Measure.resolve('Group Cost') is Measure.GROUP_COST
    assert Measure.resolve('bogus') is None


def test_sum_by_unknown_measure_is_zero(sample_rows) -> None:
    assert sum_by(sample_rows, 'bogus') == 0
    assert sum_by(sample_rows, 'gSales') == 6600


def test_group_by_keeps_first_occurrence_order(sample_rows) -> None:
    groups = group_by(sample_rows, 'brand')
    assert list(groups) == ['Alpha', 'Beta', 'Gamma']
    assert len(groups['Alpha']) == 4


def test_group_by_unknown_dimension_uses_empty_bucket(sample_rows) -> None:
    groups = group_by(sample_rows, 'colour')
    assert list(groups) == ['']
    assert len(groups['']) == len(sample_rows)


def test_group_by_missing_values_bucket() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan', 'brand': 'A', 'gSales': 1},
        {'year': 2024, 'month': 'Jan', 'gSales': 2},
    )
    assert list(group_by(rows, 'brand')) == ['A', '']


def test_distinct_count_ignores_empty() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan', 'customer': 'Tesco'},
        {'year': 2024, 'month': 'Jan', 'customer': 'Tesco'},
        {'year': 2024, 'month': 'Feb', 'customer': ''},
        {'year': 2024, 'month': 'Feb', 'customer': 'Lidl'},
    )
    assert distinct_count(rows, Dimension.CUSTOMER) == 2
    assert distinct_values(rows, 'customer') == ['Tesco', 'Lidl']


def test_growth_rate_uses_last_two_available_months() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jun', 'gSales': 300},
        {'year': 2024, 'month': 'Jan', 'gSales': 100},
        {'year': 2024, 'month': 'Mar', 'gSales': 200},
    )
    # Mar -> Jun, Feb/Apr/May missing
    assert growth_rate(rows) == pytest.approx(50.0)


def test_growth_rate_degenerate_cases() -> None:
    single = make_rows({'year': 2024, 'month': 'Jan', 'gSales': 100})
    zero_previous = make_rows(
        {'year': 2024, 'month': 'Jan', 'gSales': 0},
        {'year': 2024, 'month': 'Feb', 'gSales': 100},
    )
    assert growth_rate(single) == 0
    assert growth_rate(zero_previous) == 0
    assert growth_rate(make_rows()) == 0
