"""
Report builders: rankings, risk, trend, dimension performance, variance.
"""
import itertools

import pytest

from bizpulse.sales_analytics.aggregations import Dimension
from bizpulse.sales_analytics.constants import (
    COMPARISON_MONTH_OVER_MONTH,
    COMPARISON_HALF_SPLIT,
    COMPARISON_SYNTHETIC,
    COMPARISON_INSUFFICIENT,
)
from bizpulse.sales_analytics.filters import FilterSpec
from bizpulse.sales_analytics.metrics import (
    SalesMetrics,
    decompose_variance,
    build_variance,
    get_channel_region,
    get_business_area_color,
)
from bizpulse.sales_analytics.settings import AnalyticsSettings

from conftest import make_rows


# =============================================================================
# RANKINGS
# =============================================================================

def test_top_performers_sorted_descending(sample_rows) -> None:
    top = SalesMetrics(sample_rows).top_performers('gSales', 'brand')
    assert [p.name for p in top] == ['Alpha', 'Beta', 'Gamma']
    assert [p.value for p in top] == [4100, 1500, 1000]
    assert top[0].category == 'Snacks'
    assert top[0].growth == pytest.approx((2200 - 1900) / 1900 * 100)


def test_top_performers_ties_keep_first_occurrence() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan', 'brand': 'A', 'gSales': 100},
        {'year': 2024, 'month': 'Jan', 'brand': 'B', 'gSales': 200},
        {'year': 2024, 'month': 'Jan', 'brand': 'C', 'gSales': 100},
    )
    assert [p.name for p in SalesMetrics(rows).top_performers()] == ['B', 'A', 'C']


def test_top_performers_unknown_metric_and_dimension(sample_rows) -> None:
    top = SalesMetrics(sample_rows).top_performers('bogus', 'colour')
    assert len(top) == 1
    assert top[0].name == ''
    assert top[0].value == 0


def _risk_rows():
    return make_rows(
        {'year': 2024, 'month': 'Jan', 'brand': 'X', 'gSales': 5000, 'fGP': 500},
        {'year': 2024, 'month': 'Jan', 'brand': 'Y', 'gSales': 20000, 'fGP': 6000},
        {'year': 2024, 'month': 'Feb', 'brand': 'Y', 'gSales': 10000, 'fGP': 3000},
        {'year': 2024, 'month': 'Jan', 'brand': 'Z', 'gSales': 5000, 'fGP': 1500},
        {'year': 2024, 'month': 'Jan', 'brand': 'W', 'gSales': 20000, 'fGP': 6000},
    )


def test_risk_margin_rule_wins() -> None:
    items = {r.name: r for r in SalesMetrics(_risk_rows()).risk_items('brand')}
    assert items['X'].risk_level == 'high'
    assert items['X'].reason == 'Low margin'
    assert items['X'].margin == pytest.approx(10.0)


def test_risk_classification_rules() -> None:
    items = {r.name: r for r in SalesMetrics(_risk_rows()).risk_items('brand')}
    assert (items['Y'].risk_level, items['Y'].reason) == ('medium', 'Declining trend')
    assert (items['Z'].risk_level, items['Z'].reason) == ('medium', 'Low volume')
    assert (items['W'].risk_level, items['W'].reason) == ('low', '')


def test_risk_sorted_ascending_by_value() -> None:
    items = SalesMetrics(_risk_rows()).risk_items('brand')
    assert [r.name for r in items] == ['X', 'Z', 'W', 'Y']


def test_risk_thresholds_are_configurable() -> None:
    settings = AnalyticsSettings(risk_low_margin_threshold=5.0)
    items = {r.name: r for r in SalesMetrics(_risk_rows(), settings).risk_items('brand')}
    assert (items['X'].risk_level, items['X'].reason) == ('medium', 'Low volume')


# =============================================================================
# TREND
# =============================================================================

def test_trend_analysis_sum(sample_rows) -> None:
    points = SalesMetrics(sample_rows).trend_analysis('gSales')
    assert [p.period for p in points] == ['Jan', 'Feb', 'Mar', 'Apr']
    assert [p.value for p in points] == [1900, 2200, 2100, 400]
    assert [p.trend for p in points] == ['stable', 'up', 'stable', 'down']
    assert points[0].change == 0
    assert points[1].change == 300
    assert points[1].change_percent == pytest.approx(300 / 1900 * 100)


def test_trend_analysis_customers_and_margin(sample_rows) -> None:
    customers = SalesMetrics(sample_rows).trend_analysis('customers')
    assert [p.value for p in customers] == [1, 1, 2, 1]
    assert customers[2].trend == 'up'

    margin = SalesMetrics(sample_rows).trend_analysis('margin')
    assert margin[0].value == pytest.approx(570 / 1900 * 100)


def test_trend_percent_is_zero_from_non_positive_base() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan', 'brand': 'A', 'gSales': 100, 'fGP': -10},
        {'year': 2024, 'month': 'Feb', 'brand': 'A', 'gSales': 100, 'fGP': -5},
        {'year': 2024, 'month': 'Mar', 'brand': 'A', 'gSales': 100, 'fGP': 0},
        {'year': 2024, 'month': 'Apr', 'brand': 'A', 'gSales': 100, 'fGP': 20},
    )
    points = SalesMetrics(rows).trend_analysis('fGP')
    assert [p.change for p in points] == [0, 5, 5, 20]
    assert [p.change_percent for p in points] == [0, 0, 0, 0]
    assert [p.trend for p in points] == ['stable'] * 4


def test_trend_analysis_empty() -> None:
    assert SalesMetrics(make_rows()).trend_analysis() == []


# =============================================================================
# DIMENSION PERFORMANCE
# =============================================================================

def test_business_area_performance(sample_rows) -> None:
    areas = SalesMetrics(sample_rows).business_area_performance()
    assert [a.name for a in areas] == ['Food', 'Household']
    food = areas[0]
    assert food.revenue == 5100
    assert food.brands == ['Alpha', 'Gamma']
    assert food.color == 'bg-blue-500'
    assert food.market_share == pytest.approx(5100 / 6600 * 100)


def test_channel_performance(sample_rows) -> None:
    channels = {c.name: c for c in SalesMetrics(sample_rows).channel_performance()}
    assert channels['Grocery ROI'].region == 'ROI'
    assert channels['Grocery ROI'].customers == ['Tesco']
    assert channels['Grocery ROI'].customer_count == 1
    assert channels['Wholesale NI/UK'].region == 'UK'
    assert channels['Online'].region == 'Digital'


def test_lookup_helpers() -> None:
    assert get_channel_region('International') == 'Global'
    assert get_channel_region('Sports & Others') == 'Specialty'
    assert get_business_area_color('Kinetica') == 'bg-purple-500'
    assert get_business_area_color('Other') == 'bg-gray-500'


def test_category_and_sub_category_performance(sample_rows) -> None:
    metrics = SalesMetrics(sample_rows)
    categories = metrics.category_performance()
    assert [(c.name, c.revenue, c.brand_count) for c in categories] == [
        ('Snacks', 5100, 2), ('Cleaning', 1500, 1),
    ]
    subs = metrics.category_performance(Dimension.SUB_CATEGORY)
    assert [s.name for s in subs] == ['Crisps', 'Sprays', 'Nuts']


def test_customer_performance(sample_rows) -> None:
    customers = {c.name: c for c in SalesMetrics(sample_rows).customer_performance()}
    tesco = customers['Tesco']
    assert tesco.orders == 4
    assert tesco.avg_order_value == pytest.approx(1025)
    assert tesco.channel == 'Grocery ROI'
    assert tesco.status == 'growing'
    assert customers['Musgrave'].status == 'stable'
    assert customers['Amazon'].status == 'declining'


# =============================================================================
# VARIANCE
# =============================================================================

def test_decompose_variance_weights() -> None:
    current = make_rows({'year': 2024, 'month': 'Jan', 'gSales': 1100, 'fGP': 220, 'Cases': 110, 'Group Cost': 550})
    previous = make_rows({'year': 2023, 'month': 'Jan', 'gSales': 1000, 'fGP': 200, 'Cases': 100, 'Group Cost': 500})
    result = decompose_variance(current, previous, comparison='LYTD')

    assert result.total_variance == pytest.approx(0)
    assert result.volume_variance == pytest.approx(4.0)
    assert result.price_variance == pytest.approx(0)
    assert result.cost_variance == pytest.approx(-2.0)
    assert result.mix_variance == pytest.approx(-2.0)
    assert result.comparison == 'LYTD'


@pytest.mark.parametrize("cur,prev", itertools.product(
    [(0.01, 500.0, 1.0, 900.0), (1e9, -1e9, 1e-6, 0.0), (100.0, 0.0, 0.0, 100.0)],
    [(1e-6, 1e-9, 1e6, 1e-3), (0.0, 0.0, 0.0, 0.0), (250.0, 10.0, 3.0, -40.0)],
))
def test_variance_outputs_are_clamped(cur, prev) -> None:
    def rows(values):
        gsales, fgp, cases, cost = values
        return make_rows({'year': 2024, 'month': 'Jan', 'gSales': gsales, 'fGP': fgp,
                          'Cases': cases, 'Group Cost': cost})

    result = decompose_variance(rows(cur), rows(prev))
    for value in (result.total_variance, result.volume_variance, result.price_variance,
                  result.cost_variance, result.mix_variance):
        assert -50 <= value <= 50


def test_variance_natural_comparison_for_ytd(sample_rows) -> None:
    result = build_variance(sample_rows, FilterSpec(period='YTD'))
    assert result.comparison == 'LYTD'
    assert result.period == 'YTD'
    assert result.current_margin == pytest.approx(890 / 3600 * 100)
    assert result.previous_margin == pytest.approx(620 / 2600 * 100)


def test_variance_explicit_year_compares_previous_year(sample_rows) -> None:
    assert build_variance(sample_rows, FilterSpec(year=2024)).comparison == '2023'
    assert build_variance(sample_rows, FilterSpec(period='Q1')).comparison == '2023'


def test_variance_falls_back_to_month_over_month(sample_rows) -> None:
    # 2022 has no rows, so the natural comparison is empty
    assert build_variance(sample_rows, FilterSpec(year=2023)).comparison == COMPARISON_MONTH_OVER_MONTH
    assert build_variance(sample_rows, FilterSpec(period='LYTD')).comparison == COMPARISON_MONTH_OVER_MONTH


def test_variance_half_split() -> None:
    rows = make_rows(
        {'year': 2023, 'month': 'Jan', 'gSales': 100, 'fGP': 20},
        {'year': 2024, 'month': 'Jan', 'gSales': 120, 'fGP': 30},
    )
    result = build_variance(rows, FilterSpec())
    assert result.comparison == COMPARISON_HALF_SPLIT
    assert result.current_margin == pytest.approx(25.0)
    assert result.previous_margin == pytest.approx(20.0)


def test_variance_synthetic_estimate_is_deterministic() -> None:
    rows = make_rows(
        {'year': 2024, 'month': 'Jan', 'gSales': 100, 'fGP': 10},
        {'year': 2024, 'month': 'Jan', 'gSales': 100, 'fGP': 30},
    )
    first = build_variance(rows, FilterSpec())
    assert first.comparison == COMPARISON_SYNTHETIC
    assert first.total_variance == pytest.approx(50.0)
    assert first.volume_variance == pytest.approx(20.0)
    assert first.mix_variance == pytest.approx(5.0)
    assert build_variance(rows, FilterSpec()) == first


def test_variance_insufficient_data() -> None:
    single = make_rows({'year': 2024, 'month': 'Jan', 'gSales': 100, 'fGP': 10})
    result = build_variance(single, FilterSpec())
    assert result.comparison == COMPARISON_INSUFFICIENT
    assert result.total_variance == 0
    assert build_variance(make_rows(), FilterSpec()).comparison == COMPARISON_INSUFFICIENT
