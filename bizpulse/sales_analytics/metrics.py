# bizpulse/sales_analytics/metrics.py
"""
Report Builders for Sales Analytics

All builders consume already-filtered canonical rows.

- Aggregates: totals, average margin %, growth, distinct counts
- Top performers / risk items (unpaginated; the service paginates)
- Trend analysis by month (canonical order)
- Business area / channel / category / customer performance
- Variance decomposition with labelled fallback tiers

Variance is a fixed-weight heuristic, NOT a price/volume index:
    volume = w_volume * revenue % change
    price  = w_price  * unit price % change      (price = revenue / cases)
    cost   = -w_cost  * cost % change
    mix    = total - (volume + price + cost)
every output clamped to [-VARIANCE_CLAMP, VARIANCE_CLAMP].
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .aggregations import (
    Dimension,
    Measure,
    safe_divide,
    margin_percent,
    percent_change,
    market_share,
    clamp,
    sum_by,
    group_by,
    distinct_count,
    distinct_values,
    growth_rate,
)
from .constants import (
    MONTH_ORDER,
    MONTH_INDEX,
    QUARTER_PERIODS,
    LAST_YEAR_PERIODS,
    RISK_REASONS,
    TREND_CHANGE_THRESHOLD,
    CUSTOMER_STATUS_THRESHOLD,
    VARIANCE_WEIGHTS,
    VARIANCE_CLAMP,
    COMPARISON_MONTH_OVER_MONTH,
    COMPARISON_HALF_SPLIT,
    COMPARISON_SYNTHETIC,
    COMPARISON_INSUFFICIENT,
    BUSINESS_AREA_COLORS,
    DEFAULT_BUSINESS_AREA_COLOR,
)
from .data_loader import ensure_schema
from .filters import FilterSpec, apply_filters
from .periods import normalize_period
from .settings import AnalyticsSettings

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class AggregateResult:
    total_revenue: float = 0.0
    total_volume: float = 0.0
    total_margin: float = 0.0
    total_cost: float = 0.0
    avg_margin: float = 0.0
    growth_rate: float = 0.0
    unique_customers: int = 0
    unique_brands: int = 0
    unique_categories: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalRevenue': self.total_revenue,
            'totalVolume': self.total_volume,
            'totalMargin': self.total_margin,
            'totalCost': self.total_cost,
            'avgMargin': self.avg_margin,
            'growthRate': self.growth_rate,
            'uniqueCustomers': self.unique_customers,
            'uniqueBrands': self.unique_brands,
            'uniqueCategories': self.unique_categories,
        }


@dataclass(frozen=True)
class TopPerformer:
    name: str
    value: float
    metric: str
    growth: float
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'value': self.value,
            'metric': self.metric,
            'growth': self.growth,
            'category': self.category,
        }


@dataclass(frozen=True)
class RiskItem:
    name: str
    value: float
    margin: float
    trend: float
    risk_level: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'value': self.value,
            'margin': self.margin,
            'trend': self.trend,
            'riskLevel': self.risk_level,
            'reason': self.reason,
        }


@dataclass(frozen=True)
class TrendPoint:
    period: str
    value: float
    change: float
    change_percent: float
    trend: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period,
            'value': self.value,
            'change': self.change,
            'changePercent': self.change_percent,
            'trend': self.trend,
        }


@dataclass(frozen=True)
class VarianceResult:
    total_variance: float = 0.0
    volume_variance: float = 0.0
    price_variance: float = 0.0
    cost_variance: float = 0.0
    mix_variance: float = 0.0
    current_margin: float = 0.0
    previous_margin: float = 0.0
    period: str = 'current'
    comparison: str = COMPARISON_INSUFFICIENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalVariance': self.total_variance,
            'volumeVariance': self.volume_variance,
            'priceVariance': self.price_variance,
            'costVariance': self.cost_variance,
            'mixVariance': self.mix_variance,
            'currentMargin': self.current_margin,
            'previousMargin': self.previous_margin,
            'period': self.period,
            'comparison': self.comparison,
        }


@dataclass(frozen=True)
class BusinessAreaPerformance:
    name: str
    brands: List[str]
    revenue: float
    margin: float
    growth: float
    market_share: float
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'brands': list(self.brands),
            'revenue': self.revenue,
            'margin': self.margin,
            'growth': self.growth,
            'marketShare': self.market_share,
            'color': self.color,
        }


@dataclass(frozen=True)
class ChannelPerformance:
    name: str
    customers: List[str]
    region: str
    revenue: float
    growth: float
    customer_count: int
    market_share: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'customers': list(self.customers),
            'region': self.region,
            'revenue': self.revenue,
            'growth': self.growth,
            'customerCount': self.customer_count,
            'marketShare': self.market_share,
        }


@dataclass(frozen=True)
class CategoryPerformance:
    name: str
    revenue: float
    margin: float
    growth: float
    market_share: float
    brand_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'revenue': self.revenue,
            'margin': self.margin,
            'growth': self.growth,
            'marketShare': self.market_share,
            'brandCount': self.brand_count,
        }


@dataclass(frozen=True)
class CustomerPerformance:
    name: str
    channel: str
    revenue: float
    margin: float
    growth: float
    orders: int
    avg_order_value: float
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'channel': self.channel,
            'revenue': self.revenue,
            'margin': self.margin,
            'growth': self.growth,
            'orders': self.orders,
            'avgOrderValue': self.avg_order_value,
            'status': self.status,
        }


# =============================================================================
# LOOKUPS
# =============================================================================

def get_business_area_color(business_area: str) -> str:
    return BUSINESS_AREA_COLORS.get(business_area, DEFAULT_BUSINESS_AREA_COLOR)


def get_channel_region(channel: str) -> str:
    """Region bucket for a channel name."""
    if 'ROI' in channel:
        return 'ROI'
    if 'NI/UK' in channel or 'UK' in channel:
        return 'UK'
    if channel == 'International':
        return 'Global'
    if channel == 'Online':
        return 'Digital'
    return 'Specialty'


def _by_revenue(items: list) -> list:
    # sorted() is stable, so equal revenues keep first-occurrence order
    return sorted(items, key=lambda item: item.revenue, reverse=True)


# =============================================================================
# METRICS CALCULATOR
# =============================================================================

class SalesMetrics:
    """
    Report calculations over one filtered row frame.

    Usage:
        metrics = SalesMetrics(filtered_df, settings)
        overview = metrics.calculate_aggregates()
        top = metrics.top_performers('gSales', 'brand')
    """

    def __init__(self, rows: pd.DataFrame, settings: Optional[AnalyticsSettings] = None):
        """
        Args:
            rows: Filtered canonical rows
            settings: Thresholds (defaults when omitted)
        """
        self.rows = ensure_schema(rows)
        self.settings = settings or AnalyticsSettings()
        self._total_revenue = sum_by(self.rows, Measure.GSALES)

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    def calculate_aggregates(self) -> AggregateResult:
        df = self.rows
        if df.empty:
            return AggregateResult()

        total_margin = sum_by(df, Measure.FGP)
        return AggregateResult(
            total_revenue=self._total_revenue,
            total_volume=sum_by(df, Measure.CASES),
            total_margin=total_margin,
            total_cost=sum_by(df, Measure.GROUP_COST),
            avg_margin=margin_percent(total_margin, self._total_revenue),
            growth_rate=growth_rate(df),
            unique_customers=distinct_count(df, Dimension.CUSTOMER),
            unique_brands=distinct_count(df, Dimension.BRAND),
            unique_categories=distinct_count(df, Dimension.CATEGORY),
        )

    # =========================================================================
    # RANKINGS
    # =========================================================================

    def top_performers(self, metric: str = 'gSales', dimension: str = 'brand') -> List[TopPerformer]:
        """
        Groups ranked by summed metric, highest first.

        Ties keep the order in which groups first appear in the rows.
        """
        performers = []
        for name, items in group_by(self.rows, dimension).items():
            performers.append(TopPerformer(
                name=name,
                value=sum_by(items, metric),
                metric=metric,
                growth=growth_rate(items),
                category=str(items['category'].iloc[0]),
            ))
        return sorted(performers, key=lambda p: p.value, reverse=True)

    def risk_items(self, dimension: str = 'brand') -> List[RiskItem]:
        """
        Risk classification per group, lowest sales first.

        Rules (first match wins):
            margin % < low-margin threshold      -> high,   'Low margin'
            growth   < declining-trend threshold -> medium, 'Declining trend'
            sales    < low-volume threshold      -> medium, 'Low volume'
            otherwise                            -> low,    ''
        """
        s = self.settings
        items_out = []
        for name, items in group_by(self.rows, dimension).items():
            total_sales = sum_by(items, Measure.GSALES)
            margin = margin_percent(sum_by(items, Measure.FGP), total_sales)
            trend = growth_rate(items)

            if margin < s.risk_low_margin_threshold:
                level, reason = 'high', RISK_REASONS['margin']
            elif trend < s.risk_declining_trend_threshold:
                level, reason = 'medium', RISK_REASONS['trend']
            elif total_sales < s.risk_low_volume_threshold:
                level, reason = 'medium', RISK_REASONS['volume']
            else:
                level, reason = 'low', ''

            items_out.append(RiskItem(
                name=name,
                value=total_sales,
                margin=margin,
                trend=trend,
                risk_level=level,
                reason=reason,
            ))
        return sorted(items_out, key=lambda r: r.value)

    # =========================================================================
    # TREND
    # =========================================================================

    def trend_analysis(self, metric: str = 'gSales') -> List[TrendPoint]:
        """
        Monthly series in canonical month order.

        metric 'customers' counts distinct customers, 'margin' gives margin %,
        anything else is summed (unknown measures give 0).
        """
        df = self.rows
        if df.empty:
            return []

        key = str(metric).strip().lower()

        points: List[TrendPoint] = []
        previous_value: Optional[float] = None
        for month in MONTH_ORDER:
            items = df[df['month'] == month]
            if items.empty:
                continue

            if key == 'customers':
                value = float(distinct_count(items, Dimension.CUSTOMER))
            elif key == 'margin':
                value = margin_percent(sum_by(items, Measure.FGP), sum_by(items, Measure.GSALES))
            else:
                value = sum_by(items, metric)

            change, change_percent, trend = 0.0, 0.0, 'stable'
            if previous_value is not None:
                change = value - previous_value
                # No meaningful % change from a zero or negative base
                change_percent = safe_divide(change, previous_value) * 100 if previous_value > 0 else 0.0
                if change_percent > TREND_CHANGE_THRESHOLD:
                    trend = 'up'
                elif change_percent < -TREND_CHANGE_THRESHOLD:
                    trend = 'down'

            points.append(TrendPoint(
                period=month,
                value=value,
                change=change,
                change_percent=change_percent,
                trend=trend,
            ))
            previous_value = value

        return points

    # =========================================================================
    # DIMENSION PERFORMANCE
    # =========================================================================

    def business_area_performance(self) -> List[BusinessAreaPerformance]:
        results = []
        for name, items in group_by(self.rows, Dimension.BUSINESS_AREA).items():
            revenue = sum_by(items, Measure.GSALES)
            results.append(BusinessAreaPerformance(
                name=name,
                brands=distinct_values(items, Dimension.BRAND),
                revenue=revenue,
                margin=margin_percent(sum_by(items, Measure.FGP), revenue),
                growth=growth_rate(items),
                market_share=market_share(revenue, self._total_revenue),
                color=get_business_area_color(name),
            ))
        return _by_revenue(results)

    def channel_performance(self) -> List[ChannelPerformance]:
        results = []
        for name, items in group_by(self.rows, Dimension.CHANNEL).items():
            revenue = sum_by(items, Measure.GSALES)
            customers = distinct_values(items, Dimension.CUSTOMER)
            results.append(ChannelPerformance(
                name=name,
                customers=customers,
                region=get_channel_region(name),
                revenue=revenue,
                growth=growth_rate(items),
                customer_count=len(customers),
                market_share=market_share(revenue, self._total_revenue),
            ))
        return _by_revenue(results)

    def category_performance(self, dimension: Dimension = Dimension.CATEGORY) -> List[CategoryPerformance]:
        """Category (or sub-category) performance."""
        results = []
        for name, items in group_by(self.rows, dimension).items():
            revenue = sum_by(items, Measure.GSALES)
            results.append(CategoryPerformance(
                name=name,
                revenue=revenue,
                margin=margin_percent(sum_by(items, Measure.FGP), revenue),
                growth=growth_rate(items),
                market_share=market_share(revenue, self._total_revenue),
                brand_count=distinct_count(items, Dimension.BRAND),
            ))
        return _by_revenue(results)

    def customer_performance(self) -> List[CustomerPerformance]:
        """Customer performance; orders is the row count."""
        results = []
        for name, items in group_by(self.rows, Dimension.CUSTOMER).items():
            revenue = sum_by(items, Measure.GSALES)
            growth = growth_rate(items)
            orders = len(items)

            if growth > CUSTOMER_STATUS_THRESHOLD:
                status = 'growing'
            elif growth < -CUSTOMER_STATUS_THRESHOLD:
                status = 'declining'
            else:
                status = 'stable'

            results.append(CustomerPerformance(
                name=name,
                channel=str(items['channel'].iloc[0]),
                revenue=revenue,
                margin=margin_percent(sum_by(items, Measure.FGP), revenue),
                growth=growth,
                orders=orders,
                avg_order_value=safe_divide(revenue, orders),
                status=status,
            ))
        return _by_revenue(results)


# =============================================================================
# VARIANCE
# =============================================================================

def decompose_variance(
    current: pd.DataFrame,
    previous: pd.DataFrame,
    weights: Optional[Dict[str, float]] = None,
    period: str = 'current',
    comparison: str = '',
) -> VarianceResult:
    """
    Split the margin % change between two row sets into weighted drivers.

    Args:
        current: Rows of the period being reported
        previous: Rows of the comparison period
        weights: volume/price/cost/mix weights (VARIANCE_WEIGHTS by default)
        period: Label of the current period
        comparison: Label of the comparison

    Returns:
        VarianceResult with all five values clamped
    """
    w = weights or VARIANCE_WEIGHTS

    cur_rev, prev_rev = sum_by(current, Measure.GSALES), sum_by(previous, Measure.GSALES)
    cur_vol, prev_vol = sum_by(current, Measure.CASES), sum_by(previous, Measure.CASES)
    cur_cost, prev_cost = sum_by(current, Measure.GROUP_COST), sum_by(previous, Measure.GROUP_COST)

    cur_margin = margin_percent(sum_by(current, Measure.FGP), cur_rev)
    prev_margin = margin_percent(sum_by(previous, Measure.FGP), prev_rev)

    total = percent_change(cur_margin, prev_margin)
    volume = w['volume'] * percent_change(cur_rev, prev_rev)
    price = w['price'] * percent_change(safe_divide(cur_rev, cur_vol), safe_divide(prev_rev, prev_vol))
    cost = -w['cost'] * percent_change(cur_cost, prev_cost)
    # Residual from unclamped drivers
    mix = total - (volume + price + cost)

    bound = VARIANCE_CLAMP
    return VarianceResult(
        total_variance=clamp(total, -bound, bound),
        volume_variance=clamp(volume, -bound, bound),
        price_variance=clamp(price, -bound, bound),
        cost_variance=clamp(cost, -bound, bound),
        mix_variance=clamp(mix, -bound, bound),
        current_margin=cur_margin,
        previous_margin=prev_margin,
        period=period,
        comparison=comparison,
    )


def _chronological_periods(rows: pd.DataFrame) -> List[Tuple[int, int]]:
    """Distinct (year, month index) pairs, oldest first."""
    pairs = set(zip(rows['year'].astype(int), rows['month'].map(MONTH_INDEX).fillna(0).astype(int)))
    return sorted(pairs)


def _rows_in_periods(rows: pd.DataFrame, periods: List[Tuple[int, int]]) -> pd.DataFrame:
    keys = list(zip(rows['year'].astype(int), rows['month'].map(MONTH_INDEX).fillna(0).astype(int)))
    wanted = set(periods)
    mask = [key in wanted for key in keys]
    return rows.loc[mask]


def synthetic_variance(
    rows: pd.DataFrame,
    weights: Optional[Dict[str, float]] = None,
    period: str = 'current',
) -> Optional[VarianceResult]:
    """
    Deterministic estimate from the spread of row margins.

    total = coefficient of variation of row margin % (as %), split by the
    weights. None when fewer than two rows carry revenue.
    """
    w = weights or VARIANCE_WEIGHTS
    with_revenue = rows[rows['gsales'] != 0]
    if len(with_revenue) < 2:
        return None

    margins = (with_revenue['fgp'] / with_revenue['gsales'] * 100).to_numpy(dtype=float)
    cv = safe_divide(float(np.std(margins)), abs(float(np.mean(margins))))

    bound = VARIANCE_CLAMP
    total = clamp(cv * 100, -bound, bound)
    overall = margin_percent(sum_by(rows, Measure.FGP), sum_by(rows, Measure.GSALES))

    return VarianceResult(
        total_variance=total,
        volume_variance=clamp(total * w['volume'], -bound, bound),
        price_variance=clamp(total * w['price'], -bound, bound),
        cost_variance=clamp(total * w['cost'], -bound, bound),
        mix_variance=clamp(total * w['mix'], -bound, bound),
        current_margin=overall,
        previous_margin=overall,
        period=period,
        comparison=COMPARISON_SYNTHETIC,
    )


def fallback_variance(
    rows: pd.DataFrame,
    weights: Optional[Dict[str, float]] = None,
    period: str = 'current',
) -> VarianceResult:
    """
    Best-effort variance when no natural comparison exists.

    Tiers, in order:
        month-over-month    latest (year, month) vs the one before; >= 2 months
        half-split          later half of periods vs earlier half; >= 2 periods
        synthetic-estimate  margin spread; >= 2 rows with revenue
        insufficient-data   zeros
    """
    if rows.empty:
        return VarianceResult(period=period, comparison=COMPARISON_INSUFFICIENT)

    periods = _chronological_periods(rows)

    if rows['month'].nunique() >= 2:
        logger.warning("Variance: no comparison rows, using month-over-month")
        return decompose_variance(
            _rows_in_periods(rows, periods[-1:]),
            _rows_in_periods(rows, periods[-2:-1]),
            weights, period, COMPARISON_MONTH_OVER_MONTH,
        )

    if len(periods) >= 2:
        logger.warning("Variance: no comparison rows, using half-split")
        middle = len(periods) // 2
        return decompose_variance(
            _rows_in_periods(rows, periods[middle:]),
            _rows_in_periods(rows, periods[:middle]),
            weights, period, COMPARISON_HALF_SPLIT,
        )

    estimate = synthetic_variance(rows, weights, period)
    if estimate is not None:
        logger.warning("Variance: single period, using synthetic estimate")
        return estimate

    logger.warning("Variance: insufficient data")
    return VarianceResult(period=period, comparison=COMPARISON_INSUFFICIENT)


def comparison_spec(rows: pd.DataFrame, spec: FilterSpec) -> Tuple[Optional[FilterSpec], Optional[FilterSpec], str]:
    """
    Natural (current, previous) specs for a filter.

    YTD/MTD/QTD compare with LYTD/LMTD/LQTD; Qn or an explicit year compare
    with the same filters one year earlier.

    Returns:
        (current_spec, previous_spec, label); specs are None when no natural
        comparison exists
    """
    token = normalize_period(spec.period)

    if token in LAST_YEAR_PERIODS:
        return spec, spec.with_changes(period=LAST_YEAR_PERIODS[token]), LAST_YEAR_PERIODS[token]

    if token in LAST_YEAR_PERIODS.values():
        return None, None, ''

    if spec.year is not None or token in QUARTER_PERIODS:
        year = spec.year
        if year is None:
            if rows.empty:
                return None, None, ''
            year = int(rows['year'].max())
        return spec.with_changes(year=year), spec.with_changes(year=year - 1), str(year - 1)

    return None, None, ''


def build_variance(
    rows: pd.DataFrame,
    spec: FilterSpec,
    weights: Optional[Dict[str, float]] = None,
) -> VarianceResult:
    """
    Variance for a filter against its natural comparison, with fallbacks.

    Args:
        rows: Unfiltered canonical rows (already restricted to the caller's scope)
        spec: Filter describing the current period
        weights: Variance weights

    Returns:
        VarianceResult; `comparison` names the comparison or fallback tier
    """
    period = spec.period or 'current'
    current_spec, previous_spec, label = comparison_spec(rows, spec)

    if current_spec is not None:
        current = apply_filters(rows, current_spec)
        previous = apply_filters(rows, previous_spec)
        if not current.empty and not previous.empty:
            return decompose_variance(current, previous, weights, period, label)
        return fallback_variance(current, weights, period)

    return fallback_variance(apply_filters(rows, spec), weights, period)
