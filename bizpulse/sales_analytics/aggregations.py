# bizpulse/sales_analytics/aggregations.py
"""
Aggregation Primitives for Sales Analytics

Pure functions over the canonical row frame, reused by every report:
- safe_divide / margin_percent / percent_change / market_share / clamp
- sum_by, group_by, distinct_count
- growth_rate (two-point, last two available months)

Dimensions and measures are closed enumerations. API names such as
'Business', 'businessArea' or 'gSales' resolve through alias tables;
unknown dimensions group everything under '' and unknown measures sum to 0.
"""

import logging
import math
from enum import Enum
from typing import Any, Dict, Optional, Union

import pandas as pd

from .constants import MONTH_INDEX

logger = logging.getLogger(__name__)


# =============================================================================
# DIMENSIONS & MEASURES
# =============================================================================

class Dimension(Enum):
    """Groupable row dimensions (value = canonical column)."""
    BUSINESS_AREA = 'business_area'
    CHANNEL = 'channel'
    BRAND = 'brand'
    CATEGORY = 'category'
    SUB_CATEGORY = 'sub_category'
    CUSTOMER = 'customer'
    CUSTOMER_GROUP = 'customer_group'
    BOARD_CATEGORY = 'board_category'
    SKU_CHANNEL = 'sku_channel'
    BRAND_TYPE = 'brand_type'

    @property
    def column(self) -> str:
        return self.value

    @classmethod
    def resolve(cls, name: Union[str, 'Dimension', None]) -> Optional['Dimension']:
        """Dimension for an API name, None if unknown."""
        if isinstance(name, cls):
            return name
        if name is None:
            return None
        return DIMENSION_ALIASES.get(str(name).strip().lower())


class Measure(Enum):
    """Summable row measures (value = canonical column)."""
    CASES = 'cases'
    GSALES = 'gsales'
    PRICE_DOWNS = 'price_downs'
    PERM_DISC = 'perm_disc'
    GROUP_COST = 'group_cost'
    LTA = 'lta'
    FGP = 'fgp'
    AVG_COST = 'avg_cost'

    @property
    def column(self) -> str:
        return self.value

    @classmethod
    def resolve(cls, name: Union[str, 'Measure', None]) -> Optional['Measure']:
        """Measure for an API name, None if unknown."""
        if isinstance(name, cls):
            return name
        if name is None:
            return None
        return MEASURE_ALIASES.get(str(name).strip().lower())


def _aliases(enum_cls, extra: Dict[str, Any]) -> Dict[str, Any]:
    table = {}
    for member in enum_cls:
        table[member.value] = member
        table[member.value.replace('_', '')] = member
        table[member.name.lower()] = member
    table.update(extra)
    return table


# Lower-cased API / source-header names
DIMENSION_ALIASES = _aliases(Dimension, {
    'business': Dimension.BUSINESS_AREA,
    'businessarea': Dimension.BUSINESS_AREA,
    'business area': Dimension.BUSINESS_AREA,
    'sub-cat': Dimension.SUB_CATEGORY,
    'subcat': Dimension.SUB_CATEGORY,
    'sub category': Dimension.SUB_CATEGORY,
    'p+l cust. grp': Dimension.CUSTOMER_GROUP,
    'customergroup': Dimension.CUSTOMER_GROUP,
    'board category': Dimension.BOARD_CATEGORY,
    'sku channel': Dimension.SKU_CHANNEL,
    'brand type name': Dimension.BRAND_TYPE,
})

MEASURE_ALIASES = _aliases(Measure, {
    'revenue': Measure.GSALES,
    'sales': Measure.GSALES,
    'volume': Measure.CASES,
    'margin': Measure.FGP,
    'gp': Measure.FGP,
    'cost': Measure.GROUP_COST,
    'group cost': Measure.GROUP_COST,
    'groupcost': Measure.GROUP_COST,
    'price downs': Measure.PRICE_DOWNS,
    'pricedowns': Measure.PRICE_DOWNS,
    'perm. disc.': Measure.PERM_DISC,
    'permdisc': Measure.PERM_DISC,
    'avg cost': Measure.AVG_COST,
    'avgcost': Measure.AVG_COST,
})


# =============================================================================
# SAFE ARITHMETIC
# =============================================================================

def safe_divide(numerator: float, denominator: float) -> float:
    """numerator / denominator; 0 for a zero or non-finite denominator or result."""
    try:
        if denominator == 0 or not math.isfinite(denominator):
            return 0.0
        result = numerator / denominator
    except (TypeError, ZeroDivisionError):
        return 0.0
    return float(result) if math.isfinite(result) else 0.0


def margin_percent(margin: float, revenue: float) -> float:
    return safe_divide(margin, revenue) * 100


def percent_change(current: float, previous: float) -> float:
    """(current - previous) / previous * 100, 0 when previous is 0."""
    return safe_divide(current - previous, previous) * 100


def market_share(subset_revenue: float, total_revenue: float) -> float:
    return safe_divide(subset_revenue, total_revenue) * 100


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# =============================================================================
# FRAME PRIMITIVES
# =============================================================================

def dimension_values(rows: pd.DataFrame, dimension: Union[str, Dimension, None]) -> pd.Series:
    """Per-row value of a dimension; '' for unknown dimensions or missing columns."""
    dim = Dimension.resolve(dimension)
    if dim is None or dim.column not in rows.columns:
        return pd.Series('', index=rows.index, dtype=object)
    return rows[dim.column].fillna('').astype(str)


def sum_by(rows: pd.DataFrame, measure: Union[str, Measure, None]) -> float:
    """Sum of a measure; 0 for unknown measures, missing columns or no rows."""
    m = Measure.resolve(measure)
    if m is None or rows.empty or m.column not in rows.columns:
        return 0.0
    return float(rows[m.column].sum())


def group_by(rows: pd.DataFrame, dimension: Union[str, Dimension, None]) -> Dict[str, pd.DataFrame]:
    """
    Split rows by dimension value.

    Returns:
        Dict value -> row subset, in order of first occurrence
    """
    if rows.empty:
        return {}
    keys = dimension_values(rows, dimension)
    return {key: group for key, group in rows.groupby(keys, sort=False)}


def distinct_count(rows: pd.DataFrame, dimension: Union[str, Dimension, None]) -> int:
    """Count of distinct non-empty values."""
    values = dimension_values(rows, dimension)
    return int(values[values != ''].nunique())


def distinct_values(rows: pd.DataFrame, dimension: Union[str, Dimension, None]) -> list:
    """Distinct non-empty values in order of first occurrence."""
    values = dimension_values(rows, dimension)
    return [v for v in pd.unique(values) if v != '']


def monthly_totals(rows: pd.DataFrame, measure: Union[str, Measure] = Measure.GSALES) -> pd.Series:
    """
    Measure summed per month, indexed by month number (canonical order).

    Months from different years share one bucket.
    """
    m = Measure.resolve(measure)
    if rows.empty or m is None:
        return pd.Series(dtype=float)
    month_idx = rows['month'].map(MONTH_INDEX)
    return rows[m.column].groupby(month_idx).sum().sort_index()


def growth_rate(rows: pd.DataFrame) -> float:
    """
    Revenue growth between the last two available months (%).

    Returns 0 with fewer than two months or zero previous-month revenue.
    """
    totals = monthly_totals(rows, Measure.GSALES)
    if len(totals) < 2:
        return 0.0
    previous, last = float(totals.iloc[-2]), float(totals.iloc[-1])
    return percent_change(last, previous)
