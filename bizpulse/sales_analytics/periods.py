# bizpulse/sales_analytics/periods.py
"""
Period Resolution for Sales Analytics

Turns a symbolic period token plus an optional explicit year/month into a
row-inclusion mask over the canonical row frame.

Supported tokens (case-insensitive):
- YTD / MTD / QTD:     target year, up to / at / within-quarter-up-to the
                       reference month
- LYTD / LMTD / LQTD:  same against target_year - 1, anchored on the
                       current year's reference month ("same point last year")
- Q1..Q4:              months of that quarter, any year
- anything else:       no restriction

Reference point:
- target year   = explicit year, else the latest year in the rows
- reference month = explicit month (unless 'All'), else the latest month
                  present in the target year
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from .constants import (
    PERIOD_TYPES,
    QUARTER_PERIODS,
    QUARTER_MONTHS,
    LAST_YEAR_PERIODS,
    ALL_SENTINEL,
    MONTH_INDEX,
)
from .data_loader import normalize_month

logger = logging.getLogger(__name__)

_LAST_YEAR_TOKENS = set(LAST_YEAR_PERIODS.values())


def normalize_period(period: Any) -> str:
    """Upper-cased, stripped token; '' when absent."""
    if period is None:
        return ''
    return str(period).strip().upper()


def is_year_pinning(period: Any) -> bool:
    """True for tokens that pin a year (YTD/MTD/QTD and their L-variants)."""
    return normalize_period(period) in PERIOD_TYPES


# =============================================================================
# REFERENCE POINT
# =============================================================================

@dataclass(frozen=True)
class ResolvedPeriod:
    """Concrete reference point behind a period token."""
    token: str
    target_year: Optional[int]
    reference_month: str
    month_index: int
    quarter: int

    @property
    def is_last_year(self) -> bool:
        return self.token in _LAST_YEAR_TOKENS

    @property
    def effective_year(self) -> Optional[int]:
        """Year the token pins rows to (target year, or the one before for L-tokens)."""
        if self.target_year is None:
            return None
        return self.target_year - 1 if self.is_last_year else self.target_year

    def to_dict(self):
        return {
            'token': self.token,
            'targetYear': self.target_year,
            'referenceMonth': self.reference_month,
            'monthIndex': self.month_index,
            'quarter': self.quarter,
        }


def _latest_month(rows: pd.DataFrame, year: Optional[int]) -> str:
    """Chronologically latest month present in the given year, '' if none."""
    if rows.empty or year is None:
        return ''
    months = rows.loc[rows['year'] == year, 'month']
    indexes = months.map(MONTH_INDEX).dropna()
    if indexes.empty:
        return ''
    latest = int(indexes.max())
    return next(name for name, idx in MONTH_INDEX.items() if idx == latest)


def resolve_reference(
    rows: pd.DataFrame,
    period: Any = None,
    explicit_year: Optional[int] = None,
    explicit_month: Optional[str] = None,
) -> ResolvedPeriod:
    """
    Determine target year, reference month and quarter.

    Args:
        rows: Canonical row frame
        period: Period token (any case)
        explicit_year: Year requested by the caller
        explicit_month: Month requested by the caller ('All' = not given)

    Returns:
        ResolvedPeriod (month_index/quarter are 0 when no month resolves)
    """
    token = normalize_period(period)

    if explicit_year is not None:
        target_year = int(explicit_year)
    elif not rows.empty:
        target_year = int(rows['year'].max())
    else:
        target_year = None

    month = ''
    if explicit_month and explicit_month != ALL_SENTINEL:
        month = normalize_month(explicit_month)
    if not month:
        month = _latest_month(rows, target_year)

    index = MONTH_INDEX.get(month, 0)
    quarter = math.ceil(index / 3) if index else 0

    return ResolvedPeriod(
        token=token,
        target_year=target_year,
        reference_month=month,
        month_index=index,
        quarter=quarter,
    )


# =============================================================================
# PREDICATE
# =============================================================================

def resolve_period(
    rows: pd.DataFrame,
    period: Any = None,
    explicit_year: Optional[int] = None,
    explicit_month: Optional[str] = None,
    skip_year_filter: bool = False,
) -> pd.Series:
    """
    Build the row-inclusion mask for a period token.

    Args:
        rows: Canonical row frame
        period: Period token; unknown or missing tokens accept every row
        explicit_year: Year requested by the caller
        explicit_month: Month requested by the caller
        skip_year_filter: Drop the year pin, keep only the token's month scope
                          (YoY builders filter each year themselves)

    Returns:
        Boolean Series aligned with rows.index
    """
    accept_all = pd.Series(True, index=rows.index, dtype=bool)
    token = normalize_period(period)

    if rows.empty or not token:
        return accept_all

    month_idx = rows['month'].map(MONTH_INDEX).fillna(0).astype(int)

    if token in QUARTER_PERIODS:
        quarter_months = QUARTER_MONTHS[int(token[1])]
        return month_idx.isin(quarter_months)

    if token not in PERIOD_TYPES:
        logger.debug(f"Unknown period token '{period}', no period restriction applied")
        return accept_all

    # Without an explicit year, LYTD/LMTD/LQTD re-derive the target year from
    # the rows given. Re-filtering their own output then pins the year before
    # that one, so they are idempotent only with an explicit year.
    ref = resolve_reference(rows, token, explicit_year, explicit_month)

    if skip_year_filter or ref.effective_year is None:
        mask = accept_all.copy()
    else:
        mask = rows['year'] == ref.effective_year

    # No resolvable month: month-scoped tokens keep the year pin only
    if not ref.month_index:
        return mask

    if token in ('YTD', 'LYTD'):
        mask &= month_idx <= ref.month_index
    elif token in ('MTD', 'LMTD'):
        mask &= month_idx == ref.month_index
    else:  # QTD / LQTD
        quarter_months = [m for m in QUARTER_MONTHS[ref.quarter] if m <= ref.month_index]
        mask &= month_idx.isin(quarter_months)

    return mask
