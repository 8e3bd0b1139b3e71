# bizpulse/sales_analytics/filters.py
"""
Filter Engine for Sales Analytics

FilterSpec is the request-scoped, immutable description of what rows a
caller wants; apply_filters() turns it into a new filtered frame.

Order of application:
1. Period token (periods.resolve_period)
2. Direct equality filters (year, month, business area, brand, category,
   sub-category, channel, customer). 'All' or empty = no restriction.
3. Row-level-security allow-lists. Rows whose value is empty or not in a
   non-empty allow-list are dropped.

A year-pinning token (YTD/MTD/QTD/LYTD/LMTD/LQTD) uses the explicit year and
month as its reference point, so those two equality filters are not applied
again on top of it.
"""

import json
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, FrozenSet, Iterable, Optional

import pandas as pd

from ..exceptions import InvalidFilterSpec
from .constants import ALL_SENTINEL
from .data_loader import ensure_schema, normalize_month
from .periods import resolve_period, is_year_pinning

logger = logging.getLogger(__name__)


# FilterSpec field -> row column
EQUALITY_FILTERS = {
    'business_area': 'business_area',
    'brand': 'brand',
    'category': 'category',
    'sub_category': 'sub_category',
    'channel': 'channel',
    'customer': 'customer',
}

ALLOW_LIST_FILTERS = {
    'allowed_business_areas': 'business_area',
    'allowed_channels': 'channel',
    'allowed_brands': 'brand',
    'allowed_customers': 'customer',
}

# Wire (camelCase) keys accepted by FilterSpec.from_dict
_CAMEL_KEYS = {
    'businessArea': 'business_area',
    'subCategory': 'sub_category',
    'allowedBusinessAreas': 'allowed_business_areas',
    'allowedChannels': 'allowed_channels',
    'allowedBrands': 'allowed_brands',
    'allowedCustomers': 'allowed_customers',
    'skipYearFilter': 'skip_year_filter',
}


def _clean_text(value: Any) -> Optional[str]:
    """None for absent / blank / 'All' values, stripped text otherwise."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == ALL_SENTINEL:
        return None
    return text


def _to_frozenset(value: Any) -> Optional[FrozenSet[str]]:
    """
    Allow-list from a set/list/tuple or comma separated string; None if empty.

    A frozenset is taken as already normalised and kept even when empty
    (empty = nothing allowed).
    """
    if value is None:
        return None
    if isinstance(value, frozenset):
        return frozenset(item for item in value if item)
    if isinstance(value, str):
        items: Iterable[Any] = value.split(',')
    else:
        items = value
    cleaned = frozenset(str(item).strip() for item in items if item is not None and str(item).strip())
    return cleaned or None


def _parse_year(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidFilterSpec(f"Invalid year: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text or text == ALL_SENTINEL:
        return None
    try:
        return int(text)
    except ValueError:
        raise InvalidFilterSpec(f"Invalid year: {value!r}") from None


# =============================================================================
# FILTER SPEC
# =============================================================================

@dataclass(frozen=True)
class FilterSpec:
    """
    Declarative row filter.

    Every dimensional field is optional; 'All' is normalised to None.
    Allow-lists are frozensets (None = unrestricted, empty = nothing allowed).
    """
    year: Optional[int] = None
    month: Optional[str] = None
    period: Optional[str] = None
    business_area: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    channel: Optional[str] = None
    customer: Optional[str] = None
    allowed_business_areas: Optional[FrozenSet[str]] = None
    allowed_channels: Optional[FrozenSet[str]] = None
    allowed_brands: Optional[FrozenSet[str]] = None
    allowed_customers: Optional[FrozenSet[str]] = None
    skip_year_filter: bool = False

    def __post_init__(self):
        # Frozen: normalise through object.__setattr__
        set_ = object.__setattr__

        if self.year is not None and not isinstance(self.year, int):
            set_(self, 'year', _parse_year(self.year))

        month = _clean_text(self.month)
        if month is not None:
            month = normalize_month(month) or month
        set_(self, 'month', month)

        period = _clean_text(self.period)
        set_(self, 'period', period.upper() if period else None)

        for name in EQUALITY_FILTERS:
            set_(self, name, _clean_text(getattr(self, name)))

        for name in ALLOW_LIST_FILTERS:
            set_(self, name, _to_frozenset(getattr(self, name)))

    # ==================== CONSTRUCTION ====================

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FilterSpec':
        """
        Build from a request dict (camelCase or snake_case keys).

        Unknown keys are ignored.

        Raises:
            InvalidFilterSpec: when 'year' is not an integer
        """
        if not data:
            return cls()

        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name in known:
                kwargs[name] = value

        if 'year' in kwargs:
            kwargs['year'] = _parse_year(kwargs['year'])
        if 'skip_year_filter' in kwargs:
            kwargs['skip_year_filter'] = bool(kwargs['skip_year_filter'])

        return cls(**kwargs)

    def with_changes(self, **changes) -> 'FilterSpec':
        """Copy with some fields replaced."""
        return replace(self, **changes)

    def with_scope(
        self,
        business_areas: Optional[Iterable[str]] = None,
        channels: Optional[Iterable[str]] = None,
        brands: Optional[Iterable[str]] = None,
        customers: Optional[Iterable[str]] = None,
    ) -> 'FilterSpec':
        """
        Merge caller allow-lists into this spec.

        When both the spec and the scope restrict a dimension the result
        is their intersection.
        """
        def merge(current: Optional[FrozenSet[str]], extra: Optional[Iterable[str]]):
            extra_set = _to_frozenset(extra)
            if extra_set is None:
                return current
            if current is None:
                return extra_set
            # May be empty: nothing allowed
            return current & extra_set

        return replace(
            self,
            allowed_business_areas=merge(self.allowed_business_areas, business_areas),
            allowed_channels=merge(self.allowed_channels, channels),
            allowed_brands=merge(self.allowed_brands, brands),
            allowed_customers=merge(self.allowed_customers, customers),
        )

    def scope_only(self) -> 'FilterSpec':
        """Spec carrying only this spec's allow-lists."""
        return FilterSpec(**{name: getattr(self, name) for name in ALLOW_LIST_FILTERS})

    # ==================== SERIALISATION ====================

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, frozenset):
                value = sorted(value)
            result[f.name] = value
        return result

    def cache_key(self) -> str:
        """Deterministic JSON (sorted keys and allow-lists)."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))


# =============================================================================
# FILTER ENGINE
# =============================================================================

def apply_filters(rows: pd.DataFrame, spec: Optional[FilterSpec] = None) -> pd.DataFrame:
    """
    Filter canonical rows with a FilterSpec.

    Args:
        rows: Canonical row frame (never mutated)
        spec: Filter to apply (None = no filter)

    Returns:
        New DataFrame with a fresh RangeIndex
    """
    df = ensure_schema(rows)
    spec = spec or FilterSpec()

    if df.empty:
        return df.copy()

    # 1. Period
    mask = resolve_period(
        df,
        spec.period,
        explicit_year=spec.year,
        explicit_month=spec.month,
        skip_year_filter=spec.skip_year_filter,
    )

    # 2. Direct equality filters
    pinned = is_year_pinning(spec.period)
    if spec.year is not None and not pinned and not spec.skip_year_filter:
        mask &= df['year'] == spec.year
    if spec.month is not None and not pinned:
        mask &= df['month'] == spec.month

    for name, column in EQUALITY_FILTERS.items():
        value = getattr(spec, name)
        if value is not None:
            mask &= df[column] == value

    # 3. Allow-lists (fail closed on empty values)
    for name, column in ALLOW_LIST_FILTERS.items():
        allowed = getattr(spec, name)
        if allowed is not None:
            mask &= df[column].isin(allowed) & (df[column] != '')

    filtered = df.loc[mask].reset_index(drop=True)
    logger.debug(f"Filtered {len(df)} -> {len(filtered)} rows")
    return filtered
