# bizpulse/sales_analytics/service.py
"""
Sales Analytics Service

Cache-fronted façade over the analytics engine ("load once, filter many"):
1. Build a cache key from operation name + FilterSpec + extra parameters
2. Cache hit -> return
3. Miss -> raw rows (raw-row cache, else data source) -> filter -> compute
4. Store for cache_ttl_seconds and return

Raw rows live under one shared cache key (RAW_DATA_CACHE_KEY) and are
dropped when the data source reports an upstream change.

Data-source failures: with settings.allow_empty (default) the operation
returns an empty / zeroed result of its own type, otherwise the
DataSourceUnavailable propagates. Empty fallbacks are not cached.

Usage:
    service = SalesAnalyticsService(CsvFileDataSource('data.csv'), TTLCache())
    aggregates = await service.get_aggregates(FilterSpec(period='YTD'))
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

import pandas as pd

from ..cache import TTLCache
from ..exceptions import DataSourceUnavailable
from .access_control import AuthContext
from .aggregations import Dimension, distinct_values
from .constants import (
    PERIOD_TYPES,
    QUARTER_PERIODS,
    RAW_DATA_CACHE_KEY,
    LAST_MODIFIED_CACHE_KEY,
)
from .data_loader import FetchMetadata, SalesDataSource, empty_frame
from .filters import FilterSpec, apply_filters
from .metrics import (
    SalesMetrics,
    AggregateResult,
    TrendPoint,
    VarianceResult,
    BusinessAreaPerformance,
    ChannelPerformance,
    CategoryPerformance,
    CustomerPerformance,
    build_variance,
)
from .pagination import PaginatedResponse, paginate
from .settings import AnalyticsSettings
from .yoy_report import YoYReport, build_yoy_report

logger = logging.getLogger(__name__)

T = TypeVar('T')

LAST_MODIFIED_TTL_SECONDS = 86400


def _detached(value: T) -> T:
    """Copy of a result so callers and the cache never share mutable state."""
    if isinstance(value, pd.DataFrame):
        return value.copy()
    return copy.deepcopy(value)


@dataclass(frozen=True)
class DashboardOverview:
    aggregates: AggregateResult
    trends: List[TrendPoint] = field(default_factory=list)
    top_performers: Optional[PaginatedResponse] = None
    risk_items: Optional[PaginatedResponse] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'aggregates': self.aggregates.to_dict(),
            'trends': [point.to_dict() for point in self.trends],
            'topPerformers': self.top_performers.to_dict() if self.top_performers else None,
            'riskItems': self.risk_items.to_dict() if self.risk_items else None,
        }


class SalesAnalyticsService:
    """
    One instance per process, shared by all request handlers.

    Args:
        data_source: Raw-row provider
        cache: TTL cache shared by raw rows and computed results
        settings: Analytics tunables (thresholds, TTLs, allow_empty)
    """

    def __init__(
        self,
        data_source: SalesDataSource,
        cache: TTLCache,
        settings: Optional[AnalyticsSettings] = None,
    ):
        self.data_source = data_source
        self.cache = cache
        self.settings = settings or AnalyticsSettings()
        self._last_fetch = FetchMetadata()
        logger.info(f"SalesAnalyticsService initialized (source={data_source.name}, "
                    f"allow_empty={self.settings.allow_empty})")

    # =========================================================================
    # INTERNAL PIPELINE
    # =========================================================================

    @staticmethod
    def _cache_key(operation: str, spec: FilterSpec, **extras) -> str:
        key = f"{operation}_{spec.cache_key()}"
        for name in sorted(extras):
            key += f"_{name}={extras[name]}"
        return key

    @staticmethod
    def _scoped(spec: Optional[FilterSpec], auth: Optional[AuthContext]) -> FilterSpec:
        spec = spec or FilterSpec()
        return auth.apply_to(spec) if auth is not None else spec

    async def _get_raw_rows(self) -> pd.DataFrame:
        """Raw rows from the shared cache key, fetching on a miss."""
        cached = await self.cache.get(RAW_DATA_CACHE_KEY)
        if cached is not None:
            self._last_fetch = FetchMetadata(
                source='cache',
                row_count=len(cached),
                last_updated=self._last_fetch.last_updated,
            )
            return cached

        rows = await asyncio.to_thread(self.data_source.fetch_rows)
        await self.cache.set(RAW_DATA_CACHE_KEY, rows, self.settings.raw_cache_ttl_seconds)
        self._last_fetch = self.data_source.get_last_fetch_metadata()
        logger.info(f"✅ Loaded {len(rows)} raw rows into cache")
        return rows

    async def _cached(
        self,
        key: str,
        compute: Callable[[pd.DataFrame], T],
        empty: Callable[[], T],
    ) -> T:
        """Cache-fronted compute over raw rows with the allow-empty policy."""
        hit = await self.cache.get(key)
        if hit is not None:
            return _detached(hit)

        try:
            rows = await self._get_raw_rows()
        except DataSourceUnavailable as e:
            if not self.settings.allow_empty:
                raise
            logger.warning(f"Data source unavailable, returning empty result for {key.split('_{', 1)[0]}: {e}")
            return empty()

        result = compute(rows)
        await self.cache.set(key, _detached(result), self.settings.cache_ttl_seconds)
        return result

    def _metrics(self, rows: pd.DataFrame, spec: FilterSpec) -> SalesMetrics:
        return SalesMetrics(apply_filters(rows, spec), self.settings)

    def _paginate(self, items: list, limit: Optional[int], offset: Optional[int]) -> PaginatedResponse:
        return paginate(items, limit, offset, default_limit=self.settings.top_n_default_limit)

    # =========================================================================
    # CORE OPERATIONS
    # =========================================================================

    async def get_aggregates(self, spec: Optional[FilterSpec] = None,
                             auth: Optional[AuthContext] = None) -> AggregateResult:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('aggregates', spec),
            lambda rows: self._metrics(rows, spec).calculate_aggregates(),
            AggregateResult,
        )

    async def get_filtered_rows(self, spec: Optional[FilterSpec] = None,
                                auth: Optional[AuthContext] = None) -> pd.DataFrame:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('filtered', spec),
            lambda rows: apply_filters(rows, spec),
            empty_frame,
        )

    async def get_top_performers(
        self,
        spec: Optional[FilterSpec] = None,
        metric: str = 'gSales',
        dimension: str = 'brand',
        limit: Optional[int] = None,
        offset: int = 0,
        auth: Optional[AuthContext] = None,
    ) -> PaginatedResponse:
        """Groups ranked by metric, highest first, one page."""
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('top_performers', spec, metric=metric, dimension=dimension,
                            limit=limit, offset=offset),
            lambda rows: self._paginate(self._metrics(rows, spec).top_performers(metric, dimension),
                                        limit, offset),
            lambda: self._paginate([], limit, offset),
        )

    async def get_risk_analysis(
        self,
        spec: Optional[FilterSpec] = None,
        dimension: str = 'brand',
        limit: Optional[int] = None,
        offset: int = 0,
        auth: Optional[AuthContext] = None,
    ) -> PaginatedResponse:
        """Risk-classified groups, lowest sales first, one page."""
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('risk_analysis', spec, dimension=dimension, limit=limit, offset=offset),
            lambda rows: self._paginate(self._metrics(rows, spec).risk_items(dimension), limit, offset),
            lambda: self._paginate([], limit, offset),
        )

    async def get_trend_analysis(self, spec: Optional[FilterSpec] = None, metric: str = 'gSales',
                                 auth: Optional[AuthContext] = None) -> List[TrendPoint]:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('trend_analysis', spec, metric=metric),
            lambda rows: self._metrics(rows, spec).trend_analysis(metric),
            list,
        )

    async def get_variance(self, spec: Optional[FilterSpec] = None,
                           auth: Optional[AuthContext] = None) -> VarianceResult:
        """Margin variance against the natural comparison period (or a labelled fallback)."""
        spec = self._scoped(spec, auth)

        def compute(rows: pd.DataFrame) -> VarianceResult:
            scope_rows = apply_filters(rows, spec.scope_only())
            return build_variance(scope_rows, spec, self.settings.variance_weights)

        return await self._cached(
            self._cache_key('variance', spec),
            compute,
            lambda: VarianceResult(period=spec.period or 'current'),
        )

    # =========================================================================
    # DIMENSION PERFORMANCE
    # =========================================================================

    async def get_business_area_performance(self, spec: Optional[FilterSpec] = None,
                                            auth: Optional[AuthContext] = None
                                            ) -> List[BusinessAreaPerformance]:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('business_areas', spec),
            lambda rows: self._metrics(rows, spec).business_area_performance(),
            list,
        )

    async def get_channel_performance(self, spec: Optional[FilterSpec] = None,
                                      auth: Optional[AuthContext] = None) -> List[ChannelPerformance]:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('channels', spec),
            lambda rows: self._metrics(rows, spec).channel_performance(),
            list,
        )

    async def get_category_performance(self, spec: Optional[FilterSpec] = None,
                                       auth: Optional[AuthContext] = None) -> List[CategoryPerformance]:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('categories', spec),
            lambda rows: self._metrics(rows, spec).category_performance(Dimension.CATEGORY),
            list,
        )

    async def get_sub_category_performance(self, spec: Optional[FilterSpec] = None,
                                           auth: Optional[AuthContext] = None
                                           ) -> List[CategoryPerformance]:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('sub_categories', spec),
            lambda rows: self._metrics(rows, spec).category_performance(Dimension.SUB_CATEGORY),
            list,
        )

    async def get_customer_performance(self, spec: Optional[FilterSpec] = None,
                                       auth: Optional[AuthContext] = None) -> List[CustomerPerformance]:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key('customers', spec),
            lambda rows: self._metrics(rows, spec).customer_performance(),
            list,
        )

    # =========================================================================
    # YOY REPORTS
    # =========================================================================

    async def _yoy_report(self, report: str, spec: Optional[FilterSpec],
                          auth: Optional[AuthContext]) -> YoYReport:
        spec = self._scoped(spec, auth)
        return await self._cached(
            self._cache_key(f'yoy_{report}', spec),
            lambda rows: build_yoy_report(rows, spec, report),
            lambda: YoYReport.empty(report, spec),
        )

    async def get_business_area_yoy_report(self, spec: Optional[FilterSpec] = None,
                                           auth: Optional[AuthContext] = None) -> YoYReport:
        return await self._yoy_report('business_area', spec, auth)

    async def get_channel_yoy_report(self, spec: Optional[FilterSpec] = None,
                                     auth: Optional[AuthContext] = None) -> YoYReport:
        return await self._yoy_report('channel', spec, auth)

    async def get_brand_yoy_report(self, spec: Optional[FilterSpec] = None,
                                   auth: Optional[AuthContext] = None) -> YoYReport:
        return await self._yoy_report('brand', spec, auth)

    async def get_customer_yoy_report(self, spec: Optional[FilterSpec] = None,
                                      auth: Optional[AuthContext] = None) -> YoYReport:
        return await self._yoy_report('customer', spec, auth)

    async def get_monthly_trend_yoy_report(self, spec: Optional[FilterSpec] = None,
                                           auth: Optional[AuthContext] = None) -> YoYReport:
        return await self._yoy_report('monthly_trend', spec, auth)

    # =========================================================================
    # DASHBOARD / DATA MANAGEMENT
    # =========================================================================

    async def get_dashboard_overview(self, spec: Optional[FilterSpec] = None,
                                     auth: Optional[AuthContext] = None) -> DashboardOverview:
        """
        Aggregates, trend, top performers and risk items for one filter.

        Raw rows are loaded once up front, then the views are computed
        concurrently.
        """
        try:
            await self._get_raw_rows()
        except DataSourceUnavailable:
            if not self.settings.allow_empty:
                raise
            # Each view below falls back to its own empty result

        aggregates, trends, top, risks = await asyncio.gather(
            self.get_aggregates(spec, auth),
            self.get_trend_analysis(spec, auth=auth),
            self.get_top_performers(spec, auth=auth),
            self.get_risk_analysis(spec, auth=auth),
        )
        return DashboardOverview(aggregates=aggregates, trends=trends, top_performers=top, risk_items=risks)

    async def get_filter_options(self, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        """Period tokens, years and distinct dimension values visible to the caller."""
        spec = self._scoped(None, auth)

        def compute(rows: pd.DataFrame) -> Dict[str, Any]:
            visible = apply_filters(rows, spec)
            return {
                'periods': PERIOD_TYPES + QUARTER_PERIODS,
                'years': sorted({int(y) for y in visible['year'].unique()}, reverse=True),
                'businessAreas': distinct_values(visible, Dimension.BUSINESS_AREA),
                'brands': distinct_values(visible, Dimension.BRAND),
                'categories': distinct_values(visible, Dimension.CATEGORY),
                'channels': distinct_values(visible, Dimension.CHANNEL),
                'customers': distinct_values(visible, Dimension.CUSTOMER),
            }

        def empty() -> Dict[str, Any]:
            return {
                'periods': PERIOD_TYPES + QUARTER_PERIODS,
                'years': [],
                'businessAreas': [],
                'brands': [],
                'categories': [],
                'channels': [],
                'customers': [],
            }

        return await self._cached(self._cache_key('filter_options', spec), compute, empty)

    async def get_data_health(self) -> Dict[str, Any]:
        """Row count, measure completeness and fetch metadata (never cached)."""
        try:
            rows = await self._get_raw_rows()
        except DataSourceUnavailable as e:
            logger.error(f"❌ Data health check failed: {e}")
            return {
                'totalRows': 0,
                'completeness': {'revenue': 0.0, 'cost': 0.0, 'volume': 0.0},
                'lastFetch': self._last_fetch.to_dict(),
                'status': 'unavailable',
            }

        total = len(rows)

        def completeness(column: str) -> float:
            return float((rows[column] > 0).sum()) / total * 100 if total else 0.0

        return {
            'totalRows': total,
            'completeness': {
                'revenue': completeness('gsales'),
                'cost': completeness('group_cost'),
                'volume': completeness('cases'),
            },
            'lastFetch': self._last_fetch.to_dict(),
            'status': 'healthy' if total else 'empty',
        }

    async def refresh_if_updated(self) -> bool:
        """
        Drop the raw-row cache when the upstream data changed.

        Returns:
            True when the source reported a change
        """
        changed = await asyncio.to_thread(self.data_source.check_for_updates)
        if changed:
            await self.cache.delete(RAW_DATA_CACHE_KEY)
            await self.cache.set(LAST_MODIFIED_CACHE_KEY, datetime.now(timezone.utc).isoformat(),
                                 LAST_MODIFIED_TTL_SECONDS)
            logger.info("🔄 Upstream data changed, raw-row cache cleared")
        return changed

    def get_last_fetch_metadata(self) -> FetchMetadata:
        return self._last_fetch

    async def get_cache_stats(self) -> Dict[str, Any]:
        return await self.cache.get_stats()

    async def clear_cache(self) -> None:
        await self.cache.clear()
