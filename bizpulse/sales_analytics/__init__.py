# bizpulse/sales_analytics/__init__.py
"""
Sales Analytics Module

Period-aware filtering and aggregation engine for the sales dashboard.

Components:
- periods: Period token resolution (YTD/MTD/QTD, LY variants, Q1-Q4)
- filters: FilterSpec and the filter engine
- aggregations: Grouping / summation primitives, Dimension and Measure enums
- metrics: Report builders (aggregates, rankings, risk, trend, variance)
- yoy_report: Year-over-year reports with combined rows and grand total
- pagination: Page-index pagination envelope
- access_control: AuthContext and role-derived allow-lists
- data_loader: Row schema normalisation and CSV / S3 / SQL data sources
- service: Cache-fronted async service façade

Usage:
    from bizpulse.sales_analytics import (
        SalesAnalyticsService,
        FilterSpec,
        AuthContext,
        CsvFileDataSource,
    )
"""

from .access_control import AuthContext
from .aggregations import Dimension, Measure, safe_divide
from .data_loader import (
    FetchMetadata,
    SalesDataSource,
    CsvFileDataSource,
    S3DataSource,
    SqlDataSource,
    normalize_rows,
)
from .filters import FilterSpec, apply_filters
from .metrics import (
    SalesMetrics,
    AggregateResult,
    TopPerformer,
    RiskItem,
    TrendPoint,
    VarianceResult,
    BusinessAreaPerformance,
    ChannelPerformance,
    CategoryPerformance,
    CustomerPerformance,
)
from .pagination import PaginatedResponse, paginate
from .periods import ResolvedPeriod, resolve_period
from .service import SalesAnalyticsService, DashboardOverview
from .settings import AnalyticsSettings
from .yoy_report import YoYReport, YoYReportRow

# Constants
from .constants import (
    MONTH_ORDER,
    PERIOD_TYPES,
    QUARTER_PERIODS,
    FULL_ACCESS_ROLES,
    TOP_N_DEFAULT_LIMIT,
)

__all__ = [
    # Classes
    'SalesAnalyticsService',
    'DashboardOverview',
    'SalesMetrics',
    'AnalyticsSettings',
    'AuthContext',
    'FilterSpec',
    'ResolvedPeriod',
    'Dimension',
    'Measure',
    'FetchMetadata',
    'SalesDataSource',
    'CsvFileDataSource',
    'S3DataSource',
    'SqlDataSource',

    # Results
    'AggregateResult',
    'TopPerformer',
    'RiskItem',
    'TrendPoint',
    'VarianceResult',
    'BusinessAreaPerformance',
    'ChannelPerformance',
    'CategoryPerformance',
    'CustomerPerformance',
    'YoYReport',
    'YoYReportRow',
    'PaginatedResponse',

    # Functions
    'apply_filters',
    'resolve_period',
    'paginate',
    'safe_divide',
    'normalize_rows',

    # Constants
    'MONTH_ORDER',
    'PERIOD_TYPES',
    'QUARTER_PERIODS',
    'FULL_ACCESS_ROLES',
    'TOP_N_DEFAULT_LIMIT',
]

__version__ = '1.0.0'
