# bizpulse/__init__.py
"""
Biz-Pulse sales analytics backend core.

Shared infrastructure:
- config: Configuration (.env + environment)
- cache: In-memory TTL cache
- s3_utils: S3 read access
- db: SQLAlchemy engine factory
- factory: Data source / service wiring
- exceptions: Error types

Analytics engine: bizpulse.sales_analytics

Usage:
    from bizpulse import Config, create_service, FilterSpec

    service = create_service(Config())
    aggregates = await service.get_aggregates(FilterSpec(period='YTD'))
"""

from .cache import TTLCache
from .config import Config, configure_logging
from .exceptions import (
    BizPulseError,
    DataSourceUnavailable,
    MalformedRowError,
    InvalidFilterSpec,
    ConfigurationError,
)
from .factory import create_data_source, create_service
from .sales_analytics import AuthContext, FilterSpec, SalesAnalyticsService

__all__ = [
    'TTLCache',
    'Config',
    'configure_logging',
    'create_data_source',
    'create_service',
    'AuthContext',
    'FilterSpec',
    'SalesAnalyticsService',
    'BizPulseError',
    'DataSourceUnavailable',
    'MalformedRowError',
    'InvalidFilterSpec',
    'ConfigurationError',
]

__version__ = '1.0.0'
