# bizpulse/factory.py
"""
Service wiring

Builds the configured data source and the analytics service from a Config.
Call once at process start and share the returned service.

Usage:
    from bizpulse.config import Config
    from bizpulse.factory import create_service

    service = create_service(Config())
"""

import logging
from typing import Optional

from .cache import TTLCache
from .config import Config
from .db import create_db_engine
from .exceptions import ConfigurationError
from .s3_utils import S3Manager
from .sales_analytics.data_loader import (
    SalesDataSource,
    CsvFileDataSource,
    S3DataSource,
    SqlDataSource,
)
from .sales_analytics.service import SalesAnalyticsService

logger = logging.getLogger(__name__)


def create_data_source(config: Config) -> SalesDataSource:
    """
    Data source selected by DATA_SOURCE (csv / s3 / sql).

    Raises:
        ConfigurationError: unknown kind or missing settings for it
    """
    source_config = config.get_data_source_config()
    kind = source_config.kind

    if kind == 'csv':
        logger.info(f"Using CSV data source: {source_config.csv_path}")
        return CsvFileDataSource(source_config.csv_path)

    if kind == 's3':
        aws_config = config.get_aws_config()
        logger.info(f"Using S3 data source: s3://{aws_config['bucket_name']}/{aws_config['data_key']}")
        return S3DataSource(S3Manager(aws_config), aws_config['data_key'])

    if kind == 'sql':
        db_config = config.get_db_config()
        return SqlDataSource(create_db_engine(db_config), db_config.table)

    raise ConfigurationError(f"Unknown DATA_SOURCE '{kind}' (expected csv, s3 or sql)")


def create_service(
    config: Config,
    data_source: Optional[SalesDataSource] = None,
    cache: Optional[TTLCache] = None,
) -> SalesAnalyticsService:
    """
    Analytics service wired from configuration.

    Args:
        config: Loaded Config
        data_source: Override the configured source (tests)
        cache: Override the cache (tests)
    """
    settings = config.get_analytics_settings()
    return SalesAnalyticsService(
        data_source=data_source or create_data_source(config),
        cache=cache or TTLCache(default_ttl=settings.cache_ttl_seconds),
        settings=settings,
    )
