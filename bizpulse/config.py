# bizpulse/config.py
"""
Centralized Configuration Management

Features:
- Local .env loading (python-dotenv), environment overrides
- Typed dataclass containers per concern
- Type-safe getters with defaults
- Explicit construction (no module-level instance); the service
  factory receives a Config and passes settings down
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .sales_analytics.constants import (
    TOP_N_DEFAULT_LIMIT,
    RISK_LOW_MARGIN_THRESHOLD,
    RISK_DECLINING_TREND_THRESHOLD,
    RISK_LOW_VOLUME_THRESHOLD,
    CACHE_TTL_SECONDS,
    RAW_CACHE_TTL_SECONDS,
)
from .sales_analytics.settings import AnalyticsSettings

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() == "true"


@dataclass
class AWSConfig:
    """AWS configuration container"""
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: str = "eu-west-1"
    bucket_name: str = "biz-pulse"
    data_key: str = "Biz-Pulse/yearly_data.csv"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'access_key_id': self.access_key_id,
            'secret_access_key': self.secret_access_key,
            'region': self.region,
            'bucket_name': self.bucket_name,
            'data_key': self.data_key,
        }

    def is_configured(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)


@dataclass
class DatabaseConfig:
    """Database configuration container"""
    url: Optional[str] = None
    table: str = "sales_data"
    pool_size: int = 5
    pool_recycle: int = 3600

    def is_configured(self) -> bool:
        return bool(self.url)


@dataclass
class DataSourceConfig:
    """Which adapter feeds the engine, and where it reads from"""
    kind: str = "csv"
    csv_path: str = "data/yearly_data.csv"


class Config:
    """
    Centralized configuration management

    Usage:
        from bizpulse.config import Config

        config = Config()

        # Analytics tunables
        settings = config.get_analytics_settings()

        # AWS / database / data source
        aws = config.get_aws_config()
        source = config.get_data_source_config()
    """

    def __init__(self, env_file: Optional[Path] = None):
        self._load_env_file(env_file)
        self._load_config()
        self._log_config_status()

    def _load_env_file(self, env_file: Optional[Path]):
        """Find and load .env file (existing environment wins)"""
        env_paths = [env_file] if env_file else [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for env_path in env_paths:
            if env_path and env_path.exists():
                load_dotenv(env_path)
                logger.info(f"Loaded .env from: {env_path}")
                break

    def _load_config(self):
        """Load configuration from environment"""
        self._aws_config = AWSConfig(
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            region=os.getenv("AWS_REGION", "eu-west-1"),
            bucket_name=os.getenv("S3_BUCKET_NAME", "biz-pulse"),
            data_key=os.getenv("S3_DATA_KEY", "Biz-Pulse/yearly_data.csv"),
        )

        self._db_config = DatabaseConfig(
            url=os.getenv("SALES_DB_URL"),
            table=os.getenv("SALES_TABLE", "sales_data"),
            pool_size=_env_int("DB_POOL_SIZE", 5),
            pool_recycle=_env_int("DB_POOL_RECYCLE", 3600),
        )

        self._data_source_config = DataSourceConfig(
            kind=os.getenv("DATA_SOURCE", "csv").strip().lower(),
            csv_path=os.getenv("CSV_PATH", "data/yearly_data.csv"),
        )

        self._analytics_settings = AnalyticsSettings(
            top_n_default_limit=_env_int("TOPN_LIMIT_DEFAULT", TOP_N_DEFAULT_LIMIT),
            risk_low_margin_threshold=_env_float(
                "RISK_LOW_MARGIN_THRESHOLD", RISK_LOW_MARGIN_THRESHOLD
            ),
            risk_declining_trend_threshold=_env_float(
                "RISK_DECLINING_TREND_THRESHOLD", RISK_DECLINING_TREND_THRESHOLD
            ),
            risk_low_volume_threshold=_env_float(
                "RISK_LOW_VOLUME_THRESHOLD", RISK_LOW_VOLUME_THRESHOLD
            ),
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", CACHE_TTL_SECONDS),
            raw_cache_ttl_seconds=_env_int("RAW_CACHE_TTL_SECONDS", RAW_CACHE_TTL_SECONDS),
            allow_empty=_env_bool("ALLOW_EMPTY_ON_ERROR", True),
        )

        self._app_config = {
            "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
        }

    def _log_config_status(self):
        """Log configuration status"""
        logger.info(f"✅ Data source: {self._data_source_config.kind}")
        logger.info(f"✅ AWS S3: {'Configured' if self._aws_config.is_configured() else 'Not configured'}")
        logger.info(f"✅ Database: {'Configured' if self._db_config.is_configured() else 'Not configured'}")
        logger.info(
            f"✅ Analytics: topN={self._analytics_settings.top_n_default_limit}, "
            f"allow_empty={self._analytics_settings.allow_empty}"
        )

    # ==================== PUBLIC GETTERS ====================

    def get_aws_config(self) -> Dict[str, Any]:
        """Get AWS configuration as dictionary"""
        return self._aws_config.to_dict()

    def get_db_config(self) -> DatabaseConfig:
        """Get database configuration"""
        return self._db_config

    def get_data_source_config(self) -> DataSourceConfig:
        """Get data source selection"""
        return self._data_source_config

    def get_analytics_settings(self) -> AnalyticsSettings:
        """Get analytics tunables"""
        return self._analytics_settings

    def get_app_setting(self, key: str, default: Any = None) -> Any:
        """Get application setting with default"""
        return self._app_config.get(key, default)


def configure_logging(level: str = "INFO"):
    """Apply the package-wide log format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
