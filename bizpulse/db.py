# bizpulse/db.py
"""
Database Connection Management

Features:
- Engine factory with pooling and auto-reconnect (pre-ping)
- Health check utility
- No module-level engine: the SQL data source owns the engine it is given
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .config import DatabaseConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Hide the password part of a connection URL for logging"""
    if "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def create_db_engine(db_config: DatabaseConfig) -> Engine:
    """
    Create a SQLAlchemy engine from configuration.

    Args:
        db_config: DatabaseConfig with url and pool settings

    Returns:
        SQLAlchemy Engine instance
    """
    if not db_config.is_configured():
        raise ConfigurationError("SALES_DB_URL is not configured")

    url = db_config.url
    logger.info(f"🔌 Creating database engine: {_mask_url(url)}")

    # SQLite does not take QueuePool sizing arguments
    if url.startswith("sqlite"):
        engine = create_engine(url, pool_pre_ping=True, echo=False)
    else:
        engine = create_engine(
            url,
            pool_size=db_config.pool_size,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=db_config.pool_recycle,
            pool_pre_ping=True,  # Auto-reconnect on stale connections
            echo=False
        )

    logger.info(f"✅ Database engine created (pool_size={db_config.pool_size}, recycle={db_config.pool_recycle}s)")
    return engine


def check_db_connection(engine: Engine) -> Tuple[bool, Optional[str]]:
    """
    Check if database connection is healthy

    Returns:
        Tuple of (is_connected: bool, error_message: str or None)
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except OperationalError as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False, "Cannot connect to database. Please check your network/VPN connection."
    except SQLAlchemyError as e:
        logger.error(f"❌ Database error: {e}")
        return False, f"Database error: {str(e)}"
