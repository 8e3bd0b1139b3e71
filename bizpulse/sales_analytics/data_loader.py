# bizpulse/sales_analytics/data_loader.py
"""
Row Schema and Data Sources for Sales Analytics

Turns a raw sales extract into the canonical row frame the engine works on:
- Header mapping (source CSV names -> snake_case columns)
- Month label normalisation to MONTH_ORDER
- Numeric coercion (currency symbols / separators stripped, bad -> 0)
- Malformed-row exclusion (missing or zero year, missing month)

Data sources (all return a canonical DataFrame from fetch_rows()):
- CsvFileDataSource: local file
- S3DataSource: CSV object in an S3 bucket (boto3)
- SqlDataSource: table in a SQL database (SQLAlchemy)

NOTE: numeric parse failures become 0 while rows with no usable year/month
are dropped. The two policies differ on purpose: downstream totals already
depend on zero-filled measures.
"""

import logging
import math
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, Iterable, Optional, Union

import pandas as pd
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import DataSourceUnavailable, MalformedRowError
from ..s3_utils import S3Manager
from .constants import (
    SOURCE_COLUMNS,
    DIMENSION_COLUMNS,
    MEASURE_COLUMNS,
    ROW_COLUMNS,
    MONTH_MAPPING,
    MONTH_INDEX,
    MONTH_ALIASES,
)

logger = logging.getLogger(__name__)

_NUMBER_JUNK = re.compile(r"[€£$,\s]")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


# =============================================================================
# VALUE PARSING
# =============================================================================

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def parse_number(value: Any) -> float:
    """
    Parse a measure cell. Blank, None, NaN or unparseable -> 0.0.

    >>> parse_number("£1,234.50")
    1234.5
    """
    if _is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    cleaned = _NUMBER_JUNK.sub("", str(value))
    if not cleaned:
        return 0.0
    try:
        parsed = float(cleaned)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def parse_year(value: Any) -> int:
    """Parse the year cell; 0 marks an unusable value."""
    if _is_missing(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) and value == int(value) and value > 0 else 0

    text_value = str(value).strip()
    if text_value.endswith(".0"):
        text_value = text_value[:-2]
    if not text_value.isdigit():
        return 0
    return int(text_value)


def normalize_month(value: Any) -> str:
    """
    Normalise a month label to the canonical 3-letter form.

    Accepts full names, 3-letter abbreviations, 'Sept', and month numbers
    (1-12, '01'), any case. Unrecognised labels return ''.
    """
    if _is_missing(value) or isinstance(value, bool):
        return ''
    if isinstance(value, (int, float)):
        return MONTH_MAPPING.get(int(value), '') if value == int(value) else ''

    key = str(value).strip().lower()
    if not key:
        return ''
    if key.isdigit():
        return MONTH_MAPPING.get(int(key), '')
    if key in MONTH_ALIASES:
        return MONTH_ALIASES[key]
    if len(key) == 3 and key.title() in MONTH_INDEX:
        return key.title()
    return ''


# =============================================================================
# FRAME NORMALISATION
# =============================================================================

def empty_frame() -> pd.DataFrame:
    """Canonical, zero-row frame."""
    frame = pd.DataFrame({col: pd.Series(dtype=object) for col in ROW_COLUMNS})
    frame['year'] = frame['year'].astype('int64')
    for col in MEASURE_COLUMNS:
        frame[col] = frame[col].astype('float64')
    return frame


def ensure_schema(df: pd.DataFrame) -> pd.DataFrame:
    """
    Make sure every canonical column exists.

    Missing dimensions are filled with '' and missing measures with 0.
    Frames that already carry the full schema are returned unchanged.
    """
    if df is None or (df.empty and len(df.columns) == 0):
        return empty_frame()

    missing = [col for col in ROW_COLUMNS if col not in df.columns]
    if not missing:
        return df

    df = df.copy()
    for col in missing:
        if col in MEASURE_COLUMNS:
            df[col] = 0.0
        elif col == 'year':
            df[col] = 0
        else:
            df[col] = ''
    return df


def normalize_rows(raw: pd.DataFrame, strict: bool = False) -> pd.DataFrame:
    """
    Convert a raw extract into canonical rows.

    Args:
        raw: DataFrame with source headers (e.g. 'Month Name', 'gSales')
             or canonical headers
        strict: Raise MalformedRowError instead of skipping invalid rows

    Returns:
        New DataFrame with ROW_COLUMNS, invalid rows removed, index reset.
    """
    if raw is None or raw.empty:
        return empty_frame()

    df = raw.rename(columns={k: v for k, v in SOURCE_COLUMNS.items() if k in raw.columns})
    df = ensure_schema(df)

    df = df.copy()
    df['year'] = df['year'].map(parse_year).astype('int64')
    df['month'] = df['month'].map(normalize_month)

    for col in DIMENSION_COLUMNS:
        df[col] = df[col].map(lambda v: '' if _is_missing(v) else str(v).strip())

    for col in MEASURE_COLUMNS:
        df[col] = df[col].map(parse_number).astype('float64')

    valid = (df['year'] != 0) & (df['month'] != '')
    dropped = int((~valid).sum())
    if dropped and strict:
        raise MalformedRowError(f"{dropped} of {len(df)} rows have no usable year/month")
    if dropped:
        logger.warning(f"Row validation failed; skipped {dropped} of {len(df)} rows (missing year/month)")

    return df.loc[valid, ROW_COLUMNS].reset_index(drop=True)


def rows_to_frame(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """Build canonical rows from an iterable of dicts (source or canonical keys)."""
    return normalize_rows(pd.DataFrame(list(records)))


def read_sales_csv(source: Union[str, os.PathLike, BytesIO]) -> pd.DataFrame:
    """Parse a sales CSV (path or buffer) into canonical rows."""
    try:
        raw = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        logger.warning("Sales CSV is empty")
        return empty_frame()
    return normalize_rows(raw)


# =============================================================================
# DATA SOURCES
# =============================================================================

@dataclass(frozen=True)
class FetchMetadata:
    """Observational info about the last raw-row fetch."""
    source: str = 'primary'
    row_count: int = 0
    last_updated: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'rowCount': self.row_count,
            'lastUpdated': self.last_updated,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SalesDataSource:
    """
    Base class for raw-row providers.

    Subclasses implement _load() and may override check_for_updates().
    Caching of the fetched frame is the service's job, not the source's.
    """

    name = 'base'

    def __init__(self):
        self._last_fetch = FetchMetadata()

    def fetch_rows(self) -> pd.DataFrame:
        """
        Load and normalise all rows.

        Raises:
            DataSourceUnavailable: on I/O, credential or parse failure
        """
        logger.info(f"Fetching sales rows from {self.name} source")
        df = self._load()
        self._last_fetch = FetchMetadata(
            source='primary',
            row_count=len(df),
            last_updated=_now_iso(),
        )
        logger.info(f"Successfully parsed {len(df)} rows from {self.name} source")
        return df

    def _load(self) -> pd.DataFrame:
        raise NotImplementedError

    def get_last_fetch_metadata(self) -> FetchMetadata:
        return self._last_fetch

    def check_for_updates(self) -> bool:
        """True when the upstream copy changed since the last check."""
        return False


class CsvFileDataSource(SalesDataSource):
    """Sales extract stored as a local CSV file."""

    name = 'csv'

    def __init__(self, path: Union[str, os.PathLike]):
        super().__init__()
        self.path = os.fspath(path)
        self._seen_mtime: Optional[float] = None

    def _load(self) -> pd.DataFrame:
        try:
            return read_sales_csv(self.path)
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            logger.error(f"Error reading sales CSV {self.path}: {e}")
            raise DataSourceUnavailable(f"Cannot read sales CSV '{self.path}': {e}") from e

    def check_for_updates(self) -> bool:
        try:
            mtime = os.path.getmtime(self.path)
        except OSError as e:
            logger.error(f"Error checking for CSV updates: {e}")
            return False

        if self._seen_mtime is None or mtime > self._seen_mtime:
            self._seen_mtime = mtime
            return True
        return False


class S3DataSource(SalesDataSource):
    """Sales extract stored as a CSV object in S3."""

    name = 's3'

    def __init__(self, s3_manager: S3Manager, data_key: str):
        super().__init__()
        self.s3 = s3_manager
        self.data_key = data_key
        self._seen_modified: Optional[datetime] = None

    def _load(self) -> pd.DataFrame:
        try:
            if not self.s3.file_exists(self.data_key):
                raise DataSourceUnavailable(f"CSV file not found: {self.data_key}")
            content = self.s3.download_file(self.data_key)
            return read_sales_csv(BytesIO(content))
        except (ClientError, BotoCoreError, UnicodeDecodeError, pd.errors.ParserError) as e:
            logger.error(f"Error fetching CSV data from S3: {e}")
            raise DataSourceUnavailable(f"Cannot fetch '{self.data_key}' from S3: {e}") from e

    def check_for_updates(self) -> bool:
        try:
            modified = self.s3.get_last_modified(self.data_key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error checking for CSV updates: {e}")
            return False

        if modified is None:
            return False
        if self._seen_modified is None or modified > self._seen_modified:
            self._seen_modified = modified
            return True
        return False


class SqlDataSource(SalesDataSource):
    """Sales rows stored in a SQL table (source or canonical column names)."""

    name = 'sql'

    def __init__(self, engine: Engine, table: str = 'sales_data'):
        super().__init__()
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table}")
        self.engine = engine
        self.table = table

    def _load(self) -> pd.DataFrame:
        query = f"SELECT * FROM {self.table}"
        try:
            raw = pd.read_sql(text(query), self.engine)
        except (SQLAlchemyError, pd.errors.DatabaseError) as e:
            logger.error(f"Error loading sales table {self.table}: {e}")
            raise DataSourceUnavailable(f"Cannot query table '{self.table}': {e}") from e
        return normalize_rows(raw)
