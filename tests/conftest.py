"""
Shared fixtures.
- sample_rows: two years (2023/2024) of canonical rows across brands/channels
- StubDataSource: in-memory data source counting fetches, can be made to fail
- FakeClock / cache: TTL cache driven by a manual clock
"""
import pandas as pd
import pytest

from bizpulse.cache import TTLCache
from bizpulse.exceptions import DataSourceUnavailable
from bizpulse.sales_analytics.data_loader import SalesDataSource, rows_to_frame
from bizpulse.sales_analytics.service import SalesAnalyticsService
from bizpulse.sales_analytics.settings import AnalyticsSettings


SAMPLE_RECORDS = [
    # 2024
    {'Year': 2024, 'Month Name': 'Jan', 'Business': 'Food', 'Channel': 'Grocery ROI', 'Brand': 'Alpha',
     'Category': 'Snacks', 'Sub-Cat': 'Crisps', 'Customer': 'Tesco',
     'Cases': 100, 'gSales': 1000, 'fGP': 300, 'Group Cost': 500},
    {'Year': 2024, 'Month Name': 'Feb', 'Business': 'Food', 'Channel': 'Grocery ROI', 'Brand': 'Alpha',
     'Category': 'Snacks', 'Sub-Cat': 'Crisps', 'Customer': 'Tesco',
     'Cases': 120, 'gSales': 1200, 'fGP': 360, 'Group Cost': 560},
    {'Year': 2024, 'Month Name': 'Mar', 'Business': 'Household', 'Channel': 'Wholesale NI/UK', 'Brand': 'Beta',
     'Category': 'Cleaning', 'Sub-Cat': 'Sprays', 'Customer': 'Musgrave',
     'Cases': 50, 'gSales': 800, 'fGP': 80, 'Group Cost': 600},
    {'Year': 2024, 'Month Name': 'Mar', 'Business': 'Food', 'Channel': 'Online', 'Brand': 'Gamma',
     'Category': 'Snacks', 'Sub-Cat': 'Nuts', 'Customer': 'Amazon',
     'Cases': 30, 'gSales': 600, 'fGP': 150, 'Group Cost': 300},
    # 2023
    {'Year': 2023, 'Month Name': 'Jan', 'Business': 'Food', 'Channel': 'Grocery ROI', 'Brand': 'Alpha',
     'Category': 'Snacks', 'Sub-Cat': 'Crisps', 'Customer': 'Tesco',
     'Cases': 90, 'gSales': 900, 'fGP': 270, 'Group Cost': 450},
    {'Year': 2023, 'Month Name': 'Feb', 'Business': 'Food', 'Channel': 'Grocery ROI', 'Brand': 'Alpha',
     'Category': 'Snacks', 'Sub-Cat': 'Crisps', 'Customer': 'Tesco',
     'Cases': 100, 'gSales': 1000, 'fGP': 250, 'Group Cost': 520},
    {'Year': 2023, 'Month Name': 'Mar', 'Business': 'Household', 'Channel': 'Wholesale NI/UK', 'Brand': 'Beta',
     'Category': 'Cleaning', 'Sub-Cat': 'Sprays', 'Customer': 'Musgrave',
     'Cases': 60, 'gSales': 700, 'fGP': 100, 'Group Cost': 500},
    {'Year': 2023, 'Month Name': 'Apr', 'Business': 'Food', 'Channel': 'Online', 'Brand': 'Gamma',
     'Category': 'Snacks', 'Sub-Cat': 'Nuts', 'Customer': 'Amazon',
     'Cases': 20, 'gSales': 400, 'fGP': 100, 'Group Cost': 200},
]


def make_rows(*records) -> pd.DataFrame:
    """Canonical frame from short dicts (source or canonical keys)."""
    return rows_to_frame(records)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubDataSource(SalesDataSource):
    """Serves a fixed frame; set `error` to make fetches fail."""

    name = 'stub'

    def __init__(self, rows: pd.DataFrame, error: Exception = None):
        super().__init__()
        self.rows = rows
        self.error = error
        self.fetch_count = 0
        self.updated = False

    def _load(self) -> pd.DataFrame:
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        return self.rows

    def check_for_updates(self) -> bool:
        return self.updated


@pytest.fixture
def sample_rows() -> pd.DataFrame:
    return rows_to_frame(SAMPLE_RECORDS)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache(default_ttl=3600, clock=clock)


@pytest.fixture
def data_source(sample_rows) -> StubDataSource:
    return StubDataSource(sample_rows)


@pytest.fixture
def failing_source() -> StubDataSource:
    return StubDataSource(pd.DataFrame(), error=DataSourceUnavailable("blob storage unreachable"))


@pytest.fixture
def service(data_source, cache) -> SalesAnalyticsService:
    return SalesAnalyticsService(data_source, cache, AnalyticsSettings())
