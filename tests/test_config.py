"""
Environment configuration and service wiring.
"""
import pytest

from bizpulse.config import Config, DatabaseConfig, configure_logging
from bizpulse.db import create_db_engine
from bizpulse.exceptions import ConfigurationError
from bizpulse.factory import create_data_source, create_service
from bizpulse.sales_analytics.data_loader import CsvFileDataSource
from bizpulse.sales_analytics.service import SalesAnalyticsService

ENV_VARS = [
    "DATA_SOURCE", "CSV_PATH", "SALES_DB_URL", "SALES_TABLE",
    "TOPN_LIMIT_DEFAULT", "RISK_LOW_MARGIN_THRESHOLD", "ALLOW_EMPTY_ON_ERROR",
    "CACHE_TTL_SECONDS", "LOG_LEVEL",
]


@pytest.fixture
def config_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    def build() -> Config:
        return Config(env_file=tmp_path / "missing.env")

    return build


def test_defaults(config_env) -> None:
    config = config_env()
    settings = config.get_analytics_settings()
    assert settings.top_n_default_limit == 20
    assert settings.risk_low_margin_threshold == 15.0
    assert settings.allow_empty is True
    assert config.get_data_source_config().kind == 'csv'
    assert config.get_app_setting("LOG_LEVEL") == "INFO"


def test_environment_overrides(config_env, monkeypatch) -> None:
    monkeypatch.setenv("TOPN_LIMIT_DEFAULT", "5")
    monkeypatch.setenv("RISK_LOW_MARGIN_THRESHOLD", "12.5")
    monkeypatch.setenv("ALLOW_EMPTY_ON_ERROR", "false")
    monkeypatch.setenv("DATA_SOURCE", " SQL ")

    config = config_env()
    settings = config.get_analytics_settings()
    assert settings.top_n_default_limit == 5
    assert settings.risk_low_margin_threshold == 12.5
    assert settings.allow_empty is False
    assert config.get_data_source_config().kind == 'sql'


def test_invalid_number_is_rejected(config_env, monkeypatch) -> None:
    monkeypatch.setenv("CACHE_TTL_SECONDS", "half an hour")
    with pytest.raises(ConfigurationError):
        config_env()


def test_env_file_is_loaded(monkeypatch, tmp_path) -> None:
    # setenv first so teardown restores the original state after load_dotenv writes it
    monkeypatch.setenv("CSV_PATH", "unused")
    monkeypatch.delenv("CSV_PATH")
    env_file = tmp_path / ".env"
    env_file.write_text("CSV_PATH=/data/sales.csv\n")

    config = Config(env_file=env_file)
    assert config.get_data_source_config().csv_path == "/data/sales.csv"


def test_create_csv_source(config_env, monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("CSV_PATH", str(tmp_path / "sales.csv"))
    source = create_data_source(config_env())
    assert isinstance(source, CsvFileDataSource)
    assert source.path == str(tmp_path / "sales.csv")


def test_unknown_source_kind(config_env, monkeypatch) -> None:
    monkeypatch.setenv("DATA_SOURCE", "ftp")
    with pytest.raises(ConfigurationError):
        create_data_source(config_env())


def test_sql_source_needs_url(config_env, monkeypatch) -> None:
    monkeypatch.setenv("DATA_SOURCE", "sql")
    with pytest.raises(ConfigurationError):
        create_data_source(config_env())


def test_create_service_uses_settings(config_env, monkeypatch, data_source) -> None:
    monkeypatch.setenv("TOPN_LIMIT_DEFAULT", "3")
    service = create_service(config_env(), data_source=data_source)
    assert isinstance(service, SalesAnalyticsService)
    assert service.settings.top_n_default_limit == 3


def test_configure_logging_accepts_any_case() -> None:
    configure_logging("debug")
    configure_logging("not-a-level")


def test_engine_requires_url() -> None:
    with pytest.raises(ConfigurationError):
        create_db_engine(DatabaseConfig())
