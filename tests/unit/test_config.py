from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from otel_instrumentation_postgres.core.config import Settings
from otel_instrumentation_postgres.core.constants import DEFAULT_HISTOGRAM_BUCKETS
from otel_instrumentation_postgres.core.logging import configure_logging
from otel_instrumentation_postgres.services.instrumentation import (
    InstrumentationConfig,
    default_parameter_sanitizer,
)

_ENVIRONMENT = (
    "PGHOST",
    "PGPORT",
    "PGDATABASE",
    "OTEL_SERVICE_NAME",
    "OTEL_EXPORTER_OTLP_ENDPOINT",
    "DB_TELEMETRY_ENABLE_HISTOGRAM",
    "DB_TELEMETRY_HISTOGRAM_BUCKETS",
    "DB_TELEMETRY_COLLECT_PARAMETERS",
    "DB_TELEMETRY_ENABLE_TRACING",
    "DB_TELEMETRY_ENABLE_METRICS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.service_name is None
    assert settings.server_address is None
    assert settings.enable_histogram is True
    assert settings.collect_query_parameters is False
    assert settings.histogram_buckets == list(DEFAULT_HISTOGRAM_BUCKETS)


def test_settings_read_libpq_and_otel_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PGHOST", "db.internal")
    monkeypatch.setenv("PGPORT", "6543")
    monkeypatch.setenv("PGDATABASE", "orders")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "orders-api")
    monkeypatch.setenv("DB_TELEMETRY_COLLECT_PARAMETERS", "true")
    monkeypatch.setenv("DB_TELEMETRY_HISTOGRAM_BUCKETS", "[0.1, 1, 10]")

    settings = Settings()

    assert settings.server_address == "db.internal"
    assert settings.server_port == 6543
    assert settings.database_name == "orders"
    assert settings.service_name == "orders-api"
    assert settings.collect_query_parameters is True
    assert settings.histogram_buckets == [0.1, 1.0, 10.0]


def test_histogram_buckets_must_increase() -> None:
    with pytest.raises(ValidationError):
        Settings(histogram_buckets=[1.0, 0.5])


def test_instrumentation_config_from_settings() -> None:
    def hook(*_args: object) -> None:
        return None

    settings = Settings(service_name="svc", server_address="db", server_port=5433, database_name="main")

    config = InstrumentationConfig.from_settings(settings, after_span=hook)

    assert config.service_name == "svc"
    assert config.server_address == "db"
    assert config.server_port == 5433
    assert config.database_name == "main"
    assert config.after_span is hook
    assert config.before_span is None
    assert config.parameter_sanitizer is default_parameter_sanitizer
    assert tuple(config.histogram_buckets) == DEFAULT_HISTOGRAM_BUCKETS


def test_configure_logging_applies_yaml_file(tmp_path: Path) -> None:
    config_path = tmp_path / "logging.yaml"
    config_path.write_text(
        "version: 1\n"
        "disable_existing_loggers: false\n"
        "loggers:\n"
        "  otel_instrumentation_postgres:\n"
        "    level: DEBUG\n",
        encoding="utf-8",
    )
    package_logger = logging.getLogger("otel_instrumentation_postgres")

    try:
        configure_logging(config_path)
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger.setLevel(logging.NOTSET)


def test_configure_logging_falls_back_to_basic_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[dict[str, object]] = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging(tmp_path / "missing.yaml")
    configure_logging()

    assert calls == [{"level": logging.INFO}, {"level": logging.INFO}]
