"""Shared fixtures for grafana_otel tests."""

import os

import pytest

from grafana_otel.config import GrafanaSettings, get_settings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep host GRAFANA_OTLP_* variables and .env files out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("GRAFANA_OTLP_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def cloud_settings():
    """Settings with complete Grafana Cloud credentials."""
    return GrafanaSettings(
        cloud={"instance_id": 123, "api_key": "secret", "zone": "prod-us"},
    )


@pytest.fixture
def onprem_settings():
    """Settings pointing at a local collector."""
    return GrafanaSettings(
        onprem={"endpoint": "http://collector:4317", "protocol": ""},
    )
