"""Tests for environment-driven server settings."""
import pytest

from mcp_servers.config import ServerSettings

ENV_VARS = [
    "PORT", "HOST", "MCP_JSON_RESPONSE", "SESSION_IDLE_TIMEOUT", "SESSION_SWEEP_INTERVAL",
    "ALLOWED_ORIGINS", "LOG_LEVEL", "ENV", "ENABLE_TRACING", "OTEL_EXPORTER_OTLP_ENDPOINT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = ServerSettings.from_env("poshcare-day-server", default_port=3000)

    assert settings.name == "poshcare-day-server"
    assert settings.port == 3000
    assert settings.host == "0.0.0.0"
    assert settings.json_response is True
    assert settings.session_idle_timeout == 3600
    assert settings.session_sweep_interval == 60
    assert settings.allowed_origins == ["*"]
    assert settings.log_level == "INFO"
    assert settings.enable_tracing is False
    assert settings.otlp_endpoint is None


def test_default_port_per_server():
    assert ServerSettings.from_env("kleenito-mcp-server", default_port=3001).port == 3001


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("MCP_JSON_RESPONSE", "false")
    monkeypatch.setenv("SESSION_IDLE_TIMEOUT", "0")
    monkeypatch.setenv("ALLOWED_ORIGINS", '["http://localhost:5173"]')
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("ENABLE_TRACING", "1")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

    settings = ServerSettings.from_env("poshcare-day-server")

    assert settings.port == 8080
    assert settings.json_response is False
    assert settings.session_idle_timeout == 0
    assert settings.allowed_origins == ["http://localhost:5173"]
    assert settings.log_level == "DEBUG"
    assert settings.enable_tracing is True
    assert settings.otlp_endpoint == "http://localhost:4317"


@pytest.mark.parametrize("name,value", [
    ("PORT", "not-a-port"),
    ("SESSION_IDLE_TIMEOUT", "-5"),
    ("ALLOWED_ORIGINS", '"*"'),
])
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        ServerSettings.from_env("poshcare-day-server")
