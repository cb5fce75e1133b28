"""
Server configuration.

Settings are read from the environment (``.env`` files are loaded by the
server entry points through python-dotenv before this module is consulted).
"""
import json
from dataclasses import dataclass, field
from typing import List, Optional

from .base import get_env_or_default

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(key: str, default: bool) -> bool:
    return get_env_or_default(key, str(default)).strip().lower() in _TRUE_VALUES


def _env_number(key: str, default, cast):
    raw = get_env_or_default(key, str(default))
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"Environment variable {key} must not be negative, got {raw!r}")
    return value


@dataclass
class ServerSettings:
    """Runtime settings for one MCP HTTP server."""
    name: str
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3000
    json_response: bool = True
    session_idle_timeout: float = 3600.0
    session_sweep_interval: float = 60.0
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    environment: str = "development"
    log_level: str = "INFO"
    enable_tracing: bool = False
    otlp_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls, name: str, default_port: int = 3000, version: str = "1.0.0") -> "ServerSettings":
        """Build settings for ``name`` from environment variables."""
        origins = json.loads(get_env_or_default("ALLOWED_ORIGINS", '["*"]'))
        if not isinstance(origins, list):
            raise ValueError("Environment variable ALLOWED_ORIGINS must be a JSON list")

        return cls(
            name=name,
            version=version,
            host=get_env_or_default("HOST", "0.0.0.0"),
            port=_env_number("PORT", default_port, int),
            json_response=_env_bool("MCP_JSON_RESPONSE", True),
            session_idle_timeout=_env_number("SESSION_IDLE_TIMEOUT", 3600, float),
            session_sweep_interval=_env_number("SESSION_SWEEP_INTERVAL", 60, float),
            allowed_origins=[str(origin) for origin in origins],
            environment=get_env_or_default("ENV", "development"),
            log_level=get_env_or_default("LOG_LEVEL", "INFO").upper(),
            enable_tracing=_env_bool("ENABLE_TRACING", False),
            otlp_endpoint=get_env_or_default("OTEL_EXPORTER_OTLP_ENDPOINT", "") or None,
        )
