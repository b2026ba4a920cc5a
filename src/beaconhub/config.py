"""
Script: config.py
Created: 2026-10-18
Purpose: BeaconHub server configuration loaded once from the environment
Keywords: config, environment, settings, allowlist, beaconhub
Status: active
Prerequisites:
  - None
Changelog:
  - 2026-10-18: Settings dataclass replaces module-level env constants
"""

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional


# =============================================================================
# Defaults
# =============================================================================

DEFAULT_DB = "/tmp/beaconhub.db"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4000
DEFAULT_CORS_ORIGIN = "http://localhost:3000"
DEFAULT_RATE_LIMIT_MAX = 100
DEFAULT_RATE_LIMIT_WINDOW = 900  # seconds (15 minutes)
DEFAULT_MAX_REQUEST_SIZE = 1048576  # 1 MiB

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


def parse_allowlist(raw: str) -> FrozenSet[str]:
    """Parse a comma-separated address list, dropping blank entries."""
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """Process-wide configuration. Built once at startup, read-only afterwards."""
    api_key: str = ""
    ip_allowlist: FrozenSet[str] = field(default_factory=frozenset)
    ip_allowlist_enabled: bool = False
    db_path: str = DEFAULT_DB
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origin: str = DEFAULT_CORS_ORIGIN
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    rate_limit_window: int = DEFAULT_RATE_LIMIT_WINDOW
    max_request_size: int = DEFAULT_MAX_REQUEST_SIZE
    environment: str = "development"
    log_level: str = "DEBUG"
    request_logging: bool = False
    security_filters_enabled: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables (os.environ by default)."""
    env = os.environ if environ is None else environ
    environment = env.get("ENVIRONMENT", "development").strip().lower() or "development"
    production = environment == "production"

    return Settings(
        api_key=env.get("API_KEY", ""),
        ip_allowlist=parse_allowlist(env.get("IP_ALLOWLIST", "")),
        ip_allowlist_enabled=_flag(env.get("IP_ALLOWLIST_ENABLED")),
        db_path=env.get("BEACONHUB_DB", DEFAULT_DB),
        host=env.get("HOST", DEFAULT_HOST),
        port=int(env.get("PORT", str(DEFAULT_PORT))),
        cors_origin=env.get("CORS_ORIGIN", DEFAULT_CORS_ORIGIN),
        rate_limit_max=int(env.get("RATE_LIMIT_MAX", str(DEFAULT_RATE_LIMIT_MAX))),
        rate_limit_window=int(env.get("RATE_LIMIT_WINDOW", str(DEFAULT_RATE_LIMIT_WINDOW))),
        max_request_size=int(env.get("MAX_REQUEST_SIZE", str(DEFAULT_MAX_REQUEST_SIZE))),
        environment=environment,
        log_level=env.get("LOG_LEVEL", "INFO" if production else "DEBUG").upper(),
        request_logging=_flag(env.get("REQUEST_LOGGING"), default=production),
        security_filters_enabled=_flag(env.get("SECURITY_FILTERS_ENABLED")),
    )
