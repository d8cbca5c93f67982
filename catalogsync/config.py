"""Configuration loading for catalogsync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .remote import DEFAULT_BASE_URL, DEFAULT_PATH


@dataclass
class RemoteConfig:
    base_url: str = DEFAULT_BASE_URL
    path: str = DEFAULT_PATH
    timeout: float = 30.0

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.path.lstrip('/')}"


@dataclass
class CacheConfig:
    """Configuration for the durable entity cache."""

    db_path: str = "~/.catalogsync/catalog.db"


@dataclass
class FreshnessConfig:
    """Configuration for the freshness marker and cache TTL."""

    db_path: str = "~/.catalogsync/preferences.db"
    ttl_minutes: int = 10


@dataclass
class DashboardConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    freshness: FreshnessConfig = field(default_factory=FreshnessConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with CATALOGSYNC_ prefix."""
    return os.environ.get(f"CATALOGSYNC_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Remote overrides
    if base_url := _get_env("REMOTE_BASE_URL"):
        config.remote.base_url = base_url
    if path := _get_env("REMOTE_PATH"):
        config.remote.path = path
    if timeout := _get_env("REMOTE_TIMEOUT"):
        config.remote.timeout = float(timeout)

    # Storage overrides
    if db_path := _get_env("CACHE_DB_PATH"):
        config.cache.db_path = db_path
    if db_path := _get_env("FRESHNESS_DB_PATH"):
        config.freshness.db_path = db_path
    if ttl := _get_env("FRESHNESS_TTL_MINUTES"):
        config.freshness.ttl_minutes = int(ttl)

    # Dashboard overrides
    if host := _get_env("DASHBOARD_HOST"):
        config.dashboard.host = host
    if port := _get_env("DASHBOARD_PORT"):
        config.dashboard.port = int(port)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            if "remote" in data:
                remote_data = data["remote"]
                config.remote = RemoteConfig(
                    base_url=remote_data.get("base_url", config.remote.base_url),
                    path=remote_data.get("path", config.remote.path),
                    timeout=remote_data.get("timeout", config.remote.timeout),
                )

            if "cache" in data:
                config.cache = CacheConfig(
                    db_path=data["cache"].get("db_path", config.cache.db_path)
                )

            if "freshness" in data:
                fresh_data = data["freshness"]
                config.freshness = FreshnessConfig(
                    db_path=fresh_data.get("db_path", config.freshness.db_path),
                    ttl_minutes=fresh_data.get(
                        "ttl_minutes", config.freshness.ttl_minutes
                    ),
                )

            if "dashboard" in data:
                dash_data = data["dashboard"]
                config.dashboard = DashboardConfig(
                    host=dash_data.get("host", config.dashboard.host),
                    port=dash_data.get("port", config.dashboard.port),
                )

    return _apply_env_overrides(config)
