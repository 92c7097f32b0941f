"""Application settings and environment-driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .config import load_environment


def _as_int(value: str | None, default: int) -> int:
    """Convert a string value to an integer, returning default on failure.

    Args:
        value: String value to convert, or None.
        default: Default value to return if conversion fails.

    Returns:
        Converted integer value, or default if conversion fails.
    """
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    """Convert a string value to a float, returning default on failure.

    Args:
        value: String value to convert, or None.
        default: Default value to return if conversion fails.

    Returns:
        Converted float value, or default if conversion fails.
    """
    if value is None:
        return default

    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    """Convert a string value to a boolean, returning default on failure.

    Recognizes truthy values: "1", "true", "yes", "on" (case-insensitive).
    Recognizes falsy values: "0", "false", "no", "off" (case-insensitive).

    Args:
        value: String value to convert, or None.
        default: Default value to return if conversion fails.

    Returns:
        Converted boolean value, or default if conversion fails.
    """
    if value is None:
        return default

    normalized = value.strip().lower()

    if normalized in {"1", "true", "yes", "on"}:
        return True

    if normalized in {"0", "false", "no", "off"}:
        return False

    return default


@dataclass(slots=True)
class LoggingSettings:
    level: str
    format: str
    color_enabled: bool


@dataclass(slots=True)
class PollerSettings:
    interval: str
    sample_count: int
    rpc_request_timeout_seconds: float
    shutdown_timeout_seconds: float


@dataclass(slots=True)
class HealthSettings:
    readiness_stale_threshold_seconds: int


@dataclass(slots=True)
class ServerSettings:
    host: str
    port: int


@dataclass(slots=True)
class StorageSettings:
    store_path_env: str | None
    default_store_filename: str

    def resolve_store_path(self) -> Path:
        if self.store_path_env:
            configured_path = Path(self.store_path_env).expanduser().resolve()

            if configured_path.is_dir():
                return configured_path.joinpath(self.default_store_filename)

            return configured_path

        return Path.cwd().joinpath(self.default_store_filename).resolve()


@dataclass(slots=True)
class AppSettings:
    logging: LoggingSettings
    poller: PollerSettings
    health: HealthSettings
    server: ServerSettings
    storage: StorageSettings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    load_environment()

    logging_settings = LoggingSettings(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format=os.getenv("LOG_FORMAT", "text").lower(),
        color_enabled=_as_bool(os.getenv("LOG_COLOR_ENABLED"), True),
    )

    poller_settings = PollerSettings(
        interval=os.getenv("POLL_INTERVAL", "1s"),
        sample_count=_as_int(os.getenv("PERFORMANCE_SAMPLE_COUNT"), 5),
        rpc_request_timeout_seconds=_as_float(os.getenv("RPC_REQUEST_TIMEOUT_SECONDS"), 10.0),
        shutdown_timeout_seconds=_as_float(os.getenv("POLL_SHUTDOWN_TIMEOUT_SECONDS"), 5.0),
    )

    health_settings = HealthSettings(
        readiness_stale_threshold_seconds=_as_int(
            os.getenv("READINESS_STALE_THRESHOLD_SECONDS"),
            30,
        )
    )

    server_settings = ServerSettings(
        host=os.getenv("HTTP_HOST", "0.0.0.0"),
        port=_as_int(os.getenv("HTTP_PORT"), 8080),
    )

    storage_settings = StorageSettings(
        store_path_env=os.getenv("TPS_MONITOR_STORE_PATH"),
        default_store_filename="tps-monitor-store.json",
    )

    return AppSettings(
        logging=logging_settings,
        poller=poller_settings,
        health=health_settings,
        server=server_settings,
        storage=storage_settings,
    )


def reset_settings_cache() -> None:
    """Clear the settings cache so the environment is read again."""

    get_settings.cache_clear()


__all__ = [
    "AppSettings",
    "HealthSettings",
    "LoggingSettings",
    "PollerSettings",
    "ServerSettings",
    "StorageSettings",
    "get_settings",
    "reset_settings_cache",
]
