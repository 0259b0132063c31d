"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class SyncSettings:
    """
    Runtime settings for one circuit synchronization run.
    """

    worker_count: int = 10
    batch_size: int = 100
    interval_minutes: int = 5
    dry_run: bool = False
    use_stored_routing: bool = False


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for upstream connectors.
    """

    timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class NotionSettings:
    """
    Notion connector settings (network-info lookup).
    """

    api_key: str | None = None
    database_id: str | None = None
    base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    rate_limit_per_second: float = 3.0


@dataclass(frozen=True)
class ZabbixSettings:
    """
    Zabbix connector settings (optical-info lookup).
    """

    url: str | None = None
    user: str | None = None
    password: str | None = None
    rate_limit_per_second: float = 10.0


@dataclass(frozen=True)
class UbersmithSettings:
    """
    Ubersmith connector settings (service-detail lookup).
    """

    url: str | None = None
    user: str | None = None
    password: str | None = None
    rate_limit_per_second: float = 5.0


@lru_cache(maxsize=1)
def get_sync_settings() -> SyncSettings:
    """
    Return cached synchronization settings from environment variables.
    """

    return SyncSettings(
        worker_count=max(1, _get_int_env("SYNC_WORKER_COUNT", 10)),
        batch_size=max(1, _get_int_env("SYNC_BATCH_SIZE", 100)),
        interval_minutes=max(1, _get_int_env("SYNC_INTERVAL_MINUTES", 5)),
        dry_run=_get_bool_env("SYNC_DRY_RUN", False),
        use_stored_routing=_get_bool_env("SYNC_USE_STORED_ROUTING", False),
    )


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 10.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_notion_settings() -> NotionSettings:
    """
    Return Notion connector settings from environment variables.
    """

    return NotionSettings(
        api_key=_get_optional_str_env("NOTION_API_KEY"),
        database_id=_get_optional_str_env("NOTION_DATABASE_ID"),
        base_url=_get_str_env("NOTION_BASE_URL", "https://api.notion.com/v1").rstrip("/"),
        api_version=_get_str_env("NOTION_API_VERSION", "2022-06-28"),
        rate_limit_per_second=max(0.1, _get_float_env("NOTION_RATE_LIMIT_PER_SECOND", 3.0)),
    )


@lru_cache(maxsize=1)
def get_zabbix_settings() -> ZabbixSettings:
    """
    Return Zabbix connector settings from environment variables.
    """

    return ZabbixSettings(
        url=_get_optional_str_env("ZABBIX_URL"),
        user=_get_optional_str_env("ZABBIX_USER"),
        password=_get_optional_str_env("ZABBIX_PASSWORD"),
        rate_limit_per_second=max(0.1, _get_float_env("ZABBIX_RATE_LIMIT_PER_SECOND", 10.0)),
    )


@lru_cache(maxsize=1)
def get_ubersmith_settings() -> UbersmithSettings:
    """
    Return Ubersmith connector settings from environment variables.
    """

    return UbersmithSettings(
        url=_get_optional_str_env("UBERSMITH_URL"),
        user=_get_optional_str_env("UBERSMITH_USER"),
        password=_get_optional_str_env("UBERSMITH_PASSWORD"),
        rate_limit_per_second=max(0.1, _get_float_env("UBERSMITH_RATE_LIMIT_PER_SECOND", 5.0)),
    )
