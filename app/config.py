"""
app/config.py

Environment-driven settings for the Apify client, run monitoring and the
refresh scheduler. Each settings object is read once per process.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeVar

from db.config import load_env_files

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_DEFAULT_ACTOR_ID = "ZhSGsaq9MHRnWtStl"


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _read_env(name: str) -> str | None:
    """
    Return the stripped value of ``name``; unset and blank both read as None.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def _parse_env(name: str, default: _T, parse: Callable[[str], _T]) -> _T:
    raw = _read_env(name)
    if raw is None:
        return default
    try:
        return parse(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using default %r", name, raw, default)
        return default


def _get_bool_env(name: str, default: bool) -> bool:
    return _parse_env(name, default, lambda raw: raw.lower() in _TRUE_VALUES)


def _get_int_env(name: str, default: int) -> int:
    return _parse_env(name, default, int)


def _get_float_env(name: str, default: float) -> float:
    return _parse_env(name, default, float)


def _get_str_env(name: str, default: str) -> str:
    return _read_env(name) or default


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for the scrape provider client.
    """

    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class ApifySettings:
    """
    Apify actor settings for product and review runs.
    """

    api_token: str | None = None
    base_url: str = "https://api.apify.com/v2"
    product_actor_id: str = _DEFAULT_ACTOR_ID
    review_actor_id: str = _DEFAULT_ACTOR_ID
    amazon_domain: str = "amazon.com"
    product_max_reviews: int = 100
    review_max_reviews: int = 500
    max_answers: int = 20
    max_asins_per_run: int = 100
    proxy_country: str = "US"


@dataclass(frozen=True)
class ScrapeMonitorSettings:
    """
    Polling cadence for provider run monitoring.
    """

    poll_interval_seconds: float = 5.0


@dataclass(frozen=True)
class RefreshSettings:
    """
    Background product refresh settings.
    """

    enabled: bool = True
    batch_size: int = 5
    check_interval_seconds: float = 120.0
    retry_delay_seconds: float = 30.0
    max_refresh_failures: int = 5


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return provider HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_apify_settings() -> ApifySettings:
    """
    Return Apify actor settings from environment variables.
    """

    return ApifySettings(
        api_token=_read_env("APIFY_API_TOKEN"),
        base_url=_get_str_env("APIFY_BASE_URL", "https://api.apify.com/v2").rstrip("/"),
        product_actor_id=_get_str_env("APIFY_PRODUCT_ACTOR_ID", _DEFAULT_ACTOR_ID),
        review_actor_id=_get_str_env(
            "APIFY_REVIEW_ACTOR_ID",
            _get_str_env("APIFY_PRODUCT_ACTOR_ID", _DEFAULT_ACTOR_ID),
        ),
        amazon_domain=_get_str_env("APIFY_AMAZON_DOMAIN", "amazon.com"),
        product_max_reviews=max(0, _get_int_env("APIFY_PRODUCT_MAX_REVIEWS", 100)),
        review_max_reviews=max(1, _get_int_env("APIFY_REVIEW_MAX_REVIEWS", 500)),
        max_answers=max(0, _get_int_env("APIFY_MAX_ANSWERS", 20)),
        max_asins_per_run=max(1, _get_int_env("APIFY_MAX_ASINS_PER_RUN", 100)),
        proxy_country=_get_str_env("APIFY_PROXY_COUNTRY", "US"),
    )


@lru_cache(maxsize=1)
def get_scrape_monitor_settings() -> ScrapeMonitorSettings:
    """
    Return provider polling settings from environment variables.
    """

    return ScrapeMonitorSettings(
        poll_interval_seconds=max(0.5, _get_float_env("SCRAPE_POLL_INTERVAL_SECONDS", 5.0)),
    )


@lru_cache(maxsize=1)
def get_refresh_settings() -> RefreshSettings:
    """
    Return background refresh settings from environment variables.
    """

    return RefreshSettings(
        enabled=_get_bool_env("REFRESH_ENABLED", True),
        batch_size=max(1, _get_int_env("REFRESH_BATCH_SIZE", 5)),
        check_interval_seconds=max(1.0, _get_float_env("REFRESH_CHECK_INTERVAL_SECONDS", 120.0)),
        retry_delay_seconds=max(1.0, _get_float_env("REFRESH_RETRY_DELAY_SECONDS", 30.0)),
        max_refresh_failures=max(1, _get_int_env("REFRESH_MAX_FAILURES", 5)),
    )
