"""Runtime configuration, read from the environment with keyword overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_API_URL = "https://api.github.com"


def _env_str(key: str, default: str) -> str:
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


@dataclass(frozen=True)
class GatewaySettings:
    """Everything the GitHub gateway needs to talk to the remote API.

    Cache TTLs are in seconds.  ``token`` is never logged.
    """

    base_url: str = DEFAULT_API_URL
    token: str | None = None
    per_page: int = 100
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_jitter: float = 0.0
    rate_limit_low_water: int = 10
    max_rate_limit_wait: float = 3600.0
    max_rate_limit_waits: int = 5
    timeout: float = 30.0
    cache_ttl_short: float = 60.0
    cache_ttl_medium: float = 300.0
    cache_ttl_long: float = 86_400.0
    user_agent: str = "repatch/0.1"

    @classmethod
    def from_env(cls, **overrides: Any) -> GatewaySettings:
        """Build settings from ``REPATCH_*`` / ``GITHUB_TOKEN`` env vars.

        Keyword *overrides* win over the environment.
        """
        settings = cls(
            base_url=_env_str("REPATCH_GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
            token=os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN"),
            per_page=_env_int("REPATCH_PER_PAGE", 100),
            max_retries=_env_int("REPATCH_MAX_RETRIES", 3),
            retry_base_delay=_env_float("REPATCH_RETRY_BASE_DELAY", 1.0),
            retry_jitter=_env_float("REPATCH_RETRY_JITTER", 0.0),
            rate_limit_low_water=_env_int("REPATCH_RATE_LIMIT_LOW_WATER", 10),
            max_rate_limit_wait=_env_float("REPATCH_MAX_RATE_LIMIT_WAIT", 3600.0),
            max_rate_limit_waits=_env_int("REPATCH_MAX_RATE_LIMIT_WAITS", 5),
            timeout=_env_float("REPATCH_HTTP_TIMEOUT", 30.0),
            cache_ttl_short=_env_float("REPATCH_CACHE_TTL_SHORT", 60.0),
            cache_ttl_medium=_env_float("REPATCH_CACHE_TTL_MEDIUM", 300.0),
            cache_ttl_long=_env_float("REPATCH_CACHE_TTL_LONG", 86_400.0),
        )
        if overrides:
            settings = replace(settings, **overrides)
        return settings


@dataclass(frozen=True)
class SelectionSettings:
    """Commit-selection knobs: label lookup pool size and stats sampling."""

    label_concurrency: int = 1
    stats_sample_size: int = 20

    @classmethod
    def from_env(cls, **overrides: Any) -> SelectionSettings:
        settings = cls(
            label_concurrency=_env_int("REPATCH_LABEL_CONCURRENCY", 1),
            stats_sample_size=_env_int("REPATCH_STATS_SAMPLE_SIZE", 20),
        )
        if overrides:
            settings = replace(settings, **overrides)
        return settings
