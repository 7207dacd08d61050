"""Async GitHub API gateway with rate-limit handling, retries, and caching."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from repatch.core.config import GatewaySettings
from repatch.engines.github.cache import MISSING
from repatch.engines.github.context import GatewayContext
from repatch.engines.github.errors import (
    PermanentApiError,
    RateLimitExceededError,
    TransientApiError,
)

log = structlog.get_logger("repatch.github")

_RATE_LIMIT_FALLBACK_WAIT = 60.0


class HttpGateway:
    """Executes single logical requests against the GitHub REST API.

    All rate-limit bookkeeping and caching go through the shared
    :class:`GatewayContext`, so several gateways (or several concurrent
    callers of one gateway) keep a consistent view of the quota.
    """

    def __init__(
        self,
        context: GatewayContext | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.context = context or GatewayContext.create()
        settings = self.context.settings
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": settings.user_agent,
        }
        if settings.token:
            headers["Authorization"] = f"Bearer {settings.token}"
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            headers=headers,
            timeout=settings.timeout,
            follow_redirects=True,
            transport=transport,
        )

    @property
    def settings(self) -> GatewaySettings:
        return self.context.settings

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpGateway:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        raw: bool = False,
        cache_ttl: float | None = None,
        cache: bool = False,
    ) -> Any:
        """GET with optional read-through caching.

        Caching is on when *cache* is true or a *cache_ttl* is given; with
        *cache* and no TTL the entry never expires (immutable resources).
        """
        if not cache and cache_ttl is None:
            return await self.execute(endpoint, params=params, headers=headers, raw=raw)

        key = self.context.cache.make_key(
            "GET", endpoint, params, variant=_variant(headers, raw)
        )
        hit = self.context.cache.get(key, MISSING)
        if hit is not MISSING:
            log.debug("github.cache_hit", key=key)
            return hit
        payload = await self.execute(endpoint, params=params, headers=headers, raw=raw)
        self.context.cache.set(key, payload, cache_ttl)
        return payload

    async def execute(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        raw: bool = False,
    ) -> Any:
        """Run one logical request and return its parsed payload.

        JSON content types are decoded; anything else (or any response when
        *raw* is set) comes back as text.

        Raises:
            PermanentApiError: 4xx other than rate limiting. Never retried.
            TransientApiError: 5xx or network failure after every retry.
            RateLimitExceededError: rate limited more times than configured.
        """
        settings = self.settings
        family = self.context.rate_limits.family_for(endpoint)
        await self._wait_for_quota(family, endpoint)

        query = _clean_params(params)
        attempt = 0
        rate_limit_waits = 0
        last_exc: Exception | None = None

        while True:
            try:
                resp = await self._client.request(
                    method, endpoint, params=query, json=json, headers=dict(headers or {})
                )
            except httpx.TransportError as exc:
                log.warning(
                    "github.network_error",
                    endpoint=endpoint,
                    error=str(exc),
                    attempt=attempt + 1,
                    max_retries=settings.max_retries,
                )
                last_exc = exc
            else:
                self.context.rate_limits.update(family, resp.headers)

                if resp.is_success:
                    log.debug("github.request", method=method, endpoint=endpoint, status=resp.status_code)
                    return self._parse(resp, raw)

                if self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    rate_limit_waits += 1
                    if rate_limit_waits > settings.max_rate_limit_waits:
                        raise RateLimitExceededError(wait)
                    log.warning(
                        "github.rate_limit",
                        endpoint=endpoint,
                        status=resp.status_code,
                        wait_seconds=wait,
                        waits=rate_limit_waits,
                    )
                    await asyncio.sleep(wait)
                    continue

                if resp.status_code < 500:
                    raise PermanentApiError(resp.status_code, _error_message(resp))

                log.warning(
                    "github.server_error",
                    endpoint=endpoint,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=settings.max_retries,
                )
                last_exc = TransientApiError(
                    f"GitHub API error {resp.status_code}: {_error_message(resp)}",
                    status=resp.status_code,
                )

            if attempt >= settings.max_retries:
                break
            delay = settings.retry_base_delay * (2**attempt)
            if settings.retry_jitter:
                delay += random.uniform(0, settings.retry_jitter)
            log.info("github.retry", endpoint=endpoint, attempt=attempt + 1, delay_seconds=delay)
            await asyncio.sleep(delay)
            attempt += 1
            await self._wait_for_quota(family, endpoint)

        status = last_exc.status if isinstance(last_exc, TransientApiError) else None
        raise TransientApiError(
            f"{method} {endpoint} failed after {attempt + 1} attempts: {last_exc}",
            status=status,
        ) from last_exc

    # ── internal ───────────────────────────────────────────────────────────

    async def _wait_for_quota(self, family: str, endpoint: str) -> None:
        """Sleep once until reset when the remaining quota is below the low-water mark."""
        wait = self.context.rate_limits.wait_time(family)
        if wait <= 0:
            return
        wait = min(wait, self.settings.max_rate_limit_wait)
        log.warning("github.rate_limit_wait", endpoint=endpoint, family=family, wait_seconds=wait)
        await asyncio.sleep(wait)

    @staticmethod
    def _parse(resp: httpx.Response, raw: bool) -> Any:
        if raw:
            return resp.text
        if not resp.content:
            return None
        content_type = resp.headers.get("Content-Type", "")
        if "json" in content_type:
            return resp.json()
        return resp.text

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 429/403 response is due to rate limiting."""
        if response.status_code == 429:
            return True
        if response.status_code != 403:
            return False
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                if int(remaining) == 0:
                    return True
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for secondary rate limits
        if "Retry-After" in response.headers:
            return True
        return "rate limit" in _error_message(response).lower()

    def _get_rate_limit_wait(self, response: httpx.Response) -> float:
        """Calculate how long to wait based on rate-limit headers."""
        cap = self.settings.max_rate_limit_wait
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return min(max(float(retry_after), 1.0), cap)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return min(max(float(reset_ts) - self.context.rate_limits.now(), 1.0), cap)
            except (ValueError, TypeError):
                pass
        return min(_RATE_LIMIT_FALLBACK_WAIT, cap)


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None}


def _variant(headers: Mapping[str, str] | None, raw: bool) -> str | None:
    parts = []
    if headers:
        accept = {k.lower(): v for k, v in headers.items()}.get("accept")
        if accept:
            parts.append(accept)
    if raw:
        parts.append("raw")
    return ";".join(parts) or None


def _error_message(response: httpx.Response) -> str:
    """Best message available: JSON ``message`` field, else reason phrase."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"
