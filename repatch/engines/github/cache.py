"""In-memory TTL cache for gateway responses."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode

MISSING = object()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    expires_at: float | None  # None = never expires


class ResponseCache:
    """TTL-keyed cache of response payloads.

    Expired entries are evicted lazily on access; :meth:`clear_expired` may be
    called periodically for memory hygiene.  The cache is advisory: callers
    must behave identically when every lookup misses.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(
        method: str,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        variant: str | None = None,
    ) -> str:
        """Normalized request signature: method, path, sorted query, variant.

        Query parameters embedded in *endpoint* and passed in *params* are
        merged, so ``/x?b=2`` with ``{"a": 1}`` and ``/x?a=1&b=2`` share a key.
        *variant* distinguishes representations of the same URL (e.g. a diff
        versus JSON ``Accept`` header).
        """
        path, _, query = endpoint.partition("?")
        pairs = parse_qsl(query, keep_blank_values=True)
        for name, value in (params or {}).items():
            if value is None:
                continue
            pairs.append((str(name), str(value)))
        key = f"{method.upper()} {path}"
        if pairs:
            key += "?" + urlencode(sorted(pairs))
        if variant:
            key += f" [{variant}]"
        return key

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.expires_at is not None and self._clock() >= entry.expires_at:
                del self._entries[key]
                return default
            return entry.payload

    def contains(self, key: str) -> bool:
        return self.get(key, MISSING) is not MISSING

    def set(self, key: str, payload: Any, ttl: float | None) -> None:
        """Store *payload* for *ttl* seconds; ``None`` keeps it indefinitely."""
        expires_at = None if ttl is None else self._clock() + ttl
        with self._lock:
            self._entries[key] = CacheEntry(key=key, payload=payload, expires_at=expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [
                k for k, e in self._entries.items() if e.expires_at is not None and now >= e.expires_at
            ]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
