"""Response cache for upstream lookups.

Stores JSON payloads on the shared state backend under a query fingerprint
(see `weather_gateway.cache.fingerprint`). The cache is a best-effort
accelerator:

- It never computes values. On a miss the caller fetches from upstream and
  calls `set()`; a failed upstream call is simply not cached.
- Backend failures and timeouts are logged and treated as a miss (`get`) or a
  skipped write (`set`); they never fail the request.

## Freshness

Each entry is written with the backend's native TTL and also carries an
explicit `expires_at` stamp. `get()` checks the stamp on every read, so an
entry past its TTL is never returned even if the backend has not purged it.

## Stored envelope

```json
{"payload": ..., "created_at": 1718000000.0, "expires_at": 1718001800.0}
```
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from weather_gateway.errors import BackendUnavailable
from weather_gateway.state.base import SharedStateBackend

logger = logging.getLogger(__name__)


class CacheCategory(str, Enum):
    """Data categories with their own TTL."""

    CURRENT = "current"  # Current conditions
    HOURLY = "hourly"  # Hourly forecast
    GEOCODING = "geocoding"  # Place name -> coordinates


@dataclass(frozen=True)
class CacheTTLs:
    """TTL in seconds per data category."""

    current: float = 30 * 60
    hourly: float = 60 * 60
    geocoding: float = 24 * 60 * 60

    def for_category(self, category: CacheCategory) -> float:
        return getattr(self, category.value)


@dataclass(frozen=True)
class CacheEntry:
    """An immutable cached payload."""

    payload: Any
    created_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    @property
    def ttl(self) -> float:
        return self.expires_at - self.created_at


class ResponseCache:
    """Fingerprint-keyed cache of upstream payloads."""

    def __init__(
        self,
        backend: SharedStateBackend,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "cache",
    ):
        """Initialize the cache.

        Args:
            backend: Shared state backend storing the entries
            clock: Wall clock in epoch seconds (injectable for tests)
            key_prefix: Namespace for cache keys
        """
        self.backend = backend
        self._clock = clock
        self._key_prefix = key_prefix

    def _make_key(self, fingerprint: str) -> str:
        return f"{self._key_prefix}:{fingerprint}"

    async def get_entry(self, fingerprint: str) -> CacheEntry | None:
        """Return the fresh entry for `fingerprint`, or None on a miss."""
        key = self._make_key(fingerprint)
        try:
            raw = await self.backend.get(key)
        except BackendUnavailable as e:
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

        if raw is None:
            logger.debug(f"Cache MISS: {fingerprint}")
            return None

        try:
            data = json.loads(raw)
            entry = CacheEntry(
                payload=data["payload"],
                created_at=float(data["created_at"]),
                expires_at=float(data["expires_at"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {fingerprint}: {e!r}")
            return None

        if not entry.is_fresh(self._clock()):
            logger.debug(f"Cache STALE: {fingerprint}")
            return None

        logger.debug(f"Cache HIT: {fingerprint}")
        return entry

    async def get(self, fingerprint: str) -> Any | None:
        """Return the cached payload for `fingerprint`, or None on a miss."""
        entry = await self.get_entry(fingerprint)
        return entry.payload if entry is not None else None

    async def set(self, fingerprint: str, payload: Any, ttl: float) -> bool:
        """Store a payload, replacing any previous entry.

        Args:
            fingerprint: Query fingerprint
            payload: JSON-serializable payload (None is not cacheable)
            ttl: Time-to-live in seconds

        Returns:
            True if stored, False if the backend was unavailable
        """
        if payload is None:
            raise ValueError("None payloads cannot be cached")
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")

        now = self._clock()
        envelope = {
            "payload": payload,
            "created_at": now,
            "expires_at": now + ttl,
        }
        raw = json.dumps(envelope, separators=(",", ":")).encode("utf-8")

        try:
            await self.backend.set_with_ttl(self._make_key(fingerprint), raw, ttl)
        except BackendUnavailable as e:
            logger.warning(f"Cache write failed, continuing without cache: {e}")
            return False

        logger.debug(f"Cache SET: {fingerprint} (TTL: {ttl}s)")
        return True
