"""In-process shared state backend.

Fallback for single-instance deployments and tests. Rate limits and cache
entries are NOT shared between processes when this backend is used.

All reads and writes of the underlying dict happen under a `threading.Lock`,
so the increment is a single critical section even when the backend is used
from several event loops or worker threads. The lock is never held across an
`await`.

Expired keys are hidden on read and removed lazily; a full sweep runs every
`sweep_interval` writes to bound memory.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from weather_gateway.state.base import SharedStateBackend, validate_ttl


class MemoryStateBackend(SharedStateBackend):
    """Thread-safe in-memory key-value store with per-key expiry."""

    name = "memory"

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: int = 1024,
    ):
        """Initialize the backend.

        Args:
            clock: Monotonic clock in seconds (injectable for tests)
            sweep_interval: Number of writes between expired-key sweeps
        """
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._data: dict[str, tuple[bytes | int, float]] = {}
        self._lock = threading.Lock()
        self._writes = 0

    def _live(self, key: str, now: float) -> tuple[bytes | int, float] | None:
        """Return the live entry for key, dropping it if expired. Lock held."""
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._data[key]
            return None
        return entry

    def _after_write(self, now: float) -> None:
        """Count a write and sweep expired keys periodically. Lock held."""
        self._writes += 1
        if self._writes % self._sweep_interval == 0:
            expired = [k for k, (_, exp) in self._data.items() if exp <= now]
            for k in expired:
                del self._data[k]

    async def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._live(key, self._clock())
        if entry is None:
            return None
        value = entry[0]
        if isinstance(value, int):
            return str(value).encode()
        return value

    async def set_with_ttl(self, key: str, value: bytes, ttl: float) -> None:
        validate_ttl(ttl)
        with self._lock:
            now = self._clock()
            self._data[key] = (bytes(value), now + ttl)
            self._after_write(now)

    async def increment_with_ttl(self, key: str, ttl: float) -> int:
        validate_ttl(ttl)
        with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                count, expires_at = 1, now + ttl
            else:
                current, expires_at = entry
                count = (int(current) if isinstance(current, bytes) else current) + 1
            self._data[key] = (count, expires_at)
            self._after_write(now)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def clear(self) -> None:
        """Drop all keys."""
        with self._lock:
            self._data.clear()
