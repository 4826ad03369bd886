"""Shared state backend abstraction.

Rate counters and cache entries live in a key-value service shared by all
gateway instances. This module defines the minimal contract those consumers
rely on:

- `get(key)` returns the stored bytes or None
- `set_with_ttl(key, value, ttl)` stores bytes that expire after `ttl` seconds
- `increment_with_ttl(key, ttl)` atomically increments an integer counter,
  creating it with the given TTL when absent, and returns the new count

Implementations raise `BackendUnavailable` for every failure, including
timeouts, so callers only need to handle one error type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SharedStateBackend(ABC):
    """Abstract key-value backend with TTL and atomic counters."""

    name: str

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the value stored at `key`, or None if absent or expired."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: bytes, ttl: float) -> None:
        """Store `value` at `key`, replacing any previous value.

        Args:
            key: Key to write
            value: Raw bytes to store
            ttl: Time-to-live in seconds (must be positive)
        """

    @abstractmethod
    async def increment_with_ttl(self, key: str, ttl: float) -> int:
        """Atomically increment the counter at `key`.

        The counter is created at 1 with the given TTL if absent. An existing
        counter keeps its original expiry.

        Returns:
            The post-increment count
        """

    async def ping(self) -> bool:
        """Check that the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release connections held by the backend."""


def validate_ttl(ttl: float) -> None:
    """Reject non-positive TTLs, which backends would treat as 'no expiry'."""
    if ttl <= 0:
        raise ValueError(f"TTL must be positive, got {ttl}")
