"""Shared state backends for rate counters and cache entries."""

from weather_gateway.state.base import SharedStateBackend
from weather_gateway.state.memory import MemoryStateBackend
from weather_gateway.state.redis_backend import RedisStateBackend

__all__ = [
    "SharedStateBackend",
    "MemoryStateBackend",
    "RedisStateBackend",
    "create_state_backend",
]


def create_state_backend(redis_url: str | None, timeout: float = 0.5) -> SharedStateBackend:
    """Create the backend for the configured URL.

    Falls back to the in-process backend when no Redis URL is configured.
    """
    if redis_url:
        return RedisStateBackend(redis_url, timeout=timeout)
    return MemoryStateBackend()
