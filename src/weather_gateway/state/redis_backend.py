"""Redis shared state backend.

Uses the asyncio Redis client. Every command runs under an `asyncio.timeout`
in addition to the client's socket timeouts; any Redis error, OS error or
timeout surfaces as `BackendUnavailable`.

## Atomic increment

The counter increment and its expiry are applied by a single Lua script, so
a counter is never left without a TTL and two concurrent increments can never
observe the same pre-increment value:

```lua
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
return count
```
"""

from __future__ import annotations

import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from weather_gateway.errors import BackendUnavailable
from weather_gateway.state.base import SharedStateBackend, validate_ttl

logger = logging.getLogger(__name__)

INCREMENT_WITH_TTL_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
return count
"""


def _ttl_ms(ttl: float) -> int:
    return max(1, int(ttl * 1000))


class RedisStateBackend(SharedStateBackend):
    """Shared state backend on top of Redis."""

    name = "redis"

    def __init__(
        self,
        url: str | None = None,
        *,
        client: redis.Redis | None = None,
        timeout: float = 0.5,
    ):
        """Initialize the backend.

        Args:
            url: Redis connection URL (ignored when `client` is given)
            client: Pre-built client, for dependency injection and tests
            timeout: Per-command timeout in seconds
        """
        if client is None:
            if not url:
                raise ValueError("Either url or client must be provided")
            client = redis.from_url(
                url,
                socket_timeout=timeout,
                socket_connect_timeout=timeout,
                health_check_interval=30,
            )
        self._redis = client
        self._timeout = timeout
        self._increment = client.register_script(INCREMENT_WITH_TTL_SCRIPT)

    async def get(self, key: str) -> bytes | None:
        try:
            async with asyncio.timeout(self._timeout):
                value = await self._redis.get(key)
        except (RedisError, OSError, TimeoutError) as e:
            raise BackendUnavailable(self.name, f"GET failed: {e!r}") from e
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    async def set_with_ttl(self, key: str, value: bytes, ttl: float) -> None:
        validate_ttl(ttl)
        try:
            async with asyncio.timeout(self._timeout):
                await self._redis.set(key, value, px=_ttl_ms(ttl))
        except (RedisError, OSError, TimeoutError) as e:
            raise BackendUnavailable(self.name, f"SET failed: {e!r}") from e

    async def increment_with_ttl(self, key: str, ttl: float) -> int:
        validate_ttl(ttl)
        try:
            async with asyncio.timeout(self._timeout):
                count = await self._increment(keys=[key], args=[_ttl_ms(ttl)])
        except (RedisError, OSError, TimeoutError) as e:
            raise BackendUnavailable(self.name, f"INCR failed: {e!r}") from e
        return int(count)

    async def ping(self) -> bool:
        try:
            async with asyncio.timeout(self._timeout):
                return bool(await self._redis.ping())
        except (RedisError, OSError, TimeoutError) as e:
            logger.warning(f"Redis ping failed: {e!r}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("Redis connection closed")
