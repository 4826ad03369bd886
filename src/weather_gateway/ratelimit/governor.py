"""Fixed-window rate governor.

Each subject (caller IP or API key public id) gets a counter per window.
Windows are aligned to the epoch: the counter key embeds the window index
`floor(now / window)`, so every gateway instance sharing the backend agrees on
which counter a request belongs to, and a new window always starts at zero.

## Algorithm

1. Compute the window index and the time left in the window
2. Atomically increment the subject's counter for that window
   (created with TTL = window duration)
3. Compare the post-increment count with the limit

The increment and the comparison use the value returned by the backend's
atomic increment. Reading the counter and writing it back would let
concurrent requests observe the same count and exceed the limit.

## Degradation

If the backend is unavailable the governor fails open by default (the request
is allowed and a warning is logged). With `fail_open=False` the
`BackendUnavailable` error propagates to the caller instead.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from weather_gateway.errors import BackendUnavailable, RateLimited
from weather_gateway.state.base import SharedStateBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatePolicy:
    """Request quota for one class of subjects."""

    name: str
    limit: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError(f"Rate limit must be at least 1, got {self.limit}")
        if self.window_seconds <= 0:
            raise ValueError(f"Window must be positive, got {self.window_seconds}")


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a rate check.

    Attributes:
        allowed: Whether the request may proceed
        limit: Requests allowed per window
        remaining: Requests left in the current window
        retry_after: Seconds until the window resets (0 when allowed)
        reset_after: Seconds until the current window ends
        degraded: True when the backend was unavailable and the request
            was allowed without counting
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after: float
    reset_after: float
    degraded: bool = False

    def to_error(self) -> RateLimited:
        """The error to raise for a denied request."""
        return RateLimited(self.retry_after, limit=self.limit)


class RateGovernor:
    """Enforce per-subject request quotas on a shared state backend."""

    def __init__(
        self,
        backend: SharedStateBackend,
        ip_policy: RatePolicy,
        api_key_policy: RatePolicy,
        fail_open: bool = True,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "ratelimit",
    ):
        """Initialize the governor.

        Args:
            backend: Shared state backend holding the counters
            ip_policy: Quota for unauthenticated and session traffic, keyed by IP
            api_key_policy: Quota for programmatic traffic, keyed by API key id
            fail_open: Allow requests when the backend is unavailable
            clock: Wall clock in epoch seconds (injectable for tests)
            key_prefix: Namespace for counter keys
        """
        self.backend = backend
        self.ip_policy = ip_policy
        self.api_key_policy = api_key_policy
        self.fail_open = fail_open
        self._clock = clock
        self._key_prefix = key_prefix

    def _make_key(self, scope: str, subject_id: str, window_index: int) -> str:
        return f"{self._key_prefix}:{scope}:{subject_id}:{window_index}"

    async def check_and_increment(
        self,
        subject_id: str,
        limit: int,
        window_seconds: float,
        scope: str = "default",
    ) -> RateDecision:
        """Count one request for `subject_id` and decide whether it may proceed.

        Args:
            subject_id: Caller identity (IP address or API key public id)
            limit: Maximum requests per window
            window_seconds: Window duration in seconds
            scope: Policy namespace, so the same subject can be governed by
                several independent policies

        Returns:
            RateDecision; `allowed` is False once the count exceeds `limit`

        Raises:
            BackendUnavailable: If the backend fails and fail_open is False
        """
        if limit < 1:
            raise ValueError(f"Rate limit must be at least 1, got {limit}")
        if window_seconds <= 0:
            raise ValueError(f"Window must be positive, got {window_seconds}")

        now = self._clock()
        window_index = int(now // window_seconds)
        reset_after = (window_index + 1) * window_seconds - now
        key = self._make_key(scope, subject_id, window_index)

        try:
            count = await self.backend.increment_with_ttl(key, window_seconds)
        except BackendUnavailable as e:
            if not self.fail_open:
                logger.error(f"Rate limit backend unavailable, rejecting request: {e}")
                raise
            logger.warning(f"Rate limit backend unavailable, allowing request: {e}")
            return RateDecision(
                allowed=True,
                limit=limit,
                remaining=limit,
                retry_after=0.0,
                reset_after=reset_after,
                degraded=True,
            )

        if count > limit:
            logger.warning(
                f"Rate limit exceeded: scope={scope} subject={subject_id} "
                f"count={count} limit={limit}"
            )
            return RateDecision(
                allowed=False,
                limit=limit,
                remaining=0,
                retry_after=reset_after,
                reset_after=reset_after,
            )

        return RateDecision(
            allowed=True,
            limit=limit,
            remaining=limit - count,
            retry_after=0.0,
            reset_after=reset_after,
        )

    async def check_policy(self, policy: RatePolicy, subject_id: str) -> RateDecision:
        """Apply a configured policy to a subject."""
        return await self.check_and_increment(
            subject_id,
            policy.limit,
            policy.window_seconds,
            scope=policy.name,
        )

    async def check_ip(self, ip_address: str) -> RateDecision:
        """Apply the IP policy."""
        return await self.check_policy(self.ip_policy, ip_address)

    async def check_api_key(self, public_id: str) -> RateDecision:
        """Apply the API key policy."""
        return await self.check_policy(self.api_key_policy, public_id)
