"""Redis-backed counter/blocklist store.

Counters live under ``ratelimit:<key>:<window>`` and block records under
``ratelimit:blocked:<key>``. Both rely on Redis TTLs for teardown; nothing is
ever deleted explicitly.

Note:
    Counting is a fixed window per ``window_seconds``. Bursts straddling a
    window boundary can momentarily pass up to twice the limit across the
    two adjacent windows.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.rate_limit.base import (
    AbstractRateLimitStore,
    blocked_key,
    counter_key,
    hash_key,
    window_start,
)
from app.core.config import RedisSettings
from app.core.errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_redis_client(redis_settings: RedisSettings) -> aioredis.Redis:
    """Create an asyncio Redis client (with its own connection pool)."""
    return aioredis.from_url(
        redis_settings.url,
        password=redis_settings.password or None,
        socket_timeout=redis_settings.socket_timeout_seconds,
        socket_connect_timeout=redis_settings.socket_timeout_seconds,
        decode_responses=True,
    )


class RedisRateLimitStore(AbstractRateLimitStore):
    """Store backed by a shared Redis instance."""

    def __init__(
        self,
        client: aioredis.Redis,
        *,
        operation_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the Redis store.

        Args:
            client: asyncio Redis client.
            operation_timeout_seconds: Upper bound for a single store call
                (None disables the bound, leaving only socket timeouts).
            clock: Time source function returning UNIX time in seconds.
        """
        self._client = client
        self._timeout = operation_timeout_seconds
        self._clock = clock

    async def _run(self, operation: str, key: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run a Redis call, translating backend failures into StoreError."""
        try:
            if self._timeout is None:
                return await call()
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except (asyncio.TimeoutError, RedisTimeoutError) as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "operation": operation,
                    "key_hash": hash_key(key),
                    "error_type": type(exc).__name__,
                    "timeout_s": self._timeout,
                },
            )
            raise StoreError(
                code="store_timeout",
                message=f"Rate limit store timed out during {operation}",
                details={"operation": operation, "backend": "redis", "error_type": type(exc).__name__},
            ) from exc
        except RedisError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "operation": operation,
                    "key_hash": hash_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise StoreError(
                code="store_unavailable",
                message=f"Rate limit store failed during {operation}",
                details={"operation": operation, "backend": "redis", "error_type": type(exc).__name__},
            ) from exc

    async def increment(self, key: str, window_seconds: int) -> int:
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        name = counter_key(key, window_start(self._clock(), window_seconds))

        async def _incr_and_expire() -> Any:
            # MULTI/EXEC keeps INCR and EXPIRE in one atomic unit.
            pipe = self._client.pipeline(transaction=True)
            pipe.incr(name)
            pipe.expire(name, window_seconds + 1)
            return await pipe.execute()

        results = await self._run("increment", key, _incr_and_expire)
        return int(results[0])

    async def is_blocked(self, key: str) -> bool:
        exists = await self._run("is_blocked", key, lambda: self._client.exists(blocked_key(key)))
        return int(exists) > 0

    async def block(self, key: str, duration: timedelta) -> None:
        milliseconds = int(duration.total_seconds() * 1000)
        if milliseconds <= 0:
            logger.debug(
                "rate_limit.block_skipped",
                extra={"key_hash": hash_key(key), "reason": "zero_duration"},
            )
            return

        await self._run(
            "block",
            key,
            lambda: self._client.set(blocked_key(key), 1, px=milliseconds),
        )

    async def close(self) -> None:
        await self._client.aclose()
