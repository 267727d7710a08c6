"""In-memory counter/blocklist store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Records expire lazily on access, mirroring the TTL semantics of Redis.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimitStore,
    blocked_key,
    counter_key,
    window_start,
)


@dataclass
class _Record:
    value: int
    expires_at: float


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Store keeping counters and block records in a process-local dict.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits. Use the Redis store to share state.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _Record] = {}

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired_locked(self._clock())
            return len(self._records)

    def _get_live_locked(self, name: str, now: float) -> _Record | None:
        record = self._records.get(name)
        if record is None:
            return None
        if record.expires_at <= now:
            del self._records[name]
            return None
        return record

    def _purge_expired_locked(self, now: float) -> None:
        expired = [name for name, record in self._records.items() if record.expires_at <= now]
        for name in expired:
            del self._records[name]

    def ttl(self, name: str) -> float | None:
        """Return remaining seconds to live for a raw record name, or None if absent."""
        with self._lock:
            now = self._clock()
            record = self._get_live_locked(name, now)
            return None if record is None else record.expires_at - now

    async def increment(self, key: str, window_seconds: int) -> int:
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        with self._lock:
            now = self._clock()
            self._purge_expired_locked(now)
            name = counter_key(key, window_start(now, window_seconds))
            record = self._records.get(name)
            count = 1 if record is None else record.value + 1
            self._records[name] = _Record(value=count, expires_at=now + window_seconds + 1)
            return count

    async def is_blocked(self, key: str) -> bool:
        with self._lock:
            return self._get_live_locked(blocked_key(key), self._clock()) is not None

    async def block(self, key: str, duration: timedelta) -> None:
        seconds = duration.total_seconds()
        if seconds <= 0:
            return

        with self._lock:
            now = self._clock()
            self._records[blocked_key(key)] = _Record(value=1, expires_at=now + seconds)
