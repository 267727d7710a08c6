"""Counter/blocklist store interface.

The rate limiter should depend on this abstraction (not the concrete
implementation) so storage backends can be swapped (Redis in production,
memory in tests) without touching the decision logic.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from datetime import timedelta

COUNTER_KEY_PREFIX = "ratelimit"
BLOCKED_KEY_PREFIX = "ratelimit:blocked"


def hash_key(value: str) -> str:
    """Hash an identity key or token for logging without exposing it."""
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def window_start(now: float, window_seconds: int) -> int:
    """Return the epoch second at which the fixed window containing ``now`` starts."""
    return int(now // window_seconds) * window_seconds


def counter_key(key: str, window: int) -> str:
    """Build the storage key of a per-window counter record."""
    return f"{COUNTER_KEY_PREFIX}:{key}:{window}"


def blocked_key(key: str) -> str:
    """Build the storage key of a block record."""
    return f"{BLOCKED_KEY_PREFIX}:{key}"


class AbstractRateLimitStore(ABC):
    """Interface for counter/blocklist stores.

    Every operation raises ``StoreError`` when the backend cannot complete it.
    Task cancellation propagates as ``asyncio.CancelledError``.
    """

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> int:
        """Atomically increment the current window counter for a key.

        The counter record expiry is refreshed to ``window_seconds + 1`` seconds
        as part of the same atomic operation.

        Args:
            key: Identity key (e.g., ``ip:10.0.0.1``).
            window_seconds: Size of the fixed window in seconds.

        Returns:
            The counter value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    async def is_blocked(self, key: str) -> bool:
        """Return whether a block record currently exists for a key."""
        raise NotImplementedError

    @abstractmethod
    async def block(self, key: str, duration: timedelta) -> None:
        """Create or overwrite the block record for a key.

        Args:
            key: Identity key.
            duration: Time until the block record expires.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""
        return None
