"""Admission decisions for incoming requests.

The limiter resolves an identity for each request (API token when it has a
configured policy, client IP otherwise), counts it in the current fixed
window and blocks it once the policy limit is exceeded.

Flow per decision:
    is_blocked(key) -> increment(key) -> block(key) when count > limit

The limiter holds no locks; correctness under concurrent requests for the
same identity relies on the store's atomic increment. Two concurrent
requests may both observe "not blocked" and both set the block record,
which is an idempotent overwrite.
"""

from __future__ import annotations

import logging
from typing import Mapping

from app.adapters.rate_limit.base import AbstractRateLimitStore, hash_key
from app.schemas.rate_limit import RateLimitIdentity, RateLimitPolicy

logger = logging.getLogger(__name__)


class RateLimiter:
    """Decide whether a request is admitted, blocking identities over their limit."""

    def __init__(
        self,
        store: AbstractRateLimitStore,
        *,
        ip_policy: RateLimitPolicy,
        token_policies: Mapping[str, RateLimitPolicy] | None = None,
        window_seconds: int = 1,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Counter/blocklist store.
            ip_policy: Default policy for IP-derived identities.
            token_policies: Policies for tokens that get their own identity.
            window_seconds: Fixed counting window size in seconds.

        Raises:
            ValueError: If window_seconds is invalid.
        """
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._ip_policy = ip_policy
        self._token_policies = dict(token_policies or {})
        self._window_seconds = window_seconds

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def resolve(self, ip: str, token: str | None = None) -> RateLimitIdentity:
        """Resolve the identity key and policy for a request.

        A token only takes precedence when it has a configured policy; empty
        or unknown tokens fall back to the IP identity and default policy.
        """
        if token:
            policy = self._token_policies.get(token)
            if policy is not None:
                return RateLimitIdentity(key=f"token:{token}", key_type="token", policy=policy)

        return RateLimitIdentity(key=f"ip:{ip}", key_type="ip", policy=self._ip_policy)

    async def decide(self, ip: str, token: str | None = None) -> bool:
        """Decide whether the request is allowed.

        Args:
            ip: Client IP address.
            token: API token from the request (may be empty).

        Returns:
            True when the request is admitted, False when it is rate limited.

        Raises:
            StoreError: If any store call fails. No further store calls are
                made for this decision.
        """
        identity = self.resolve(ip, token)
        key = identity.key
        policy = identity.policy

        if await self._store.is_blocked(key):
            logger.info(
                "rate_limit.blocked",
                extra={"key_type": identity.key_type, "key_hash": hash_key(key)},
            )
            return False

        count = await self._store.increment(key, self._window_seconds)

        if count > policy.limit:
            await self._store.block(key, policy.block_duration)
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "key_type": identity.key_type,
                    "key_hash": hash_key(key),
                    "limit": policy.limit,
                    "count": count,
                    "window_s": self._window_seconds,
                    "block_s": policy.block_seconds,
                },
            )
            return False

        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": identity.key_type,
                "key_hash": hash_key(key),
                "limit": policy.limit,
                "count": count,
            },
        )
        return True
