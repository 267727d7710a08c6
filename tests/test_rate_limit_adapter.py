"""Unit tests for the in-memory counter/blocklist store."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.base import blocked_key, counter_key
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore


@pytest.mark.asyncio
async def test_increment_counts_within_same_window() -> None:
    store = InMemoryRateLimitStore(clock=Mock(return_value=1000.2))

    assert await store.increment("ip:1.2.3.4", 1) == 1
    assert await store.increment("ip:1.2.3.4", 1) == 2
    assert await store.increment("ip:1.2.3.4", 1) == 3


@pytest.mark.asyncio
async def test_increment_starts_new_count_in_next_window() -> None:
    clock = Mock(return_value=1000.9)
    store = InMemoryRateLimitStore(clock=clock)

    assert await store.increment("k", 1) == 1
    assert await store.increment("k", 1) == 2

    clock.return_value = 1001.0
    assert await store.increment("k", 1) == 1


@pytest.mark.asyncio
async def test_increment_uses_window_key_and_refreshes_ttl() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryRateLimitStore(clock=clock)

    await store.increment("k", 1)
    assert store.ttl(counter_key("k", 1000)) == pytest.approx(2.0)

    clock.return_value = 1000.5
    await store.increment("k", 1)
    assert store.ttl(counter_key("k", 1000)) == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_multi_second_window_buckets_by_window_start() -> None:
    clock = Mock(return_value=1005.0)
    store = InMemoryRateLimitStore(clock=clock)

    assert await store.increment("k", 10) == 1
    clock.return_value = 1009.9
    assert await store.increment("k", 10) == 2
    assert store.ttl(counter_key("k", 1000)) == pytest.approx(11.0)

    clock.return_value = 1010.0
    assert await store.increment("k", 10) == 1


@pytest.mark.asyncio
async def test_counters_isolated_by_key() -> None:
    store = InMemoryRateLimitStore(clock=Mock(return_value=1000.0))

    assert await store.increment("k1", 1) == 1
    assert await store.increment("k1", 1) == 2
    assert await store.increment("k2", 1) == 1


@pytest.mark.asyncio
async def test_block_record_expires_after_duration() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryRateLimitStore(clock=clock)

    assert await store.is_blocked("ip:1.2.3.4") is False
    await store.block("ip:1.2.3.4", timedelta(minutes=5))
    assert await store.is_blocked("ip:1.2.3.4") is True
    assert store.ttl(blocked_key("ip:1.2.3.4")) == pytest.approx(300.0)

    clock.return_value = 1299.0
    assert await store.is_blocked("ip:1.2.3.4") is True

    clock.return_value = 1300.0
    assert await store.is_blocked("ip:1.2.3.4") is False


@pytest.mark.asyncio
async def test_block_overwrites_existing_record() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryRateLimitStore(clock=clock)

    await store.block("k", timedelta(seconds=10))
    clock.return_value = 1005.0
    await store.block("k", timedelta(seconds=10))

    clock.return_value = 1012.0
    assert await store.is_blocked("k") is True


@pytest.mark.asyncio
async def test_zero_block_duration_creates_no_record() -> None:
    store = InMemoryRateLimitStore(clock=Mock(return_value=1000.0))

    await store.block("k", timedelta(0))

    assert await store.is_blocked("k") is False
    assert len(store) == 0


@pytest.mark.asyncio
async def test_expired_counters_are_purged() -> None:
    clock = Mock(return_value=1000.0)
    store = InMemoryRateLimitStore(clock=clock)

    await store.increment("k1", 1)
    await store.increment("k2", 1)
    assert len(store) == 2

    clock.return_value = 1002.0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_invalid_increment_args() -> None:
    store = InMemoryRateLimitStore()

    with pytest.raises(ValueError):
        await store.increment("", 1)

    with pytest.raises(ValueError):
        await store.increment("k", 0)
