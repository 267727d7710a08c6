"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports app settings so the
suite never needs a running Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_IP", "10")
os.environ.setdefault("RATE_LIMIT_IP_BLOCK_DURATION", "300")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from app.adapters.rate_limit.base import AbstractRateLimitStore
from app.schemas.rate_limit import RateLimitPolicy


@pytest.fixture
def mock_store() -> AsyncMock:
    """Store double: not blocked, count 1, block succeeds."""
    store = AsyncMock(spec=AbstractRateLimitStore)
    store.is_blocked.return_value = False
    store.increment.return_value = 1
    store.block.return_value = None
    return store


@pytest.fixture
def ip_policy() -> RateLimitPolicy:
    return RateLimitPolicy(limit=10, block_duration=timedelta(minutes=5))
