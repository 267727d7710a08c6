"""Tests for rate limit configuration parsing."""

from datetime import timedelta

import pytest

from app.core.app_factory import build_rate_limiter, build_store
from app.adapters.rate_limit.base import hash_key
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.adapters.rate_limit.redis_store import RedisRateLimitStore
from app.core.config import RateLimitSettings, RedisSettings, Settings, parse_token_policies
from app.core.errors import ValidationAppError


class TestParseTokenPolicies:
    def test_parse_single_entry(self) -> None:
        policies = parse_token_policies("abc123:100:600")

        assert policies["abc123"].limit == 100
        assert policies["abc123"].block_duration == timedelta(minutes=10)

    def test_parse_multiple_entries_with_whitespace(self) -> None:
        policies = parse_token_policies(" token1 : 100 : 300 , token2:50:600")

        assert set(policies) == {"token1", "token2"}
        assert policies["token1"].limit == 100
        assert policies["token2"].block_duration == timedelta(seconds=600)

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_input_returns_no_policies(self, raw) -> None:
        assert parse_token_policies(raw) == {}

    def test_zero_block_duration_allowed(self) -> None:
        assert parse_token_policies("t:5:0")["t"].block_duration == timedelta(0)

    @pytest.mark.parametrize("raw", ["abc123", "abc123:100", "a:1:2:3", "abc:1:2,"])
    def test_wrong_shape_rejected(self, raw: str) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            parse_token_policies(raw)

        assert exc_info.value.code == "invalid_token_config"

    def test_wrong_shape_keeps_token_out_of_message(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            parse_token_policies("supersecret:100")

        assert "supersecret" not in exc_info.value.message
        assert "supersecret" not in str(exc_info.value.details)
        assert exc_info.value.details["token_hash"] == hash_key("supersecret")

    @pytest.mark.parametrize("raw", ["abc:ten:60", "abc:10:soon", "abc:0:60", "abc:10:-5"])
    def test_invalid_numbers_rejected(self, raw: str) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            parse_token_policies(raw)

        assert "abc" not in exc_info.value.message
        assert exc_info.value.details["token_hash"] == hash_key("abc")


class TestRateLimitSettings:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RATE_LIMIT_IP", "25")
        monkeypatch.setenv("RATE_LIMIT_IP_BLOCK_DURATION", "120")
        monkeypatch.setenv("RATE_LIMIT_TOKENS", "abc123:100:600")

        cfg = RateLimitSettings()

        assert cfg.ip_policy().limit == 25
        assert cfg.ip_policy().block_duration == timedelta(seconds=120)
        assert cfg.token_policies()["abc123"].limit == 100

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("RATE_LIMIT_IP", "RATE_LIMIT_IP_BLOCK_DURATION", "RATE_LIMIT_BACKEND"):
            monkeypatch.delenv(name, raising=False)

        cfg = RateLimitSettings()

        assert cfg.ip == 10
        assert cfg.ip_block_duration == 300
        assert cfg.window_seconds == 1
        assert cfg.token_header == "API_KEY"
        assert cfg.backend == "redis"

    def test_redis_url(self) -> None:
        assert RedisSettings(addr="redis:6379", db=1).url == "redis://redis:6379/1"


class TestFactoryBuilders:
    def test_memory_backend(self) -> None:
        cfg = Settings(rate_limit=RateLimitSettings(backend="memory"))

        assert isinstance(build_store(cfg), InMemoryRateLimitStore)

    def test_redis_backend(self) -> None:
        cfg = Settings(rate_limit=RateLimitSettings(backend="redis"))

        assert isinstance(build_store(cfg), RedisRateLimitStore)

    def test_invalid_tokens_fail_at_startup(self) -> None:
        cfg = Settings(rate_limit=RateLimitSettings(backend="memory", tokens="broken"))

        with pytest.raises(ValidationAppError):
            build_rate_limiter(cfg, InMemoryRateLimitStore())
