"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.adapters.rate_limit.base import hash_key
from app.core.errors import ValidationAppError
from app.schemas.rate_limit import RateLimitPolicy


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def parse_token_policies(raw: str | None) -> dict[str, RateLimitPolicy]:
    """Parse per-token policies from their compact string form.

    Format: ``token:limit:blockSec`` entries separated by commas.

    Args:
        raw: Raw setting value, or None.

    Returns:
        Mapping of token to its policy (empty when nothing is configured).

    Raises:
        ValidationAppError: If an entry is malformed or holds invalid numbers.

    Examples:
        >>> parse_token_policies("abc123:100:600")["abc123"].limit
        100
        >>> parse_token_policies("")
        {}
    """
    policies: dict[str, RateLimitPolicy] = {}
    if not raw or not raw.strip():
        return policies

    for entry in raw.split(","):
        parts = [part.strip() for part in entry.strip().split(":")]
        if len(parts) != 3:
            raise ValidationAppError(
                code="invalid_token_config",
                message="Invalid token config format (expected token:limit:blockSec)",
                details={
                    "token_hash": hash_key(parts[0]),
                    "hint": "Use RATE_LIMIT_TOKENS=token:limit:blockSec[,token:limit:blockSec]",
                },
            )

        token, raw_limit, raw_block = parts
        try:
            policy = RateLimitPolicy(
                limit=int(raw_limit),
                block_duration=timedelta(seconds=int(raw_block)),
            )
        except (ValueError, ValidationError) as exc:
            raise ValidationAppError(
                code="invalid_token_config",
                message="Invalid limit or block duration in token config",
                details={"token_hash": hash_key(token), "error_type": type(exc).__name__},
            ) from exc

        policies[token] = policy

    return policies


def _build_redis_settings() -> "RedisSettings":
    """Build Redis settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return RedisSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class RedisSettings(BaseSettings):
    """Connection settings for the shared counter/blocklist store."""

    addr: str = Field(
        "redis:6379",
        description="Redis address as host:port",
    )
    password: str | None = Field(
        None,
        description="Redis password (empty for none)",
    )
    db: int = Field(
        0,
        description="Redis logical database index",
        ge=0,
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket connect/read timeout in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )

    @property
    def url(self) -> str:
        return f"redis://{self.addr}/{self.db}"


class RateLimitSettings(BaseSettings):
    """Admission control configuration."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on application routes",
    )
    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Store backend: shared Redis or per-process memory",
    )
    ip: int = Field(
        10,
        description="Maximum requests per window for IP-derived identities",
        ge=1,
    )
    ip_block_duration: int = Field(
        300,
        description="Block duration in seconds for IP-derived identities",
        ge=0,
    )
    tokens: str | None = Field(
        None,
        description="Per-token policies as token:limit:blockSec, comma-separated",
    )
    token_header: str = Field(
        "API_KEY",
        description="Request header carrying the API token",
    )
    window_seconds: int = Field(
        1,
        description="Fixed counting window size in seconds",
        ge=1,
    )
    operation_timeout_seconds: float = Field(
        1.0,
        description="Upper bound for a single store operation in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def ip_policy(self) -> RateLimitPolicy:
        """Return the default policy applied to IP-derived identities."""
        return RateLimitPolicy(
            limit=self.ip,
            block_duration=timedelta(seconds=self.ip_block_duration),
        )

    def token_policies(self) -> dict[str, RateLimitPolicy]:
        """Return the configured per-token policies."""
        return parse_token_policies(self.tokens)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field(
        "INFO",
        description="Root log level",
    )
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log lines are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
