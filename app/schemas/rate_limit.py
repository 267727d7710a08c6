"""Pydantic schemas for rate limit policies and resolved identities."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RateLimitPolicy(BaseModel):
    """Limit and block duration applied to one identity."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(
        ...,
        ge=1,
        description="Maximum number of requests allowed per window.",
    )
    block_duration: timedelta = Field(
        ...,
        description="How long an identity stays blocked after exceeding the limit.",
    )

    @field_validator("block_duration")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("block_duration must be >= 0")
        return value

    @property
    def block_seconds(self) -> int:
        return int(self.block_duration.total_seconds())


class RateLimitIdentity(BaseModel):
    """Identity key and the policy resolved for a request."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(
        ..., description="Namespaced identity key: 'token:<token>' or 'ip:<ip>'."
    )
    key_type: str = Field(
        ..., description="Either 'token' or 'ip'."
    )
    policy: RateLimitPolicy
