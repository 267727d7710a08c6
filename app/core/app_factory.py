"""Application factory for the admission control service.

Builds the store and the rate limiter once per process from settings and
hands them to the application explicitly (``app.state``), alongside the
usual middleware, handlers and routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimitStore
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.adapters.rate_limit.redis_store import RedisRateLimitStore, build_redis_client
from app.api.routes import health_router, root_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.services.rate_limit_service import RateLimiter

logger = logging.getLogger(__name__)


def build_store(app_settings: Settings) -> AbstractRateLimitStore:
    """Create the counter/blocklist store selected by configuration."""
    if app_settings.rate_limit.backend == "memory":
        return InMemoryRateLimitStore()

    client = build_redis_client(app_settings.redis)
    return RedisRateLimitStore(
        client,
        operation_timeout_seconds=app_settings.rate_limit.operation_timeout_seconds,
    )


def build_rate_limiter(app_settings: Settings, store: AbstractRateLimitStore) -> RateLimiter:
    """Create the rate limiter from configured policies.

    Raises:
        ValidationAppError: If the token policies are malformed.
    """
    rate_limit = app_settings.rate_limit
    return RateLimiter(
        store,
        ip_policy=rate_limit.ip_policy(),
        token_policies=rate_limit.token_policies(),
        window_seconds=rate_limit.window_seconds,
    )


def create_app(
    app_settings: Settings | None = None,
    store: AbstractRateLimitStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-loaded ones.
        store: Store override (tests); defaults to the configured backend.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    rate_limiter = build_rate_limiter(cfg, store if store is not None else build_store(cfg))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "app.startup",
            extra={
                "backend": cfg.rate_limit.backend if store is None else type(store).__name__,
                "rate_limit_enabled": cfg.rate_limit.enabled,
                "ip_limit": cfg.rate_limit.ip,
                "ip_block_s": cfg.rate_limit.ip_block_duration,
                "window_s": cfg.rate_limit.window_seconds,
            },
        )
        try:
            yield
        finally:
            await rate_limiter.store.close()
            logger.info("app.shutdown")

    app = FastAPI(
        title="Rate Limiter",
        description=(
            "Admission control by client IP or API token: fixed-window counting "
            "with temporary blocking, backed by Redis."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.rate_limiter = rate_limiter

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(root_router)
    app.include_router(health_router)

    return app
