"""Rate limiting dependency for FastAPI routes.

This module wires the admission decider into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Explicit wiring: the limiter is built once by the app factory and kept on
  ``app.state``; nothing here constructs stores or reads limits.
- Fail closed: store failures propagate as StoreError and are rendered as
  HTTP 500 by the global exception handlers.

Identity extraction:
- Client IP from the connection's remote address, port stripped.
- API token from the configured header (``API_KEY`` by default).
"""

from __future__ import annotations

import ipaddress
import logging

from fastapi import HTTPException, Request, status

from app.services.rate_limit_service import RateLimiter

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_MESSAGE = (
    "you have reached the maximum number of requests or actions allowed within a certain time frame"
)


def split_host_port(address: str) -> str:
    """Strip the port from a ``host:port`` address.

    Handles IPv4 (``10.0.0.1:8080``), bracketed IPv6 (``[::1]:8080``) and
    hostnames. When the address cannot be split (no port, bare IPv6, garbage)
    the raw string is returned unchanged.

    Examples:
        >>> split_host_port("192.168.1.1:54321")
        '192.168.1.1'
        >>> split_host_port("[::1]:8080")
        '::1'
        >>> split_host_port("192.168.1.1")
        '192.168.1.1'
    """
    if address.startswith("["):
        end = address.find("]")
        if end == -1 or not address[end + 1 :].startswith(":"):
            return address
        port = address[end + 2 :]
        return address[1:end] if port.isdigit() else address

    host, sep, port = address.rpartition(":")
    if not sep or not host or ":" in host or not port.isdigit():
        return address
    return host


def get_client_ip(request: Request) -> str:
    """Extract the client IP from the request's remote address."""
    client = request.client
    if client is None:
        return "unknown"

    host = client.host
    try:
        ipaddress.ip_address(host)
    except ValueError:
        # Some servers report "host:port" or other raw forms.
        return split_host_port(host)
    return host


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the limiter the app factory attached to the application."""
    return request.app.state.rate_limiter


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency enforcing admission control.

    Consumes one unit from the requester's budget. If the requester is over
    its limit (or currently blocked), raises HTTP 429.

    Args:
        request: FastAPI request.

    Raises:
        HTTPException: 429 Too Many Requests when the request is not admitted.
        StoreError: When the store cannot complete the decision.
    """
    rate_limit_settings = request.app.state.settings.rate_limit
    if not rate_limit_settings.enabled:
        return

    limiter = get_rate_limiter(request)
    ip = get_client_ip(request)
    token = request.headers.get(rate_limit_settings.token_header, "")

    allowed = await limiter.decide(ip, token)
    if allowed:
        return

    logger.info(
        "rate_limit.rejected",
        extra={
            "path": request.url.path,
            "method": request.method,
            "token_present": bool(token),
        },
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=RATE_LIMIT_EXCEEDED_MESSAGE,
    )
