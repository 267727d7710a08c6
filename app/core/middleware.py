"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request ID so rate limit decisions and
store failures can be correlated in the logs:

- Accepts the incoming request ID header (``X-Request-ID`` by default) or
  generates a UUID
- Stores it in contextvars for the duration of the request
- Echoes it back together with the request duration

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a correlation ID through the request and into the response."""

    header_name = request.app.state.settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
