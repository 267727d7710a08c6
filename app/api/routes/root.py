from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Root"], dependencies=[Depends(enforce_rate_limit)])


@router.get("/")
def root() -> dict:
    """Rate limited endpoint.

    Returns 429 once the caller's identity exceeds its limit and 500 when the
    rate limit store is unavailable.
    """

    return {"status": "ok"}
