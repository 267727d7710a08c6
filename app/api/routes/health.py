from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe.

    Not rate limited and does not touch the store, so load balancers keep
    seeing the process as alive during a store outage.
    """

    return {"status": "ok"}
