from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from assetex.api.routes_public_parts.common import Json, _executor, _int_param

router = APIRouter()

_MAX_LIMIT = 500


@router.get("/events")
def v1_events(request: Request, since: Optional[str] = None, limit: Optional[str] = None) -> Json:
    """Committed notifications with seq > since, oldest first.

    Observers poll with the last seq they processed (`next_since`).
    """
    ex = _executor(request)
    s = max(0, _int_param(since, 0))
    n = min(_MAX_LIMIT, max(1, _int_param(limit, 100)))
    evs = ex.events_since(s, limit=n)
    return {
        "ok": True,
        "events": [e.to_json() for e in evs],
        "next_since": evs[-1].seq if evs else s,
    }
