from __future__ import annotations

from fastapi import APIRouter, Request

from assetex.api.routes_public_parts.common import Json

router = APIRouter()


@router.get("/health")
def v1_health(request: Request) -> Json:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        return {"ok": True, "ready": False}
    return {
        "ok": True,
        "ready": True,
        "market_id": ex.market_id,
        "height": ex.height,
        "assets_minted": ex.minted_count(),
    }
