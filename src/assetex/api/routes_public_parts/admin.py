from __future__ import annotations

from fastapi import APIRouter, Request

from assetex.api.routes_public_parts.common import Json, _executor
from assetex.api.schemas import FeeSetRequest
from assetex.ledger.constants import MAX_FEE_BPS

router = APIRouter()


@router.get("/admin/fee")
def v1_fee_get(request: Request) -> Json:
    ex = _executor(request)
    return {"ok": True, "fee_bps": ex.fee_bps, "max_fee_bps": MAX_FEE_BPS, "platform_owner": ex.platform_owner}


@router.put("/admin/fee")
def v1_fee_set(body: FeeSetRequest, request: Request) -> Json:
    ex = _executor(request)
    ex.set_fee(body.caller, body.fee_bps)
    return {"ok": True, "fee_bps": ex.fee_bps}
