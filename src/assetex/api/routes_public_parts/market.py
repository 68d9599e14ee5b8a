from __future__ import annotations

from fastapi import APIRouter, Request

from assetex.api.routes_public_parts.common import Json, _executor
from assetex.api.schemas import BuyRequest, ListingResponse, ListRequest, UnlistRequest

router = APIRouter()


@router.get("/assets/{asset_id}/listing", response_model=ListingResponse)
def v1_listing_get(asset_id: int, request: Request) -> ListingResponse:
    """Current listing record, including a stale inactive one."""
    ex = _executor(request)
    l = ex.listing_of(asset_id)
    if l is None:
        return ListingResponse(asset_id=asset_id)
    return ListingResponse(asset_id=asset_id, listing=l.to_json(), active=l.active)


@router.post("/assets/{asset_id}/listing")
def v1_listing_put(asset_id: int, body: ListRequest, request: Request) -> Json:
    ex = _executor(request)
    ex.list_asset(asset_id, body.caller, body.price)
    return {"ok": True, "asset_id": asset_id, "price": body.price}


@router.delete("/assets/{asset_id}/listing")
def v1_listing_delete(asset_id: int, body: UnlistRequest, request: Request) -> Json:
    ex = _executor(request)
    ex.unlist_asset(asset_id, body.caller)
    return {"ok": True, "asset_id": asset_id}


@router.post("/assets/{asset_id}/buy")
def v1_asset_buy(asset_id: int, body: BuyRequest, request: Request) -> Json:
    ex = _executor(request)
    s = ex.buy_asset(asset_id, body.buyer, body.payment)
    return {"ok": True, "settlement": s.to_json()}
