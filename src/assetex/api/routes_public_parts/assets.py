from __future__ import annotations

from fastapi import APIRouter, Request

from assetex.api.routes_public_parts.common import Json, _executor
from assetex.api.schemas import AssetResponse, MintRequest

router = APIRouter()


@router.post("/assets")
def v1_asset_mint(body: MintRequest, request: Request) -> Json:
    ex = _executor(request)
    asset_id = ex.mint_asset(body.creator, body.uri, body.royalty_bps)
    return {"ok": True, "asset_id": asset_id}


@router.get("/assets/{asset_id}", response_model=AssetResponse)
def v1_asset_get(asset_id: int, request: Request) -> AssetResponse:
    ex = _executor(request)
    a = ex.asset_of(asset_id)
    return AssetResponse(
        asset_id=a.asset_id,
        creator=a.creator,
        uri=a.uri,
        royalty_bps=a.royalty_bps,
        owner=ex.get_owner(asset_id),
    )


@router.get("/assets/{asset_id}/owner")
def v1_asset_owner(asset_id: int, request: Request) -> Json:
    """Owner lookup. A never-minted id returns an empty owner, not an error."""
    ex = _executor(request)
    return {"ok": True, "asset_id": asset_id, "owner": ex.get_owner(asset_id)}


@router.get("/assets/{asset_id}/uri")
def v1_asset_uri(asset_id: int, request: Request) -> Json:
    ex = _executor(request)
    return {"ok": True, "asset_id": asset_id, "uri": ex.get_uri(asset_id)}


@router.get("/accounts/{identity}")
def v1_account_get(identity: str, request: Request) -> Json:
    ex = _executor(request)
    return {"ok": True, "account": identity, "owned": ex.balance_of(identity)}
