# src/assetex/runtime/apply/listings.py
from __future__ import annotations

from typing import Any, Dict, Optional

from assetex.ledger.types import Listing, asset_key, optional_listing
from assetex.runtime.apply import ownership
from assetex.runtime.apply.common import _as_dict, _require_asset_id, _require_identity, _require_int
from assetex.runtime.apply.registry import find_asset
from assetex.runtime.errors import InvalidInput, NotFound, Unauthorized
from assetex.runtime.events import LISTED, UNLISTED, event
from assetex.runtime.tx_envelope import ASSET_LIST, ASSET_UNLIST, TxEnvelope

Json = Dict[str, Any]


def _listings(state: Json) -> Json:
    l = state.get("listings")
    if not isinstance(l, dict):
        l = {}
        state["listings"] = l
    return l


def listing_of(state: Json, asset_id: int) -> Optional[Listing]:
    """Current listing record, active or not."""
    return optional_listing(_listings(state).get(asset_key(asset_id)))


def active_listing_of(state: Json, asset_id: int) -> Optional[Listing]:
    l = listing_of(state, asset_id)
    return l if l is not None and l.active else None


def list_asset(state: Json, asset_id: int, caller: str, price: Any) -> Listing:
    """Offer an asset at a fixed price.

    Overwrites any existing record for the asset, including an active one, so
    repricing needs no unlist first.
    """
    caller = _require_identity(caller, field="caller")
    if find_asset(state, asset_id) is None:
        raise NotFound("asset_not_found", {"asset_id": asset_id})

    owner = ownership.owner_of(state, asset_id)
    if caller != owner:
        raise Unauthorized("not_owner", {"asset_id": asset_id, "caller": caller})

    p = _require_int(price, field="price")
    if p <= 0:
        raise InvalidInput("price_must_be_positive", {"price": p})

    listing = Listing(asset_id=asset_id, seller=caller, price=p, active=True)
    _listings(state)[asset_key(asset_id)] = listing.to_json()
    return listing


def deactivate(state: Json, asset_id: int, caller: str) -> Listing:
    """Withdraw a listing.

    Only the seller named on the current record may do this, whether or not
    they still own the asset. Deactivating an inactive record is a no-op.
    """
    caller = _require_identity(caller, field="caller")
    cur = listing_of(state, asset_id)
    if cur is None or caller != cur.seller:
        raise Unauthorized("not_seller", {"asset_id": asset_id, "caller": caller})

    closed = cur.deactivated()
    _listings(state)[asset_key(asset_id)] = closed.to_json()
    return closed


def close_after_sale(state: Json, listing: Listing) -> None:
    """Settlement-side deactivation; the purchase already validated the record."""
    _listings(state)[asset_key(listing.asset_id)] = listing.deactivated().to_json()


def _apply_asset_list(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    asset_id = _require_asset_id(payload.get("asset_id"))
    listing = list_asset(state, asset_id, env.signer, payload.get("price"))
    return {
        "applied": ASSET_LIST,
        "asset_id": asset_id,
        "events": [event(LISTED, asset_id=asset_id, seller=listing.seller, price=listing.price)],
    }


def _apply_asset_unlist(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    asset_id = _require_asset_id(payload.get("asset_id"))
    deactivate(state, asset_id, env.signer)
    return {
        "applied": ASSET_UNLIST,
        "asset_id": asset_id,
        "events": [event(UNLISTED, asset_id=asset_id)],
    }


def apply_listings(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = env.tx_type
    if t == ASSET_LIST:
        return _apply_asset_list(state, env)
    if t == ASSET_UNLIST:
        return _apply_asset_unlist(state, env)
    return None


__all__ = [
    "active_listing_of",
    "apply_listings",
    "close_after_sale",
    "deactivate",
    "list_asset",
    "listing_of",
]
