# src/assetex/runtime/apply/registry.py
from __future__ import annotations

from typing import Any, Dict, Optional

from assetex.ledger.constants import FIRST_ASSET_ID, MAX_ROYALTY_BPS
from assetex.ledger.types import Asset, asset_key
from assetex.runtime.apply import ownership
from assetex.runtime.apply.common import _as_dict, _require_identity, _require_int
from assetex.runtime.errors import InvalidInput, NotFound
from assetex.runtime.events import MINTED, event
from assetex.runtime.tx_envelope import ASSET_MINT, TxEnvelope

Json = Dict[str, Any]


def _assets(state: Json) -> Json:
    a = state.get("assets")
    if not isinstance(a, dict):
        a = {}
        state["assets"] = a
    return a


def minted_count(state: Json) -> int:
    return int(state.get("next_asset_id", FIRST_ASSET_ID)) - FIRST_ASSET_ID


def find_asset(state: Json, asset_id: int) -> Optional[Asset]:
    raw = _assets(state).get(asset_key(asset_id))
    return Asset.from_json(raw) if isinstance(raw, dict) else None


def get_asset(state: Json, asset_id: int) -> Asset:
    a = find_asset(state, asset_id)
    if a is None:
        raise NotFound("asset_not_found", {"asset_id": asset_id})
    return a


def get_uri(state: Json, asset_id: int) -> str:
    return get_asset(state, asset_id).uri


def mint(state: Json, creator: str, uri: Any, royalty_bps: Any) -> Asset:
    """Register a new asset owned by its creator.

    Ids are assigned from next_asset_id, which only advances on success, so a
    rejected mint never burns an id.
    """
    creator = _require_identity(creator, field="creator")
    if not isinstance(uri, str):
        raise InvalidInput("uri_must_be_string", {"got": type(uri).__name__})
    royalty = _require_int(royalty_bps, field="royalty_bps")
    if royalty < 0 or royalty > MAX_ROYALTY_BPS:
        raise InvalidInput("royalty_bps_out_of_bounds", {"royalty_bps": royalty, "max": MAX_ROYALTY_BPS})

    asset_id = int(state.get("next_asset_id", FIRST_ASSET_ID))
    asset = Asset(asset_id=asset_id, creator=creator, uri=uri, royalty_bps=royalty)

    _assets(state)[asset_key(asset_id)] = asset.to_json()
    state["next_asset_id"] = asset_id + 1
    ownership.record_mint(state, asset_id, creator)
    return asset


def _apply_asset_mint(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    asset = mint(state, env.signer, payload.get("uri", ""), payload.get("royalty_bps"))
    return {
        "applied": ASSET_MINT,
        "asset_id": asset.asset_id,
        "events": [event(MINTED, asset_id=asset.asset_id, creator=asset.creator, uri=asset.uri)],
    }


def apply_registry(state: Json, env: TxEnvelope) -> Optional[Json]:
    if env.tx_type == ASSET_MINT:
        return _apply_asset_mint(state, env)
    return None


__all__ = ["apply_registry", "find_asset", "get_asset", "get_uri", "mint", "minted_count"]
