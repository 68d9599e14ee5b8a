# src/assetex/runtime/apply/ownership.py
from __future__ import annotations

from typing import Any, Dict

from assetex.ledger.constants import NO_OWNER
from assetex.ledger.types import asset_key
from assetex.runtime.apply.common import _require_identity
from assetex.runtime.errors import NotFound

Json = Dict[str, Any]


def _owners(state: Json) -> Json:
    o = state.get("owners")
    if not isinstance(o, dict):
        o = {}
        state["owners"] = o
    return o


def _balances(state: Json) -> Json:
    b = state.get("balances")
    if not isinstance(b, dict):
        b = {}
        state["balances"] = b
    return b


def owner_of(state: Json, asset_id: int) -> str:
    """Current owner, or NO_OWNER for an id that was never minted."""
    return str(_owners(state).get(asset_key(asset_id), NO_OWNER))


def balance_of(state: Json, identity: str) -> int:
    return int(_balances(state).get(str(identity), 0))


def record_mint(state: Json, asset_id: int, owner: str) -> None:
    """Seat the first owner of a freshly minted asset.

    Callers validate `owner` and the id; nothing here can fail.
    """
    balances = _balances(state)
    _owners(state)[asset_key(asset_id)] = owner
    balances[owner] = int(balances.get(owner, 0)) + 1


def transfer(state: Json, asset_id: int, new_owner: str) -> str:
    """Move an asset to `new_owner` and return the prior owner.

    All reads and validation happen before the first write; the three writes
    (prior count, owner record, new count) cannot fail, so a partial transfer
    is never observable.
    """
    new_owner = _require_identity(new_owner, field="new_owner")
    key = asset_key(asset_id)
    owners = _owners(state)
    if key not in owners:
        raise NotFound("asset_not_found", {"asset_id": asset_id})

    balances = _balances(state)
    prior = str(owners[key])
    prior_count = int(balances.get(prior, 0)) - 1

    if prior_count > 0:
        balances[prior] = prior_count
    else:
        balances.pop(prior, None)
    owners[key] = new_owner
    balances[new_owner] = int(balances.get(new_owner, 0)) + 1
    return prior


__all__ = ["owner_of", "balance_of", "record_mint", "transfer"]
