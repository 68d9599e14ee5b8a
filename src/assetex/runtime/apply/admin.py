# src/assetex/runtime/apply/admin.py
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from assetex.ledger.constants import DEFAULT_FEE_BPS, MAX_FEE_BPS
from assetex.runtime.apply.common import _as_dict, _require_identity, _require_int
from assetex.runtime.errors import InvalidInput, Unauthorized
from assetex.runtime.events import FEE_UPDATED, event
from assetex.runtime.tx_envelope import FEE_SET, TxEnvelope

Json = Dict[str, Any]


def _admin(state: Json) -> Json:
    a = state.get("admin")
    if not isinstance(a, dict):
        a = {"platform_owner": "", "fee_bps": DEFAULT_FEE_BPS}
        state["admin"] = a
    return a


def platform_owner(state: Json) -> str:
    return str(_admin(state).get("platform_owner") or "")


def fee_bps(state: Json) -> int:
    return int(_admin(state).get("fee_bps", DEFAULT_FEE_BPS))


def _require_fee_bps(v: Any) -> int:
    fee = _require_int(v, field="fee_bps")
    if fee < 0 or fee > MAX_FEE_BPS:
        raise InvalidInput("fee_bps_out_of_bounds", {"fee_bps": fee, "max": MAX_FEE_BPS})
    return fee


def init_admin(state: Json, owner: str, initial_fee_bps: Any = DEFAULT_FEE_BPS) -> None:
    """Seat the platform owner once, at market creation."""
    owner = _require_identity(owner, field="platform_owner")
    fee = _require_fee_bps(initial_fee_bps)
    if platform_owner(state):
        raise Unauthorized("platform_owner_immutable", {"platform_owner": platform_owner(state)})
    state["admin"] = {"platform_owner": owner, "fee_bps": fee}


def set_fee(state: Json, caller: str, new_fee_bps: Any) -> Tuple[int, int]:
    """Replace the platform fee; returns (old, new)."""
    caller = _require_identity(caller, field="caller")
    if caller != platform_owner(state):
        raise Unauthorized("not_platform_owner", {"caller": caller})
    fee = _require_fee_bps(new_fee_bps)

    adm = _admin(state)
    old = int(adm.get("fee_bps", DEFAULT_FEE_BPS))
    adm["fee_bps"] = fee
    return old, fee


def _apply_fee_set(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    old, new = set_fee(state, env.signer, payload.get("fee_bps"))
    return {
        "applied": FEE_SET,
        "fee_bps": new,
        "events": [event(FEE_UPDATED, old_fee_bps=old, new_fee_bps=new)],
    }


def apply_admin(state: Json, env: TxEnvelope) -> Optional[Json]:
    if env.tx_type == FEE_SET:
        return _apply_fee_set(state, env)
    return None


__all__ = ["apply_admin", "fee_bps", "init_admin", "platform_owner", "set_fee"]
