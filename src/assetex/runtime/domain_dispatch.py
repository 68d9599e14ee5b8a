# src/assetex/runtime/domain_dispatch.py

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple

from assetex.runtime.apply.admin import apply_admin
from assetex.runtime.apply.listings import apply_listings
from assetex.runtime.apply.registry import apply_registry
from assetex.runtime.apply.settlement import SettlementEngine, apply_settlement
from assetex.runtime.errors import ApplyError
from assetex.runtime.state_invariants import ensure_state
from assetex.runtime.tx_envelope import SUPPORTED_TX_TYPES, TxEnvelope

Json = Dict[str, Any]
ApplyFn = Callable[[Json, TxEnvelope], Optional[Json]]


def _tx_type(env: TxEnvelope) -> str:
    return str(env.tx_type or "").strip().upper()


def _appliers(settlement: Optional[SettlementEngine]) -> Tuple[ApplyFn, ...]:
    return (
        apply_registry,
        apply_listings,
        partial(apply_settlement, engine=settlement),
        apply_admin,
    )


def apply_tx(state: Json, env: Any, *, settlement: Optional[SettlementEngine] = None) -> Json:
    """Dispatch a TxEnvelope to the first domain applier that claims it.

    `state` is mutated in place; callers that need rollback pass a staged copy.
    """

    ensure_state(state)

    # Tests and the HTTP layer may pass raw dict envelopes.
    env_norm = TxEnvelope.from_json(env)
    t = _tx_type(env_norm)
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})
    if t not in SUPPORTED_TX_TYPES:
        raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})
    if t != env_norm.tx_type:
        env_norm = TxEnvelope(tx_type=t, signer=env_norm.signer, payload=env_norm.payload)

    for fn in _appliers(settlement):
        try:
            out = fn(state, env_norm)
        except ApplyError:
            raise
        except Exception as e:
            raise ApplyError(
                "domain_error",
                type(e).__name__,
                {"tx_type": t, "error": str(e)},
            ) from e
        if out is not None:
            return out

    raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})


__all__ = ["apply_tx"]
