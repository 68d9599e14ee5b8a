# src/assetex/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Market state is a nested JSON-like dict mutated by the apply_* modules. This
module is the single place that:

  - validates the state is dict-like
  - ensures the core tables exist (so apply modules can rely on them)
  - checks the cross-table invariants after every apply

Tables:
  assets     asset_id -> Asset json (immutable after mint)
  owners     asset_id -> owner identity
  balances   identity -> owned count
  listings   asset_id -> Listing json (never deleted)
  admin      {"platform_owner": str, "fee_bps": int}
"""

from collections import Counter
from collections.abc import MutableMapping
from typing import Any, Dict

from assetex.ledger.constants import DEFAULT_FEE_BPS, FIRST_ASSET_ID, MAX_FEE_BPS, MAX_ROYALTY_BPS

Json = Dict[str, Any]

STATE_VERSION = 1

_TABLES = ("assets", "owners", "balances", "listings")


class StateInvariantViolation(RuntimeError):
    pass


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains the core tables.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st or one of its tables has the wrong type
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for name in _TABLES:
        t = st.get(name)
        if t is None:
            st[name] = {}
        elif not isinstance(t, dict):
            # Fail closed: do not attempt to coerce arbitrary types.
            raise TypeError(f"state['{name}'] must be dict, got {type(t)}")

    admin = st.get("admin")
    if admin is None:
        st["admin"] = {"platform_owner": "", "fee_bps": DEFAULT_FEE_BPS}
    elif not isinstance(admin, dict):
        raise TypeError(f"state['admin'] must be dict, got {type(admin)}")

    st.setdefault("state_version", STATE_VERSION)
    st.setdefault("next_asset_id", FIRST_ASSET_ID)
    st.setdefault("event_seq", 0)
    st.setdefault("height", 0)
    return st  # type: ignore[return-value]


def check_state_invariants(st: Json) -> None:
    """Fail-closed consistency check across the four tables.

    - ids are exactly FIRST_ASSET_ID..next_asset_id-1
    - every asset has exactly one owner, and balances are the owner histogram
    - rates are within bounds
    - every listing references a minted asset
    """
    assets = st.get("assets") or {}
    owners = st.get("owners") or {}
    balances = st.get("balances") or {}
    listings = st.get("listings") or {}

    next_id = int(st.get("next_asset_id", FIRST_ASSET_ID))
    expected = {str(i) for i in range(FIRST_ASSET_ID, next_id)}
    if set(assets.keys()) != expected:
        raise StateInvariantViolation(f"asset ids are not contiguous below next_asset_id={next_id}")

    if set(owners.keys()) != expected:
        raise StateInvariantViolation("every minted asset must have exactly one owner")

    held = Counter(str(o) for o in owners.values())
    nonzero = {k: int(v) for k, v in balances.items() if int(v) != 0}
    if dict(held) != nonzero:
        raise StateInvariantViolation("balances do not match owner records")

    if sum(nonzero.values()) != len(assets):
        raise StateInvariantViolation("sum(balances) != minted assets")

    for k, a in assets.items():
        r = int(a.get("royalty_bps", -1))
        if r < 0 or r > MAX_ROYALTY_BPS:
            raise StateInvariantViolation(f"asset {k} royalty_bps out of bounds: {r}")

    fee = int((st.get("admin") or {}).get("fee_bps", -1))
    if fee < 0 or fee > MAX_FEE_BPS:
        raise StateInvariantViolation(f"fee_bps out of bounds: {fee}")

    for k in listings.keys():
        if k not in expected:
            raise StateInvariantViolation(f"listing for unminted asset {k}")


__all__ = ["ensure_state", "check_state_invariants", "StateInvariantViolation", "STATE_VERSION"]
