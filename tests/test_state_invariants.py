from __future__ import annotations

import json
import logging

import pytest

from assetex.runtime.apply import registry
from assetex.runtime.market_logging import log_event
from assetex.runtime.state_invariants import StateInvariantViolation, check_state_invariants, ensure_state


def _minted(n: int) -> dict:
    st = ensure_state({})
    for i in range(n):
        registry.mint(st, "alice", str(i), 0)
    return st


def test_ensure_state_fills_tables_and_rejects_bad_types() -> None:
    st = ensure_state({})
    assert st["assets"] == {} and st["next_asset_id"] == 1 and st["event_seq"] == 0
    with pytest.raises(TypeError):
        ensure_state({"owners": []})
    with pytest.raises(TypeError):
        ensure_state([])


def test_clean_state_passes() -> None:
    check_state_invariants(_minted(3))


def test_balance_drift_is_detected() -> None:
    st = _minted(2)
    st["balances"]["alice"] = 3
    with pytest.raises(StateInvariantViolation):
        check_state_invariants(st)


def test_owner_without_asset_is_detected() -> None:
    st = _minted(1)
    st["owners"]["9"] = "bob"
    with pytest.raises(StateInvariantViolation):
        check_state_invariants(st)


def test_listing_for_unminted_asset_is_detected() -> None:
    st = _minted(1)
    st["listings"]["5"] = {"asset_id": 5, "seller": "alice", "price": 1, "active": True}
    with pytest.raises(StateInvariantViolation):
        check_state_invariants(st)


def test_fee_out_of_bounds_is_detected() -> None:
    st = _minted(0)
    st["admin"]["fee_bps"] = 1001
    with pytest.raises(StateInvariantViolation):
        check_state_invariants(st)


def test_log_event_emits_one_json_line(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("assetex.test")
    with caplog.at_level(logging.INFO, logger="assetex.test"):
        log_event(logger, "tx_applied", tx_type="ASSET_MINT", height=3)
    rec = json.loads(caplog.records[-1].getMessage())
    assert rec["event"] == "tx_applied"
    assert rec["tx_type"] == "ASSET_MINT" and rec["height"] == 3
    assert isinstance(rec["ts_ms"], int)
