from __future__ import annotations

import threading
from typing import List

import pytest

from assetex.runtime.errors import ApplyError
from assetex.runtime.events import MarketEvent
from assetex.runtime.executor import ExecutorError, MarketExecutor
from assetex.runtime.state_invariants import StateInvariantViolation, check_state_invariants


def _ex(db_path: str, **kw) -> MarketExecutor:
    kw.setdefault("platform_owner", "platform")
    kw.setdefault("market_id", "assetex-test")
    return MarketExecutor(db_path=db_path, **kw)


def test_state_and_events_survive_restart(db_path: str) -> None:
    ex = _ex(db_path)
    aid = ex.mint_asset("alice", "ipfs://a", 100)
    ex.list_asset(aid, "alice", 1000)
    ex.buy_asset(aid, "bob", 1000)
    ex.set_fee("platform", 300)
    h = ex.height

    ex2 = _ex(db_path, fee_bps=999)
    assert ex2.height == h
    assert ex2.get_owner(aid) == "bob"
    assert ex2.get_uri(aid) == "ipfs://a"
    # the persisted fee wins over the boot value
    assert ex2.fee_bps == 300
    assert ex2.minted_count() == 1

    kinds = [ev.kind for ev in ex2.events_since(0)]
    assert kinds == ["Minted", "Listed", "Sold", "FeeUpdated"]
    assert [ev.seq for ev in ex2.events_since(0)] == [1, 2, 3, 4]

    assert ex2.mint_asset("carol", "ipfs://c", 0) == 2
    assert ex2.events_since(4)[0].seq == 5


def test_events_since_paginates(db_path: str) -> None:
    ex = _ex(db_path)
    for i in range(5):
        ex.mint_asset("alice", str(i), 0)
    page = ex.events_since(1, limit=2)
    assert [ev.seq for ev in page] == [2, 3]
    assert ex.events_since(5) == []


def test_boot_fails_closed_on_market_id_mismatch(db_path: str) -> None:
    _ex(db_path).mint_asset("alice", "a", 0)
    with pytest.raises(ExecutorError):
        _ex(db_path, market_id="other-market")


def test_boot_fails_closed_on_platform_owner_mismatch(db_path: str) -> None:
    _ex(db_path)
    with pytest.raises(ExecutorError):
        _ex(db_path, platform_owner="mallory")


def test_invalid_genesis_fee_refuses_to_start() -> None:
    with pytest.raises(ExecutorError):
        MarketExecutor(platform_owner="platform", fee_bps=5000)


def test_rejected_operation_does_not_touch_db(db_path: str) -> None:
    ex = _ex(db_path)
    ex.mint_asset("alice", "a", 0)
    with pytest.raises(ApplyError):
        ex.mint_asset("alice", "b", 1001)

    ex2 = _ex(db_path)
    assert ex2.minted_count() == 1
    assert len(ex2.events_since(0)) == 1


def test_unknown_tx_type_fails_closed(market: MarketExecutor) -> None:
    with pytest.raises(ApplyError) as e:
        market.submit({"tx_type": "ASSET_BURN", "signer": "alice", "payload": {"asset_id": 1}})
    assert e.value.code == "tx_unimplemented"

    with pytest.raises(ApplyError) as e:
        market.submit({"tx_type": "", "signer": "alice"})
    assert e.value.code == "invalid_tx"


def test_subscribers_see_events_in_order_and_failures_are_isolated(market: MarketExecutor) -> None:
    seen: List[MarketEvent] = []

    def _boom(_ev: MarketEvent) -> None:
        raise RuntimeError("subscriber bug")

    market.subscribe(_boom)
    unsubscribe = market.subscribe(seen.append)

    aid = market.mint_asset("alice", "a", 0)
    market.list_asset(aid, "alice", 10)
    assert [(ev.seq, ev.kind) for ev in seen] == [(1, "Minted"), (2, "Listed")]

    unsubscribe()
    market.unlist_asset(aid, "alice")
    assert len(seen) == 2
    assert market.listing_of(aid).active is False


def test_subscriber_that_submits_does_not_reorder_delivery(market: MarketExecutor) -> None:
    def _auto_buy(ev: MarketEvent) -> None:
        if ev.kind == "Listed":
            market.buy_asset(ev.data["asset_id"], "bob", ev.data["price"])

    seen: List[MarketEvent] = []
    market.subscribe(_auto_buy)
    market.subscribe(seen.append)

    aid = market.mint_asset("alice", "a", 0)
    market.list_asset(aid, "alice", 10)

    assert [(ev.seq, ev.kind) for ev in seen] == [(1, "Minted"), (2, "Listed"), (3, "Sold")]
    assert market.get_owner(aid) == "bob"

    # the queue is drained, so later operations still deliver
    market.mint_asset("carol", "c", 0)
    assert [ev.seq for ev in seen] == [1, 2, 3, 4]


def _assert_sale_rolled_back(ex: MarketExecutor, rail, aid: int, h: int) -> None:
    assert rail.calls[-6:] == [
        ("pay", "alice", 965),
        ("pay", "alice", 10),
        ("pay", "platform", 25),
        ("reverse", "platform", 25),
        ("reverse", "alice", 10),
        ("reverse", "alice", 965),
    ]
    assert rail.credited("alice") == 0
    assert rail.credited("platform") == 0
    assert ex.get_owner(aid) == "alice"
    assert ex.listing_of(aid).active is True
    assert ex.height == h
    assert "Sold" not in [ev.kind for ev in ex.events_since(0)]


def test_store_commit_failure_reverses_payouts(db_path: str, rail, monkeypatch: pytest.MonkeyPatch) -> None:
    ex = _ex(db_path, payout_rail=rail)
    aid = ex.mint_asset("alice", "a", 100)
    ex.list_asset(aid, "alice", 1000)
    h = ex.height

    seen: List[MarketEvent] = []
    ex.subscribe(seen.append)

    def _disk_full(*_a, **_kw) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(ex._store, "commit", _disk_full)
    with pytest.raises(ExecutorError):
        ex.buy_asset(aid, "bob", 1000)

    monkeypatch.undo()
    _assert_sale_rolled_back(ex, rail, aid, h)
    assert seen == []

    ex.buy_asset(aid, "bob", 1000)
    assert ex.get_owner(aid) == "bob"
    assert rail.credited("alice") == 975


def test_invariant_failure_after_payout_reverses_payouts(
    market: MarketExecutor, rail, monkeypatch: pytest.MonkeyPatch
) -> None:
    aid = market.mint_asset("alice", "a", 100)
    market.list_asset(aid, "alice", 1000)
    h = market.height

    def _broken(_st) -> None:
        raise StateInvariantViolation("balances do not match owner records")

    monkeypatch.setattr("assetex.runtime.executor.check_state_invariants", _broken)
    with pytest.raises(ExecutorError) as e:
        market.buy_asset(aid, "bob", 1000)
    assert isinstance(e.value.__cause__, StateInvariantViolation)

    monkeypatch.undo()
    _assert_sale_rolled_back(market, rail, aid, h)


def test_concurrent_buyers_exactly_one_wins(rail) -> None:
    ex = MarketExecutor(platform_owner="platform", payout_rail=rail)
    aid = ex.mint_asset("alice", "a", 100)
    ex.list_asset(aid, "alice", 1000)

    wins: List[str] = []
    losses: List[str] = []
    lock = threading.Lock()
    start = threading.Barrier(8)

    def _buy(name: str) -> None:
        start.wait()
        try:
            ex.buy_asset(aid, name, 1000)
            with lock:
                wins.append(name)
        except ApplyError as e:
            with lock:
                losses.append(e.code)

    threads = [threading.Thread(target=_buy, args=(f"buyer{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert len(wins) == 1
    assert losses == ["not_for_sale"] * 7
    assert ex.get_owner(aid) == wins[0]
    assert rail.credited("alice") == 975
    check_state_invariants(ex.read_state())


def test_concurrent_mints_get_distinct_ids(db_path: str) -> None:
    ex = _ex(db_path)
    ids: List[int] = []
    lock = threading.Lock()

    def _mint(n: int) -> None:
        for _ in range(n):
            aid = ex.mint_asset("alice", "x", 0)
            with lock:
                ids.append(aid)

    threads = [threading.Thread(target=_mint, args=(5,)) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert sorted(ids) == list(range(1, 21))
    assert ex.balance_of("alice") == 20
    assert [ev.seq for ev in ex.events_since(0, limit=100)] == list(range(1, 21))
