from __future__ import annotations

import copy
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from assetex.ledger.constants import DEFAULT_FEE_BPS
from assetex.ledger.types import Asset, Listing
from assetex.runtime import metrics
from assetex.runtime.apply import admin, listings, ownership, registry
from assetex.runtime.apply.settlement import Settlement, SettlementEngine
from assetex.runtime.domain_dispatch import apply_tx
from assetex.runtime.errors import ApplyError
from assetex.runtime.events import EventHub, MarketEvent, Subscriber, sequence_events
from assetex.runtime.market_logging import log_event
from assetex.runtime.payouts import MemoryPayoutRail, PayoutRail
from assetex.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from assetex.runtime.state_invariants import StateInvariantViolation, check_state_invariants, ensure_state
from assetex.runtime.tx_envelope import (
    ASSET_BUY,
    ASSET_LIST,
    ASSET_MINT,
    ASSET_UNLIST,
    FEE_SET,
    TxEnvelope,
)

Json = Dict[str, Any]

log = logging.getLogger("assetex.executor")


def _now_ms() -> int:
    return int(time.time() * 1000)


class ExecutorError(RuntimeError):
    pass


class MarketExecutor:
    """Serialized, all-or-nothing executor for market operations.

    Every operation runs under one re-entrant lock:
      1. deep-copy the committed state into a staged copy
      2. apply the tx to the staged copy (validate, then write)
      3. check cross-table invariants on the staged copy
      4. persist snapshot + sequenced events in one SQLite transaction
      5. swap the staged copy in and publish the events

    A failure at any step leaves the committed state untouched. Payouts made
    during step 2 are reversed if step 3 or 4 fails.

    With db_path=None the executor keeps everything in memory.
    """

    def __init__(
        self,
        *,
        platform_owner: str,
        market_id: str = "assetex-dev",
        fee_bps: int = DEFAULT_FEE_BPS,
        db_path: Optional[str] = None,
        payout_rail: Optional[PayoutRail] = None,
    ) -> None:
        self.market_id = str(market_id)
        self.db_path = str(db_path) if db_path else None

        self._lock = threading.RLock()
        self.rail: PayoutRail = payout_rail if payout_rail is not None else MemoryPayoutRail()
        self._settlement = SettlementEngine(self.rail)
        self._hub = EventHub()
        self._mem_events: List[MarketEvent] = []
        # Committed events awaiting delivery; drained in seq order by the
        # outermost submit() so re-entrant submits from subscribers only enqueue.
        self._outbox: Deque[MarketEvent] = deque()
        self._draining = False

        self._store: Optional[SqliteLedgerStore] = None
        if self.db_path:
            db = SqliteDB(path=self.db_path)
            self._store = SqliteLedgerStore(db=db)

        if self._store is not None and self._store.exists():
            self.state: Json = ensure_state(self._store.read())
        else:
            self.state = self._initial_state(platform_owner, fee_bps)
            if self._store is not None:
                self._store.write(self.state)

        # Fail-closed if the stored market does not match this executor.
        st_market = str(self.state.get("market_id") or "")
        if st_market != self.market_id:
            raise ExecutorError(f"market_id mismatch: db={st_market!r} executor={self.market_id!r}. Refuse to start.")
        st_owner = admin.platform_owner(self.state)
        if st_owner != str(platform_owner):
            raise ExecutorError(
                f"platform_owner mismatch: db={st_owner!r} executor={platform_owner!r}. "
                "The platform owner is fixed at market creation. Refuse to start."
            )
        try:
            check_state_invariants(self.state)
        except StateInvariantViolation as e:
            raise ExecutorError(f"db_invariant_violation: {e}. Refuse to start.") from e

        metrics.set_gauge("assets_minted", registry.minted_count(self.state))

    def _initial_state(self, platform_owner: str, fee_bps: int) -> Json:
        st = ensure_state({"market_id": self.market_id, "created_ms": _now_ms()})
        try:
            admin.init_admin(st, platform_owner, fee_bps)
        except ApplyError as e:
            raise ExecutorError(f"invalid market genesis: {e.code}:{e.reason}") from e
        return st

    # ----------------------------
    # Core submission path
    # ----------------------------

    def submit(self, env: Any) -> Json:
        """Apply one operation atomically and return its meta.

        Raises ApplyError (with zero mutation) on any rejection.
        """
        env_obj = TxEnvelope.from_json(env)
        with self._lock:
            staged: Json = copy.deepcopy(self.state)
            try:
                meta = apply_tx(staged, env_obj, settlement=self._settlement)
            except ApplyError as e:
                metrics.record_rejected(env_obj.tx_type, e.code)
                log_event(
                    log,
                    "tx_rejected",
                    level=logging.WARNING,
                    tx_type=env_obj.tx_type,
                    signer=env_obj.signer,
                    code=e.code,
                    reason=e.reason,
                )
                raise

            settlement = meta.get("settlement")
            events = sequence_events(
                meta.pop("events", []),
                last_seq=int(staged.get("event_seq", 0)),
                ts_ms=_now_ms(),
            )
            if events:
                staged["event_seq"] = events[-1].seq
            staged["height"] = int(staged.get("height", 0)) + 1

            try:
                check_state_invariants(staged)
                if self._store is not None:
                    self._store.commit(staged, events)
            except Exception as e:
                reversal_failures: List[Json] = []
                if isinstance(settlement, dict):
                    reversal_failures = self._settlement.reverse(Settlement.from_json(settlement))
                log_event(
                    log,
                    "tx_commit_failed",
                    level=logging.ERROR,
                    tx_type=env_obj.tx_type,
                    error=repr(e),
                    reversal_failures=reversal_failures,
                )
                raise ExecutorError(f"commit failed for {env_obj.tx_type}: {e}") from e

            self.state = staged
            if self._store is None:
                self._mem_events.extend(events)

            metrics.record_applied(env_obj.tx_type)
            if isinstance(settlement, dict):
                metrics.record_sale(int(settlement["price"]))
            metrics.set_gauge("assets_minted", registry.minted_count(staged))
            log_event(
                log,
                "tx_applied",
                tx_type=env_obj.tx_type,
                signer=env_obj.signer,
                height=staged["height"],
                events=[ev.kind for ev in events],
            )

            meta["events"] = [ev.to_json() for ev in events]
            self._outbox.extend(events)
            self._drain_outbox()
            return meta

    def _drain_outbox(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._outbox:
                self._hub.publish([self._outbox.popleft()])
        finally:
            self._draining = False

    # ----------------------------
    # Operations
    # ----------------------------

    def mint_asset(self, creator: str, uri: str, royalty_bps: int) -> int:
        meta = self.submit(TxEnvelope(ASSET_MINT, creator, {"uri": uri, "royalty_bps": royalty_bps}))
        return int(meta["asset_id"])

    def list_asset(self, asset_id: int, caller: str, price: int) -> None:
        self.submit(TxEnvelope(ASSET_LIST, caller, {"asset_id": asset_id, "price": price}))

    def buy_asset(self, asset_id: int, buyer: str, payment: int) -> Settlement:
        meta = self.submit(TxEnvelope(ASSET_BUY, buyer, {"asset_id": asset_id, "payment": payment}))
        return Settlement.from_json(meta["settlement"])

    def unlist_asset(self, asset_id: int, caller: str) -> None:
        self.submit(TxEnvelope(ASSET_UNLIST, caller, {"asset_id": asset_id}))

    def set_fee(self, caller: str, new_fee_bps: int) -> None:
        self.submit(TxEnvelope(FEE_SET, caller, {"fee_bps": new_fee_bps}))

    # ----------------------------
    # Queries
    # ----------------------------

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def get_owner(self, asset_id: int) -> str:
        with self._lock:
            return ownership.owner_of(self.state, asset_id)

    def get_uri(self, asset_id: int) -> str:
        with self._lock:
            return registry.get_uri(self.state, asset_id)

    def asset_of(self, asset_id: int) -> Asset:
        with self._lock:
            return registry.get_asset(self.state, asset_id)

    def balance_of(self, identity: str) -> int:
        with self._lock:
            return ownership.balance_of(self.state, identity)

    def listing_of(self, asset_id: int) -> Optional[Listing]:
        with self._lock:
            return listings.listing_of(self.state, asset_id)

    def minted_count(self) -> int:
        with self._lock:
            return registry.minted_count(self.state)

    @property
    def fee_bps(self) -> int:
        with self._lock:
            return admin.fee_bps(self.state)

    @property
    def platform_owner(self) -> str:
        with self._lock:
            return admin.platform_owner(self.state)

    @property
    def height(self) -> int:
        with self._lock:
            return int(self.state.get("height", 0))

    # ----------------------------
    # Notifications
    # ----------------------------

    def events_since(self, since: int = 0, *, limit: int = 100) -> List[MarketEvent]:
        if self._store is not None:
            return self._store.read_events(since=since, limit=limit)
        with self._lock:
            return [ev for ev in self._mem_events if ev.seq > int(since)][: max(0, int(limit))]

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        return self._hub.subscribe(fn)
