# src/assetex/runtime/events.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List

from assetex.runtime.market_logging import log_event

Json = Dict[str, Any]

MINTED = "Minted"
LISTED = "Listed"
SOLD = "Sold"
UNLISTED = "Unlisted"
FEE_UPDATED = "FeeUpdated"

log = logging.getLogger("assetex.events")


def event(kind: str, **fields: Any) -> Json:
    """Unsequenced notification produced by an applier.

    The executor assigns the global sequence number at commit time.
    """
    out: Json = {"kind": kind}
    out.update(fields)
    return out


@dataclass(frozen=True, slots=True)
class MarketEvent:
    seq: int
    kind: str
    data: Json
    ts_ms: int

    def to_json(self) -> Json:
        return {"seq": self.seq, "kind": self.kind, "data": dict(self.data), "ts_ms": self.ts_ms}

    @staticmethod
    def from_json(j: Json) -> "MarketEvent":
        return MarketEvent(
            seq=int(j["seq"]),
            kind=str(j["kind"]),
            data=dict(j.get("data") or {}),
            ts_ms=int(j.get("ts_ms") or 0),
        )


def sequence_events(pending: Iterable[Json], *, last_seq: int, ts_ms: int) -> List[MarketEvent]:
    out: List[MarketEvent] = []
    seq = int(last_seq)
    for p in pending:
        seq += 1
        data = {k: v for k, v in p.items() if k != "kind"}
        out.append(MarketEvent(seq=seq, kind=str(p["kind"]), data=data, ts_ms=int(ts_ms)))
    return out


Subscriber = Callable[[MarketEvent], None]


class EventHub:
    """In-process fan-out of committed events.

    Publishing happens under the executor lock, so subscribers observe events
    in global sequence order. A failing subscriber is logged and skipped; it
    never affects the already-committed operation or the other subscribers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: List[Subscriber] = []

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subs.append(fn)

        def _unsubscribe() -> None:
            with self._lock:
                if fn in self._subs:
                    self._subs.remove(fn)

        return _unsubscribe

    def publish(self, events: Iterable[MarketEvent]) -> None:
        with self._lock:
            subs = list(self._subs)
        for ev in events:
            for fn in subs:
                try:
                    fn(ev)
                except Exception as e:
                    log_event(log, "subscriber_failed", level=logging.WARNING, seq=ev.seq, kind=ev.kind, error=repr(e))


__all__ = [
    "MINTED",
    "LISTED",
    "SOLD",
    "UNLISTED",
    "FEE_UPDATED",
    "EventHub",
    "MarketEvent",
    "event",
    "sequence_events",
]
