# src/assetex/runtime/payouts.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Sequence

from assetex.runtime.errors import PayoutFailure
from assetex.runtime.market_logging import log_event

Json = Dict[str, Any]

log = logging.getLogger("assetex.payouts")

ROLE_SELLER = "seller"
ROLE_CREATOR = "creator"
ROLE_PLATFORM = "platform"


@dataclass(frozen=True, slots=True)
class Payout:
    recipient: str
    amount: int
    role: str

    def to_json(self) -> Json:
        return {"recipient": self.recipient, "amount": self.amount, "role": self.role}

    @staticmethod
    def from_json(j: Json) -> "Payout":
        return Payout(recipient=str(j["recipient"]), amount=int(j["amount"]), role=str(j.get("role") or ""))


class PayoutRail(Protocol):
    """Value-transfer primitive supplied by the host.

    pay() raises on failure. reverse() compensates a pay() that completed
    during an operation that is being rolled back.
    """

    def pay(self, recipient: str, amount: int) -> None: ...

    def reverse(self, recipient: str, amount: int) -> None: ...


class PayoutRailError(RuntimeError):
    pass


class MemoryPayoutRail:
    """In-process rail that accumulates credited totals per recipient.

    Used by default in dev and tests. Thread-safe.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._credited: Dict[str, int] = {}
        self._history: List[Json] = []

    def pay(self, recipient: str, amount: int) -> None:
        if amount < 0:
            raise PayoutRailError(f"negative payout to {recipient!r}: {amount}")
        with self._lock:
            self._credited[recipient] = self._credited.get(recipient, 0) + int(amount)
            self._history.append({"op": "pay", "recipient": recipient, "amount": int(amount)})

    def reverse(self, recipient: str, amount: int) -> None:
        with self._lock:
            have = self._credited.get(recipient, 0)
            if have < amount:
                raise PayoutRailError(f"cannot reverse {amount} from {recipient!r}: only {have} credited")
            self._credited[recipient] = have - int(amount)
            self._history.append({"op": "reverse", "recipient": recipient, "amount": int(amount)})

    def credited(self, recipient: str) -> int:
        with self._lock:
            return self._credited.get(recipient, 0)

    def history(self) -> List[Json]:
        with self._lock:
            return [dict(h) for h in self._history]


def reverse_payouts(rail: PayoutRail, done: Sequence[Payout]) -> List[Json]:
    """Undo completed payouts, newest first.

    Returns the reversals that themselves failed; those are logged at ERROR
    and must be surfaced to the caller.
    """
    failed: List[Json] = []
    for p in reversed(list(done)):
        try:
            rail.reverse(p.recipient, p.amount)
        except Exception as e:
            log_event(log, "payout_reverse_failed", level=logging.ERROR, error=repr(e), **p.to_json())
            failed.append({**p.to_json(), "error": repr(e)})
    return failed


def dispatch_payouts(rail: PayoutRail, payouts: Sequence[Payout]) -> List[Payout]:
    """Pay every entry or none.

    Zero-amount entries are skipped. On the first failing pay() all payouts
    already made by this call are reversed and PayoutFailure is raised.
    """
    done: List[Payout] = []
    for p in payouts:
        if p.amount == 0:
            continue
        try:
            rail.pay(p.recipient, p.amount)
        except Exception as e:
            reversal_failures = reverse_payouts(rail, done)
            details: Json = {"failed": p.to_json(), "error": repr(e), "reversed": [d.to_json() for d in done]}
            if reversal_failures:
                details["reversal_failures"] = reversal_failures
            raise PayoutFailure("payout_failed", details) from e
        done.append(p)
    return done


__all__ = [
    "MemoryPayoutRail",
    "Payout",
    "PayoutRail",
    "PayoutRailError",
    "ROLE_CREATOR",
    "ROLE_PLATFORM",
    "ROLE_SELLER",
    "dispatch_payouts",
    "reverse_payouts",
]
