# src/assetex/runtime/apply/settlement.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from assetex.ledger.types import FeeSplit, Listing
from assetex.runtime import fees
from assetex.runtime.apply import admin, listings, ownership
from assetex.runtime.apply.common import _as_dict, _require_asset_id, _require_identity, _require_int
from assetex.runtime.apply.registry import get_asset
from assetex.runtime.errors import ApplyError, NotForSale, PaymentMismatch
from assetex.runtime.events import SOLD, event
from assetex.runtime.payouts import (
    ROLE_CREATOR,
    ROLE_PLATFORM,
    ROLE_SELLER,
    Payout,
    PayoutRail,
    dispatch_payouts,
    reverse_payouts,
)
from assetex.runtime.tx_envelope import ASSET_BUY, TxEnvelope

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class Settlement:
    """Receipt of one completed purchase."""

    asset_id: int
    buyer: str
    seller: str
    creator: str
    platform_owner: str
    price: int
    fee_bps: int
    royalty_bps: int
    split: FeeSplit
    payouts: Tuple[Payout, ...]

    def to_json(self) -> Json:
        return {
            "asset_id": self.asset_id,
            "buyer": self.buyer,
            "seller": self.seller,
            "creator": self.creator,
            "platform_owner": self.platform_owner,
            "price": self.price,
            "fee_bps": self.fee_bps,
            "royalty_bps": self.royalty_bps,
            "split": self.split.to_json(),
            "payouts": [p.to_json() for p in self.payouts],
        }

    @staticmethod
    def from_json(j: Json) -> "Settlement":
        sp = _as_dict(j.get("split"))
        return Settlement(
            asset_id=int(j["asset_id"]),
            buyer=str(j["buyer"]),
            seller=str(j["seller"]),
            creator=str(j["creator"]),
            platform_owner=str(j["platform_owner"]),
            price=int(j["price"]),
            fee_bps=int(j["fee_bps"]),
            royalty_bps=int(j["royalty_bps"]),
            split=FeeSplit(
                marketplace_fee=int(sp["marketplace_fee"]),
                royalty_fee=int(sp["royalty_fee"]),
                seller_amount=int(sp["seller_amount"]),
            ),
            payouts=tuple(Payout.from_json(p) for p in j.get("payouts") or []),
        )


class SettlementEngine:
    """Runs a purchase as one all-or-nothing unit.

    purchase() expects `state` to be a staged copy owned by the caller: it
    validates and prices the sale without writing, dispatches the payouts,
    and only then applies the ownership and listing writes, none of which can
    fail. If a payout fails the ones already made are reversed and nothing is
    written.
    """

    def __init__(self, rail: PayoutRail) -> None:
        self.rail = rail

    def quote(self, state: Json, asset_id: int, buyer: str, payment: Any) -> Tuple[Settlement, Listing]:
        buyer = _require_identity(buyer, field="buyer")
        listing = listings.active_listing_of(state, asset_id)
        if listing is None:
            raise NotForSale("listing_inactive_or_absent", {"asset_id": asset_id})

        paid = _require_int(payment, field="payment")
        if paid != listing.price:
            raise PaymentMismatch("payment_must_equal_price", {"asset_id": asset_id, "price": listing.price, "payment": paid})

        asset = get_asset(state, asset_id)
        fee = admin.fee_bps(state)
        platform = admin.platform_owner(state)
        sp = fees.split(listing.price, asset.royalty_bps, fee)

        payouts = (
            Payout(recipient=listing.seller, amount=sp.seller_amount, role=ROLE_SELLER),
            Payout(recipient=asset.creator, amount=sp.royalty_fee, role=ROLE_CREATOR),
            Payout(recipient=platform, amount=sp.marketplace_fee, role=ROLE_PLATFORM),
        )
        s = Settlement(
            asset_id=asset_id,
            buyer=buyer,
            seller=listing.seller,
            creator=asset.creator,
            platform_owner=platform,
            price=listing.price,
            fee_bps=fee,
            royalty_bps=asset.royalty_bps,
            split=sp,
            payouts=payouts,
        )
        return s, listing

    def purchase(self, state: Json, asset_id: int, buyer: str, payment: Any) -> Settlement:
        s, listing = self.quote(state, asset_id, buyer, payment)

        done = dispatch_payouts(self.rail, s.payouts)
        try:
            ownership.transfer(state, asset_id, s.buyer)
            listings.close_after_sale(state, listing)
        except Exception:
            reverse_payouts(self.rail, done)
            raise
        return s

    def reverse(self, s: Settlement) -> List[Json]:
        """Compensate a settlement whose commit failed after payouts were made."""
        return reverse_payouts(self.rail, [p for p in s.payouts if p.amount != 0])


def _apply_asset_buy(state: Json, env: TxEnvelope, engine: SettlementEngine) -> Json:
    payload = _as_dict(env.payload)
    asset_id = _require_asset_id(payload.get("asset_id"))
    s = engine.purchase(state, asset_id, env.signer, payload.get("payment"))
    return {
        "applied": ASSET_BUY,
        "asset_id": asset_id,
        "settlement": s.to_json(),
        "events": [event(SOLD, asset_id=asset_id, buyer=s.buyer, seller=s.seller, price=s.price)],
    }


def apply_settlement(state: Json, env: TxEnvelope, engine: Optional[SettlementEngine] = None) -> Optional[Json]:
    if env.tx_type != ASSET_BUY:
        return None
    if engine is None:
        raise ApplyError("misconfigured", "payout_rail_required", {"tx_type": env.tx_type})
    return _apply_asset_buy(state, env, engine)


__all__ = ["Settlement", "SettlementEngine", "apply_settlement"]
