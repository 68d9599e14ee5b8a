"""assetex.ledger.types

Record types stored in the market state.

The state itself is a JSON-backed dict (see runtime.state_invariants); these
frozen dataclasses are the typed views that apply modules read and write.
Ids are stored as string keys so the snapshot round-trips through JSON.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def coerce_int(v: Any, *, field: str) -> int:
    """Strict int coercion for persisted records.

    bool is an int subclass; reject it explicitly.
    """
    if isinstance(v, bool):
        raise ValueError(f"market state schema error: field '{field}' must be int (got bool)")
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f"market state schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e


def asset_key(asset_id: int) -> str:
    return str(int(asset_id))


@dataclass(frozen=True, slots=True)
class Asset:
    asset_id: int
    creator: str
    uri: str
    royalty_bps: int

    def to_json(self) -> Json:
        return {
            "asset_id": self.asset_id,
            "creator": self.creator,
            "uri": self.uri,
            "royalty_bps": self.royalty_bps,
        }

    @staticmethod
    def from_json(j: Json) -> "Asset":
        return Asset(
            asset_id=coerce_int(j.get("asset_id"), field="asset.asset_id"),
            creator=str(j.get("creator") or ""),
            uri=str(j.get("uri") or ""),
            royalty_bps=coerce_int(j.get("royalty_bps"), field="asset.royalty_bps"),
        )


@dataclass(frozen=True, slots=True)
class Listing:
    asset_id: int
    seller: str
    price: int
    active: bool

    def to_json(self) -> Json:
        return {
            "asset_id": self.asset_id,
            "seller": self.seller,
            "price": self.price,
            "active": self.active,
        }

    @staticmethod
    def from_json(j: Json) -> "Listing":
        return Listing(
            asset_id=coerce_int(j.get("asset_id"), field="listing.asset_id"),
            seller=str(j.get("seller") or ""),
            price=coerce_int(j.get("price"), field="listing.price"),
            active=bool(j.get("active", False)),
        )

    def deactivated(self) -> "Listing":
        return Listing(asset_id=self.asset_id, seller=self.seller, price=self.price, active=False)


@dataclass(frozen=True, slots=True)
class FeeSplit:
    marketplace_fee: int
    royalty_fee: int
    seller_amount: int

    @property
    def total(self) -> int:
        return self.marketplace_fee + self.royalty_fee + self.seller_amount

    def to_json(self) -> Json:
        return {
            "marketplace_fee": self.marketplace_fee,
            "royalty_fee": self.royalty_fee,
            "seller_amount": self.seller_amount,
        }


def optional_listing(raw: Any) -> Optional[Listing]:
    if not isinstance(raw, dict):
        return None
    return Listing.from_json(raw)


__all__ = ["Asset", "Listing", "FeeSplit", "Json", "asset_key", "coerce_int", "optional_listing"]
