# src/assetex/runtime/fees.py
from __future__ import annotations

from assetex.ledger.constants import BPS_DENOMINATOR, MAX_FEE_BPS, MAX_ROYALTY_BPS
from assetex.ledger.types import FeeSplit
from assetex.runtime.errors import InvalidInput


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def split(price: int, royalty_bps: int, fee_bps: int) -> FeeSplit:
    """Split a sale price three ways.

    marketplace_fee = floor(price * fee_bps / 10000)
    royalty_fee     = floor(price * royalty_bps / 10000)
    seller_amount   = price - marketplace_fee - royalty_fee

    Flooring means any fractional remainder stays with the seller, so the three
    parts always sum to exactly `price`. Pure; integer arithmetic only.
    """
    if not _is_int(price) or price < 0:
        raise InvalidInput("invalid_price", {"price": price})
    if not _is_int(royalty_bps) or royalty_bps < 0 or royalty_bps > MAX_ROYALTY_BPS:
        raise InvalidInput("royalty_bps_out_of_bounds", {"royalty_bps": royalty_bps, "max": MAX_ROYALTY_BPS})
    if not _is_int(fee_bps) or fee_bps < 0 or fee_bps > MAX_FEE_BPS:
        raise InvalidInput("fee_bps_out_of_bounds", {"fee_bps": fee_bps, "max": MAX_FEE_BPS})

    marketplace_fee = price * fee_bps // BPS_DENOMINATOR
    royalty_fee = price * royalty_bps // BPS_DENOMINATOR
    seller_amount = price - marketplace_fee - royalty_fee
    return FeeSplit(marketplace_fee=marketplace_fee, royalty_fee=royalty_fee, seller_amount=seller_amount)


__all__ = ["split"]
