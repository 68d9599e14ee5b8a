# src/assetex/ledger/constants.py
from __future__ import annotations

"""Market constants.

Rates are integer basis points: 1 bps = 1/10000 of a price.
"""

BPS_DENOMINATOR: int = 10_000

# Upper bounds (inclusive) for the two rates applied to a sale.
MAX_ROYALTY_BPS: int = 1_000  # 10%
MAX_FEE_BPS: int = 1_000  # 10%

DEFAULT_FEE_BPS: int = 250  # 2.5%

# Asset ids are sequential and start here.
FIRST_ASSET_ID: int = 1

# Returned by owner lookups for an id that was never minted.
NO_OWNER: str = ""

# Seller share = price - fee - royalty must never go negative.
if MAX_ROYALTY_BPS + MAX_FEE_BPS > BPS_DENOMINATOR:
    raise RuntimeError("rate bounds allow a negative seller share")
