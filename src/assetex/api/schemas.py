from __future__ import annotations

"""Pydantic request/response schemas for the public API.

Caller identity is resolved by the fronting gateway and passed explicitly in
each mutating request body.
"""

from typing import Optional

from pydantic import BaseModel, Field, StrictInt


class MintRequest(BaseModel):
    creator: str = Field(..., min_length=1, description="Creator identity; becomes the first owner")
    uri: str = Field(default="", description="Opaque metadata URI")
    royalty_bps: StrictInt = Field(..., description="Royalty in basis points, 0..1000")


class ListRequest(BaseModel):
    caller: str = Field(..., min_length=1, description="Must be the current owner")
    price: StrictInt = Field(..., description="Fixed price in the smallest currency unit, > 0")


class UnlistRequest(BaseModel):
    caller: str = Field(..., min_length=1, description="Must be the seller on the current listing")


class BuyRequest(BaseModel):
    buyer: str = Field(..., min_length=1)
    payment: StrictInt = Field(..., description="Must equal the listing price exactly")


class FeeSetRequest(BaseModel):
    caller: str = Field(..., min_length=1, description="Must be the platform owner")
    fee_bps: StrictInt = Field(..., description="Platform fee in basis points, 0..1000")


class AssetResponse(BaseModel):
    ok: bool = True
    asset_id: int
    creator: str
    uri: str
    royalty_bps: int
    owner: str


class ListingResponse(BaseModel):
    ok: bool = True
    asset_id: int
    listing: Optional[dict] = None
    active: bool = False
