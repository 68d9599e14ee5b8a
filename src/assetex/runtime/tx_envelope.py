from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

# Market operation types.
ASSET_MINT = "ASSET_MINT"
ASSET_LIST = "ASSET_LIST"
ASSET_BUY = "ASSET_BUY"
ASSET_UNLIST = "ASSET_UNLIST"
FEE_SET = "FEE_SET"

SUPPORTED_TX_TYPES = (ASSET_MINT, ASSET_LIST, ASSET_BUY, ASSET_UNLIST, FEE_SET)


@dataclass(frozen=True)
class TxEnvelope:
    """One market operation.

    `signer` is the caller identity, resolved by the host before submission.
    """

    tx_type: str
    signer: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")),
            signer=str(j.get("signer", "")),
            payload=dict(j.get("payload", {}) or {}),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "payload": self.payload,
        }
