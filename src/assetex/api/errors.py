from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from assetex.runtime.errors import ApplyError

# HTTP status per ApplyError.code
_STATUS_BY_CODE: Dict[str, int] = {
    "unauthorized": 403,
    "invalid_input": 400,
    "not_found": 404,
    "not_for_sale": 409,
    "payment_mismatch": 402,
    "payout_failure": 502,
    "invalid_tx": 400,
    "tx_unimplemented": 400,
}


@dataclass(slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_apply_error(e: ApplyError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"detail": e.details})
        return ApiError(_STATUS_BY_CODE.get(e.code, 500), e.code, e.reason, details)

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}
