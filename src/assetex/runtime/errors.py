from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ApplyError(Exception):
    """Canonical error type for market apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class Unauthorized(ApplyError):
    """Caller is not the required owner, seller or platform owner."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("unauthorized", reason, details)


class InvalidInput(ApplyError):
    """Rate out of bounds, non-positive price, malformed field."""

    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("invalid_input", reason, details)


class NotFound(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("not_found", reason, details)


class NotForSale(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("not_for_sale", reason, details)


class PaymentMismatch(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("payment_mismatch", reason, details)


class PayoutFailure(ApplyError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__("payout_failure", reason, details)


__all__ = [
    "ApplyError",
    "Unauthorized",
    "InvalidInput",
    "NotFound",
    "NotForSale",
    "PaymentMismatch",
    "PayoutFailure",
]
