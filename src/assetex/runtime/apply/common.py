# src/assetex/runtime/apply/common.py
from __future__ import annotations

from typing import Any, Dict

from assetex.ledger.constants import FIRST_ASSET_ID
from assetex.runtime.errors import InvalidInput

Json = Dict[str, Any]


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int, float)) and not isinstance(v, bool) else ""


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _require_identity(v: Any, *, field: str) -> str:
    s = _as_str(v)
    if not s:
        raise InvalidInput("missing_identity", {"field": field})
    return s


def _require_int(v: Any, *, field: str) -> int:
    """Strict int field: no bool, no float, no numeric strings."""
    if not _is_int(v):
        raise InvalidInput("not_an_integer", {"field": field, "got": type(v).__name__})
    return int(v)


def _require_asset_id(v: Any) -> int:
    aid = _require_int(v, field="asset_id")
    if aid < FIRST_ASSET_ID:
        raise InvalidInput("invalid_asset_id", {"asset_id": aid})
    return aid
