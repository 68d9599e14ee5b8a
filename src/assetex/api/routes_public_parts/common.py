from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request

from assetex.api.errors import ApiError
from assetex.runtime.executor import MarketExecutor

Json = Dict[str, Any]


def _executor(request: Request) -> MarketExecutor:
    """The MarketExecutor attached by create_app(boot_runtime=True)."""
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "market executor is not attached", {})
    return ex


def _int_param(raw: Optional[str], default: int) -> int:
    if raw is None or not str(raw).strip():
        return int(default)
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ApiError.bad_request("invalid_input", "query parameter must be an integer", {"got": raw})
