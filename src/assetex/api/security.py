# src/assetex/api/security.py
from __future__ import annotations

import os
from typing import Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from assetex.api.errors import ApiError

_DEFAULT_MAX_BYTES = 64_000
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _max_request_bytes() -> int:
    raw = (os.environ.get("ASSETEX_MAX_REQUEST_BYTES") or "").strip()
    try:
        return int(raw) if raw else _DEFAULT_MAX_BYTES
    except ValueError:
        return _DEFAULT_MAX_BYTES


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """413 for request bodies above ASSETEX_MAX_REQUEST_BYTES (default 64000).

    Market requests are a handful of short fields, so the cap is small.
    ASSETEX_SIZE_LIMIT_DISABLE=1 turns it off where an edge proxy enforces it.
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ) -> None:
        super().__init__(app)
        off = (os.environ.get("ASSETEX_SIZE_LIMIT_DISABLE") or "").strip().lower()
        self._enabled = off not in {"1", "true", "yes", "on"}
        self._max = int(max_bytes) if max_bytes is not None else _max_request_bytes()
        self._exempt = exempt_prefixes

    def _reject(self, size: int) -> JSONResponse:
        err = ApiError(413, "request_too_large", "Request body too large", {"max_bytes": self._max, "got": size})
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    async def dispatch(self, request: Request, call_next):
        path = request.url.path or ""
        if not self._enabled or path.startswith(self._exempt):
            return await call_next(request)

        declared = (request.headers.get("content-length") or "").strip()
        if declared.isdigit() and int(declared) > self._max:
            return self._reject(int(declared))

        # Chunked bodies carry no Content-Length; measure what actually arrived.
        if request.method.upper() in _BODY_METHODS:
            body = await request.body()
            if len(body) > self._max:
                return self._reject(len(body))

        return await call_next(request)
