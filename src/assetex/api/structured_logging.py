# src/assetex/api/structured_logging.py
from __future__ import annotations

import logging
import os
import sys
import time
import uuid
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from assetex.runtime.market_logging import log_event

_CONFIGURED_ATTR = "_assetex_jsonl"


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route all `assetex.*` records to stdout, one JSON object per line.

    The message already is the JSON line (see `log_event`), so the formatter
    passes it through untouched. Calling again only changes the level.
    """
    name = (level_name or os.environ.get("ASSETEX_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, _CONFIGURED_ATTR, False):
        return

    out = logging.StreamHandler(sys.stdout)
    out.setFormatter(logging.Formatter("%(message)s"))
    root.handlers = [out]
    setattr(root, _CONFIGURED_ATTR, True)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` line per request on logger `assetex.http`.

    The caller's x-request-id is reused when present and echoed back on the
    response. ASSETEX_LOG_REQUESTS=0 turns the middleware into a pass-through.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        flag = (os.environ.get("ASSETEX_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = flag not in {"0", "false", "no", "off"}
        self._log = logging.getLogger("assetex.http")

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = rid
        t0 = time.perf_counter()
        fields = {
            "request_id": rid,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "",
        }

        try:
            response = await call_next(request)
        except Exception as e:
            log_event(self._log, "http_request", level=logging.ERROR, status=500, error=repr(e),
                      duration_ms=int((time.perf_counter() - t0) * 1000), **fields)
            raise

        status = int(response.status_code)
        log_event(
            self._log,
            "http_request",
            level=logging.WARNING if status >= 500 else logging.INFO,
            status=status,
            duration_ms=int((time.perf_counter() - t0) * 1000),
            **fields,
        )
        response.headers["x-request-id"] = rid
        return response
