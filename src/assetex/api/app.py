from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from assetex.api.errors import ApiError
from assetex.api.routes_public import public_router
from assetex.api.security import RequestSizeLimitMiddleware
from assetex.api.structured_logging import RequestLogMiddleware
from assetex.runtime.errors import ApplyError
from assetex.runtime.executor import ExecutorError
from assetex.runtime.executor_boot import build_executor as _build_executor
from assetex.runtime.market_config import load_market_config
from assetex.runtime.market_logging import log_event

log = logging.getLogger("assetex.http")


def build_executor():
    """Build a MarketExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `assetex.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, e: ApiError) -> JSONResponse:
        return JSONResponse(status_code=e.status_code, content=e.to_json())

    @app.exception_handler(ApplyError)
    async def _apply_error(_request: Request, e: ApplyError) -> JSONResponse:
        err = ApiError.from_apply_error(e)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, e: RequestValidationError) -> JSONResponse:
        errs = [{"loc": list(x.get("loc", ())), "msg": str(x.get("msg", ""))} for x in e.errors()]
        err = ApiError.bad_request("invalid_input", "request_validation_failed", {"errors": errs})
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(ExecutorError)
    async def _executor_error(request: Request, e: ExecutorError) -> JSONResponse:
        log_event(log, "executor_error", level=logging.ERROR, path=str(request.url.path), error=str(e))
        err = ApiError.internal("executor_error", "commit_failed", {})
        return JSONResponse(status_code=err.status_code, content=err.to_json())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load market config + attach executor
      - False: keep lightweight for unit tests / import-time validation
    """
    mode = os.environ.get("ASSETEX_MODE", "prod").strip().lower()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(
            log,
            "api_started",
            mode=mode,
            market_id=str(getattr(ex, "market_id", "") or ""),
            ready=ex is not None,
        )
        yield
        log_event(log, "api_stopped", mode=mode)

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(
            title="Assetex Market API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="Assetex Market API", lifespan=_lifespan)

    # Runtime boot (expensive): market config + executor.
    if boot_runtime:
        app.state.cfg = load_market_config()
        app.state.executor = build_executor()
    else:
        app.state.cfg = None
        app.state.executor = None

    _install_error_handlers(app)

    # --- Middleware ---
    # Added last runs first: request logging wraps the size limiter.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    # --- Routers ---
    app.include_router(public_router)

    return app
