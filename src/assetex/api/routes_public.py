# src/assetex/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from assetex.api.routes_public_parts.admin import router as admin_router
from assetex.api.routes_public_parts.assets import router as assets_router
from assetex.api.routes_public_parts.events import router as events_router
from assetex.api.routes_public_parts.health import router as health_router
from assetex.api.routes_public_parts.market import router as market_router
from assetex.api.routes_public_parts.metrics import router as metrics_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(assets_router, prefix="/v1", tags=["assets"])
public_router.include_router(market_router, prefix="/v1", tags=["market"])
public_router.include_router(admin_router, prefix="/v1", tags=["admin"])
public_router.include_router(events_router, prefix="/v1", tags=["events"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
