from __future__ import annotations

from fastapi import APIRouter, Response

from assetex.runtime.metrics import format_prometheus, metrics_enabled

router = APIRouter()

_PROMETHEUS_TEXT = "text/plain; version=0.0.4"


@router.get("/metrics")
def v1_metrics() -> Response:
    """Market counters in Prometheus text format (opt-in: ASSETEX_METRICS_ENABLED=1)."""
    if not metrics_enabled():
        return Response(status_code=404, content="metrics disabled\n", media_type="text/plain")
    return Response(content=format_prometheus(), media_type=_PROMETHEUS_TEXT)
