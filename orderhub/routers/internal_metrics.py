from __future__ import annotations

from fastapi import APIRouter

from orderhub.core.metrics import delivery_metrics, request_metrics

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def metrics():
    return {"requests": request_metrics.snapshot(), "deliveries": delivery_metrics.snapshot()}
