"""
GET /: the request whose latency the collector measures.

Simulates a fixed amount of work per request so proxy and sidecar
overhead shows up against a known baseline. Recording happens in
RequestMetricsMiddleware, not here.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from services.api_gateway.deps import MetricsState, get_metrics_state

router = APIRouter(tags=["workload"])


@router.get("/", response_class=PlainTextResponse)
def workload(state: MetricsState = Depends(get_metrics_state)) -> str:
    if state.simulated_work_ms > 0:
        time.sleep(state.simulated_work_ms / 1000)
    return "OK\n"
