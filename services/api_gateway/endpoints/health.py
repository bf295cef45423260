"""
Liveness probe.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from services.api_gateway.deps import MetricsState, get_metrics_state
from services.api_gateway.models import HealthResponse

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health(state: MetricsState = Depends(get_metrics_state)) -> HealthResponse:
    """Always ok while the process serves HTTP."""
    return HealthResponse(status="ok", uptime_seconds=int(state.uptime_seconds()))
