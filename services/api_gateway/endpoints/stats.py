"""
GET /stats: computed snapshot of the request window.

Sync handler on purpose: FastAPI runs it in the worker threadpool, so
the sidecar probe (up to 50ms when the cache is stale) blocks one
thread rather than the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from services.api_gateway.deps import MetricsState, get_metrics_state
from services.api_gateway.models import StatsResponse
from services.metrics_service.hops import classify_hops, has_sidecar_markers
from services.metrics_service.stats import compute_stats
from utils.logger import get_logger

_log = get_logger(__name__)
router = APIRouter(tags=["metrics"])


@router.get("/stats", response_model=StatsResponse, response_model_exclude_none=True)
def stats(request: Request, state: MetricsState = Depends(get_metrics_state)) -> dict:
    """Counters, latency percentiles, hop heuristics and host facts."""
    snapshot = state.store.snapshot()

    payload = compute_stats(
        snapshot,
        uptime_seconds=state.uptime_seconds(),
        current_hops=classify_hops(request.headers),
        sidecar_present=state.sidecar.is_present(),
        sidecar_headers=has_sidecar_markers(request.headers),
        host_facts=state.host_facts(),
    )
    _log.debug("stats_served", window=len(snapshot), requests=snapshot.requests)
    return payload
