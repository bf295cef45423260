"""
FastAPI app: the measured workload plus its in-process metrics.

Architecture decisions:
  1. ONE process owns ONE SampleStore and ONE SidecarProbeCache, built
     in create_app() and hung on app.state. Nothing is a module global,
     so tests can build as many independent apps as they like.
  2. Workload and /stats handlers are sync functions. Starlette runs
     them in its threadpool: one thread per in-flight request, the same
     model the store's lock discipline is designed for.
  3. /stats copies the window under the lock and computes outside it;
     scraping never holds writers for longer than a list copy.
  4. Startup logs whether a sidecar answers on the admin port, so pod
     logs show the mesh mode before the first scrape.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.concurrency import run_in_threadpool

from configs.settings import Settings, get_settings
from utils.logger import setup_logging, get_logger
from utils.timing import timed

from services.api_gateway.deps import MetricsState, SidecarDetector
from services.api_gateway.endpoints import health_router, stats_router, workload_router
from services.api_gateway.middleware import setup_request_metrics
from services.host_service import collect_host_facts
from services.metrics_service.sample_store import SampleStore
from services.metrics_service.sidecar import DisabledSidecarProbe, SidecarProbeCache

_log = get_logger(__name__)


def build_sidecar_detector(cfg: Settings, clock: Callable[[], float] = time.monotonic) -> SidecarDetector:
    if not cfg.sidecar_probe_enabled:
        return DisabledSidecarProbe()
    return SidecarProbeCache(
        cfg.sidecar_probe_host,
        cfg.sidecar_probe_port,
        timeout=cfg.sidecar_probe_timeout_ms / 1000,
        cooldown=cfg.sidecar_probe_cooldown_seconds,
        clock=clock,
    )


# ── Lifespan: startup + shutdown ────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    state: MetricsState = app.state.metrics
    cfg: Settings = app.state.settings

    _log.info(
        "startup_begin",
        window_size=state.store.capacity,
        simulated_work_ms=state.simulated_work_ms,
    )

    with timed("startup_sidecar_probe"):
        # Blocking connect; keep it off the event loop.
        sidecar = await run_in_threadpool(state.sidecar.is_present)
    _log.info(
        "startup_complete",
        sidecar_detected=sidecar,
        probe_enabled=cfg.sidecar_probe_enabled,
    )

    yield

    snap = state.store.snapshot()
    _log.info("shutdown", requests=snap.requests, errors=snap.errors)


# ── App factory ─────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    *,
    sidecar: Optional[SidecarDetector] = None,
    host_facts: Optional[Callable[[], Dict[str, Any]]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """
    Build the app and its metrics components.
    `sidecar`, `host_facts` and `clock` override the real collaborators.
    """
    cfg = settings or get_settings()

    state = MetricsState(
        store=SampleStore(cfg.window_size),
        sidecar=sidecar or build_sidecar_detector(cfg, clock),
        host_facts=host_facts or partial(collect_host_facts, cfg.disk_path),
        clock=clock,
        simulated_work_ms=cfg.simulated_work_ms,
    )

    app = FastAPI(
        title="podmeter",
        description="Request latency, proxy hop and sidecar detection metrics",
        version="1.0.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs",
        redoc_url=None,
    )
    app.state.settings = cfg
    app.state.metrics = state

    setup_request_metrics(app, state.store)

    app.include_router(workload_router)
    app.include_router(stats_router)
    app.include_router(health_router)
    return app


# ── Entry point ─────────────────────────────────────────────

def start_server() -> None:
    """Console-script entry point: configure logging, build the app, serve."""
    import uvicorn

    cfg = get_settings()
    setup_logging(level=cfg.log_level, json_output=cfg.log_json, service=cfg.app_name)
    _log.info("app_running", host=cfg.api_host, port=cfg.api_port)

    uvicorn.run(
        create_app(cfg),
        host=cfg.api_host,
        port=cfg.api_port,
        workers=1,  # the window is per-process; more workers would split it
        log_level=cfg.log_level.lower(),
        log_config=None,
        access_log=False,  # every request is already in the window
    )


if __name__ == "__main__":
    start_server()
