"""
Request-recording middleware.

Architecture decisions:
  1. Every request outside _EXEMPT_PATHS is timed and recorded into the
     SampleStore, so handlers never touch metrics themselves.
  2. Scraping /stats must not skew the window it reports on, so the
     stats, health and docs paths are exempt.
  3. A 5xx response or an exception escaping the handler counts as an
     error. The exception is recorded and then re-raised untouched.
  4. Hop classification runs on the inbound headers before the handler,
     so the cost of the heuristic is inside the measured latency.
"""

from __future__ import annotations

import time
from typing import Callable, Set

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from services.metrics_service.hops import classify_hops
from services.metrics_service.sample_store import SampleStore
from utils.logger import get_logger
from utils.timing import elapsed_ms

_log = get_logger(__name__)

# Not recorded into the latency window
_EXEMPT_PATHS: Set[str] = {
    "/stats",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/favicon.ico",
}


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Time each workload request and feed it to the sample store."""

    def __init__(self, app, store: SampleStore) -> None:
        super().__init__(app)
        self._store = store

    async def dispatch(self, request: Request, call_next: Callable):
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        hops = classify_hops(request.headers)
        start = time.perf_counter_ns()
        try:
            response = await call_next(request)
        except Exception:
            latency = elapsed_ms(start)
            self._store.record(latency, hops.total, error=True)
            _log.exception("request_raised", path=request.url.path, latency_ms=round(latency, 2))
            raise

        latency = elapsed_ms(start)
        error = response.status_code >= 500
        self._store.record(latency, hops.total, error=error)

        if error:
            _log.warning(
                "request_failed",
                path=request.url.path,
                status_code=response.status_code,
                latency_ms=round(latency, 2),
            )
        return response


def setup_request_metrics(app: FastAPI, store: SampleStore) -> None:
    """Install the recording middleware. Called from the app factory."""
    app.add_middleware(RequestMetricsMiddleware, store=store)
    _log.debug("request_metrics_enabled", exempt=sorted(_EXEMPT_PATHS))
