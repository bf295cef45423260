"""
Per-process component wiring, reached from handlers through app.state.

One MetricsState is built by create_app() and lives for the process.
Handlers receive it via Depends(get_metrics_state) rather than importing
module-level singletons, so tests can build isolated apps side by side.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol

from fastapi import Request

from services.metrics_service.sample_store import SampleStore


class SidecarDetector(Protocol):
    def is_present(self) -> bool: ...


@dataclass
class MetricsState:
    store: SampleStore
    sidecar: SidecarDetector
    host_facts: Callable[[], Dict[str, Any]]
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default=0.0)
    simulated_work_ms: float = 20.0

    def __post_init__(self) -> None:
        if not self.started_at:
            self.started_at = self.clock()

    def uptime_seconds(self) -> float:
        return self.clock() - self.started_at


def get_metrics_state(request: Request) -> MetricsState:
    return request.app.state.metrics
