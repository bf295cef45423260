"""
Response models: the /stats and /health contracts.

Latency fields are Optional: they are omitted (response_model_exclude_none)
until the first request has been recorded.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: str
    uptime_seconds: int


class StatsResponse(BaseModel):
    """Point-in-time metrics snapshot."""

    # ── Requests ────────────────────────────────────────────
    requests: int
    errors: int
    requests_per_second: float
    success_rate_percent: float

    # ── Latency window (absent while empty) ─────────────────
    avg_latency_ms: Optional[float] = None
    p50_latency_ms: Optional[float] = None
    p95_latency_ms: Optional[float] = None
    p99_latency_ms: Optional[float] = None
    p999_latency_ms: Optional[float] = None
    min_latency_ms: Optional[float] = None
    max_latency_ms: Optional[float] = None

    uptime_seconds: int

    # ── Proxy / mesh ────────────────────────────────────────
    proxy_hop_count: int = Field(description="X-Forwarded-For + Via hops on this request")
    service_mesh_hops: int = Field(description="Mesh marker headers on this request")
    total_hop_count: int
    avg_proxy_hops: float = Field(description="Mean hop count over the window")
    proxy_detected: bool
    istio_sidecar_detected: bool
    requests_via_proxy: int

    # ── Host ────────────────────────────────────────────────
    hostname: str = "unknown"
    os: str = "unknown"
    architecture: str = "unknown"
    num_cpu: int = 0
    kernel_version: str = "unknown"
    total_memory_mb: float = 0.0
    available_memory_mb: float = 0.0
    total_disk_gb: float = 0.0
    available_disk_gb: float = 0.0
    disk_usage_percent: float = 0.0

    # ── Interpreter ─────────────────────────────────────────
    python_version: str = "unknown"
    threads: int = 0
    memory_rss_mb: float = 0.0
    memory_max_rss_mb: float = 0.0
    num_gc: int = 0
