"""
Aggregate a SampleStore snapshot into the /stats payload.

Percentiles are NEAREST-RANK, not interpolated: the result is always a
latency that was actually observed, at sorted index ceil(p * n) - 1
clamped into [0, n - 1]. With a single sample every percentile is that
sample. Dashboards comparing against interpolating tools (numpy's
default, Prometheus histogram_quantile) will see small differences.

Every float emitted is rounded to two decimals, half away from zero on
value * 100. Python's round() is banker's rounding and would disagree
on exact halves, so it is not used here.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional, Sequence

from services.metrics_service.hops import HopCount
from services.metrics_service.sample_store import StoreSnapshot

# Quantiles reported, keyed by response field.
QUANTILES: Dict[str, float] = {
    "p50_latency_ms": 0.50,
    "p95_latency_ms": 0.95,
    "p99_latency_ms": 0.99,
    "p999_latency_ms": 0.999,
}

LATENCY_FIELDS = (
    "avg_latency_ms",
    *QUANTILES,
    "min_latency_ms",
    "max_latency_ms",
)

# Floor for uptime so the first request after startup can't divide by zero.
_MIN_UPTIME_SECONDS = 1e-3


def round2(value: float) -> float:
    """Round to 2 decimals, halves away from zero."""
    if not math.isfinite(value):
        return value
    scaled = Decimal(value * 100).to_integral_value(rounding=ROUND_HALF_UP)
    return float(scaled) / 100


def nearest_rank(ordered: Sequence[float], p: float) -> float:
    """Nearest-rank lookup in an already ascending, non-empty sequence."""
    idx = math.ceil(p * len(ordered)) - 1
    idx = min(max(idx, 0), len(ordered) - 1)
    return ordered[idx]


def percentile(data: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile of `data` for p in (0, 1].

    Sorts a copy; `data` is left untouched. Raises ValueError on an
    empty sequence: callers branch on emptiness before asking.
    """
    if not data:
        raise ValueError("percentile of empty data")
    return nearest_rank(sorted(data), p)


def success_rate(requests: int, errors: int) -> float:
    if requests == 0:
        return 100.0
    return (requests - errors) / requests * 100


def requests_per_second(requests: int, uptime_seconds: float) -> float:
    return requests / max(uptime_seconds, _MIN_UPTIME_SECONDS)


def latency_summary(latencies: Sequence[float]) -> Dict[str, float]:
    """avg/min/max and quantiles for a non-empty window, rounded."""
    if not latencies:
        return {}
    ordered = sorted(latencies)
    summary = {
        "avg_latency_ms": round2(sum(ordered) / len(ordered)),
        "min_latency_ms": round2(ordered[0]),
        "max_latency_ms": round2(ordered[-1]),
    }
    for name, q in QUANTILES.items():
        summary[name] = round2(nearest_rank(ordered, q))
    return summary


def average_hops(hop_counts: Sequence[int]) -> float:
    if not hop_counts:
        return 0.0
    return round2(sum(hop_counts) / len(hop_counts))


def compute_stats(
    snapshot: StoreSnapshot,
    *,
    uptime_seconds: float,
    current_hops: HopCount,
    sidecar_present: bool = False,
    sidecar_headers: bool = False,
    host_facts: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the stats payload. Pure: same inputs, same output, no shared
    state touched. Latency fields are left out for an empty window.
    """
    stats: Dict[str, Any] = {
        "requests": snapshot.requests,
        "errors": snapshot.errors,
        "requests_per_second": round2(requests_per_second(snapshot.requests, uptime_seconds)),
        "success_rate_percent": round2(success_rate(snapshot.requests, snapshot.errors)),
    }
    stats.update(latency_summary(snapshot.latencies))

    stats.update(
        uptime_seconds=int(max(uptime_seconds, 0.0)),
        proxy_hop_count=current_hops.traditional,
        service_mesh_hops=current_hops.mesh,
        total_hop_count=current_hops.total,
        avg_proxy_hops=average_hops(snapshot.hop_counts),
        proxy_detected=current_hops.proxy_detected,
        istio_sidecar_detected=bool(sidecar_headers or sidecar_present),
        requests_via_proxy=snapshot.requests_via_proxy,
    )

    if host_facts:
        for key, value in host_facts.items():
            stats.setdefault(key, value)
    return stats
