"""
Metrics Service Package: sample window, hop heuristics, sidecar probe, stats.
"""

from services.metrics_service.hops import HopCount, classify_hops, has_sidecar_markers
from services.metrics_service.sample_store import Observation, SampleStore, StoreSnapshot
from services.metrics_service.sidecar import SidecarProbeCache, SidecarProbeState
from services.metrics_service.stats import compute_stats, percentile, round2

__all__ = [
    "HopCount",
    "classify_hops",
    "has_sidecar_markers",
    "Observation",
    "SampleStore",
    "StoreSnapshot",
    "SidecarProbeCache",
    "SidecarProbeState",
    "compute_stats",
    "percentile",
    "round2",
]
