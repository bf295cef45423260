"""
Hop classification: infer network intermediaries from request headers.

Two independent counts:
  1. Traditional proxies append to X-Forwarded-For and Via. Each entry
     in those comma-separated chains is one hop; both headers add up.
  2. A service mesh sidecar (Envoy under Istio) decorates the request
     with its own markers. Each marker present counts as exactly one hop,
     whatever its value.

Hops are inferred, never observed: a client can forge any of these
headers. Nothing here does I/O, so it can run on every request.
"""

from __future__ import annotations

from typing import Mapping, NamedTuple, Tuple

# Comma-separated chains: one hop per entry.
CHAIN_HEADERS: Tuple[str, ...] = (
    "x-forwarded-for",
    "via",
)

# Set by an Envoy sidecar or the tracing it propagates.
MESH_MARKER_HEADERS: Tuple[str, ...] = (
    "x-request-id",
    "x-envoy-external-address",
    "x-envoy-decorator-operation",
    "x-b3-traceid",
)

# Markers only an Istio sidecar adds; used for istio_sidecar_detected.
SIDECAR_MARKER_HEADERS: Tuple[str, ...] = (
    "x-b3-traceid",
    "x-envoy-decorator-operation",
)


class HopCount(NamedTuple):
    """Hops inferred for a single request."""

    traditional: int
    mesh: int

    @property
    def total(self) -> int:
        return self.traditional + self.mesh

    @property
    def proxy_detected(self) -> bool:
        return self.total > 0


def _lookup(headers: Mapping[str, str]) -> Mapping[str, str]:
    # Starlette's Headers is already case-insensitive; plain dicts are not.
    if hasattr(headers, "getlist"):
        return headers
    return {k.lower(): v for k, v in headers.items()}


def chain_length(value: str) -> int:
    """Entries in a comma-separated forwarding chain (0 for an empty value)."""
    if not value:
        return 0
    return value.count(",") + 1


def count_traditional_hops(headers: Mapping[str, str]) -> int:
    h = _lookup(headers)
    return sum(chain_length(h.get(name, "")) for name in CHAIN_HEADERS)


def count_mesh_hops(headers: Mapping[str, str]) -> int:
    h = _lookup(headers)
    return sum(1 for name in MESH_MARKER_HEADERS if h.get(name))


def classify_hops(headers: Mapping[str, str]) -> HopCount:
    """
    Classify a request's header set into traditional and mesh hops.

    >>> classify_hops({"X-Forwarded-For": "1.1.1.1, 2.2.2.2", "Via": "1.1 proxyA"})
    HopCount(traditional=3, mesh=0)
    """
    h = _lookup(headers)
    return HopCount(
        traditional=count_traditional_hops(h),
        mesh=count_mesh_hops(h),
    )


def has_sidecar_markers(headers: Mapping[str, str]) -> bool:
    """True when the request carries headers only an Istio sidecar injects."""
    h = _lookup(headers)
    return any(h.get(name) for name in SIDECAR_MARKER_HEADERS)
