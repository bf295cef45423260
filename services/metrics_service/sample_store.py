"""
Bounded, thread-safe window of request observations.

Architecture decisions:
  1. One record per request (latency + hop count) in a single
     deque(maxlen=W). The deque is the ring buffer: appending past
     capacity drops the oldest entry in O(1), and latency and hop count
     can never drift out of alignment because they are one tuple.
  2. The request/error/via-proxy counters live behind the same lock as
     the window. A snapshot therefore always sees requests_via_proxy
     <= requests and a window consistent with the counters.
  3. Writers hold the lock for an append and three integer increments.
     The reader holds it for two list copies. Sorting, averaging and
     serialization all happen on the copy, outside the lock.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, NamedTuple, Tuple

from utils.logger import get_logger

_log = get_logger(__name__)

DEFAULT_WINDOW = 1000


class Observation(NamedTuple):
    """One completed request."""

    latency_ms: float
    hop_count: int


@dataclass(frozen=True)
class StoreSnapshot:
    """Independent point-in-time copy of a SampleStore."""

    latencies: Tuple[float, ...] = field(default_factory=tuple)
    hop_counts: Tuple[int, ...] = field(default_factory=tuple)
    requests: int = 0
    errors: int = 0
    requests_via_proxy: int = 0

    def __len__(self) -> int:
        return len(self.latencies)

    @property
    def empty(self) -> bool:
        return not self.latencies


class SampleStore:
    """Process-wide sample window plus lifetime counters."""

    def __init__(self, capacity: int = DEFAULT_WINDOW) -> None:
        if capacity < 1:
            raise ValueError(f"window capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._window: Deque[Observation] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._requests = 0
        self._errors = 0
        self._via_proxy = 0
        _log.debug("sample_store_created", capacity=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._window)

    def record(self, latency_ms: float, hop_count: int, *, error: bool = False) -> None:
        """Append one observation, evicting the oldest once full."""
        obs = Observation(float(latency_ms), int(hop_count))
        with self._lock:
            self._window.append(obs)
            self._requests += 1
            if obs.hop_count > 0:
                self._via_proxy += 1
            if error:
                self._errors += 1

    def observations(self) -> List[Observation]:
        """Copy of the window, oldest first."""
        with self._lock:
            return list(self._window)

    def snapshot(self) -> StoreSnapshot:
        """
        Copy the window and counters under the lock.
        The result shares nothing with the store.
        """
        with self._lock:
            window = list(self._window)
            requests = self._requests
            errors = self._errors
            via_proxy = self._via_proxy

        return StoreSnapshot(
            latencies=tuple(o.latency_ms for o in window),
            hop_counts=tuple(o.hop_count for o in window),
            requests=requests,
            errors=errors,
            requests_via_proxy=via_proxy,
        )
