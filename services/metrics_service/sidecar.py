"""
Sidecar detection by probing the local Envoy admin port.

Architecture decisions:
  1. A TCP connect to 127.0.0.1:15000 succeeds only when an Envoy sidecar
     shares the pod's network namespace. Ambient-mode and plain pods
     refuse the connection.
  2. The answer is cached for a cooldown (30s). /stats may be scraped
     many times a second; the probe runs at most once per cooldown.
  3. Connect timeout is 50ms. A hung probe stalls one /stats call for
     at most that long, never a workload request.
  4. Check, probe and write-back run under one lock. Concurrent callers
     that find the cache stale wait for the first probe to finish and
     then read its result instead of probing again.
  5. Best effort: any socket failure means "absent". A false negative is
     acceptable; an exception escaping into /stats is not.
"""

from __future__ import annotations

import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from utils.logger import get_logger

_log = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 15000
DEFAULT_TIMEOUT_SECONDS = 0.05
DEFAULT_COOLDOWN_SECONDS = 30.0

Probe = Callable[[], bool]


@dataclass(frozen=True)
class SidecarProbeState:
    """Result of the last completed probe. Replaced whole, never mutated."""

    present: bool = False
    checked_at: Optional[float] = None

    def is_fresh(self, now: float, cooldown: float) -> bool:
        return self.checked_at is not None and now - self.checked_at < cooldown


def tcp_probe(host: str, port: int, timeout: float) -> bool:
    """True if a TCP connection to host:port opens within `timeout` seconds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except (OSError, ValueError) as e:
        _log.debug("sidecar_probe_failed", host=host, port=port, error=str(e))
        return False


class SidecarProbeCache:
    """Cooldown-gated cache around a sidecar reachability probe."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cooldown: float = DEFAULT_COOLDOWN_SECONDS,
        probe: Optional[Probe] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._cooldown = cooldown
        self._probe = probe or (lambda: tcp_probe(host, port, timeout))
        self._clock = clock
        self._lock = threading.Lock()
        self._state = SidecarProbeState()
        self._probes = 0

    @property
    def state(self) -> SidecarProbeState:
        return self._state

    @property
    def probe_count(self) -> int:
        """Probes issued since construction."""
        return self._probes

    def is_present(self) -> bool:
        """Cached answer while fresh; one new probe once the cooldown has elapsed."""
        with self._lock:
            now = self._clock()
            if self._state.is_fresh(now, self._cooldown):
                return self._state.present

            present = self._run_probe()
            checked_at = max(self._clock(), self._state.checked_at or 0.0)
            previous = self._state
            self._state = SidecarProbeState(present=present, checked_at=checked_at)

        if previous.checked_at is None or previous.present != present:
            _log.info(
                "sidecar_state_changed",
                present=present,
                host=self._host,
                port=self._port,
            )
        return present

    def _run_probe(self) -> bool:
        self._probes += 1
        try:
            return bool(self._probe())
        except (OSError, ValueError) as e:
            _log.debug("sidecar_probe_error", error=str(e))
            return False


class DisabledSidecarProbe:
    """Stand-in when probing is switched off in config: always absent."""

    state = SidecarProbeState()
    probe_count = 0

    def is_present(self) -> bool:
        return False
