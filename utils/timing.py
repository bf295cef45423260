"""
Latency measurement helpers.

time.perf_counter_ns() is monotonic and nanosecond-resolution; wall-clock
time can jump on NTP sync and would corrupt the latency window.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from utils.logger import get_logger

_log = get_logger(__name__)


def elapsed_ms(start_ns: int) -> float:
    """Milliseconds elapsed since a perf_counter_ns() reading."""
    return (time.perf_counter_ns() - start_ns) / 1_000_000


@contextmanager
def timed(label: str, *, log: bool = True) -> Generator[dict, None, None]:
    """
    Measure the wrapped block in milliseconds.

    Usage:
        with timed("workload") as t:
            handle()
        t["ms"]  # e.g. 20.41

    The dict is filled when the block exits, including when it raises.
    """
    result: dict = {}
    start = time.perf_counter_ns()
    try:
        yield result
    finally:
        result["ns"] = time.perf_counter_ns() - start
        result["ms"] = result["ns"] / 1_000_000
        if log:
            _log.debug(label, latency_ms=round(result["ms"], 3))
