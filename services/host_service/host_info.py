"""
Host facts merged into /stats.

Single-shot reads with no state: /proc/meminfo, statvfs on the reported
filesystem, `uname -a`, plus the interpreter's own counters. Every reader
degrades to 0 or "unknown" instead of raising, so a container without
/proc still serves stats.
"""

from __future__ import annotations

import gc
import os
import platform
import socket
import subprocess
import sys
import threading
from functools import lru_cache
from typing import Any, Dict, Tuple

from services.metrics_service.stats import round2
from utils.logger import get_logger

_log = get_logger(__name__)

_MEMINFO_PATH = "/proc/meminfo"
_STATM_PATH = "/proc/self/statm"


def _meminfo_mb(key: str, path: str = _MEMINFO_PATH) -> float:
    """Value of a /proc/meminfo line (reported in kB) converted to MB."""
    try:
        with open(path, encoding="ascii") as f:
            for line in f:
                if line.startswith(f"{key}:"):
                    fields = line.split()
                    if len(fields) >= 2:
                        return round2(float(fields[1]) / 1024)
    except (OSError, ValueError) as e:
        _log.debug("meminfo_unreadable", key=key, error=str(e))
    return 0.0


def total_memory_mb(path: str = _MEMINFO_PATH) -> float:
    return _meminfo_mb("MemTotal", path)


def available_memory_mb(path: str = _MEMINFO_PATH) -> float:
    return _meminfo_mb("MemAvailable", path)


def disk_stats(path: str = "/") -> Tuple[float, float, float]:
    """(total_gb, available_gb, usage_percent) for the filesystem holding `path`."""
    try:
        st = os.statvfs(path)
    except (OSError, AttributeError) as e:
        _log.debug("statvfs_failed", path=path, error=str(e))
        return 0.0, 0.0, 0.0

    total = st.f_blocks * st.f_frsize
    avail = st.f_bavail * st.f_frsize
    gib = 1024 ** 3
    usage = round2((total - avail) / total * 100) if total > 0 else 0.0
    return round2(total / gib), round2(avail / gib), usage


@lru_cache(maxsize=1)
def kernel_version() -> str:
    try:
        out = subprocess.run(
            ["uname", "-a"],
            capture_output=True,
            text=True,
            timeout=1.0,
            check=True,
        ).stdout.strip()
    except (OSError, subprocess.SubprocessError) as e:
        _log.debug("uname_failed", error=str(e))
        out = ""
    return out or "unknown"


def hostname() -> str:
    return socket.gethostname() or "unknown"


def max_rss_mb() -> float:
    """Peak resident set size of this process (Linux reports kB)."""
    try:
        import resource
    except ImportError:
        return 0.0
    kb = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform == "darwin":
        kb /= 1024
    return round2(kb / 1024)


def rss_mb(path: str = _STATM_PATH) -> float:
    """Current resident set size, from the second field of /proc/self/statm (pages)."""
    try:
        with open(path, encoding="ascii") as f:
            resident_pages = int(f.read().split()[1])
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError, AttributeError) as e:
        _log.debug("statm_unreadable", error=str(e))
        return 0.0
    return round2(resident_pages * page_size / (1024 * 1024))


def gc_collections() -> int:
    return sum(gen["collections"] for gen in gc.get_stats())


def collect_host_facts(disk_path: str = "/") -> Dict[str, Any]:
    """Everything host-level reported by /stats, as one flat dict."""
    total_gb, avail_gb, usage = disk_stats(disk_path)
    return {
        "hostname": hostname(),
        "os": sys.platform,
        "architecture": platform.machine() or "unknown",
        "num_cpu": os.cpu_count() or 0,
        "kernel_version": kernel_version(),
        "total_memory_mb": total_memory_mb(),
        "available_memory_mb": available_memory_mb(),
        "total_disk_gb": total_gb,
        "available_disk_gb": avail_gb,
        "disk_usage_percent": usage,
        "python_version": platform.python_version(),
        "threads": threading.active_count(),
        "memory_rss_mb": rss_mb(),
        "memory_max_rss_mb": max_rss_mb(),
        "num_gc": gc_collections(),
    }
