"""
Host Service Package: OS, memory, disk and interpreter facts for /stats.
"""

from services.host_service.host_info import collect_host_facts

__all__ = ["collect_host_facts"]
