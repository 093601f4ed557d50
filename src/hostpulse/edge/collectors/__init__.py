"""
hostpulse collectors.

Each collector produces one immutable snapshot of host state per call.
"""

from .base import CollectionError, MetricsProvider, MetricsSnapshot
from .structured import HostInventory, StructuredCollector
from .system import HostMetrics, SystemCollector


def build_collector(schema: str = "flat", cpu_sample_s: float = 1.0) -> MetricsProvider:
    """Return the collector for a snapshot schema."""
    if schema == "flat":
        return SystemCollector(cpu_sample_s=cpu_sample_s)
    if schema == "structured":
        return StructuredCollector(cpu_sample_s=cpu_sample_s)
    raise ValueError(f"unknown snapshot schema: {schema!r}")


__all__ = [
    "CollectionError",
    "MetricsProvider",
    "MetricsSnapshot",
    "HostInventory",
    "HostMetrics",
    "StructuredCollector",
    "SystemCollector",
    "build_collector",
]
