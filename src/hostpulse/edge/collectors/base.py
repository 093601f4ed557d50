"""Interfaces shared by the metrics collectors."""

from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable


class CollectionError(Exception):
    """Raised when a collector cannot produce a snapshot."""


@runtime_checkable
class MetricsSnapshot(Protocol):
    """An immutable snapshot of host state."""

    def to_dict(self) -> dict[str, Any]:
        ...


class MetricsProvider(Protocol):
    """Produces one snapshot per ``collect()`` call."""

    async def collect(self) -> MetricsSnapshot:
        ...


def utc_timestamp() -> str:
    """Current time as RFC 3339 UTC with second precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# Mountpoints that never hold the main filesystem
SKIP_MOUNT_PREFIXES = ("/System", "/dev")

# Loopback, tunnel and bridge interfaces
SKIP_INTERFACE_PREFIXES = ("lo", "utun", "awdl", "bridge")


def is_main_mount(mountpoint: str) -> bool:
    return not mountpoint.startswith(SKIP_MOUNT_PREFIXES)


def is_counted_interface(name: str, bytes_sent: int, bytes_recv: int) -> bool:
    if name.startswith(SKIP_INTERFACE_PREFIXES):
        return False
    return bytes_sent > 0 or bytes_recv > 0
