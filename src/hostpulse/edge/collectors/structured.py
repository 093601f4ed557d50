"""
Structured Host Collector.

Collects a nested host inventory grouped by subsystem (OS, CPU, memory,
disk, network). Unlike the flat collector, any subsystem failure aborts
the snapshot.
"""

import asyncio
import platform
import socket
import time
from dataclasses import asdict, dataclass
from typing import Any

import psutil

from .base import CollectionError, is_counted_interface, is_main_mount, utc_timestamp


@dataclass(frozen=True)
class OSInfo:
    hostname: str
    platform: str
    platform_version: str
    arch: str
    uptime_seconds: int


@dataclass(frozen=True)
class CPUInfo:
    percent: float
    cores: int
    model: str
    mhz: float


@dataclass(frozen=True)
class MemInfo:
    total_bytes: int
    used_bytes: int
    used_percent: float


@dataclass(frozen=True)
class DiskInfo:
    mountpoint: str
    total_bytes: int
    used_bytes: int
    used_percent: float


@dataclass(frozen=True)
class NetInfo:
    total_bytes_sent: int
    total_bytes_recv: int


@dataclass(frozen=True)
class HostInventory:
    """Nested host snapshot."""
    timestamp: str
    os: OSInfo
    cpu: CPUInfo
    memory: MemInfo
    disk: tuple[DiskInfo, ...]
    network: NetInfo

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["disk"] = list(data["disk"])
        return data


class StructuredCollector:
    """Collects the nested inventory using psutil."""

    def __init__(self, cpu_sample_s: float = 1.0):
        self.cpu_sample_s = cpu_sample_s

    async def collect(self) -> HostInventory:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._collect)

    def _collect(self) -> HostInventory:
        timestamp = utc_timestamp()
        try:
            return HostInventory(
                timestamp=timestamp,
                os=self._collect_os(),
                cpu=self._collect_cpu(),
                memory=self._collect_memory(),
                disk=self._collect_disk(),
                network=self._collect_network(),
            )
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"failed to read host inventory: {e}") from e

    def _collect_os(self) -> OSInfo:
        uname = platform.uname()
        return OSInfo(
            hostname=socket.gethostname(),
            platform=uname.system.lower(),
            platform_version=uname.release,
            arch=uname.machine,
            uptime_seconds=max(0, int(time.time() - psutil.boot_time())),
        )

    def _collect_cpu(self) -> CPUInfo:
        freq = psutil.cpu_freq()
        return CPUInfo(
            percent=psutil.cpu_percent(interval=self.cpu_sample_s),
            cores=psutil.cpu_count(logical=False) or psutil.cpu_count() or 0,
            model=_cpu_model(),
            mhz=freq.current if freq else 0.0,
        )

    def _collect_memory(self) -> MemInfo:
        mem = psutil.virtual_memory()
        return MemInfo(
            total_bytes=mem.total,
            used_bytes=mem.used,
            used_percent=mem.percent,
        )

    def _collect_disk(self) -> tuple[DiskInfo, ...]:
        """Main mount only."""
        for partition in psutil.disk_partitions(all=False):
            if not is_main_mount(partition.mountpoint):
                continue
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError:
                continue
            return (
                DiskInfo(
                    mountpoint=partition.mountpoint,
                    total_bytes=usage.total,
                    used_bytes=usage.used,
                    used_percent=usage.percent,
                ),
            )
        return ()

    def _collect_network(self) -> NetInfo:
        sent = 0
        recv = 0
        for name, stats in psutil.net_io_counters(pernic=True).items():
            if is_counted_interface(name, stats.bytes_sent, stats.bytes_recv):
                sent += stats.bytes_sent
                recv += stats.bytes_recv
        return NetInfo(total_bytes_sent=sent, total_bytes_recv=recv)


def _cpu_model() -> str:
    model = platform.processor()
    if model:
        return model
    try:
        with open("/proc/cpuinfo") as f:
            for line in f:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return ""
