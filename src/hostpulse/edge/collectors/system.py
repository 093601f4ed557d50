"""
System Metrics Collector.

Collects a flat host snapshot: CPU, memory, main disk, network totals and
throughput, busiest process, temperature, battery and uptime.
"""

import asyncio
import platform
import socket
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional

import psutil

from .base import CollectionError, is_counted_interface, is_main_mount, utc_timestamp

GB = 1024 ** 3
MB = 1024 ** 2


@dataclass(frozen=True)
class NetworkSummary:
    """Aggregated network counters across counted interfaces."""
    bytes_sent: int = 0
    bytes_recv: int = 0
    interface: str = ""
    interface_bytes_sent: int = 0
    interface_bytes_recv: int = 0

    @property
    def connected(self) -> bool:
        return bool(self.interface)


@dataclass(frozen=True)
class HostMetrics:
    """Flat host metrics snapshot."""
    timestamp: str
    hostname: str
    platform: str
    cpu_percent: float
    load_avg_1: float
    memory_percent: float
    memory_used_gb: float
    memory_total_gb: float
    disk_percent: float
    disk_free_gb: float
    disk_total_gb: float
    network_sent_mb: float
    network_recv_mb: float
    network_sent_mbps: float
    network_recv_mbps: float
    top_process_name: str
    top_process_cpu: float
    total_processes: int
    temperature_celsius: float
    power_status: str
    battery_percent: float
    network_connected: bool
    network_interface: str
    uptime_seconds: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize_network(counters: dict) -> NetworkSummary:
    """Sum traffic over counted interfaces and pick the most active one."""
    total_sent = 0
    total_recv = 0
    active = ""
    active_sent = 0
    active_recv = 0

    for name, stats in counters.items():
        if not is_counted_interface(name, stats.bytes_sent, stats.bytes_recv):
            continue
        total_sent += stats.bytes_sent
        total_recv += stats.bytes_recv

        if not active or stats.bytes_sent > active_sent:
            active = name
            active_sent = stats.bytes_sent
            active_recv = stats.bytes_recv

    return NetworkSummary(
        bytes_sent=total_sent,
        bytes_recv=total_recv,
        interface=active,
        interface_bytes_sent=active_sent,
        interface_bytes_recv=active_recv,
    )


def pick_temperature(readings: dict) -> float:
    """Prefer a CPU/core reading; fall back to the first sensor."""
    first: Optional[float] = None
    for key, entries in readings.items():
        for entry in entries:
            if first is None:
                first = entry.current
            label = f"{key} {entry.label}".lower()
            if "cpu" in label or "core" in label or "temp" in label:
                return float(entry.current)
    return float(first) if first is not None else 0.0


def power_status(battery) -> tuple[str, float]:
    """Map a psutil battery reading to (status, percent)."""
    if battery is None:
        return "AC", 0.0

    percent = float(battery.percent)
    if battery.power_plugged is None:
        return "AC", percent
    if battery.power_plugged:
        return ("Full" if percent >= 100 else "Charging"), percent
    return "Battery", percent


class SystemCollector:
    """Collects the flat snapshot using psutil."""

    def __init__(self, cpu_sample_s: float = 1.0):
        """Initialize the system collector."""
        self.cpu_sample_s = cpu_sample_s
        self._last_net: Optional[NetworkSummary] = None
        self._last_net_time = 0.0

    async def collect(self) -> HostMetrics:
        """Collect all system metrics."""
        # Run blocking psutil calls in thread pool
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._collect)

    def _collect(self) -> HostMetrics:
        timestamp = utc_timestamp()

        try:
            hostname = socket.gethostname()
            boot_time = psutil.boot_time()
            cpu_percent = psutil.cpu_percent(interval=self.cpu_sample_s)
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"failed to read host counters: {e}") from e

        disk_percent, disk_free, disk_total = self._collect_disk()
        net = self._collect_network()
        sent_rate, recv_rate = self._network_rates(net)
        top_name, top_cpu, process_count = self._collect_processes()
        status, battery_percent = self._collect_battery()

        return HostMetrics(
            timestamp=timestamp,
            hostname=hostname,
            platform=_platform_name(),
            cpu_percent=cpu_percent,
            load_avg_1=_load_avg_1(),
            memory_percent=mem.percent,
            memory_used_gb=mem.used / GB,
            memory_total_gb=mem.total / GB,
            disk_percent=disk_percent,
            disk_free_gb=disk_free / GB,
            disk_total_gb=disk_total / GB,
            network_sent_mb=net.bytes_sent / MB,
            network_recv_mb=net.bytes_recv / MB,
            network_sent_mbps=sent_rate,
            network_recv_mbps=recv_rate,
            top_process_name=top_name,
            top_process_cpu=top_cpu,
            total_processes=process_count,
            temperature_celsius=self._collect_temperature(),
            power_status=status,
            battery_percent=battery_percent,
            network_connected=net.connected,
            network_interface=net.interface,
            uptime_seconds=max(0, int(time.time() - boot_time)),
        )

    def _collect_disk(self) -> tuple[float, int, int]:
        """Usage of the main partition."""
        try:
            partitions = psutil.disk_partitions(all=False)
        except OSError:
            return 0.0, 0, 0

        for partition in partitions:
            if not is_main_mount(partition.mountpoint):
                continue
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError:
                continue
            return usage.percent, usage.free, usage.total

        return 0.0, 0, 0

    def _collect_network(self) -> NetworkSummary:
        try:
            counters = psutil.net_io_counters(pernic=True)
        except OSError:
            return NetworkSummary()
        return summarize_network(counters)

    def _network_rates(self, net: NetworkSummary) -> tuple[float, float]:
        """MB/s on the active interface since the previous sample."""
        now = time.monotonic()
        last, last_time = self._last_net, self._last_net_time
        self._last_net, self._last_net_time = net, now

        if last is None or last.interface != net.interface or now <= last_time:
            return 0.0, 0.0

        elapsed = now - last_time
        sent = max(0, net.interface_bytes_sent - last.interface_bytes_sent)
        recv = max(0, net.interface_bytes_recv - last.interface_bytes_recv)
        return sent / MB / elapsed, recv / MB / elapsed

    def _collect_processes(self) -> tuple[str, float, int]:
        """Busiest process by CPU and the total process count."""
        top_name = ""
        top_cpu = 0.0
        count = 0

        for proc in psutil.process_iter(["name", "cpu_percent"]):
            count += 1
            info = proc.info
            cpu = info.get("cpu_percent")
            if cpu is None or not info.get("name"):
                continue
            if cpu > top_cpu:
                top_cpu = cpu
                top_name = info["name"]

        return top_name, top_cpu, count

    def _collect_temperature(self) -> float:
        # Not available on every platform
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            return 0.0
        try:
            return pick_temperature(sensors() or {})
        except OSError:
            return 0.0

    def _collect_battery(self) -> tuple[str, float]:
        sensors = getattr(psutil, "sensors_battery", None)
        if sensors is None:
            return "AC", 0.0
        try:
            return power_status(sensors())
        except OSError:
            return "AC", 0.0


def _load_avg_1() -> float:
    try:
        return psutil.getloadavg()[0]
    except (AttributeError, OSError):
        return 0.0


def _platform_name() -> str:
    """Distribution id on Linux, lowercased OS name elsewhere."""
    system = platform.system().lower()
    if system == "linux":
        try:
            return platform.freedesktop_os_release().get("ID", system)
        except OSError:
            return system
    return system
