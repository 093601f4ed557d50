from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from hostpulse.edge.config import AgentConfig, CollectorConfig, DeliveryConfig
from hostpulse.edge.sender import DeliveryResult, Outcome, classify, encode_snapshot


@dataclass(frozen=True)
class FakeSnapshot:
    hostname: str = "node-1"
    cpu_percent: float = 12.5
    extra: dict = field(default_factory=lambda: {"b": 2, "a": 1})

    def to_dict(self) -> dict[str, Any]:
        return {"hostname": self.hostname, "cpu_percent": self.cpu_percent, "extra": dict(self.extra)}


def status(code: int, body: str = "") -> DeliveryResult:
    return DeliveryResult(outcome=classify(code), status_code=code, body=body)


def transport_error(message: str = "connection refused") -> DeliveryResult:
    return DeliveryResult(outcome=Outcome.RETRYABLE, error=message)


class ScriptedClient:
    """Delivery client that replays canned results and records payloads."""

    def __init__(self, results: list[DeliveryResult]) -> None:
        self.results = list(results)
        self.payloads: list[bytes] = []
        self.encoded = 0
        self.closed = False

    def encode(self, snapshot) -> bytes:
        self.encoded += 1
        return encode_snapshot(snapshot)

    async def post(self, payload: bytes) -> DeliveryResult:
        self.payloads.append(payload)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]

    async def close(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class StaticCollector:
    def __init__(self, snapshot=None) -> None:
        self.snapshot = snapshot or FakeSnapshot()
        self.calls = 0

    async def collect(self):
        self.calls += 1
        return self.snapshot


def make_config(
    *,
    interval: str = "1s",
    max_retries: int = 3,
    initial_delay: str = "1s",
    timeout: str = "5s",
) -> AgentConfig:
    return AgentConfig(
        collector=CollectorConfig(interval=interval, max_retries=max_retries, initial_delay=initial_delay),
        delivery=DeliveryConfig(endpoint="http://collector.invalid/metrics", auth_token="secret", timeout=timeout),
    ).validate()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ("CONFIG_PATH", "ENDPOINT", "AUTH_TOKEN", "LOG_LEVEL", "LOG_FILE"):
        monkeypatch.delenv(f"HOSTPULSE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
