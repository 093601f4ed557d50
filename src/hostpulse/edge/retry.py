"""
Retry/Backoff Controller.

Drives the attempt sequence for one snapshot: pure exponential backoff
(no jitter, no cap), stopping early on success or on a fatal status.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from .collectors.base import MetricsSnapshot
from .sender import DeliveryResult, Outcome

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class DeliveryClient(Protocol):
    def encode(self, snapshot: MetricsSnapshot) -> bytes:
        ...

    async def post(self, payload: bytes) -> DeliveryResult:
        ...


class DeliveryStatus(Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"


@dataclass
class DeliveryReport:
    """What happened to one snapshot."""
    status: DeliveryStatus
    attempts: list[DeliveryResult] = field(default_factory=list)
    delays: list[float] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


def worst_case_duration(max_retries: int, initial_delay: float, timeout: float) -> float:
    """Upper bound on how long one delivery can take.

    Every attempt times out and every backoff is slept; there is no sleep
    after the final attempt.
    """
    if max_retries <= 0:
        return 0.0
    return initial_delay * (2 ** (max_retries - 1) - 1) + max_retries * timeout


class RetryController:
    """Delivers a snapshot with up to ``max_retries`` attempts."""

    def __init__(
        self,
        client: DeliveryClient,
        max_retries: int,
        initial_delay: float,
        log: Optional[logging.Logger] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.client = client
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.logger = log or logger
        self._sleep = sleep

    async def deliver(self, snapshot: MetricsSnapshot) -> DeliveryReport:
        report = DeliveryReport(status=DeliveryStatus.SKIPPED)

        if self.max_retries <= 0:
            self.logger.warning("Delivery skipped: max_retries is 0, no attempts made")
            return report

        # Encoded once so every attempt sends the same bytes
        payload = self.client.encode(snapshot)
        delay = self.initial_delay
        attempt = 0

        while True:
            result = await self.client.post(payload)
            report.attempts.append(result)

            if result.outcome is Outcome.SUCCESS:
                report.status = DeliveryStatus.DELIVERED
                self.logger.info(
                    f"Metrics delivered (status {result.status_code}, "
                    f"attempt {attempt + 1}/{self.max_retries})"
                )
                return report

            if result.outcome is Outcome.FATAL:
                report.status = DeliveryStatus.REJECTED
                self.logger.error(f"Delivery rejected, not retrying: {result.describe()}")
                return report

            self.logger.warning(
                f"Delivery attempt {attempt + 1}/{self.max_retries} failed: {result.describe()}"
            )

            if attempt + 1 >= self.max_retries:
                report.status = DeliveryStatus.EXHAUSTED
                self.logger.error(
                    f"Delivery failed: all {self.max_retries} attempts exhausted, dropping snapshot"
                )
                return report

            self.logger.debug(f"Backing off {delay:g}s before attempt {attempt + 2}")
            await self._sleep(delay)
            report.delays.append(delay)
            delay *= 2
            attempt += 1
