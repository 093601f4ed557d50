"""
hostpulse Agent - Main Daemon.

Fires one collect-and-deliver cycle per interval until a termination
signal arrives. Cycles run strictly one at a time.
"""

import asyncio
import logging
import signal
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .collectors import CollectionError, MetricsProvider, build_collector
from .config import AgentConfig
from .retry import DeliveryClient, DeliveryReport, RetryController, worst_case_duration
from .sender import CollectorClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentContext:
    """Everything a cycle needs, built once at startup."""
    config: AgentConfig
    logger: logging.Logger
    collector: MetricsProvider
    client: DeliveryClient

    @classmethod
    def from_config(
        cls,
        config: AgentConfig,
        log: Optional[logging.Logger] = None,
        collector: Optional[MetricsProvider] = None,
        client: Optional[DeliveryClient] = None,
    ) -> "AgentContext":
        if collector is None:
            collector = build_collector(config.collector.schema)
        if client is None:
            client = CollectorClient(
                endpoint=config.delivery.endpoint,
                auth_token=config.delivery.auth_token,
                timeout=config.delivery.timeout_seconds,
            )
        return cls(
            config=config,
            logger=log or logger,
            collector=collector,
            client=client,
        )


class CycleStatus(Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"
    COLLECTION_FAILED = "collection_failed"
    INTERNAL_FAULT = "internal_fault"


@dataclass
class CycleResult:
    cycle: int
    status: CycleStatus
    report: Optional[DeliveryReport] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is CycleStatus.DELIVERED


class CycleRunner:
    """Runs one collect-then-deliver cycle behind a failure boundary."""

    def __init__(self, context: AgentContext, sleep=asyncio.sleep):
        self.context = context
        self.logger = context.logger
        self.retry = RetryController(
            client=context.client,
            max_retries=context.config.collector.max_retries,
            initial_delay=context.config.collector.initial_delay_seconds,
            log=context.logger,
            sleep=sleep,
        )

    async def run_once(self, cycle: int = 1) -> CycleResult:
        """Execute one cycle; never raises except on cancellation."""
        try:
            return await self._run(cycle)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # One bad cycle must never take down the agent
            self.logger.exception(f"Cycle {cycle} aborted by internal fault: {e!r}")
            return CycleResult(cycle=cycle, status=CycleStatus.INTERNAL_FAULT, error=repr(e))

    async def _run(self, cycle: int) -> CycleResult:
        try:
            snapshot = await self.context.collector.collect()
        except CollectionError as e:
            self.logger.error(f"Cycle {cycle}: failed to collect metrics: {e}")
            return CycleResult(cycle=cycle, status=CycleStatus.COLLECTION_FAILED, error=str(e))

        report = await self.retry.deliver(snapshot)
        return CycleResult(cycle=cycle, status=CycleStatus(report.status.value), report=report)


class Scheduler:
    """
    Fixed-rate cycle trigger.

    States: armed (waiting for a tick or a stop request), running (a cycle
    is in flight) and terminating. A stop request is only observed while
    armed; an in-flight cycle, including its backoff sleeps, always runs to
    completion, so shutdown can take up to one full cycle.

    Ticks stay on the grid ``start + k * interval``. Ticks missed while a
    cycle overruns collapse into one tick fired as soon as it finishes.
    """

    def __init__(
        self,
        runner: CycleRunner,
        interval: float,
        log: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
        install_signal_handlers: bool = True,
    ):
        self.runner = runner
        self.interval = interval
        self.logger = log or logger
        self._clock = clock
        self._install_signal_handlers = install_signal_handlers

        self._stop: Optional[asyncio.Event] = None
        self._stop_requested = False
        self.cycles = 0

    def request_stop(self, sig: Optional[signal.Signals] = None) -> None:
        """Ask the loop to exit at the next cycle boundary."""
        if not self._stop_requested:
            if sig is not None:
                self.logger.info(f"Received signal {sig.name}, shutting down gracefully...")
            else:
                self.logger.info("Stop requested, shutting down gracefully...")
        self._stop_requested = True
        if self._stop is not None:
            self._stop.set()

    async def run(self) -> int:
        """Run until stopped; returns the process exit status."""
        self._stop = asyncio.Event()
        if self._stop_requested:
            self._stop.set()

        loop = asyncio.get_running_loop()
        installed = self._setup_signals(loop) if self._install_signal_handlers else []

        self.logger.info(f"Scheduler started, interval {self.interval:g}s")

        try:
            deadline = self._clock() + self.interval
            while True:
                if await self._wait_for_stop(deadline - self._clock()):
                    break

                self.cycles += 1
                await self.runner.run_once(self.cycles)

                deadline = self._next_deadline(deadline, self._clock())
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

        self.logger.info(f"Scheduler stopped after {self.cycles} cycle(s)")
        return 0

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Block until the next tick (False) or a stop request (True)."""
        if self._stop.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, timeout))
        except asyncio.TimeoutError:
            return self._stop.is_set()
        return True

    def _next_deadline(self, deadline: float, now: float) -> float:
        deadline += self.interval
        if deadline < now:
            missed = int((now - deadline) // self.interval)
            if missed:
                self.logger.debug(f"Cycle overran, dropping {missed} tick(s)")
            deadline += missed * self.interval
        return deadline

    def _setup_signals(self, loop: asyncio.AbstractEventLoop) -> list:
        installed = []
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.request_stop, sig)
            except (NotImplementedError, RuntimeError):
                # Windows, or not running in the main thread
                continue
            installed.append(sig)
        return installed


class PushAgent:
    """
    Main agent daemon.

    Wires the collector, delivery client, cycle runner and scheduler from
    one configuration.
    """

    def __init__(
        self,
        config: AgentConfig,
        log: Optional[logging.Logger] = None,
        collector: Optional[MetricsProvider] = None,
        client: Optional[DeliveryClient] = None,
    ):
        """Initialize the agent."""
        self.context = AgentContext.from_config(config, log=log, collector=collector, client=client)
        self.logger = self.context.logger
        self.runner = CycleRunner(self.context)
        self.scheduler = Scheduler(
            self.runner,
            interval=config.collector.interval_seconds,
            log=self.logger,
        )

    async def start(self) -> int:
        """Run the scheduler until a termination signal arrives."""
        config = self.context.config
        bound = worst_case_duration(
            config.collector.max_retries,
            config.collector.initial_delay_seconds,
            config.delivery.timeout_seconds,
        )
        self.logger.info(f"Starting hostpulse agent, pushing to {config.delivery.endpoint}")
        self.logger.info(
            f"Schema {config.collector.schema}, max_retries {config.collector.max_retries}, "
            f"worst-case shutdown delay {bound:g}s"
        )

        try:
            return await self.scheduler.run()
        finally:
            await self.close()
            self.logger.info("hostpulse agent stopped")

    async def run_once(self) -> CycleResult:
        """Run a single cycle without the scheduler."""
        try:
            return await self.runner.run_once()
        finally:
            await self.close()

    def stop(self) -> None:
        self.scheduler.request_stop()

    async def close(self) -> None:
        close = getattr(self.context.client, "close", None)
        if close is not None:
            await close()


def run_agent(config: AgentConfig, log: Optional[logging.Logger] = None) -> int:
    """Run the agent to completion and return the exit status."""
    agent = PushAgent(config, log=log)
    try:
        return asyncio.run(agent.start())
    except KeyboardInterrupt:
        return 0
