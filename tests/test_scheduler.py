from __future__ import annotations

import asyncio
import signal
import sys
import time

import pytest

from conftest import ScriptedClient, StaticCollector, make_config, status
from hostpulse.edge.agent import AgentContext, CycleRunner, CycleStatus, PushAgent, Scheduler
from hostpulse.edge.collectors import CollectionError


class _CountingRunner:
    """Stands in for CycleRunner; stops the scheduler after ``stop_after`` cycles."""

    def __init__(self, stop_after: int, cycle_s: float = 0.0) -> None:
        self.stop_after = stop_after
        self.cycle_s = cycle_s
        self.started: list[int] = []
        self.finished: list[int] = []
        self.scheduler: Scheduler | None = None

    async def run_once(self, cycle: int = 1):
        self.started.append(cycle)
        if cycle >= self.stop_after:
            self.scheduler.request_stop()
        await asyncio.sleep(self.cycle_s)
        self.finished.append(cycle)


def _scheduler(runner, interval: float = 0.01, **kwargs) -> Scheduler:
    scheduler = Scheduler(runner, interval=interval, install_signal_handlers=False, **kwargs)
    runner.scheduler = scheduler
    return scheduler


def test_stop_while_armed_runs_no_cycles() -> None:
    runner = _CountingRunner(stop_after=1)
    scheduler = _scheduler(runner, interval=60.0)
    scheduler.request_stop()

    started = time.monotonic()
    code = asyncio.run(scheduler.run())

    assert code == 0
    assert runner.started == []
    assert time.monotonic() - started < 5.0


def test_runs_cycles_until_stopped() -> None:
    runner = _CountingRunner(stop_after=3)

    code = asyncio.run(_scheduler(runner).run())

    assert code == 0
    assert runner.started == [1, 2, 3]
    assert runner.finished == [1, 2, 3]


def test_stop_during_cycle_lets_it_finish() -> None:
    runner = _CountingRunner(stop_after=1, cycle_s=0.05)

    code = asyncio.run(_scheduler(runner).run())

    assert code == 0
    assert runner.started == [1]
    assert runner.finished == [1]


def test_stop_from_another_task_interrupts_the_tick_wait() -> None:
    runner = _CountingRunner(stop_after=1000)
    scheduler = _scheduler(runner, interval=60.0)

    async def go():
        task = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)
        scheduler.request_stop()
        return await asyncio.wait_for(task, timeout=5.0)

    assert asyncio.run(go()) == 0
    assert runner.started == []


def test_next_deadline_stays_on_grid() -> None:
    scheduler = Scheduler(_CountingRunner(1), interval=10.0, install_signal_handlers=False)

    # On time: next tick one interval later
    assert scheduler._next_deadline(10.0, 12.0) == 20.0
    # Overran exactly to the next tick: fire immediately
    assert scheduler._next_deadline(10.0, 20.0) == 20.0
    # Overran several ticks: one catch-up tick, rest dropped
    assert scheduler._next_deadline(10.0, 35.0) == 30.0
    assert scheduler._next_deadline(30.0, 36.0) == 40.0


def test_failed_cycles_do_not_stop_scheduling(sleeper) -> None:
    class _FlakyCollector(StaticCollector):
        async def collect(self):
            self.calls += 1
            if self.calls == 1:
                raise CollectionError("sensors unavailable")
            if self.calls == 2:
                raise ZeroDivisionError("bad reading")
            return self.snapshot

    context = AgentContext.from_config(
        make_config(), collector=_FlakyCollector(), client=ScriptedClient([status(200)])
    )
    inner = CycleRunner(context, sleep=sleeper)
    statuses = []

    class _Recorder:
        scheduler = None

        async def run_once(self, cycle: int = 1):
            result = await inner.run_once(cycle)
            statuses.append(result.status)
            if cycle == 3:
                self.scheduler.request_stop()
            return result

    assert asyncio.run(_scheduler(_Recorder()).run()) == 0
    assert statuses == [CycleStatus.COLLECTION_FAILED, CycleStatus.INTERNAL_FAULT, CycleStatus.DELIVERED]


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need a Unix event loop")
def test_sigterm_stops_after_current_cycle() -> None:
    class _SignallingRunner(_CountingRunner):
        async def run_once(self, cycle: int = 1):
            self.started.append(cycle)
            signal.raise_signal(signal.SIGTERM)
            await asyncio.sleep(0.05)
            self.finished.append(cycle)

    runner = _SignallingRunner(stop_after=1000)
    scheduler = Scheduler(runner, interval=0.01)

    assert asyncio.run(scheduler.run()) == 0
    assert runner.started == [1]
    assert runner.finished == [1]


def test_push_agent_closes_client_on_exit() -> None:
    client = ScriptedClient([status(200)])
    agent = PushAgent(make_config(), collector=StaticCollector(), client=client)

    result = asyncio.run(agent.run_once())

    assert result.status is CycleStatus.DELIVERED
    assert client.closed is True


def test_push_agent_start_returns_zero_when_stopped() -> None:
    client = ScriptedClient([status(200)])
    agent = PushAgent(make_config(interval="10ms"), collector=StaticCollector(), client=client)
    agent.scheduler._install_signal_handlers = False
    agent.stop()

    assert asyncio.run(agent.start()) == 0
    assert client.closed is True
    assert client.payloads == []
