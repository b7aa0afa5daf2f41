import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from slack_cheers.scheduler import Scheduler

FIXED_NOW = datetime(2025, 6, 14, 9, 0, tzinfo=timezone.utc)


@dataclass
class FakeCelebrations:
    calls: List[datetime] = field(default_factory=list)
    started_at: List[float] = field(default_factory=list)
    fail: bool = False
    delay: float = 0.0

    async def run_due_celebrations(self, now=None):
        self.calls.append(now)
        self.started_at.append(asyncio.get_running_loop().time())
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("database unavailable")
        return []


def test_scheduler_ticks_with_clock_time() -> None:
    service = FakeCelebrations()

    async def scenario() -> None:
        scheduler = Scheduler(service, poll_interval=0.01, clock=lambda: FIXED_NOW)
        scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()
        assert not scheduler.running

    asyncio.run(scenario())
    assert len(service.calls) >= 2
    assert set(service.calls) == {FIXED_NOW}


def test_tick_errors_do_not_stop_the_loop() -> None:
    service = FakeCelebrations(fail=True)

    async def scenario() -> None:
        scheduler = Scheduler(service, poll_interval=0.01, clock=lambda: FIXED_NOW)
        scheduler.start()
        await asyncio.sleep(0.1)
        assert scheduler.running
        await scheduler.stop()

    asyncio.run(scenario())
    assert len(service.calls) >= 2


def test_stop_returns_promptly_and_starts_no_new_tick() -> None:
    service = FakeCelebrations()

    async def scenario() -> float:
        scheduler = Scheduler(service, poll_interval=60.0, clock=lambda: FIXED_NOW)
        scheduler.start()
        await asyncio.sleep(0)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await scheduler.stop()
        return loop.time() - started

    elapsed = asyncio.run(scenario())
    assert elapsed < 1.0
    assert service.calls == []


def test_stop_does_not_wait_forever_for_a_slow_tick() -> None:
    service = FakeCelebrations(delay=5.0)

    async def scenario() -> float:
        scheduler = Scheduler(service, poll_interval=0.01, clock=lambda: FIXED_NOW)
        scheduler.start()
        await asyncio.sleep(0.05)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await scheduler.stop(timeout=0.1)
        return loop.time() - started

    elapsed = asyncio.run(scenario())
    assert elapsed < 1.0
    assert len(service.calls) == 1


def test_tick_duration_does_not_stretch_the_period() -> None:
    service = FakeCelebrations(delay=0.05)

    async def scenario() -> None:
        scheduler = Scheduler(service, poll_interval=0.2, clock=lambda: FIXED_NOW)
        scheduler.start()
        await asyncio.sleep(1.1)
        await scheduler.stop()

    asyncio.run(scenario())
    starts = service.started_at
    assert len(starts) >= 4
    average_gap = (starts[-1] - starts[0]) / (len(starts) - 1)
    assert average_gap < 0.23
