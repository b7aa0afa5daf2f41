"""Background loop that dispatches due celebration channels."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .celebration import CelebrationService

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Polls for due channels every ``poll_interval`` seconds.

    Ticks run at a fixed rate measured from start, so the time a tick takes
    does not push later ticks back. Ticks never overlap. ``stop()`` lets an
    in-flight tick finish but starts no new one.
    """

    def __init__(
        self,
        service: CelebrationService,
        poll_interval: float = 60.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.service = service
        self.poll_interval = poll_interval
        self.clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        try:
            await self.service.run_due_celebrations(self.clock())
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Scheduler tick failed: %s", exc)

    async def run(self) -> None:
        LOGGER.info("Scheduler started (poll interval %ss)", self.poll_interval)
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.poll_interval
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, next_at - loop.time()))
            except asyncio.TimeoutError:
                await self.tick()
                next_at += self.poll_interval
                # Slots missed by a long tick are dropped.
                if next_at < loop.time():
                    next_at = loop.time()
        LOGGER.info("Scheduler stopped")

    def start(self) -> asyncio.Task[None]:
        self._stop.clear()
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self, timeout: Optional[float] = 10.0) -> None:
        self._stop.set()
        if self._task is None:
            return
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        if not done:
            LOGGER.warning("Scheduler tick still running after %ss; not waiting further", timeout)
        self._task = None


__all__ = ["Scheduler"]
