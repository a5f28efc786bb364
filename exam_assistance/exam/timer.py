from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


def format_remaining(seconds: int) -> str:
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


def is_low_time(seconds: int, threshold: int = 300) -> bool:
    return seconds < threshold


class CountdownTimer:
    """Counts whole seconds down on the running event loop.

    Fires ``on_expire`` once when the count reaches zero, then stops.
    """

    def __init__(
        self,
        total_seconds: int,
        *,
        on_expire: Callable[[], Awaitable[None]],
        interval: float = 1.0,
    ) -> None:
        self.remaining = max(0, int(total_seconds))
        self.interval = interval
        self.state = TimerState.IDLE
        self._on_expire = on_expire
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.state is TimerState.RUNNING

    def start(self) -> None:
        if self.state is not TimerState.IDLE:
            raise RuntimeError(f"timer cannot start from {self.state.value}")
        if self.remaining <= 0:
            raise ValueError("timer needs a positive duration")
        self.state = TimerState.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> bool:
        if self.state is not TimerState.RUNNING:
            return False
        self.state = TimerState.CANCELLED
        if self._task is not None:
            self._task.cancel()
        return True

    async def tick(self) -> None:
        if self.state is not TimerState.RUNNING:
            return
        self.remaining = max(0, self.remaining - 1)
        if self.remaining > 0:
            return
        # Mark expired before the callback so a cancel() from inside it
        # does not cancel the task that is running it.
        self.state = TimerState.EXPIRED
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        logger.info("countdown expired")
        await self._on_expire()

    async def wait(self) -> None:
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _run(self) -> None:
        while self.state is TimerState.RUNNING:
            await asyncio.sleep(self.interval)
            await self.tick()
