"""Per-question countdown with single-fire expiry."""
from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable

from assessment.config import PER_QUESTION_SECONDS, TIMER_TICK_SECONDS

log = logging.getLogger(__name__)


class TimerState(str, enum.Enum):
    """Lifecycle of the countdown for the current question."""

    IDLE = "idle"
    RUNNING = "running"
    FIRED = "fired"
    STOPPED = "stopped"


class QuestionTimer:
    """
    Counts down once per tick and calls ``on_expire`` at zero.

    ``FIRED`` is entered before the callback runs and is only left by
    ``reset`` to a positive duration, so the callback runs at most once per
    question no matter how often expiry is reached.
    """

    def __init__(
        self,
        on_expire: Callable[[], Awaitable[None]],
        duration_seconds: int = PER_QUESTION_SECONDS,
        tick_seconds: float = TIMER_TICK_SECONDS,
        on_tick: Callable[[int], None] | None = None,
    ):
        self._on_expire = on_expire
        self._on_tick = on_tick
        self.duration_seconds = duration_seconds
        self.tick_seconds = tick_seconds
        self.remaining = 0
        self.state = TimerState.IDLE
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.state is TimerState.RUNNING

    def reset(self, seconds: int | None = None) -> None:
        """Restart the countdown for a new (or restored) question."""
        self._cancel_task()
        self.remaining = self.duration_seconds if seconds is None else seconds
        if self.remaining <= 0:
            self.state = TimerState.IDLE
            return
        self.state = TimerState.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Stop ticking; a stopped timer never fires."""
        self._cancel_task()
        if self.state is not TimerState.FIRED:
            self.state = TimerState.STOPPED

    def tick(self) -> bool:
        """Advance one tick. Returns True when the countdown reached zero."""
        if self.state is not TimerState.RUNNING:
            return False
        self.remaining = max(0, self.remaining - 1)
        if self._on_tick is not None:
            self._on_tick(self.remaining)
        return self.remaining == 0

    async def expire(self) -> bool:
        """Fire the expiry callback unless it already fired for this question."""
        if self.state is not TimerState.RUNNING:
            log.debug("Timer expiry ignored in state %s", self.state.value)
            return False
        self.state = TimerState.FIRED
        self.remaining = 0
        log.info("Question timer expired")
        await self._on_expire()
        return True

    async def _run(self) -> None:
        try:
            while self.state is TimerState.RUNNING:
                await asyncio.sleep(self.tick_seconds)
                if self.tick():
                    await self.expire()
                    return
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Timer expiry callback failed")

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # the expiry callback may reset the timer from inside the task itself
        if task is not current:
            task.cancel()
