"""
Deferred continuations for the game engine.

The engine never sleeps. Anything that happens "after a short delay"
(revealing the first card, finishing a turn, the CPU thinking) is scheduled
as a callback on a scheduler:

    ManualScheduler   - virtual clock, advanced explicitly. Used by tests and
                        the headless simulator so games are reproducible.
    AsyncioScheduler  - real timers on the running event loop. Used by the
                        WebSocket server.

Both expose the same interface: call_later(delay, callback) -> TimerHandle.
A continuation always runs after the action that scheduled it, never during.
"""

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class TimerHandle:
    """A pending continuation. Cancelling it prevents the callback from running."""

    due: float
    callback: Callable[[], None]
    cancelled: bool = False
    _loop_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if self._loop_handle is not None:
            self._loop_handle.cancel()


class ManualScheduler:
    """
    Scheduler driven by an explicit virtual clock.

    Callbacks due at the same time run in the order they were scheduled.
    Callbacks may schedule further callbacks; those run on a later advance
    or within the same run_until_idle() call.
    """

    def __init__(self) -> None:
        self.now: float = 0.0
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(due=self.now + max(0.0, delay), callback=callback)
        heapq.heappush(self._queue, (handle.due, next(self._counter), handle))
        return handle

    def pending_count(self) -> int:
        """Number of scheduled, not-cancelled continuations."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and run everything that became due.

        Returns:
            Number of callbacks executed.
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        self.now = target
        return ran

    def run_until_idle(self, max_callbacks: int = 100_000) -> int:
        """
        Run callbacks in due order until nothing is pending.

        Raises:
            RuntimeError: If more than max_callbacks run (a runaway loop).
        """
        ran = 0
        while self._queue:
            due, _, handle = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
            if ran > max_callbacks:
                raise RuntimeError(f"Scheduler did not go idle after {max_callbacks} callbacks")
        return ran

    def run_next(self) -> bool:
        """Run the next pending callback. Returns False if nothing was pending."""
        while self._queue:
            due, _, handle = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.callback()
            return True
        return False


class AsyncioScheduler:
    """
    Scheduler backed by the asyncio event loop.

    Must be used from code running inside the loop (WebSocket handlers and
    the continuations themselves).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(due=self.loop.time() + max(0.0, delay), callback=callback)
        handle._loop_handle = self.loop.call_later(max(0.0, delay), self._run, handle)
        return handle

    @staticmethod
    def _run(handle: TimerHandle) -> None:
        if handle.cancelled:
            return
        try:
            handle.callback()
        except Exception:
            logger.exception("Scheduled continuation failed")
