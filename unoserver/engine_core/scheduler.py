"""
Scheduler - Cancellable one-shot callbacks for match timers.

The engine never sleeps. It asks a Scheduler to call it back later
(bot moves, the UNO grace window, the turn timeout) and keeps the handle
so it can cancel. Callbacks must re-check state when they fire.

Two implementations:
- AsyncioScheduler: production, backed by the running event loop
- ManualScheduler: a virtual clock, advanced explicitly (tests, simulation)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable
import asyncio
import heapq
import itertools
import time


class TimerHandle(ABC):
    """A pending callback that can be cancelled."""

    @abstractmethod
    def cancel(self):
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """Interface the engine uses for time."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay seconds."""
        pass

    def call_soon(self, callback: Callable[[], None]) -> TimerHandle:
        """Run callback as soon as possible, after the caller returns."""
        return self.call_later(0, callback)

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""
        pass


class _AsyncioHandle(TimerHandle):

    def __init__(self, handle: asyncio.Handle):
        self._handle = handle

    def cancel(self):
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """
    Scheduler on top of an asyncio event loop.

    If no loop is given, the loop running at call time is used, so the
    scheduler can be built before the server starts.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioHandle(self.loop.call_later(delay, callback))

    def call_soon(self, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioHandle(self.loop.call_soon(callback))

    def now(self) -> float:
        return time.time()


@dataclass(order=True)
class _ManualTimer(TimerHandle):
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    _cancelled: bool = field(default=False, compare=False)

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Deterministic virtual clock.

    Usage:
        scheduler = ManualScheduler()
        engine = MatchEngine("1234", scheduler=scheduler)
        ...
        scheduler.advance(30)   # fires the turn timeout
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[_ManualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(due=self._now + max(delay, 0), seq=next(self._seq), callback=callback)
        heapq.heappush(self._queue, timer)
        return timer

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of live timers."""
        return sum(1 for t in self._queue if not t.cancelled)

    def next_due(self) -> float | None:
        """When the next live timer fires, None if nothing is pending."""
        self._drop_cancelled()
        return self._queue[0].due if self._queue else None

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing everything that falls due.

        Callbacks scheduled while advancing also fire if they fall inside
        the window. Returns the number of callbacks run.
        """
        target = self._now + seconds
        fired = 0
        while True:
            self._drop_cancelled()
            if not self._queue or self._queue[0].due > target:
                break
            timer = heapq.heappop(self._queue)
            self._now = max(self._now, timer.due)
            timer.callback()
            fired += 1
        self._now = target
        return fired

    def run_pending(self) -> int:
        """Fire everything already due without moving the clock."""
        return self.advance(0)

    def run_next(self) -> bool:
        """Jump to the next live timer and fire it (and anything due with it)."""
        due = self.next_due()
        if due is None:
            return False
        self.advance(due - self._now)
        return True

    def _drop_cancelled(self):
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
