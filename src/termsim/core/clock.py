"""Time sources for the interpreter's frame loop.

All animation pacing goes through a Clock, so the interpreter never calls
``time`` or ``asyncio.sleep`` directly:

- SystemClock: wall-clock time on the running asyncio loop.
- VirtualClock: a queue of pending timers driven by a single ``run()``
  driver. Time only moves when every task is waiting on a timer, which makes
  frame timing fully deterministic under test.

Example:
    >>> clock = VirtualClock()
    >>> async def job():
    ...     await clock.sleep(400)
    ...     return clock.now()
    >>> await clock.run(job())
    400.0
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Awaitable
from typing import Protocol, TypeVar

T = TypeVar("T")


class Clock(Protocol):
    """Millisecond clock with an awaitable sleep."""

    def now(self) -> float: ...

    async def sleep(self, ms: float) -> None: ...


class SystemClock:
    """Monotonic wall-clock time."""

    def now(self) -> float:
        return time.monotonic() * 1000

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(ms, 0) / 1000)


class VirtualClock:
    """Deterministic clock for tests and offline rendering.

    ``sleep`` parks the caller on a timer. ``run`` drives an awaitable to
    completion: it lets every ready task run, then wakes the earliest timer
    and jumps virtual time forward to its deadline.
    """

    # Event loop passes granted to ready tasks before time advances
    SETTLE_PASSES = 25

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._timers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of timers waiting to fire."""
        return sum(1 for _, _, fut in self._timers if not fut.done())

    async def sleep(self, ms: float) -> None:
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[None] = loop.create_future()
        heapq.heappush(self._timers, (self._now + max(ms, 0), next(self._counter), fut))
        await fut

    async def _settle(self) -> None:
        for _ in range(self.SETTLE_PASSES):
            await asyncio.sleep(0)

    def _fire_next(self) -> bool:
        while self._timers:
            deadline, _, fut = heapq.heappop(self._timers)
            if fut.done():
                continue
            self._now = max(self._now, deadline)
            fut.set_result(None)
            return True
        return False

    async def advance(self, ms: float) -> None:
        """Fire every timer due within the next ``ms`` milliseconds."""
        target = self._now + ms
        await self._settle()
        while self._timers and self._timers[0][0] <= target:
            self._fire_next()
            await self._settle()
        self._now = max(self._now, target)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Drive ``awaitable`` to completion in virtual time.

        Raises:
            RuntimeError: If the awaitable blocks on something other than
                this clock (no timer pending and the task is not done).
        """
        task = asyncio.ensure_future(awaitable)
        try:
            while True:
                await self._settle()
                if task.done():
                    return task.result()
                if not self._fire_next():
                    raise RuntimeError("VirtualClock stalled: task is waiting on no timer")
        finally:
            if not task.done():
                task.cancel()
