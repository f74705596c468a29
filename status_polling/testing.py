"""Virtual clock for deterministic polling tests.

``VirtualClock`` satisfies the ``Clock`` protocol without touching real
time: timers fire only when a test calls ``advance``. Probe coroutines
still run on the real event loop, so ``advance`` yields to the loop after
every fired timer to let spawned probe tasks settle.

Usage::

    clock = VirtualClock()
    scheduler = PollingScheduler(clock)
    scheduler.start_polling("k", probe, 1_000)
    await clock.advance(3_000)
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

_SETTLE_ROUNDS = 20


class VirtualTimer:
    """A timer armed on a ``VirtualClock``."""

    __slots__ = ("callback", "cancelled", "delay_ms", "due_ms")

    def __init__(self, due_ms: float, delay_ms: float, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.delay_ms = delay_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Manually advanced clock.

    Attributes:
        requested_delays: Every delay passed to ``call_later``, in order.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = start_ms
        self._seq = itertools.count()
        self._heap: list[tuple[float, int, VirtualTimer]] = []
        self.requested_delays: list[float] = []

    def now_ms(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> VirtualTimer:
        delay = max(delay_ms, 0.0)
        timer = VirtualTimer(self._now + delay, delay, callback)
        heapq.heappush(self._heap, (timer.due_ms, next(self._seq), timer))
        self.requested_delays.append(delay)
        return timer

    @property
    def pending(self) -> int:
        """Number of armed, uncancelled timers."""
        return sum(1 for _, _, timer in self._heap if not timer.cancelled)

    def next_due(self) -> float | None:
        self._discard_cancelled()
        return self._heap[0][0] if self._heap else None

    async def advance(self, delta_ms: float) -> None:
        """Move time forward by *delta_ms*, firing due timers in order."""
        target = self._now + delta_ms
        await self.settle()
        while True:
            self._discard_cancelled()
            if not self._heap or self._heap[0][0] > target:
                break
            due, _, timer = heapq.heappop(self._heap)
            self._now = due
            timer.callback()
            await self.settle()
        self._now = target
        await self.settle()

    async def sleep(self, delay_ms: float) -> None:
        """Suspend the caller until virtual time has moved *delay_ms* forward."""
        future = asyncio.get_running_loop().create_future()

        def wake() -> None:
            if not future.done():
                future.set_result(None)

        self.call_later(delay_ms, wake)
        await future

    @staticmethod
    async def settle(rounds: int = _SETTLE_ROUNDS) -> None:
        """Yield to the event loop so ready tasks can run."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    def _discard_cancelled(self) -> None:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
