"""Timer capability used by the polling schedulers.

The schedulers never touch ``asyncio`` timers directly. They receive a
``Clock`` that can report the current time and arm one-shot callbacks, so
tests can substitute ``status_polling.testing.VirtualClock`` and advance
time deterministically.

All delays are expressed in milliseconds.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable


class TimerHandle(Protocol):
    """A pending one-shot timer."""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of time and one-shot timers."""

    def now_ms(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopClock:
    """``Clock`` backed by an asyncio event loop.

    The loop is resolved lazily from the running loop on first use, so a
    clock can be constructed before the session's loop starts.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_ms, 0.0) / 1000.0, callback)
