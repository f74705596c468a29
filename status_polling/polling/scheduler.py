"""Polling scheduler: the public surface of the engine.

Composes the registry, the two polling strategies and the debounced
starter around one injected ``Clock``. A scheduler is an ordinary object
owned by the session's composition root (``DashboardSession``) or by a
test; there is no process-wide instance.

Usage::

    scheduler = PollingScheduler()
    handle = scheduler.start_recursive_polling(
        "look-generation-abc-1",
        check_status,
        5_000,
        should_continue=lambda state: state == "in_progress",
        max_attempts=60,
    )
    ...
    handle.cancel()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from status_polling.core.clock import LoopClock
from status_polling.core.constants import DEFAULT_DEBOUNCE_MS, MAX_DELAY_MS
from status_polling.polling.debounce import DebouncedStarter
from status_polling.polling.interval import IntervalPoller
from status_polling.polling.recursive import RecursivePoller
from status_polling.polling.registry import OperationRegistry

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from status_polling.core.clock import Clock
    from status_polling.core.config import PollingConfig
    from status_polling.polling.debounce import DebounceHandle
    from status_polling.polling.models import OperationHandle, Probe

logger = logging.getLogger("status_polling.polling.scheduler")


class PollingScheduler:
    """In-memory scheduler for status-polling operations.

    All methods must be called from the event loop the scheduler runs on.

    Args:
        clock: Timer capability; defaults to the running asyncio loop.
        max_delay_ms: Cap for backed-off delays.
        default_debounce_ms: Quiet period used by ``debounced_start_polling``.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        max_delay_ms: float = MAX_DELAY_MS,
        default_debounce_ms: float = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self._clock: Clock = clock if clock is not None else LoopClock()
        self._registry = OperationRegistry()
        self._tasks: set[asyncio.Task[None]] = set()
        self._interval = IntervalPoller(
            self._registry, self._clock, self._spawn, max_delay_ms=max_delay_ms
        )
        self._recursive = RecursivePoller(
            self._registry, self._clock, self._spawn, max_delay_ms=max_delay_ms
        )
        self._debounced = DebouncedStarter(
            self._registry,
            self._clock,
            self._interval,
            default_debounce_ms=default_debounce_ms,
        )

    @classmethod
    def from_config(cls, config: PollingConfig, clock: Clock | None = None) -> PollingScheduler:
        return cls(
            clock,
            max_delay_ms=config.max_backoff_delay_ms,
            default_debounce_ms=config.debounce_ms,
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def registry(self) -> OperationRegistry:
        return self._registry

    @property
    def in_flight(self) -> int:
        """Number of probe tasks that have not settled yet."""
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Starting
    # ------------------------------------------------------------------

    def start_polling(
        self,
        key: str,
        probe: Probe,
        interval_ms: float,
        **options: Any,
    ) -> OperationHandle:
        """Start fixed-period polling. See ``IntervalPoller.start``."""
        return self._interval.start(key, probe, interval_ms, **options)

    def start_recursive_polling(
        self,
        key: str,
        probe: Probe,
        delay_ms: float,
        **options: Any,
    ) -> OperationHandle:
        """Start self-rescheduling polling. See ``RecursivePoller.start``."""
        return self._recursive.start(key, probe, delay_ms, **options)

    def debounced_start_polling(
        self,
        key: str,
        probe: Probe,
        interval_ms: float,
        debounce_ms: float | None = None,
        **options: Any,
    ) -> OperationHandle | DebounceHandle:
        """Start fixed-period polling once requests go quiet. See ``DebouncedStarter.start``."""
        return self._debounced.start(key, probe, interval_ms, debounce_ms, **options)

    # ------------------------------------------------------------------
    # Stopping and queries
    # ------------------------------------------------------------------

    def stop_polling(self, key: str) -> bool:
        """Stop *key* without firing ``on_complete``. Idempotent."""
        return self._registry.stop(key)

    def stop_all(self) -> None:
        self._registry.stop_all()

    def is_polling(self, key: str) -> bool:
        return self._registry.is_polling(key)

    def failure_count(self, key: str) -> int:
        return self._registry.failures.get(key)

    def active_keys(self) -> list[str]:
        return [key for key in self._registry if self._registry.is_polling(key)]

    async def drain(self) -> None:
        """Wait for every in-flight probe task to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop every operation, then wait for in-flight probes to settle."""
        self.stop_all()
        await self.drain()

    # ------------------------------------------------------------------
    # Task bookkeeping
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Polling task failed | error=%s", exc, exc_info=exc)
