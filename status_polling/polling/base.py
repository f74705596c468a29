"""Shared machinery for the polling strategies.

``BasePoller`` holds what the interval and recursive strategies have in
common: building and registering operations, arming the operation's timer
through the injected ``Clock``, recording tick outcomes, and routing errors
to ``on_error`` (or the log when the caller supplied none).
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from status_polling.core.constants import MAX_DELAY_MS, MIN_DELAY_MS
from status_polling.core.exceptions import MaxAttemptsExceededError
from status_polling.polling.models import PollingOperation, Strategy, run_callback

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from status_polling.core.clock import Clock
    from status_polling.polling.models import (
        CleanupCallback,
        CompleteCallback,
        ErrorCallback,
        OperationHandle,
        Probe,
        TickOutcome,
    )
    from status_polling.polling.registry import OperationRegistry

    Spawn = Callable[[Coroutine[Any, Any, None]], object]

logger = logging.getLogger("status_polling.polling.base")


class BasePoller(abc.ABC):
    """Base class for polling strategies.

    Args:
        registry: Registry that owns operation lifecycles.
        clock: Timer capability used to arm ticks.
        spawn: Schedules a probe coroutine on the event loop without
            awaiting it.
        max_delay_ms: Cap for backed-off delays.
    """

    strategy: ClassVar[Strategy]

    def __init__(
        self,
        registry: OperationRegistry,
        clock: Clock,
        spawn: Spawn,
        *,
        max_delay_ms: float = MAX_DELAY_MS,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._spawn = spawn
        self._max_delay_ms = max_delay_ms

    # ------------------------------------------------------------------
    # Operation construction
    # ------------------------------------------------------------------

    def _build(
        self,
        key: str,
        probe: Probe,
        delay_ms: float,
        *,
        max_attempts: int | None,
        use_exponential_backoff: bool,
        on_complete: CompleteCallback | None,
        on_error: ErrorCallback | None,
        cleanup: CleanupCallback | None,
    ) -> PollingOperation:
        return PollingOperation(
            key=key,
            probe=probe,
            strategy=self.strategy,
            base_delay_ms=max(float(delay_ms), MIN_DELAY_MS),
            max_attempts=max_attempts,
            use_exponential_backoff=use_exponential_backoff,
            max_delay_ms=self._max_delay_ms,
            on_complete=on_complete,
            on_error=on_error,
            cleanup_callback=cleanup,
        )

    def _register(self, operation: PollingOperation) -> tuple[OperationHandle, bool]:
        """Register *operation*; the flag is ``False`` when an existing handle came back."""
        handle = self._registry.register(operation)
        return handle, operation.handle is handle

    # ------------------------------------------------------------------
    # Tick helpers
    # ------------------------------------------------------------------

    def _arm(self, operation: PollingOperation, callback: Callable[[], None]) -> None:
        """(Re)arm the operation's single timer at ``current_delay_ms``."""
        operation.release_timer()
        operation.timer = self._clock.call_later(operation.current_delay_ms, callback)

    def _record(self, operation: PollingOperation, outcome: TickOutcome) -> bool:
        changed = operation.apply_outcome(outcome)
        self._registry.failures.set(operation.key, operation.failure_streak)
        if changed:
            logger.debug(
                "Polling delay changed | key=%s | failures=%d | delay_ms=%d",
                operation.key,
                operation.failure_streak,
                operation.current_delay_ms,
            )
        return changed

    def _launch(self, operation: PollingOperation, launch: Callable[[], None]) -> None:
        """Run the first arm or spawn for a freshly registered *operation*.

        A failure (no running event loop) unregisters the operation before
        re-raising so the key can be started again.
        """
        try:
            launch()
        except BaseException:
            self._stop(operation)
            raise

    def _stop(self, operation: PollingOperation) -> None:
        """Stop *operation* without disturbing a newer operation under the same key."""
        if self._registry.get(operation.key) is operation:
            self._registry.stop(operation.key)
        else:
            operation.is_active = False
            operation.cleanup()

    def _exhaust(self, operation: PollingOperation) -> None:
        """Stop an operation whose attempt budget is spent and report it."""
        logger.warning(
            "Polling attempts exhausted | key=%s | strategy=%s | max_attempts=%s",
            operation.key,
            operation.strategy.value,
            operation.max_attempts,
        )
        self._stop(operation)
        error = MaxAttemptsExceededError(operation.key, operation.max_attempts or 0)
        self._report_error(operation, error)

    def _report_error(self, operation: PollingOperation, error: BaseException) -> None:
        if operation.on_error is not None:
            run_callback(operation.on_error, error, key=operation.key, name="on_error")
            return
        logger.error(
            "Polling error | key=%s | strategy=%s | attempt=%d | error=%s",
            operation.key,
            operation.strategy.value,
            operation.attempt_count,
            error,
        )

    @abc.abstractmethod
    def start(self, key: str, probe: Probe, delay_ms: float, **options: Any) -> OperationHandle:
        """Start polling *key* and return its cancellation handle."""
