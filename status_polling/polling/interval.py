"""Fixed-period polling strategy.

Ticks every ``interval_ms`` regardless of whether the previous probe has
settled, so a probe slower than the period can overlap the next one.
Callers that need strict non-overlap use the recursive strategy.

Failures never stop the operation on their own ("retry until cancelled or
capped"). With backoff enabled the failure streak inflates the delay and
the live timer is torn down and re-armed at the new delay, so the period
restarts from the moment the failure was observed.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

from status_polling.polling.base import BasePoller
from status_polling.polling.models import Continuing, Failed, Strategy

if TYPE_CHECKING:
    from status_polling.polling.models import (
        CleanupCallback,
        CompleteCallback,
        ErrorCallback,
        OperationHandle,
        PollingOperation,
        Probe,
        TickOutcome,
    )

logger = logging.getLogger("status_polling.polling.interval")


class IntervalPoller(BasePoller):
    """Polls a key on a fixed period."""

    strategy = Strategy.INTERVAL

    def start(
        self,
        key: str,
        probe: Probe,
        interval_ms: float,
        *,
        immediate: bool = False,
        max_attempts: int | None = None,
        on_complete: CompleteCallback | None = None,
        on_error: ErrorCallback | None = None,
        cleanup: CleanupCallback | None = None,
        use_exponential_backoff: bool = True,
    ) -> OperationHandle:
        """Start fixed-period polling for *key*.

        Args:
            key: Deduplication key; a live key returns its existing handle.
            probe: Async status check invoked on every tick.
            interval_ms: Period between ticks.
            immediate: Run one probe right away before the first period.
            max_attempts: Budget after which the operation stops with
                ``MaxAttemptsExceededError``; ``None``/``0`` is unbounded.
            on_complete: Fired when the returned handle cancels the operation.
            on_error: Receives every probe failure and budget exhaustion.
            cleanup: Extra teardown run when the operation stops.
            use_exponential_backoff: Inflate the delay on consecutive failures.

        Returns:
            The operation's cancellation handle.
        """
        operation = self._build(
            key,
            probe,
            interval_ms,
            max_attempts=max_attempts,
            use_exponential_backoff=use_exponential_backoff,
            on_complete=on_complete,
            on_error=on_error,
            cleanup=cleanup,
        )
        handle, created = self._register(operation)
        if not created:
            return handle

        logger.info(
            "Polling started | key=%s | strategy=interval | interval_ms=%d | immediate=%s",
            key,
            operation.base_delay_ms,
            immediate,
        )
        self._launch(operation, functools.partial(self._begin, operation, immediate))
        return handle

    def _begin(self, operation: PollingOperation, immediate: bool) -> None:
        self._arm(operation, functools.partial(self._on_timer, operation))
        if immediate:
            self._spawn(self._tick(operation))

    def _on_timer(self, operation: PollingOperation) -> None:
        if not operation.live:
            return
        operation.timer = None
        # Period continues independently of the probe.
        self._arm(operation, functools.partial(self._on_timer, operation))
        self._spawn(self._tick(operation))

    async def _tick(self, operation: PollingOperation) -> None:
        if not operation.live:
            return
        if operation.budget_exhausted:
            self._exhaust(operation)
            return

        operation.begin_attempt()
        outcome: TickOutcome
        try:
            result = await operation.probe()
        except Exception as exc:
            outcome = Failed(exc)
        else:
            outcome = Continuing(result)

        if not operation.live:
            return

        if self._record(operation, outcome):
            self._arm(operation, functools.partial(self._on_timer, operation))
        if isinstance(outcome, Failed):
            self._report_error(operation, outcome.error)
