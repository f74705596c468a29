"""Self-rescheduling polling strategy.

The next tick is armed only after the current probe settles, using the
delay computed at that moment, so no two probes for one key are ever in
flight together. A ``should_continue`` predicate over each successful
result lets the caller end the loop on semantic state ("the job reports
success or failed") without the engine knowing what a status is.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

from status_polling.polling.base import BasePoller
from status_polling.polling.models import (
    Completed,
    Failed,
    Strategy,
    classify_result,
    run_callback,
)

if TYPE_CHECKING:
    from status_polling.polling.models import (
        CleanupCallback,
        CompleteCallback,
        ContinuePredicate,
        ErrorCallback,
        OperationHandle,
        PollingOperation,
        Probe,
        TickOutcome,
    )

logger = logging.getLogger("status_polling.polling.recursive")


class RecursivePoller(BasePoller):
    """Polls a key with one rescheduled timeout per cycle."""

    strategy = Strategy.RECURSIVE

    def start(
        self,
        key: str,
        probe: Probe,
        delay_ms: float,
        *,
        should_continue: ContinuePredicate | None = None,
        immediate: bool = False,
        max_attempts: int | None = None,
        on_complete: CompleteCallback | None = None,
        on_error: ErrorCallback | None = None,
        cleanup: CleanupCallback | None = None,
        use_exponential_backoff: bool = True,
    ) -> OperationHandle:
        """Start recursive polling for *key*.

        Args:
            key: Deduplication key; a live key returns its existing handle.
            probe: Async status check; its result feeds *should_continue*.
            delay_ms: Pause between a settled probe and the next one.
            should_continue: Return ``False`` to stop after a successful
                probe; ``on_complete`` then fires once.
            immediate: Run the first probe without waiting *delay_ms*.
            max_attempts: Attempt budget; ``None``/``0`` is unbounded.
            on_complete: Fired on semantic termination or handle cancel.
            on_error: Receives probe failures and budget exhaustion.
            cleanup: Extra teardown run when the operation stops.
            use_exponential_backoff: Inflate the delay on consecutive failures.

        Returns:
            The operation's cancellation handle.
        """
        operation = self._build(
            key,
            probe,
            delay_ms,
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
            "Polling started | key=%s | strategy=recursive | delay_ms=%d | immediate=%s",
            key,
            operation.base_delay_ms,
            immediate,
        )
        if immediate:
            launch = functools.partial(self._spawn_poll, operation, should_continue)
        else:
            launch = functools.partial(self._schedule, operation, should_continue)
        self._launch(operation, launch)
        return handle

    def _spawn_poll(
        self,
        operation: PollingOperation,
        should_continue: ContinuePredicate | None,
    ) -> None:
        self._spawn(self._poll(operation, should_continue))

    def _schedule(
        self,
        operation: PollingOperation,
        should_continue: ContinuePredicate | None,
    ) -> None:
        if not operation.live or self._registry.get(operation.key) is not operation:
            return
        self._arm(operation, functools.partial(self._fire, operation, should_continue))

    def _fire(
        self,
        operation: PollingOperation,
        should_continue: ContinuePredicate | None,
    ) -> None:
        operation.timer = None
        if operation.live:
            self._spawn(self._poll(operation, should_continue))

    async def _poll(
        self,
        operation: PollingOperation,
        should_continue: ContinuePredicate | None,
    ) -> None:
        if not operation.live:
            return
        if operation.budget_exhausted:
            self._exhaust(operation)
            return

        operation.begin_attempt()
        outcome: TickOutcome
        try:
            result = await operation.probe()
            outcome = classify_result(result, should_continue)
        except Exception as exc:
            outcome = Failed(exc)

        if not operation.live:
            return

        self._record(operation, outcome)

        if isinstance(outcome, Completed):
            logger.info(
                "Polling completed | key=%s | attempts=%d",
                operation.key,
                operation.attempt_count,
            )
            self._stop(operation)
            if operation.on_complete is not None:
                run_callback(operation.on_complete, key=operation.key, name="on_complete")
            return

        if isinstance(outcome, Failed):
            self._report_error(operation, outcome.error)
        self._schedule(operation, should_continue)
