"""Typed models for the polling engine.

Defines the structures shared by the registry and the polling strategies:

- ``Strategy``: Which scheduling discipline owns an operation's timer
- ``PollingOperation``: One live job tracker and its mutable tick state
- ``OperationHandle``: Typed cancellation handle returned by every start
- ``Continuing`` / ``Completed`` / ``Failed``: Outcome of a single tick

Design notes:
- Every start call returns an ``OperationHandle``; a duplicate start for a
  live key returns the *same* handle object.
- Each tick is reduced to a ``TickOutcome`` and the operation state is
  updated from that value alone (``PollingOperation.apply_outcome``).
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from status_polling.polling.backoff import next_delay

if TYPE_CHECKING:
    from status_polling.core.clock import TimerHandle
    from status_polling.polling.registry import OperationRegistry

logger = logging.getLogger("status_polling.polling.models")

Probe = Callable[[], Awaitable[Any]]
ContinuePredicate = Callable[[Any], bool]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]
CleanupCallback = Callable[[], None]


class Strategy(enum.Enum):
    """Scheduling discipline of a polling operation.

    Values:
        INTERVAL:  Fixed-period ticks; probes may overlap.
        RECURSIVE: Next tick armed only after the previous probe settles.
    """

    INTERVAL = "interval"
    RECURSIVE = "recursive"


# ---------------------------------------------------------------------------
# Tick outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Continuing:
    """Probe succeeded and polling goes on."""

    result: Any = None


@dataclass(frozen=True, slots=True)
class Completed:
    """Probe succeeded and the continuation predicate asked to stop."""

    result: Any = None


@dataclass(frozen=True, slots=True)
class Failed:
    """Probe raised, or the attempt budget is spent (``exhausted``)."""

    error: BaseException
    exhausted: bool = False


TickOutcome = Continuing | Completed | Failed


def classify_result(result: Any, should_continue: ContinuePredicate | None) -> TickOutcome:
    """Map a successful probe result to ``Continuing`` or ``Completed``."""
    if should_continue is not None and not should_continue(result):
        return Completed(result)
    return Continuing(result)


# ---------------------------------------------------------------------------
# Operation
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class PollingOperation:
    """One active job tracker.

    Attributes:
        key: Caller-chosen identity; the deduplication boundary.
        probe: The wrapped status check (opaque to the engine).
        strategy: Scheduling discipline that owns ``timer``.
        base_delay_ms: Interval (or delay) requested by the caller.
        max_attempts: Attempt budget; ``None`` or ``0`` means unbounded.
        use_exponential_backoff: Inflate the delay on consecutive failures.
        max_delay_ms: Cap applied to backed-off delays.
        on_complete: Fired once when the operation finishes normally or is
            cancelled through its handle.
        on_error: Receives probe failures and budget exhaustion.
        cleanup_callback: Caller hook run when the operation is torn down.
        current_delay_ms: Effective delay for the next tick.
        attempt_count: Number of probe invocations so far (monotonic).
        failure_streak: Consecutive failures since the last success.
        is_active: ``False`` once stopped.
        is_cancelled: Set by ``cleanup``; checked by every continuation.
        timer: Pending timer, exclusively owned by this operation.
        handle: Cancellation handle issued at registration.
    """

    key: str
    probe: Probe
    strategy: Strategy
    base_delay_ms: float
    max_attempts: int | None = None
    use_exponential_backoff: bool = True
    max_delay_ms: float = 60_000
    on_complete: CompleteCallback | None = None
    on_error: ErrorCallback | None = None
    cleanup_callback: CleanupCallback | None = None
    current_delay_ms: float = field(init=False)
    attempt_count: int = field(default=0, init=False)
    failure_streak: int = field(default=0, init=False)
    is_active: bool = field(default=True, init=False)
    is_cancelled: bool = field(default=False, init=False)
    timer: TimerHandle | None = field(default=None, init=False, repr=False)
    handle: OperationHandle | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.current_delay_ms = self.base_delay_ms

    @property
    def live(self) -> bool:
        """Whether continuations may still touch this operation."""
        return self.is_active and not self.is_cancelled

    @property
    def budget_exhausted(self) -> bool:
        """Whether another probe would exceed ``max_attempts``."""
        if not self.max_attempts:
            return False
        return self.attempt_count >= self.max_attempts

    def begin_attempt(self) -> None:
        self.attempt_count += 1

    def apply_outcome(self, outcome: TickOutcome) -> bool:
        """Update streak and delay from *outcome*.

        Returns:
            ``True`` if ``current_delay_ms`` changed.
        """
        previous = self.current_delay_ms
        if isinstance(outcome, Failed):
            if self.use_exponential_backoff:
                self.failure_streak += 1
                self.current_delay_ms = next_delay(
                    self.failure_streak, self.base_delay_ms, self.max_delay_ms
                )
        else:
            self.failure_streak = 0
            self.current_delay_ms = self.base_delay_ms
        return self.current_delay_ms != previous

    def release_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def cleanup(self) -> None:
        """Cancel the operation's timer and run the caller's cleanup hook."""
        self.is_cancelled = True
        self.release_timer()
        if self.cleanup_callback is not None:
            run_callback(self.cleanup_callback, key=self.key, name="cleanup")


# ---------------------------------------------------------------------------
# Handles
# ---------------------------------------------------------------------------


class OperationHandle:
    """Cancellation handle for a registered polling operation.

    Calling ``cancel()`` (or the handle itself) stops the operation and
    fires its ``on_complete`` once. A handle whose operation has already
    stopped is inert.
    """

    __slots__ = ("_operation", "_registry")

    def __init__(self, operation: PollingOperation, registry: OperationRegistry) -> None:
        self._operation = operation
        self._registry = registry

    @property
    def key(self) -> str:
        return self._operation.key

    @property
    def active(self) -> bool:
        return self._operation.is_active

    def cancel(self) -> None:
        self._registry.cancel(self._operation)

    def __call__(self) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return f"OperationHandle(key={self.key!r}, active={self.active})"


def run_callback(callback: Callable[..., object], *args: object, key: str, name: str) -> None:
    """Invoke a caller callback, logging (not propagating) its exceptions."""
    try:
        callback(*args)
    except Exception:
        logger.exception("Polling callback raised | key=%s | callback=%s", key, name)
