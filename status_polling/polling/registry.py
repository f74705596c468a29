"""In-memory registry of active polling operations.

Owns the start/stop lifecycle shared by every strategy and guarantees at
most one live operation per key. It also holds the per-key failure
counters and pending debounce timers, so stopping a key releases every
timer associated with it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from status_polling.polling.models import OperationHandle, run_callback

if TYPE_CHECKING:
    from collections.abc import Iterator

    from status_polling.core.clock import TimerHandle
    from status_polling.polling.models import PollingOperation

logger = logging.getLogger("status_polling.polling.registry")


class FailureCounters:
    """``key -> consecutive failures`` map, cleared when a key stops."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def get(self, key: str) -> int:
        return self._counts.get(key, 0)

    def set(self, key: str, count: int) -> None:
        if count:
            self._counts[key] = count
        else:
            self._counts.pop(key, None)

    def clear(self, key: str) -> None:
        self._counts.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._counts

    def __len__(self) -> int:
        return len(self._counts)


class OperationRegistry:
    """Table of live polling operations keyed by caller-supplied strings."""

    def __init__(self) -> None:
        self._operations: dict[str, PollingOperation] = {}
        self._debounce_timers: dict[str, TimerHandle] = {}
        self.failures = FailureCounters()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        return key in self._operations

    def is_polling(self, key: str) -> bool:
        """Return ``True`` only if *key* is registered **and** active."""
        operation = self._operations.get(key)
        return operation is not None and operation.is_active

    def get(self, key: str) -> PollingOperation | None:
        return self._operations.get(key)

    def keys(self) -> list[str]:
        return list(self._operations)

    def __contains__(self, key: object) -> bool:
        return key in self._operations

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._operations))

    def __len__(self) -> int:
        return len(self._operations)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(self, operation: PollingOperation) -> OperationHandle:
        """Register *operation*, or return the live handle for its key.

        A key that is already owned by an active operation keeps that
        operation; *operation* is discarded and the existing handle is
        returned.
        """
        existing = self._operations.get(operation.key)
        if existing is not None and existing.is_active and existing.handle is not None:
            logger.debug("Polling already active | key=%s", operation.key)
            return existing.handle

        handle = OperationHandle(operation, self)
        operation.handle = handle
        self._operations[operation.key] = operation
        return handle

    def stop(self, key: str) -> bool:
        """Stop and remove the operation for *key*.

        Clears its timers, failure counter and any pending debounce timer.
        Idempotent: stopping an absent key only releases a stray debounce.

        Returns:
            ``True`` if an operation was stopped.
        """
        self.cancel_debounce(key)
        self.failures.clear(key)

        operation = self._operations.pop(key, None)
        if operation is None:
            return False

        operation.is_active = False
        operation.cleanup()
        logger.info(
            "Polling stopped | key=%s | strategy=%s | attempts=%d",
            key,
            operation.strategy.value,
            operation.attempt_count,
        )
        return True

    def cancel(self, operation: PollingOperation) -> None:
        """Stop *operation* on behalf of its handle and fire ``on_complete``."""
        if not operation.is_active or self._operations.get(operation.key) is not operation:
            return
        self.stop(operation.key)
        if operation.on_complete is not None:
            run_callback(operation.on_complete, key=operation.key, name="on_complete")

    def stop_all(self) -> None:
        """Stop every registered key and drop every pending debounce."""
        keys = set(self._operations) | set(self._debounce_timers)
        for key in keys:
            self.stop(key)
        if keys:
            logger.info("All polling stopped | keys=%d", len(keys))

    # ------------------------------------------------------------------
    # Debounce timers
    # ------------------------------------------------------------------

    def set_debounce(self, key: str, timer: TimerHandle) -> None:
        """Store *timer* as the pending debounce for *key*, cancelling any prior one."""
        self.cancel_debounce(key)
        self._debounce_timers[key] = timer

    def pop_debounce(self, key: str) -> TimerHandle | None:
        return self._debounce_timers.pop(key, None)

    def debounce_pending(self, key: str) -> bool:
        return key in self._debounce_timers

    def debounce_timer(self, key: str) -> TimerHandle | None:
        return self._debounce_timers.get(key)

    def cancel_debounce(self, key: str, timer: TimerHandle | None = None) -> bool:
        """Cancel the pending debounce for *key*.

        When *timer* is given, only that specific timer is cancelled; a
        newer timer for the same key is left alone.
        """
        current = self._debounce_timers.get(key)
        if current is None or (timer is not None and current is not timer):
            return False
        del self._debounce_timers[key]
        current.cancel()
        return True
