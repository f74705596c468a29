"""Debounced start for interval polling.

Collapses a burst of start requests for the same key (for example rapid
re-selection of an avatar) into one ``IntervalPoller.start`` call: each
request resets the pending timer and only the last one fires.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from status_polling.core.constants import DEFAULT_DEBOUNCE_MS

if TYPE_CHECKING:
    from status_polling.core.clock import Clock, TimerHandle
    from status_polling.polling.interval import IntervalPoller
    from status_polling.polling.models import OperationHandle, Probe
    from status_polling.polling.registry import OperationRegistry

logger = logging.getLogger("status_polling.polling.debounce")


class DebounceHandle:
    """Cancellation handle for a debounced start.

    Cancels the pending timer if it has not fired yet, otherwise stops the
    operation the timer started.
    """

    __slots__ = ("_key", "_registry", "_started", "_timer")

    def __init__(self, key: str, registry: OperationRegistry) -> None:
        self._key = key
        self._registry = registry
        self._timer: TimerHandle | None = None
        self._started: OperationHandle | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def pending(self) -> bool:
        """Whether the debounce timer is still waiting to fire."""
        if self._timer is None:
            return False
        return self._registry.debounce_timer(self._key) is self._timer

    @property
    def active(self) -> bool:
        return self.pending or (self._started is not None and self._started.active)

    def cancel(self) -> None:
        if self._timer is not None and self._registry.cancel_debounce(self._key, self._timer):
            self._timer = None
            logger.debug("Debounced start cancelled | key=%s", self._key)
            return
        if self._started is not None and self._started.active:
            self._registry.stop(self._key)

    def __call__(self) -> None:
        self.cancel()

    def __repr__(self) -> str:
        return f"DebounceHandle(key={self._key!r}, pending={self.pending})"


class DebouncedStarter:
    """Delays ``IntervalPoller.start`` until requests for a key go quiet."""

    def __init__(
        self,
        registry: OperationRegistry,
        clock: Clock,
        interval_poller: IntervalPoller,
        *,
        default_debounce_ms: float = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._interval = interval_poller
        self._default_debounce_ms = default_debounce_ms

    def start(
        self,
        key: str,
        probe: Probe,
        interval_ms: float,
        debounce_ms: float | None = None,
        **options: Any,
    ) -> OperationHandle | DebounceHandle:
        """Schedule a debounced interval start for *key*.

        A key that is already polling returns its existing handle and no
        debounce is scheduled. Otherwise any pending request for *key* is
        replaced (last call wins).

        Args:
            key: Deduplication key.
            probe: Async status check passed to the interval poller.
            interval_ms: Polling period once started.
            debounce_ms: Quiet period; defaults to the starter's default.
            **options: Keyword options forwarded to ``IntervalPoller.start``.
        """
        existing = self._registry.get(key)
        if existing is not None and existing.is_active and existing.handle is not None:
            return existing.handle

        quiet_ms = self._default_debounce_ms if debounce_ms is None else debounce_ms
        handle = DebounceHandle(key, self._registry)

        def fire() -> None:
            self._registry.pop_debounce(key)
            logger.debug("Debounce elapsed | key=%s", key)
            handle._started = self._interval.start(key, probe, interval_ms, **options)

        timer = self._clock.call_later(quiet_ms, fire)
        handle._timer = timer
        replaced = self._registry.debounce_pending(key)
        self._registry.set_debounce(key, timer)
        logger.debug(
            "Debounced start scheduled | key=%s | debounce_ms=%d | replaced=%s",
            key,
            quiet_ms,
            replaced,
        )
        return handle
