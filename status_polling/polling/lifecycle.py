"""Session-wide teardown hooks for the polling scheduler.

Ensures no timer outlives the session that created it:

- an ``atexit`` hook stops every operation when the interpreter exits;
- ``SIGTERM`` (configurable) stops every operation and sets
  ``shutdown_requested`` so the application's main coroutine can finish.

Visibility changes (the dashboard tab being hidden or shown) are an
extension point only. The default policy keeps ticking while hidden;
listeners registered with ``add_visibility_listener`` may pause their own
work instead.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import signal
from typing import TYPE_CHECKING

from status_polling.polling.models import run_callback

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from status_polling.polling.scheduler import PollingScheduler

logger = logging.getLogger("status_polling.polling.lifecycle")


class LifecycleHooks:
    """Installs and removes teardown hooks for one scheduler."""

    def __init__(self, scheduler: PollingScheduler) -> None:
        self._scheduler = scheduler
        self._installed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._signals: list[signal.Signals] = []
        self._visibility_listeners: list[Callable[[bool], None]] = []
        self._hidden = False
        self.shutdown_requested = asyncio.Event()

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def hidden(self) -> bool:
        return self._hidden

    def install(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        signals: Iterable[signal.Signals] = (signal.SIGTERM,),
    ) -> None:
        """Register the teardown hooks. Idempotent.

        Signal handlers are only added when an event loop is available and
        supports them (not on Windows proactor loops, not off the main
        thread); ``atexit`` teardown is always registered.
        """
        if self._installed:
            return
        atexit.register(self.teardown)

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop

        if loop is not None:
            for sig in signals:
                try:
                    loop.add_signal_handler(sig, self._on_signal, sig)
                except (NotImplementedError, RuntimeError, ValueError) as exc:
                    logger.debug("Signal handler unavailable | signal=%s | error=%s", sig, exc)
                    continue
                self._signals.append(sig)

        self._installed = True
        logger.info("Lifecycle hooks installed | signals=%s", [s.name for s in self._signals])

    def uninstall(self) -> None:
        if not self._installed:
            return
        atexit.unregister(self.teardown)
        if self._loop is not None and not self._loop.is_closed():
            for sig in self._signals:
                self._loop.remove_signal_handler(sig)
        self._signals.clear()
        self._loop = None
        self._installed = False

    def teardown(self) -> None:
        """Stop every polling operation now."""
        self._scheduler.stop_all()

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("Shutdown signal received | signal=%s", sig.name)
        self.teardown()
        self.shutdown_requested.set()

    # ------------------------------------------------------------------
    # Visibility extension point
    # ------------------------------------------------------------------

    def add_visibility_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register *listener* for visibility changes; returns a remover."""
        self._visibility_listeners.append(listener)

        def remove() -> None:
            if listener in self._visibility_listeners:
                self._visibility_listeners.remove(listener)

        return remove

    def on_visibility_change(self, hidden: bool) -> None:
        """Record the new visibility and notify listeners.

        Polling itself keeps ticking; throttling is left to listeners.
        """
        if hidden == self._hidden:
            return
        self._hidden = hidden
        logger.debug(
            "Visibility changed | hidden=%s | active=%d",
            hidden,
            len(self._scheduler.active_keys()),
        )
        for listener in list(self._visibility_listeners):
            run_callback(listener, hidden, key="*", name="visibility_listener")
