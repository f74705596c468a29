"""Tests for session lifecycle hooks.

Covers:
- ``install`` registers atexit teardown and signal handlers, idempotently
- A shutdown signal stops every poll and sets ``shutdown_requested``
- ``uninstall`` removes what ``install`` added
- Visibility listeners (polling keeps ticking while hidden)
"""

from __future__ import annotations

import signal
from unittest.mock import MagicMock, patch

import pytest

from status_polling.polling.lifecycle import LifecycleHooks
from status_polling.polling.scheduler import PollingScheduler
from status_polling.testing import VirtualClock


async def _noop() -> None:
    return None


class TestInstall:
    """Hook registration."""

    def test_install_registers_atexit_and_signals(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        loop = MagicMock()

        with patch("status_polling.polling.lifecycle.atexit") as mock_atexit:
            hooks.install(loop)
            hooks.install(loop)

        mock_atexit.register.assert_called_once_with(hooks.teardown)
        loop.add_signal_handler.assert_called_once()
        assert loop.add_signal_handler.call_args.args[0] == signal.SIGTERM
        assert hooks.installed

    def test_sigint_handler_is_opt_in(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        loop = MagicMock()

        with patch("status_polling.polling.lifecycle.atexit"):
            hooks.install(loop, signals=(signal.SIGINT, signal.SIGTERM))

        installed = [c.args[0] for c in loop.add_signal_handler.call_args_list]
        assert installed == [signal.SIGINT, signal.SIGTERM]

    def test_unsupported_signal_handlers_are_skipped(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        loop = MagicMock()
        loop.add_signal_handler.side_effect = NotImplementedError

        with patch("status_polling.polling.lifecycle.atexit"):
            hooks.install(loop)

        assert hooks.installed

    def test_install_without_loop_registers_atexit_only(
        self, scheduler: PollingScheduler
    ) -> None:
        hooks = LifecycleHooks(scheduler)

        with patch("status_polling.polling.lifecycle.atexit") as mock_atexit:
            hooks.install()

        mock_atexit.register.assert_called_once()
        assert hooks.installed

    def test_uninstall_removes_hooks(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        loop = MagicMock()
        loop.is_closed.return_value = False

        with patch("status_polling.polling.lifecycle.atexit") as mock_atexit:
            hooks.install(loop)
            hooks.uninstall()
            hooks.uninstall()

        mock_atexit.unregister.assert_called_once_with(hooks.teardown)
        loop.remove_signal_handler.assert_called_once_with(signal.SIGTERM)
        assert not hooks.installed


class TestShutdown:
    """Teardown on exit or signal."""

    @pytest.mark.asyncio
    async def test_signal_stops_polling_and_requests_shutdown(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        hooks = LifecycleHooks(scheduler)
        loop = MagicMock()
        scheduler.start_polling("a", _noop, 1_000)
        scheduler.start_recursive_polling("b", _noop, 1_000)

        with patch("status_polling.polling.lifecycle.atexit"):
            hooks.install(loop)
        handler, sig = loop.add_signal_handler.call_args.args[1:]
        handler(sig)

        assert scheduler.active_keys() == []
        assert hooks.shutdown_requested.is_set()
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_teardown_stops_everything(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        hooks = LifecycleHooks(scheduler)
        scheduler.start_polling("a", _noop, 1_000)

        hooks.teardown()

        assert not scheduler.is_polling("a")
        assert not hooks.shutdown_requested.is_set()


class TestVisibility:
    """Visibility extension point."""

    @pytest.mark.asyncio
    async def test_polling_continues_while_hidden(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        hooks = LifecycleHooks(scheduler)
        probe_calls = 0

        async def probe() -> None:
            nonlocal probe_calls
            probe_calls += 1

        scheduler.start_polling("k", probe, 1_000)
        hooks.on_visibility_change(True)
        await clock.advance(3_000)

        assert hooks.hidden
        assert probe_calls == 3

    def test_listeners_receive_changes_once(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        listener = MagicMock()
        hooks.add_visibility_listener(listener)

        hooks.on_visibility_change(True)
        hooks.on_visibility_change(True)
        hooks.on_visibility_change(False)

        assert [c.args for c in listener.call_args_list] == [(True,), (False,)]

    def test_remove_listener(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        listener = MagicMock()
        remove = hooks.add_visibility_listener(listener)
        remove()
        remove()

        hooks.on_visibility_change(True)

        listener.assert_not_called()

    def test_failing_listener_does_not_block_others(self, scheduler: PollingScheduler) -> None:
        hooks = LifecycleHooks(scheduler)
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        hooks.add_visibility_listener(broken)
        hooks.add_visibility_listener(healthy)

        hooks.on_visibility_change(True)

        healthy.assert_called_once_with(True)
