"""Tests for self-rescheduling polling.

Covers:
- Next tick armed only after the previous probe settles (no overlap)
- ``should_continue`` ends polling and fires ``on_complete`` once
- Attempt budget: three probes, then ``MaxAttemptsExceededError``
- ``immediate`` runs the first probe at t=0
- Failures back off and are routed to ``on_error``
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from status_polling.core.exceptions import MaxAttemptsExceededError
from status_polling.polling.scheduler import PollingScheduler
from status_polling.testing import VirtualClock


class TestNonOverlap:
    """One probe in flight per key."""

    @pytest.mark.asyncio
    async def test_slow_probe_delays_next_tick(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        starts: list[float] = []
        in_flight = 0
        peak = 0

        async def probe() -> None:
            nonlocal in_flight, peak
            starts.append(clock.now_ms())
            in_flight += 1
            peak = max(peak, in_flight)
            await clock.sleep(2_500)
            in_flight -= 1

        scheduler.start_recursive_polling("k", probe, 1_000)
        await clock.advance(10_000)

        assert starts == [1_000, 4_500, 8_000]
        assert peak == 1


class TestShouldContinue:
    """Semantic termination."""

    @pytest.mark.asyncio
    async def test_stops_after_third_success(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        probe_calls = 0
        on_complete = MagicMock()

        async def probe() -> int:
            nonlocal probe_calls
            probe_calls += 1
            return probe_calls

        scheduler.start_recursive_polling(
            "k",
            probe,
            1_000,
            should_continue=lambda count: count < 3,
            on_complete=on_complete,
        )
        await clock.advance(10_000)

        assert probe_calls == 3
        on_complete.assert_called_once()
        assert not scheduler.is_polling("k")

    @pytest.mark.asyncio
    async def test_failure_does_not_consult_predicate(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        should_continue = MagicMock(return_value=True)
        errors: list[BaseException] = []

        async def probe() -> None:
            raise RuntimeError

        scheduler.start_recursive_polling(
            "k", probe, 1_000, should_continue=should_continue, on_error=errors.append
        )
        await clock.advance(3_000)

        should_continue.assert_not_called()
        assert len(errors) == 2
        assert scheduler.is_polling("k")


class TestAttemptBudget:
    """``max_attempts`` caps probe invocations."""

    @pytest.mark.asyncio
    async def test_three_probes_then_budget_error(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        probe_calls = 0
        errors: list[BaseException] = []
        on_complete = MagicMock()

        async def probe() -> str:
            nonlocal probe_calls
            probe_calls += 1
            return "in_progress"

        scheduler.start_recursive_polling(
            "k",
            probe,
            1_000,
            max_attempts=3,
            on_error=errors.append,
            on_complete=on_complete,
        )
        await clock.advance(20_000)

        assert probe_calls == 3
        assert len(errors) == 1
        assert isinstance(errors[0], MaxAttemptsExceededError)
        assert errors[0].max_attempts == 3
        assert errors[0].code == "MAX_ATTEMPTS_REACHED"
        on_complete.assert_not_called()
        assert not scheduler.is_polling("k")


class TestImmediate:
    """First probe without waiting."""

    @pytest.mark.asyncio
    async def test_immediate_probe_at_zero(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        starts: list[float] = []

        async def probe() -> None:
            starts.append(clock.now_ms())

        scheduler.start_recursive_polling("k", probe, 5_000, immediate=True)
        await clock.settle()
        assert starts == [0]

        await clock.advance(5_000)
        assert starts == [0, 5_000]


class TestBackoff:
    """Failures inflate the delay between probes."""

    @pytest.mark.asyncio
    async def test_failures_double_delay(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        starts: list[float] = []

        async def probe() -> None:
            starts.append(clock.now_ms())
            raise RuntimeError

        scheduler.start_recursive_polling("k", probe, 1_000, on_error=lambda _: None)
        await clock.advance(15_000)

        assert starts == [1_000, 3_000, 7_000, 15_000]
        assert scheduler.failure_count("k") == 4


class TestCancellation:
    """Stopping during a probe."""

    @pytest.mark.asyncio
    async def test_cancel_during_probe_prevents_reschedule(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        probe_calls = 0
        on_complete = MagicMock()

        async def probe() -> str:
            nonlocal probe_calls
            probe_calls += 1
            await clock.sleep(2_000)
            return "done"

        handle = scheduler.start_recursive_polling(
            "k",
            probe,
            1_000,
            should_continue=lambda _: False,
            on_complete=on_complete,
        )
        await clock.advance(1_500)
        handle.cancel()
        await clock.advance(10_000)

        assert probe_calls == 1
        on_complete.assert_called_once()
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_restart_after_stop_uses_new_operation(
        self, clock: VirtualClock, scheduler: PollingScheduler
    ) -> None:
        calls: list[str] = []

        async def old_probe() -> None:
            calls.append("old")
            await clock.sleep(500)

        async def new_probe() -> None:
            calls.append("new")

        scheduler.start_recursive_polling("k", old_probe, 1_000)
        await clock.advance(1_100)
        scheduler.stop_polling("k")
        scheduler.start_recursive_polling("k", new_probe, 1_000)
        await clock.advance(3_000)

        assert calls == ["old", "new", "new", "new"]
