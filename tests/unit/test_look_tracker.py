"""Tests for look generation tracking.

Covers:
- Trained-avatar precondition and input validation
- Immediate recursive polling every 5 s until success or failure
- ``generating_look_ids`` bookkeeping
- Attempt budget and 5-minute wall-clock timeout
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from status_polling.clients.base import StatusApiError
from status_polling.core.constants import look_generation_polling_key
from status_polling.core.exceptions import ValidationError
from status_polling.models.status import AvatarRecord, GenerationStatus
from status_polling.polling.scheduler import PollingScheduler
from status_polling.testing import VirtualClock
from status_polling.tracking.looks import (
    LOOK_FAILED_MESSAGE,
    LOOK_TIMEOUT_MESSAGE,
    LookGenerationTracker,
)

KEY = look_generation_polling_key("gen-7", "a1")


def _avatar(status: str = "active") -> AvatarRecord:
    return AvatarRecord(id="a1", group_id="grp-a1", status=status, name="Ada")


def _status(status: str) -> GenerationStatus:
    return GenerationStatus(generation_id="gen-7", status=status)


class TestGenerateLook:
    """Submission and validation."""

    @pytest.mark.asyncio
    async def test_untrained_avatar_rejected(
        self, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        tracker = LookGenerationTracker(scheduler, api)

        with pytest.raises(ValidationError, match="must be trained"):
            await tracker.generate_look(_avatar("training"), "beach sunset")

        api.generate_look.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("prompt", "pose", "style"),
        [
            ("   ", "half_body", "Realistic"),
            ("beach", "sitting", "Realistic"),
            ("beach", "close_up", "Oil"),
        ],
    )
    async def test_invalid_inputs_rejected(
        self,
        scheduler: PollingScheduler,
        api: AsyncMock,
        prompt: str,
        pose: str,
        style: str,
    ) -> None:
        tracker = LookGenerationTracker(scheduler, api)

        with pytest.raises(ValidationError):
            await tracker.generate_look(_avatar(), prompt, pose=pose, style=style)

    @pytest.mark.asyncio
    async def test_submits_payload_and_polls_immediately(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.generate_look.return_value = "gen-7"
        api.get_generation_status.return_value = _status("in_progress")
        tracker = LookGenerationTracker(scheduler, api)

        generation_id = await tracker.generate_look(
            _avatar("ready"), "  beach sunset ", pose="full_body", style="Anime"
        )
        await clock.settle()

        assert generation_id == "gen-7"
        api.generate_look.assert_awaited_once_with(
            {
                "group_id": "grp-a1",
                "prompt": "beach sunset",
                "orientation": "vertical",
                "pose": "full_body",
                "style": "Anime",
            }
        )
        api.get_generation_status.assert_awaited_once_with("gen-7")
        assert tracker.is_generating("a1")
        assert scheduler.is_polling(KEY)
        assert tracker.generating is False

    @pytest.mark.asyncio
    async def test_submission_failure_reports_and_raises(
        self, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.generate_look.side_effect = StatusApiError("Insufficient credits", status_code=402)
        on_error = MagicMock()
        tracker = LookGenerationTracker(scheduler, api, on_error=on_error)

        with pytest.raises(StatusApiError):
            await tracker.generate_look(_avatar(), "beach")

        on_error.assert_called_once()
        assert "Insufficient credits" in on_error.call_args.args[0]
        assert tracker.generating_look_ids == set()
        assert tracker.generating is False


class TestPolling:
    """Status polling outcomes."""

    @pytest.mark.asyncio
    async def test_success_clears_generating_and_notifies(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.generate_look.return_value = "gen-7"
        api.get_generation_status.side_effect = [_status("in_progress"), _status("success")]
        on_success = MagicMock()
        tracker = LookGenerationTracker(scheduler, api, on_success=on_success)

        await tracker.generate_look(_avatar(), "beach")
        await clock.advance(5_000)

        on_success.assert_called_once_with("a1", "gen-7")
        assert not tracker.is_generating("a1")
        assert not scheduler.is_polling(KEY)
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_failed_generation_reports_error(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.get_generation_status.return_value = _status("failed")
        on_error = MagicMock()
        tracker = LookGenerationTracker(scheduler, api, on_error=on_error)
        tracker.generating_look_ids.add("a1")

        tracker.poll_status("gen-7", "a1")
        await clock.settle()

        on_error.assert_called_once_with(LOOK_FAILED_MESSAGE)
        assert not tracker.is_generating("a1")
        assert not scheduler.is_polling(KEY)

    @pytest.mark.asyncio
    async def test_attempt_budget_reports_timeout(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.get_generation_status.return_value = _status("in_progress")
        on_error = MagicMock()
        tracker = LookGenerationTracker(scheduler, api, max_attempts=3, on_error=on_error)
        tracker.generating_look_ids.add("a1")

        tracker.poll_status("gen-7", "a1")
        await clock.advance(60_000)

        assert api.get_generation_status.await_count == 3
        on_error.assert_called_once_with(LOOK_TIMEOUT_MESSAGE)
        assert not tracker.is_generating("a1")
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_wall_clock_timeout_cancels(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.get_generation_status.return_value = _status("in_progress")
        on_error = MagicMock()
        tracker = LookGenerationTracker(scheduler, api, timeout_ms=12_000, on_error=on_error)
        tracker.generating_look_ids.add("a1")

        tracker.poll_status("gen-7", "a1")
        await clock.advance(60_000)

        assert api.get_generation_status.await_count == 3
        on_error.assert_called_once_with(LOOK_TIMEOUT_MESSAGE)
        assert not tracker.is_generating("a1")
        assert not scheduler.is_polling(KEY)

    @pytest.mark.asyncio
    async def test_repoll_replaces_existing_operation(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.get_generation_status.return_value = _status("in_progress")
        tracker = LookGenerationTracker(scheduler, api)

        first = tracker.poll_status("gen-7", "a1")
        second = tracker.poll_status("gen-7", "a1")
        await clock.advance(5_000)

        assert first is not second
        assert not first.active
        assert second.active
        # The replaced operation is stopped before its immediate probe runs.
        assert api.get_generation_status.await_count == 2

    @pytest.mark.asyncio
    async def test_close_stops_everything(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.get_generation_status.return_value = _status("in_progress")
        tracker = LookGenerationTracker(scheduler, api)
        tracker.generating_look_ids.add("a1")
        tracker.poll_status("gen-7", "a1")
        await clock.settle()

        tracker.close()
        await clock.advance(600_000)

        assert api.get_generation_status.await_count == 1
        assert tracker.generating_look_ids == set()
        assert clock.pending == 0


class TestBookkeeping:
    """Finished looks release their handles and timers."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("final", ["success", "failed"])
    async def test_finished_looks_leave_no_handles(
        self,
        clock: VirtualClock,
        scheduler: PollingScheduler,
        api: AsyncMock,
        final: str,
    ) -> None:
        generation_ids = [f"gen-{n}" for n in range(5)]
        api.generate_look.side_effect = generation_ids
        api.get_generation_status.return_value = _status(final)
        tracker = LookGenerationTracker(scheduler, api)

        for _ in generation_ids:
            await tracker.generate_look(_avatar(), "beach")
            await clock.settle()

        assert tracker._handles == {}
        assert tracker._timeouts == {}
        assert scheduler.active_keys() == []
        assert clock.pending == 0

    @pytest.mark.asyncio
    async def test_attempt_budget_leaves_no_handles(
        self, clock: VirtualClock, scheduler: PollingScheduler, api: AsyncMock
    ) -> None:
        api.get_generation_status.return_value = _status("in_progress")
        tracker = LookGenerationTracker(scheduler, api, max_attempts=2)

        tracker.poll_status("gen-7", "a1")
        await clock.advance(30_000)

        assert tracker._handles == {}
        assert tracker._timeouts == {}
