"""Look generation tracking.

Submits look generations for trained avatars and polls each one under its
own key (``look-generation-{generation_id}-{avatar_id}``). Polls start
immediately, repeat every 5 s for at most 60 attempts, and stop once the
generation reports ``success`` or ``failed``. A parallel 5-minute timer
force-cancels a poll that is still running.

``generating_look_ids`` holds the avatars with a look in progress.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING

from status_polling.core.constants import (
    GENERATION_POLL_INTERVAL_MS,
    GENERATION_TIMEOUT_MS,
    LOOK_MAX_ATTEMPTS,
    look_generation_polling_key,
)
from status_polling.core.exceptions import (
    MaxAttemptsExceededError,
    ValidationError,
    should_surface_error,
)
from status_polling.polling.models import run_callback

if TYPE_CHECKING:
    from collections.abc import Callable

    from status_polling.clients.base import AvatarJobsApi
    from status_polling.core.clock import TimerHandle
    from status_polling.models.status import AvatarRecord
    from status_polling.polling.models import OperationHandle
    from status_polling.polling.scheduler import PollingScheduler

logger = logging.getLogger("status_polling.tracking.looks")

LOOK_POSES = frozenset({"half_body", "full_body", "close_up"})
LOOK_STYLES = frozenset({"Realistic", "Cartoon", "Anime"})

UNTRAINED_AVATAR_MESSAGE = (
    "Avatar must be trained before generating looks. Please train the avatar first."
)
LOOK_FAILED_MESSAGE = "Look generation failed"
LOOK_TIMEOUT_MESSAGE = (
    "Look generation is taking longer than expected. "
    "Please check back later or refresh the page."
)

_IN_PROGRESS = "in_progress"
_COMPLETE = "complete"


class LookGenerationTracker:
    """Generates looks and tracks them to completion.

    Args:
        scheduler: Polling engine.
        client: Avatar jobs API.
        interval_ms: Pause between status checks.
        max_attempts: Status checks allowed per generation.
        timeout_ms: Wall-clock limit per generation.
        on_success: Called with ``(avatar_id, generation_id)`` when a look is ready.
        on_error: Called with a user-facing message on failure or timeout.
    """

    def __init__(
        self,
        scheduler: PollingScheduler,
        client: AvatarJobsApi,
        *,
        interval_ms: float = GENERATION_POLL_INTERVAL_MS,
        max_attempts: int = LOOK_MAX_ATTEMPTS,
        timeout_ms: float = GENERATION_TIMEOUT_MS,
        on_success: Callable[[str, str], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._client = client
        self._interval_ms = interval_ms
        self._max_attempts = max_attempts
        self._timeout_ms = timeout_ms
        self._on_success = on_success
        self._on_error = on_error

        self.generating = False
        self.generating_look_ids: set[str] = set()
        self._handles: dict[str, OperationHandle] = {}
        self._timeouts: dict[str, TimerHandle] = {}

    async def generate_look(
        self,
        avatar: AvatarRecord,
        prompt: str,
        *,
        pose: str = "half_body",
        style: str = "Realistic",
    ) -> str:
        """Submit a look generation for *avatar* and start polling it.

        Returns:
            The generation id.

        Raises:
            ValidationError: If the avatar is not trained or the inputs are invalid.
            StatusApiError: When submission fails.
            ContractError: When the server returns no generation id.
        """
        if not avatar.can_generate_looks:
            raise ValidationError(
                UNTRAINED_AVATAR_MESSAGE, stage="look_generation", code="AVATAR_NOT_TRAINED"
            )
        prompt = prompt.strip()
        if not prompt:
            raise ValidationError(
                "Look prompt must not be empty", stage="look_generation", code="EMPTY_PROMPT"
            )
        if pose not in LOOK_POSES:
            msg = f"Unsupported pose '{pose}'; expected one of {sorted(LOOK_POSES)}"
            raise ValidationError(msg, stage="look_generation", code="INVALID_POSE")
        if style not in LOOK_STYLES:
            msg = f"Unsupported style '{style}'; expected one of {sorted(LOOK_STYLES)}"
            raise ValidationError(msg, stage="look_generation", code="INVALID_STYLE")

        self.generating = True
        try:
            generation_id = await self._client.generate_look(
                {
                    "group_id": avatar.group_id,
                    "prompt": prompt,
                    "orientation": "vertical",
                    "pose": pose,
                    "style": style,
                }
            )
        except Exception as exc:
            self.generating_look_ids.discard(avatar.id)
            logger.error("Look generation request failed | avatar=%s | error=%s", avatar.id, exc)
            self._report(str(exc) or LOOK_FAILED_MESSAGE, key=avatar.id)
            raise
        finally:
            self.generating = False

        self.generating_look_ids.add(avatar.id)
        self.poll_status(generation_id, avatar.id)
        return generation_id

    def poll_status(self, generation_id: str, avatar_id: str) -> OperationHandle:
        """Poll a submitted look generation, replacing any poll under the same key."""
        key = look_generation_polling_key(generation_id, avatar_id)
        self._release(key)

        handle = self._scheduler.start_recursive_polling(
            key,
            functools.partial(self._check, key, generation_id, avatar_id),
            self._interval_ms,
            should_continue=lambda state: state == _IN_PROGRESS,
            immediate=True,
            max_attempts=self._max_attempts,
            on_complete=functools.partial(self.generating_look_ids.discard, avatar_id),
            on_error=functools.partial(self._on_probe_error, key, avatar_id),
        )
        self._handles[key] = handle
        self._timeouts[key] = self._scheduler.clock.call_later(
            self._timeout_ms, functools.partial(self._on_timeout, key, avatar_id)
        )
        logger.info("Look generation polling | key=%s", key)
        return handle

    def is_generating(self, avatar_id: str) -> bool:
        return avatar_id in self.generating_look_ids

    def close(self) -> None:
        """Stop every look poll and timeout."""
        for key in list(self._handles):
            self._release(key)
        self.generating_look_ids.clear()

    # ------------------------------------------------------------------
    # Polling callbacks
    # ------------------------------------------------------------------

    async def _check(self, key: str, generation_id: str, avatar_id: str) -> str:
        status = await self._client.get_generation_status(generation_id)
        if status.succeeded:
            self._finish(key, avatar_id)
            logger.info("Look generation completed | key=%s", key)
            if self._on_success is not None:
                run_callback(self._on_success, avatar_id, generation_id, key=key, name="on_success")
            return _COMPLETE
        if status.failed:
            self._finish(key, avatar_id)
            logger.error("Look generation failed | key=%s | msg=%s", key, status.message)
            self._report(LOOK_FAILED_MESSAGE, key=key)
            return _COMPLETE
        return _IN_PROGRESS

    def _on_probe_error(self, key: str, avatar_id: str, error: BaseException) -> None:
        if isinstance(error, MaxAttemptsExceededError):
            self._finish(key, avatar_id)
            self._report(LOOK_TIMEOUT_MESSAGE, key=key)
            return
        if should_surface_error(error):
            logger.error("Look generation status check error | key=%s | error=%s", key, error)
        else:
            logger.debug("Look generation status check error | key=%s | error=%s", key, error)

    def _on_timeout(self, key: str, avatar_id: str) -> None:
        self._timeouts.pop(key, None)
        handle = self._handles.pop(key, None)
        if not self._scheduler.is_polling(key):
            return
        logger.warning("Look generation timed out | key=%s | timeout_ms=%d", key, self._timeout_ms)
        if handle is not None:
            handle.cancel()
        else:
            self._scheduler.stop_polling(key)
        self.generating_look_ids.discard(avatar_id)
        self._report(LOOK_TIMEOUT_MESSAGE, key=key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _finish(self, key: str, avatar_id: str) -> None:
        self.generating_look_ids.discard(avatar_id)
        self._handles.pop(key, None)
        timer = self._timeouts.pop(key, None)
        if timer is not None:
            timer.cancel()

    def _release(self, key: str) -> None:
        timer = self._timeouts.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._handles.pop(key, None)
        self._scheduler.stop_polling(key)

    def _report(self, message: str, *, key: str) -> None:
        if self._on_error is not None:
            run_callback(self._on_error, message, key=key, name="on_error")
