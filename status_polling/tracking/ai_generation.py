"""AI-avatar generation tracking.

Drives one AI-avatar generation through its UI stages::

    idle -> creating -> photos_ready -> completing -> completed

``start`` submits the generation and polls its status recursively until
it reports ``success`` (photos become selectable) or ``failed``. A
wall-clock timer layered on the clock cancels polling that is still
running after ``timeout_ms``. ``complete`` turns the chosen photos into a
saved avatar.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any

from status_polling.core.constants import (
    GENERATION_POLL_INTERVAL_MS,
    GENERATION_TIMEOUT_MS,
    ai_generation_polling_key,
)
from status_polling.core.exceptions import ValidationError, should_surface_error
from status_polling.models.status import GenerationStage, GenerationStatus
from status_polling.polling.models import run_callback

if TYPE_CHECKING:
    from collections.abc import Callable

    from status_polling.clients.base import AvatarJobsApi
    from status_polling.core.clock import TimerHandle
    from status_polling.polling.models import OperationHandle
    from status_polling.polling.scheduler import PollingScheduler

logger = logging.getLogger("status_polling.tracking.ai_generation")

GENERATION_FAILED_MESSAGE = "AI generation failed"
GENERATION_TIMEOUT_MESSAGE = (
    "AI generation is taking longer than expected. Please check back later."
)


class AiAvatarGenerationTracker:
    """Tracks a single AI-avatar generation.

    Args:
        scheduler: Polling engine.
        client: Avatar jobs API.
        interval_ms: Pause between status checks.
        timeout_ms: Wall-clock limit for the polling phase.
        on_stage_change: Called with the new ``GenerationStage``.
        on_error: Called with a user-facing message when the generation
            fails or times out.
    """

    def __init__(
        self,
        scheduler: PollingScheduler,
        client: AvatarJobsApi,
        *,
        interval_ms: float = GENERATION_POLL_INTERVAL_MS,
        timeout_ms: float = GENERATION_TIMEOUT_MS,
        on_stage_change: Callable[[GenerationStage], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._client = client
        self._interval_ms = interval_ms
        self._timeout_ms = timeout_ms
        self._on_stage_change = on_stage_change
        self._on_error = on_error

        self.stage = GenerationStage.IDLE
        self.generation_id: str | None = None
        self.error: str | None = None
        self.latest: GenerationStatus | None = None
        self._handle: OperationHandle | None = None
        self._timeout: TimerHandle | None = None

    @property
    def photos(self) -> list[dict[str, str]]:
        """Generated photos (``url``/``key`` pairs) once the stage is ``photos_ready``."""
        return self.latest.photos if self.latest is not None else []

    @property
    def polling(self) -> bool:
        return self.generation_id is not None and self._scheduler.is_polling(
            ai_generation_polling_key(self.generation_id)
        )

    async def start(self, payload: dict[str, Any]) -> str:
        """Submit a generation and begin polling it.

        Returns:
            The generation id.

        Raises:
            StatusApiError: When submission fails; the stage returns to ``idle``.
        """
        self.close()
        self.generation_id = None
        self.error = None
        self.latest = None
        self._set_stage(GenerationStage.CREATING)
        try:
            generation_id = await self._client.start_ai_generation(payload)
        except Exception as exc:
            self.error = str(exc) if should_surface_error(exc) else GENERATION_FAILED_MESSAGE
            self._set_stage(GenerationStage.IDLE)
            raise

        self.poll(generation_id)
        return generation_id

    def poll(self, generation_id: str) -> OperationHandle:
        """Poll an already-submitted generation until it is terminal."""
        self.generation_id = generation_id
        key = ai_generation_polling_key(generation_id)
        self._handle = self._scheduler.start_recursive_polling(
            key,
            functools.partial(self._check, generation_id),
            self._interval_ms,
            should_continue=lambda status: not status.is_terminal,
            on_error=functools.partial(self._on_probe_error, generation_id),
        )
        self._cancel_timeout()
        self._timeout = self._scheduler.clock.call_later(
            self._timeout_ms, functools.partial(self._on_timeout, key)
        )
        logger.info("AI generation polling | generation_id=%s | key=%s", generation_id, key)
        return self._handle

    async def complete(
        self,
        image_keys: list[str],
        avatar_name: str,
        image_urls: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create the avatar from the selected photos.

        Raises:
            ValidationError: If no photos are ready to be completed.
            StatusApiError: When the API call fails; the stage returns to
                ``photos_ready`` so the selection can be retried.
        """
        if self.stage is not GenerationStage.PHOTOS_READY or self.generation_id is None:
            msg = f"Cannot complete AI generation in stage '{self.stage.value}'"
            raise ValidationError(msg, stage="ai_generation", code="PHOTOS_NOT_READY")

        self._set_stage(GenerationStage.COMPLETING)
        try:
            avatar = await self._client.complete_ai_generation(
                self.generation_id, image_keys, avatar_name, image_urls
            )
        except Exception as exc:
            self.error = str(exc)
            self._set_stage(GenerationStage.PHOTOS_READY)
            raise

        self._set_stage(GenerationStage.COMPLETED)
        logger.info("AI avatar created | generation_id=%s", self.generation_id)
        return avatar

    def reset(self) -> None:
        """Stop tracking and return to ``idle``."""
        self.close()
        self.generation_id = None
        self.error = None
        self.latest = None
        self._set_stage(GenerationStage.IDLE)

    def close(self) -> None:
        """Stop polling and the timeout timer."""
        self._cancel_timeout()
        if self.generation_id is not None:
            self._scheduler.stop_polling(ai_generation_polling_key(self.generation_id))
        self._handle = None

    # ------------------------------------------------------------------
    # Polling callbacks
    # ------------------------------------------------------------------

    async def _check(self, generation_id: str) -> GenerationStatus:
        status = await self._client.get_generation_status(generation_id)
        if generation_id != self.generation_id:
            return status

        self.latest = status
        if status.succeeded:
            self._cancel_timeout()
            logger.info(
                "AI generation photos ready | generation_id=%s | photos=%d",
                generation_id,
                len(status.photos),
            )
            self._set_stage(GenerationStage.PHOTOS_READY)
        elif status.failed:
            self._cancel_timeout()
            self._fail(status.message or GENERATION_FAILED_MESSAGE)
        return status

    def _on_probe_error(self, generation_id: str, error: BaseException) -> None:
        if should_surface_error(error):
            logger.warning(
                "AI generation status check failed | generation_id=%s | error=%s",
                generation_id,
                error,
            )
        else:
            logger.debug(
                "AI generation status check failed | generation_id=%s | error=%s",
                generation_id,
                error,
            )

    def _on_timeout(self, key: str) -> None:
        self._timeout = None
        if not self._scheduler.is_polling(key):
            return
        logger.warning("AI generation timed out | key=%s | timeout_ms=%d", key, self._timeout_ms)
        self._scheduler.stop_polling(key)
        self._fail(GENERATION_TIMEOUT_MESSAGE)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _fail(self, message: str) -> None:
        self.error = message
        self._set_stage(GenerationStage.IDLE)
        if self._on_error is not None:
            run_callback(self._on_error, message, key=self._key(), name="on_error")

    def _set_stage(self, stage: GenerationStage) -> None:
        if stage is self.stage:
            return
        logger.debug("AI generation stage | %s -> %s", self.stage.value, stage.value)
        self.stage = stage
        if self._on_stage_change is not None:
            run_callback(self._on_stage_change, stage, key=self._key(), name="on_stage_change")

    def _cancel_timeout(self) -> None:
        if self._timeout is not None:
            self._timeout.cancel()
            self._timeout = None

    def _key(self) -> str:
        return ai_generation_polling_key(self.generation_id or "pending")
