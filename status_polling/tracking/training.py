"""Training-status tracking.

Polls the training status of every avatar still training on one shared
interval operation (``training-status-polling``). Each tick checks all
tracked avatars concurrently; per-avatar failures are logged and never
break the cadence. An avatar reported ``ready`` is published as
``active``, announced through ``on_training_complete`` and dropped from
the tracked set. Polling stops once the set is empty.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from status_polling.core.constants import TRAINING_POLL_INTERVAL_MS, TRAINING_POLLING_KEY
from status_polling.core.exceptions import should_surface_error
from status_polling.polling.models import run_callback

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from status_polling.clients.base import AvatarJobsApi
    from status_polling.models.status import AvatarRecord, TrainingStatus
    from status_polling.polling.models import OperationHandle
    from status_polling.polling.scheduler import PollingScheduler

    StatusUpdateCallback = Callable[[AvatarRecord, str], None]
    TrainingCompleteCallback = Callable[[AvatarRecord], None]

logger = logging.getLogger("status_polling.tracking.training")


class TrainingStatusTracker:
    """Tracks avatars through training.

    Args:
        scheduler: Polling engine that owns the shared interval operation.
        client: Avatar jobs API.
        interval_ms: Period between training checks.
        on_status_update: Called with ``(avatar, normalized_status)`` after
            every successful check.
        on_training_complete: Called once per avatar when training finishes.
    """

    def __init__(
        self,
        scheduler: PollingScheduler,
        client: AvatarJobsApi,
        *,
        interval_ms: float = TRAINING_POLL_INTERVAL_MS,
        on_status_update: StatusUpdateCallback | None = None,
        on_training_complete: TrainingCompleteCallback | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._client = client
        self._interval_ms = interval_ms
        self._on_status_update = on_status_update
        self._on_training_complete = on_training_complete
        self._tracked: dict[str, AvatarRecord] = {}
        self._handle: OperationHandle | None = None

    @property
    def tracked(self) -> list[AvatarRecord]:
        """Avatars still being polled."""
        return list(self._tracked.values())

    @property
    def polling(self) -> bool:
        return self._scheduler.is_polling(TRAINING_POLLING_KEY)

    def track(self, avatars: Iterable[AvatarRecord]) -> OperationHandle | None:
        """Replace the tracked set and (re)start the shared poll.

        Only avatars in a training state are kept. Any running training
        poll is stopped first; nothing is started when no avatar needs it.

        Returns:
            The new operation handle, or ``None`` if nothing is training.
        """
        self.close()
        self._tracked = {avatar.id: avatar for avatar in avatars if avatar.is_training}
        if not self._tracked:
            return None

        logger.info("Tracking training | avatars=%d", len(self._tracked))
        self._handle = self._scheduler.start_polling(
            TRAINING_POLLING_KEY,
            self._check_all,
            self._interval_ms,
            immediate=False,
            on_error=self._on_poll_error,
        )
        return self._handle

    async def refresh_status(
        self,
        avatar: AvatarRecord,
        *,
        silent: bool = False,
    ) -> TrainingStatus | None:
        """Check one avatar's training status now.

        Args:
            avatar: Avatar to check.
            silent: Log failures instead of raising them.

        Returns:
            The status, or ``None`` when a silent check failed.

        Raises:
            StatusApiError: When the check fails and *silent* is false.
        """
        try:
            status = await self._client.get_training_status(avatar.group_id)
        except Exception as exc:
            if not silent:
                raise
            if should_surface_error(exc):
                logger.warning(
                    "Training status check failed | avatar=%s | error=%s", avatar.id, exc
                )
            else:
                logger.debug(
                    "Training status check failed | avatar=%s | error=%s", avatar.id, exc
                )
            return None

        normalized = status.normalized(avatar.status)
        updated = avatar.with_status(normalized)
        if avatar.id in self._tracked:
            if status.is_ready or not updated.is_training:
                del self._tracked[avatar.id]
            else:
                self._tracked[avatar.id] = updated

        if self._on_status_update is not None:
            run_callback(
                self._on_status_update,
                updated,
                normalized,
                key=TRAINING_POLLING_KEY,
                name="on_status_update",
            )
        if status.is_ready:
            logger.info("Training complete | avatar=%s", avatar.id)
            if self._on_training_complete is not None:
                run_callback(
                    self._on_training_complete,
                    updated,
                    key=TRAINING_POLLING_KEY,
                    name="on_training_complete",
                )
        return status

    def close(self) -> None:
        """Stop the shared poll, if running."""
        if self._handle is not None:
            self._scheduler.stop_polling(TRAINING_POLLING_KEY)
            self._handle = None

    async def _check_all(self) -> None:
        avatars = list(self._tracked.values())
        await asyncio.gather(*(self.refresh_status(avatar, silent=True) for avatar in avatars))
        if not self._tracked:
            logger.info("No avatars left in training | key=%s", TRAINING_POLLING_KEY)
            self.close()

    def _on_poll_error(self, error: BaseException) -> None:
        if should_surface_error(error):
            logger.error("Training status polling error | error=%s", error)
        else:
            logger.debug("Training status polling error | error=%s", error)
