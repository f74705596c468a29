"""Dashboard session composition root.

Builds one scheduler, one API client, the lifecycle hooks and the three
trackers from a ``PollingConfig`` and tears them down together::

    async with DashboardSession() as session:
        session.training.track(avatars)
        await session.wait_for_shutdown()

Leaving the ``async with`` block stops every poll, waits for in-flight
probes and closes the HTTP client.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from status_polling.clients.http import AvatarJobsClient
from status_polling.core.config import PollingConfig
from status_polling.polling.lifecycle import LifecycleHooks
from status_polling.polling.scheduler import PollingScheduler
from status_polling.tracking.ai_generation import AiAvatarGenerationTracker
from status_polling.tracking.looks import LookGenerationTracker
from status_polling.tracking.training import TrainingStatusTracker

if TYPE_CHECKING:
    from types import TracebackType

    from status_polling.clients.base import AvatarJobsApi
    from status_polling.core.clock import Clock

logger = logging.getLogger("status_polling.session")


class DashboardSession:
    """Owns the polling engine and its use cases for one dashboard session.

    Args:
        config: Polling configuration; loaded from the environment when omitted.
        client: Avatar jobs API; an ``AvatarJobsClient`` is built from
            *config* when omitted.
        clock: Timer capability; defaults to the running asyncio loop.
    """

    def __init__(
        self,
        config: PollingConfig | None = None,
        *,
        client: AvatarJobsApi | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config if config is not None else PollingConfig.from_env()
        self.scheduler = PollingScheduler.from_config(self.config, clock)
        self.client: AvatarJobsApi = (
            client if client is not None else AvatarJobsClient.from_config(self.config)
        )
        self.lifecycle = LifecycleHooks(self.scheduler)

        self.training = TrainingStatusTracker(
            self.scheduler,
            self.client,
            interval_ms=self.config.training_poll_interval_ms,
        )
        self.ai_generation = AiAvatarGenerationTracker(
            self.scheduler,
            self.client,
            interval_ms=self.config.generation_poll_interval_ms,
            timeout_ms=self.config.generation_timeout_ms,
        )
        self.looks = LookGenerationTracker(
            self.scheduler,
            self.client,
            interval_ms=self.config.generation_poll_interval_ms,
            max_attempts=self.config.look_max_attempts,
            timeout_ms=self.config.generation_timeout_ms,
        )
        self._closed = False

    async def __aenter__(self) -> DashboardSession:
        self.lifecycle.install()
        logger.info("Dashboard session started | api=%s", self.config.api_base_url)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def wait_for_shutdown(self) -> None:
        """Block until a shutdown signal has been received."""
        await self.lifecycle.shutdown_requested.wait()

    async def aclose(self) -> None:
        """Stop every tracker and poll, then release the API client. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.training.close()
        self.ai_generation.close()
        self.looks.close()
        self.lifecycle.uninstall()
        await self.scheduler.aclose()
        await self.client.aclose()
        logger.info("Dashboard session closed")
