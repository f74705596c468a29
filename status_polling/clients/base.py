"""AvatarJobsApi abstract base class.

Defines the contract the tracking use cases rely on. The trackers only
ever talk to this interface; the polling engine itself never sees it, it
only receives probes that wrap these calls.

Lifecycle of a generation:
    1. ``start_ai_generation(payload)`` or ``generate_look(payload)``: submit, get an id.
    2. ``get_generation_status(id)``: polled until terminal.
    3. ``complete_ai_generation(...)``: AI avatars only.

Training is polled with ``get_training_status(group_id)``.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

from status_polling.core.exceptions import PollingError, TransientError

if TYPE_CHECKING:
    from status_polling.models.status import GenerationStatus, TrainingStatus


class AvatarJobsApi(abc.ABC):
    """Abstract client for the avatar job endpoints."""

    @abc.abstractmethod
    async def get_training_status(self, group_id: str) -> TrainingStatus:
        """Return the current training status of an avatar group.

        Raises:
            StatusApiError: On transport or HTTP errors.
        """

    @abc.abstractmethod
    async def get_generation_status(self, generation_id: str) -> GenerationStatus:
        """Return the current status of an AI-avatar or look generation.

        Raises:
            StatusApiError: On transport or HTTP errors.
        """

    @abc.abstractmethod
    async def start_ai_generation(self, payload: dict[str, Any]) -> str:
        """Submit an AI-avatar generation and return its generation id."""

    @abc.abstractmethod
    async def complete_ai_generation(
        self,
        generation_id: str,
        image_keys: list[str],
        avatar_name: str,
        image_urls: list[str] | None = None,
    ) -> dict[str, Any]:
        """Turn generated photos into an avatar and return the saved avatar."""

    @abc.abstractmethod
    async def generate_look(self, payload: dict[str, Any]) -> str:
        """Submit a look generation and return its generation id."""

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources. No-op by default."""


# ---------------------------------------------------------------------------
# Client exceptions
# ---------------------------------------------------------------------------


class StatusApiError(PollingError):
    """Transport or HTTP failure talking to the avatar job endpoints.

    Attributes:
        endpoint: Request path that failed.
        status_code: HTTP status, or ``None`` for transport failures.
        retryable: Whether a later probe may succeed.
    """

    default_stage = "status_api"
    default_code = "STATUS_API_HTTP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        status_code: int | None = None,
        retryable: bool = False,
        code: str = "",
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message, retryable=retryable, code=code)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code} {self.endpoint}] {self.message}"
        return f"[{self.endpoint}] {self.message}"


class TransientStatusApiError(StatusApiError, TransientError):
    """Timeout, transport failure, 5xx or 429 from the avatar job endpoints.

    The next probe may succeed; the polling engine counts it toward the
    backoff streak.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        status_code: int | None = None,
        code: str = "",
    ) -> None:
        super().__init__(
            message, endpoint=endpoint, status_code=status_code, retryable=True, code=code
        )
