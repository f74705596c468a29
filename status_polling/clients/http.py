"""httpx adapter for the dashboard's avatar job endpoints.

Concrete ``AvatarJobsApi`` implementation over ``httpx.AsyncClient``.

Endpoints:
    GET  /api/avatars/training-status/{group_id}
    GET  /api/avatars/generation-status/{generation_id}
    POST /api/avatars/generate-ai
    POST /api/avatars/complete-ai-generation
    POST /api/avatars/generate-look

Error mapping:
    Timeouts, connection failures, HTTP 429 and 5xx raise a retryable
    ``StatusApiError``; other 4xx raise a non-retryable one. Bodies that
    are not a JSON object raise ``ContractError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from status_polling.clients.base import AvatarJobsApi, StatusApiError, TransientStatusApiError
from status_polling.core.exceptions import ContractError, ValidationError
from status_polling.models.status import GenerationStatus, TrainingStatus

if TYPE_CHECKING:
    from types import TracebackType

    from status_polling.core.config import PollingConfig

logger = logging.getLogger("status_polling.clients.http")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TRAINING_STATUS_PATH = "/api/avatars/training-status/{group_id}"
GENERATION_STATUS_PATH = "/api/avatars/generation-status/{generation_id}"
GENERATE_AI_PATH = "/api/avatars/generate-ai"
COMPLETE_AI_PATH = "/api/avatars/complete-ai-generation"
GENERATE_LOOK_PATH = "/api/avatars/generate-look"

_DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


class AvatarJobsClient(AvatarJobsApi):
    """Avatar job endpoints over HTTP.

    Args:
        base_url: API root, e.g. ``https://dashboard.example.com``.
        token: Bearer token; omitted from requests when empty.
        timeout_s: Per-request timeout in seconds.
        http_client: Pre-built ``httpx.AsyncClient`` (its ``base_url`` is
            used as-is). The client is only closed by ``aclose`` when this
            class created it.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        token: str = "",
        timeout_s: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)

    @classmethod
    def from_config(
        cls,
        config: PollingConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> AvatarJobsClient:
        return cls(
            config.api_base_url,
            token=config.api_token,
            timeout_s=config.request_timeout_s,
            http_client=http_client,
        )

    # ------------------------------------------------------------------
    # Status checks
    # ------------------------------------------------------------------

    async def get_training_status(self, group_id: str) -> TrainingStatus:
        payload = await self._request("GET", TRAINING_STATUS_PATH.format(group_id=group_id))
        return TrainingStatus.from_payload(group_id, payload)

    async def get_generation_status(self, generation_id: str) -> GenerationStatus:
        path = GENERATION_STATUS_PATH.format(generation_id=generation_id)
        payload = await self._request("GET", path)
        return GenerationStatus.from_payload(generation_id, payload)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def start_ai_generation(self, payload: dict[str, Any]) -> str:
        data = await self._request("POST", GENERATE_AI_PATH, json=payload)
        return _require_generation_id(data, GENERATE_AI_PATH)

    async def complete_ai_generation(
        self,
        generation_id: str,
        image_keys: list[str],
        avatar_name: str,
        image_urls: list[str] | None = None,
    ) -> dict[str, Any]:
        if not generation_id or not image_keys or not avatar_name:
            msg = "generation_id, image_keys and avatar_name are required"
            raise ValidationError(msg, stage="status_api", code="INCOMPLETE_AI_GENERATION")

        body: dict[str, Any] = {
            "generation_id": generation_id,
            "image_keys": list(image_keys),
            "avatar_name": avatar_name,
        }
        if image_urls:
            body["image_urls"] = list(image_urls)
        data = await self._request("POST", COMPLETE_AI_PATH, json=body)
        avatar = data.get("avatar")
        return avatar if isinstance(avatar, dict) else {}

    async def generate_look(self, payload: dict[str, Any]) -> str:
        data = await self._request("POST", GENERATE_LOOK_PATH, json=payload)
        return _require_generation_id(data, GENERATE_LOOK_PATH)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> AvatarJobsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._http.request(method, path, json=json, headers=self._headers)
        except httpx.TimeoutException as exc:
            msg = "Request timed out. Please try again."
            raise TransientStatusApiError(
                msg, endpoint=path, code="STATUS_API_TIMEOUT"
            ) from exc
        except httpx.TransportError as exc:
            msg = "Network error. Please check your connection."
            raise TransientStatusApiError(
                msg, endpoint=path, code="STATUS_API_UNREACHABLE"
            ) from exc

        if response.is_error:
            status = response.status_code
            logger.debug("Status API error | method=%s | path=%s | status=%d", method, path, status)
            message = _extract_error_message(response)
            if status >= 500 or status == 429:
                raise TransientStatusApiError(message, endpoint=path, status_code=status)
            raise StatusApiError(message, endpoint=path, status_code=status)

        try:
            data = response.json()
        except ValueError as exc:
            msg = f"Response from {path} is not valid JSON"
            raise ContractError(msg, stage="status_api", code="INVALID_JSON") from exc
        if not isinstance(data, dict):
            msg = f"Response from {path} must be a JSON object, got {type(data).__name__}"
            raise ContractError(msg, stage="status_api", code="INVALID_STATUS_PAYLOAD")
        return data


# ---------------------------------------------------------------------------
# Helpers (module-private)
# ---------------------------------------------------------------------------


def _extract_error_message(response: httpx.Response) -> str:
    """Pull a user-facing message out of an error response body."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])

    return response.reason_phrase or _DEFAULT_ERROR_MESSAGE


def _require_generation_id(data: dict[str, Any], path: str) -> str:
    generation_id = data.get("generation_id")
    if not generation_id:
        msg = "No generation ID returned from server"
        raise ContractError(msg, stage="status_api", code="MISSING_GENERATION_ID", key=path)
    return str(generation_id)
