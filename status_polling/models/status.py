"""Typed models for avatar job statuses.

Defines the data exchanged between the status API client and the
tracking use cases:

- ``AvatarRecord``: An avatar as the dashboard knows it
- ``TrainingStatus``: Result of a training-status check
- ``GenerationStatus``: Result of a generation-status check (AI avatar or look)
- ``GenerationStage``: UI stage of an AI-avatar generation

Design notes:
- Frozen dataclasses; status strings are kept verbatim from the API and
  interpreted through the vocabularies in ``core.constants``.
- ``from_payload`` accepts both ``{"data": {...}}`` envelopes and bare
  objects, the two shapes the status endpoints return.
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from status_polling.core.constants import (
    GENERATION_TERMINAL_STATES,
    TRAINABLE_READY_STATES,
    TRAINING_IN_PROGRESS_STATES,
)
from status_polling.core.exceptions import ContractError, PollingError


class ModelValidationError(ValueError, PollingError):
    """Raised when a status model is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        PollingError.__init__(self, f"{model}.{field_name}={value!r}: {message}")


# ---------------------------------------------------------------------------
# Avatars
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AvatarRecord:
    """An avatar tracked by the dashboard.

    Attributes:
        id: Dashboard avatar identifier.
        group_id: Upstream avatar-group identifier used by the status endpoints.
        status: Last known status (``pending``, ``training``, ``active``...).
        name: Display name.
    """

    id: str
    group_id: str
    status: str = "pending"
    name: str = ""

    def __post_init__(self) -> None:
        _check_non_empty("AvatarRecord", "id", self.id)
        _check_non_empty("AvatarRecord", "group_id", self.group_id)

    @property
    def is_training(self) -> bool:
        return self.status in TRAINING_IN_PROGRESS_STATES

    @property
    def can_generate_looks(self) -> bool:
        return self.status in TRAINABLE_READY_STATES

    def with_status(self, status: str) -> AvatarRecord:
        return dataclasses.replace(self, status=status)


# ---------------------------------------------------------------------------
# Status checks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TrainingStatus:
    """Result of one training-status check.

    Attributes:
        group_id: Avatar group that was checked.
        status: Raw status string (``ready`` once training has finished).
        error_msg: Upstream error description, if any.
        created_at: When training started, if reported.
        updated_at: Last upstream update, if reported.
        checked_at: When this check completed.
    """

    group_id: str
    status: str = "pending"
    error_msg: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_payload(cls, group_id: str, payload: Mapping[str, Any]) -> TrainingStatus:
        data = _unwrap(payload, "TrainingStatus")
        return cls(
            group_id=group_id,
            status=str(data.get("status") or "pending"),
            error_msg=data.get("error_msg") or None,
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"

    def normalized(self, fallback: str = "") -> str:
        """Return the dashboard status: ``ready`` becomes ``active``."""
        if self.is_ready:
            return "active"
        return self.status or fallback


@dataclass(frozen=True, slots=True)
class GenerationStatus:
    """Result of one generation-status check.

    Attributes:
        generation_id: Generation that was checked.
        status: ``in_progress``, ``success`` or ``failed``.
        message: Upstream status message, if any.
        image_urls: Generated image URLs (populated on success).
        image_keys: Storage keys matching ``image_urls``.
        checked_at: When this check completed.
    """

    generation_id: str
    status: str = "in_progress"
    message: str | None = None
    image_urls: tuple[str, ...] = ()
    image_keys: tuple[str, ...] = ()
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        _check_non_empty("GenerationStatus", "generation_id", self.generation_id)

    @classmethod
    def from_payload(cls, generation_id: str, payload: Mapping[str, Any]) -> GenerationStatus:
        data = _unwrap(payload, "GenerationStatus")
        return cls(
            generation_id=str(data.get("id") or generation_id),
            status=str(data.get("status") or "in_progress"),
            message=data.get("msg") or None,
            image_urls=tuple(str(u) for u in data.get("image_url_list") or ()),
            image_keys=tuple(str(k) for k in data.get("image_key_list") or ()),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in GENERATION_TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def photos(self) -> list[dict[str, str]]:
        """Pair generated image URLs with their storage keys."""
        return [{"url": url, "key": key} for url, key in zip(self.image_urls, self.image_keys)]


# ---------------------------------------------------------------------------
# AI-avatar generation stages
# ---------------------------------------------------------------------------


class GenerationStage(enum.Enum):
    """UI stage of an AI-avatar generation.

    Values:
        IDLE:         Nothing submitted.
        CREATING:     Reference photos are being generated.
        PHOTOS_READY: Photos are available for selection.
        COMPLETING:   The chosen photos are being turned into an avatar.
        COMPLETED:    Avatar saved to the workspace.
    """

    IDLE = "idle"
    CREATING = "creating"
    PHOTOS_READY = "photos_ready"
    COMPLETING = "completing"
    COMPLETED = "completed"

    @property
    def weight(self) -> int:
        return _STAGE_WEIGHTS[self]

    def step_state(self, step: GenerationStage) -> str:
        """Return ``done``, ``current`` or ``pending`` for a progress step."""
        if self.weight > step.weight:
            return "done"
        if self.weight == step.weight:
            return "current"
        return "pending"


_STAGE_WEIGHTS = {
    GenerationStage.IDLE: -1,
    GenerationStage.CREATING: 0,
    GenerationStage.PHOTOS_READY: 1,
    GenerationStage.COMPLETING: 2,
    GenerationStage.COMPLETED: 3,
}


# ---------------------------------------------------------------------------
# Helpers (module-private)
# ---------------------------------------------------------------------------


def _unwrap(payload: Mapping[str, Any], model: str) -> Mapping[str, Any]:
    """Return the ``data`` envelope when present, else *payload* itself."""
    if not isinstance(payload, Mapping):
        msg = f"{model} payload must be an object, got {type(payload).__name__}"
        raise ContractError(msg, stage="status_api", code="INVALID_STATUS_PAYLOAD")
    inner = payload.get("data")
    return inner if isinstance(inner, Mapping) else payload


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO 8601 string or epoch seconds; ``None`` when absent or unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, UTC)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _check_non_empty(model: str, field_name: str, value: str) -> None:
    """Raise `ModelValidationError` if *value* is empty or blank."""
    if not value or not value.strip():
        raise ModelValidationError(model, field_name, value, "must not be empty")
