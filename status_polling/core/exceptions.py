"""Unified polling exception taxonomy.

Provides a shared base exception hierarchy for the polling engine, the
status API client and the tracking use cases. Every domain exception
inherits from ``PollingError`` and carries structured context fields that
let callers tell a transient probe failure from a terminal stop.

Taxonomy categories
-------------------
- ``ValidationError``: caller input violations, never retryable.
- ``TransientError``: temporary failures (network, 5xx, timeout), retryable.
- ``PermanentError``: unrecoverable failures (attempt budget spent), not retryable.
- ``ContractError``: payload/schema drift from the status API, never retryable.

Every exception exposes ``to_error_dict()`` for a stable structured error
payload suitable for logging and UI messaging.
"""

from __future__ import annotations

import httpx


class PollingError(Exception):
    """Base exception for all polling-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Component where the error occurred
            (e.g. ``"polling"``, ``"status_api"``, ``"look_generation"``).
        code: Machine-readable error code (e.g. ``"MAX_ATTEMPTS_REACHED"``).
        retryable: Whether another probe may succeed.
        key: Polling key of the operation involved, if any.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        key: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.key = key
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "key": self.key,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(PollingError):
    """Caller input failed validation. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(PollingError):
    """Temporary failure that may succeed on the next probe."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(PollingError):
    """Unrecoverable failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(PollingError):
    """Status payload did not match the expected shape. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Engine-level errors
# ---------------------------------------------------------------------------


class MaxAttemptsExceededError(PermanentError):
    """The operation used up its attempt budget and was stopped.

    Delivered to ``on_error`` so callers can tell budget exhaustion apart
    from an ordinary transient probe failure.

    Attributes:
        max_attempts: The budget that was exhausted.
    """

    default_stage = "polling"
    default_code = "MAX_ATTEMPTS_REACHED"

    def __init__(self, key: str, max_attempts: int) -> None:
        self.max_attempts = max_attempts
        super().__init__("Polling timeout: maximum attempts reached", key=key)


# ---------------------------------------------------------------------------
# Reporting policy
# ---------------------------------------------------------------------------

_QUIET_ENDPOINT_MARKERS = ("/generation-status", "/training-status")


def should_surface_error(error: BaseException | None) -> bool:
    """Return ``True`` if *error* deserves a user-visible message.

    Timeouts against the status endpoints are expected while polling and
    stay quiet. HTTP 4xx/5xx responses and errors that carry a message
    are surfaced.
    """
    if error is None:
        return False

    if isinstance(error, httpx.TimeoutException):
        try:
            url = str(error.request.url)
        except RuntimeError:
            url = ""
        if any(marker in url for marker in _QUIET_ENDPOINT_MARKERS):
            return False

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and 400 <= status_code < 600:
        return True

    if isinstance(error, PollingError):
        if error.code in ("STATUS_API_TIMEOUT", "STATUS_API_UNREACHABLE") and any(
            marker in getattr(error, "endpoint", "") for marker in _QUIET_ENDPOINT_MARKERS
        ):
            return False
        return bool(error.message)

    return bool(str(error))
