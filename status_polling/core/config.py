"""Polling configuration loaded from environment variables.

All values have defaults matching the dashboard's production cadences, so
an empty environment yields a working configuration.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any numeric value is
    out of its valid range, catching bad configuration at session start
    instead of on the first tick.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from status_polling.core.constants import (
    DEFAULT_DEBOUNCE_MS,
    GENERATION_POLL_INTERVAL_MS,
    GENERATION_TIMEOUT_MS,
    LOOK_MAX_ATTEMPTS,
    MAX_DELAY_MS,
    TRAINING_POLL_INTERVAL_MS,
)
from status_polling.core.exceptions import PollingError


class ConfigValidationError(PollingError):
    """Raised when configuration values are out of valid range.

    Attributes:
        name: The configuration variable that failed validation.
        value: The invalid value.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, name: str, value: object, message: str) -> None:
        self.name = name
        self.value = value
        super().__init__(f"Invalid configuration {name}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class PollingConfig:
    """Immutable polling configuration.

    Loaded once when a session starts and threaded through the scheduler,
    API client and trackers.

    Attributes:
        api_base_url: Base URL of the dashboard REST API.
        api_token: Bearer token sent with status requests (empty = anonymous).
        request_timeout_s: Per-request timeout for status calls, in seconds.
        max_backoff_delay_ms: Cap for backed-off polling delays.
        debounce_ms: Default quiet period for debounced starts.
        training_poll_interval_ms: Cadence of the training-status poller.
        generation_poll_interval_ms: Cadence of AI-avatar and look pollers.
        look_max_attempts: Attempt budget for a single look generation.
        generation_timeout_ms: Wall-clock cutoff for generation tracking.
    """

    api_base_url: str = "http://localhost:3001"
    api_token: str = ""
    request_timeout_s: float = 30.0
    max_backoff_delay_ms: int = MAX_DELAY_MS
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    training_poll_interval_ms: int = TRAINING_POLL_INTERVAL_MS
    generation_poll_interval_ms: int = GENERATION_POLL_INTERVAL_MS
    look_max_attempts: int = LOOK_MAX_ATTEMPTS
    generation_timeout_ms: int = GENERATION_TIMEOUT_MS

    @classmethod
    def from_env(cls) -> PollingConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a numeric value is out of range or
                the API base URL is empty.
            ValueError: If a numeric environment variable cannot be parsed
                (e.g. ``POLL_DEBOUNCE_MS=abc``).
        """
        config = cls(
            api_base_url=os.getenv("STATUS_API_BASE_URL", "http://localhost:3001"),
            api_token=os.getenv("STATUS_API_TOKEN", ""),
            request_timeout_s=float(os.getenv("STATUS_REQUEST_TIMEOUT_S", "30")),
            max_backoff_delay_ms=int(os.getenv("POLL_MAX_BACKOFF_MS", str(MAX_DELAY_MS))),
            debounce_ms=int(os.getenv("POLL_DEBOUNCE_MS", str(DEFAULT_DEBOUNCE_MS))),
            training_poll_interval_ms=int(
                os.getenv("TRAINING_POLL_INTERVAL_MS", str(TRAINING_POLL_INTERVAL_MS))
            ),
            generation_poll_interval_ms=int(
                os.getenv("GENERATION_POLL_INTERVAL_MS", str(GENERATION_POLL_INTERVAL_MS))
            ),
            look_max_attempts=int(os.getenv("LOOK_MAX_ATTEMPTS", str(LOOK_MAX_ATTEMPTS))),
            generation_timeout_ms=int(
                os.getenv("GENERATION_TIMEOUT_MS", str(GENERATION_TIMEOUT_MS))
            ),
        )
        _validate(config)
        return config


def _validate(config: PollingConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.api_base_url:
        raise ConfigValidationError(
            "STATUS_API_BASE_URL",
            config.api_base_url,
            "must not be empty",
        )

    if config.request_timeout_s <= 0:
        raise ConfigValidationError(
            "STATUS_REQUEST_TIMEOUT_S",
            config.request_timeout_s,
            "must be > 0 (seconds)",
        )

    intervals = (
        ("TRAINING_POLL_INTERVAL_MS", config.training_poll_interval_ms),
        ("GENERATION_POLL_INTERVAL_MS", config.generation_poll_interval_ms),
    )
    for name, value in intervals:
        if value <= 0:
            raise ConfigValidationError(name, value, "must be > 0 (milliseconds)")

    if config.max_backoff_delay_ms < max(v for _, v in intervals):
        raise ConfigValidationError(
            "POLL_MAX_BACKOFF_MS",
            config.max_backoff_delay_ms,
            "must be >= every polling interval",
        )

    if config.debounce_ms < 0:
        raise ConfigValidationError(
            "POLL_DEBOUNCE_MS",
            config.debounce_ms,
            "must be >= 0 (milliseconds)",
        )

    if config.look_max_attempts < 1:
        raise ConfigValidationError(
            "LOOK_MAX_ATTEMPTS",
            config.look_max_attempts,
            "must be >= 1",
        )

    if config.generation_timeout_ms <= 0:
        raise ConfigValidationError(
            "GENERATION_TIMEOUT_MS",
            config.generation_timeout_ms,
            "must be > 0 (milliseconds)",
        )
