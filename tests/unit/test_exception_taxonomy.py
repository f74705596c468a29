"""Tests for the unified exception taxonomy.

Validates:
- PollingError hierarchy and structured attributes
- Category classification (validation, transient, permanent, contract)
- ``to_error_dict()`` produces stable payload keys
- All engine/client/model exceptions are PollingError subclasses
- ``should_surface_error`` reporting policy
"""

from __future__ import annotations

from typing import ClassVar

import httpx

from status_polling.clients.base import StatusApiError, TransientStatusApiError
from status_polling.core.config import ConfigValidationError
from status_polling.core.exceptions import (
    ContractError,
    MaxAttemptsExceededError,
    PermanentError,
    PollingError,
    TransientError,
    ValidationError,
    should_surface_error,
)
from status_polling.models.status import ModelValidationError


class TestPollingErrorBase:
    """PollingError base class behavior."""

    def test_default_attributes(self) -> None:
        err = PollingError("boom")
        assert err.message == "boom"
        assert err.stage == ""
        assert err.code == ""
        assert err.retryable is False
        assert err.key == ""

    def test_custom_attributes(self) -> None:
        err = PollingError(
            "fail",
            stage="status_api",
            code="STATUS_API_HTTP_ERROR",
            retryable=True,
            key="look-generation-g1-a1",
        )
        assert err.stage == "status_api"
        assert err.code == "STATUS_API_HTTP_ERROR"
        assert err.retryable is True
        assert err.key == "look-generation-g1-a1"

    def test_str_is_message(self) -> None:
        err = PollingError("human-readable error")
        assert str(err) == "human-readable error"

    def test_to_error_dict_keys(self) -> None:
        err = PollingError("x", stage="s", code="C", retryable=True, key="k")
        d = err.to_error_dict()
        assert set(d.keys()) == {"category", "code", "stage", "message", "retryable", "key"}
        assert d["message"] == "x"
        assert d["stage"] == "s"
        assert d["code"] == "C"
        assert d["retryable"] is True
        assert d["key"] == "k"


class TestCategoryBases:
    """Category base classes set correct defaults."""

    def test_validation_error_not_retryable(self) -> None:
        err = ValidationError("bad input")
        assert err.retryable is False
        assert err.category == "validation"

    def test_transient_error_retryable(self) -> None:
        err = TransientError("timeout")
        assert err.retryable is True
        assert err.category == "transient"

    def test_permanent_error_not_retryable(self) -> None:
        err = PermanentError("gone")
        assert err.retryable is False
        assert err.category == "permanent"

    def test_contract_error_not_retryable(self) -> None:
        err = ContractError("schema drift")
        assert err.retryable is False
        assert err.category == "contract"

    def test_dynamic_category_from_retryable(self) -> None:
        assert PollingError("x", retryable=True).category == "transient"
        assert PollingError("x", retryable=False).category == "permanent"


class TestAllExceptionsArePollingError:
    """Every custom exception inherits from PollingError."""

    EXCEPTION_CLASSES: ClassVar[list[type[PollingError]]] = [
        ValidationError,
        TransientError,
        PermanentError,
        ContractError,
        MaxAttemptsExceededError,
        ConfigValidationError,
        ModelValidationError,
        StatusApiError,
    ]

    def test_all_subclass_polling_error(self) -> None:
        for cls in self.EXCEPTION_CLASSES:
            assert issubclass(cls, PollingError), f"{cls.__name__} is not a PollingError"


class TestEngineErrors:
    """Errors raised by the polling engine."""

    def test_max_attempts_exceeded(self) -> None:
        err = MaxAttemptsExceededError("look-generation-g1-a1", 60)
        assert err.message == "Polling timeout: maximum attempts reached"
        assert err.stage == "polling"
        assert err.code == "MAX_ATTEMPTS_REACHED"
        assert err.key == "look-generation-g1-a1"
        assert err.max_attempts == 60
        assert err.category == "permanent"
        assert isinstance(err, PermanentError)

    def test_model_validation_error(self) -> None:
        err = ModelValidationError("AvatarRecord", "id", "", "must not be empty")
        assert err.stage == "model_validation"
        assert err.code == "MODEL_VALIDATION_FAILED"
        assert isinstance(err, ValueError)
        assert isinstance(err, PollingError)


class TestStatusApiError:
    """Client exceptions carry endpoint and HTTP status."""

    def test_http_error(self) -> None:
        err = StatusApiError("not found", endpoint="/api/avatars/x", status_code=404)
        assert err.code == "STATUS_API_HTTP_ERROR"
        assert err.stage == "status_api"
        assert err.status_code == 404
        assert str(err) == "[404 /api/avatars/x] not found"

    def test_transport_error(self) -> None:
        err = StatusApiError(
            "down", endpoint="/api/x", retryable=True, code="STATUS_API_UNREACHABLE"
        )
        assert err.status_code is None
        assert err.category == "transient"
        assert str(err) == "[/api/x] down"

    def test_retryable_error_is_transient(self) -> None:
        err = TransientStatusApiError("busy", endpoint="/api/x", status_code=503)
        assert isinstance(err, StatusApiError)
        assert isinstance(err, TransientError)
        assert err.retryable is True
        assert err.code == "STATUS_API_HTTP_ERROR"
        assert err.to_error_dict()["category"] == "transient"
        assert str(err) == "[503 /api/x] busy"


class TestShouldSurfaceError:
    """Which errors deserve a user-visible message."""

    def test_none_is_quiet(self) -> None:
        assert should_surface_error(None) is False

    def test_polling_timeout_is_quiet(self) -> None:
        request = httpx.Request("GET", "http://api/api/avatars/generation-status/g1")
        assert should_surface_error(httpx.ReadTimeout("timed out", request=request)) is False

    def test_other_timeout_surfaces(self) -> None:
        request = httpx.Request("POST", "http://api/api/avatars/generate-look")
        assert should_surface_error(httpx.ReadTimeout("timed out", request=request)) is True

    def test_status_api_timeout_on_polling_endpoint_is_quiet(self) -> None:
        err = StatusApiError(
            "Request timed out.",
            endpoint="/api/avatars/training-status/grp",
            retryable=True,
            code="STATUS_API_TIMEOUT",
        )
        assert should_surface_error(err) is False

    def test_http_errors_surface(self) -> None:
        err = StatusApiError("", endpoint="/api/avatars/training-status/grp", status_code=503)
        assert should_surface_error(err) is True

    def test_message_surfaces(self) -> None:
        assert should_surface_error(ValidationError("bad prompt")) is True
        assert should_surface_error(RuntimeError("boom")) is True

    def test_empty_error_is_quiet(self) -> None:
        assert should_surface_error(RuntimeError()) is False
