"""
Unit tests for the service error hierarchy and best-effort steps.
"""

import asyncio

import pytest

from sprint_engine.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ProviderError,
    SchemaValidationError,
    ServiceError,
    ValidationError,
)
from sprint_engine.services.best_effort import run_best_effort


class TestServiceErrors:
    @pytest.mark.parametrize(
        "error,status_code",
        [
            pytest.param(ValidationError("bad"), 422, id="validation"),
            pytest.param(NotFoundError("missing"), 404, id="not_found"),
            pytest.param(AuthorizationError("nope"), 403, id="authorization"),
            pytest.param(ConflictError("again"), 409, id="conflict"),
            pytest.param(ProviderError("down"), 502, id="provider"),
            pytest.param(SchemaValidationError("shape", errors=[]), 502, id="schema"),
        ],
    )
    def test_status_codes(self, error, status_code):
        assert isinstance(error, ServiceError)
        assert error.status_code == status_code

    def test_to_dict_envelope(self):
        error = ConflictError(
            "Sprint already completed",
            error_code="SPRINT_ALREADY_COMPLETED",
            details={"sprint_id": "s1"},
        )

        body = error.to_dict()

        assert body["error"] == "SPRINT_ALREADY_COMPLETED"
        assert body["message"] == "Sprint already completed"
        assert body["details"] == {"sprint_id": "s1"}
        assert body["error_id"]
        assert body["timestamp"]

    def test_provider_error_code_is_reason(self):
        error = ProviderError("timed out", reason=ProviderError.CLIENT_TIMEOUT)

        assert error.error_code == "client_timeout"
        assert error.reason == "client_timeout"

    def test_schema_validation_code(self):
        error = SchemaValidationError("shape", errors=[{"loc": ["score"], "msg": "bad"}])

        assert error.error_code == "validation_failed"
        assert error.errors[0]["loc"] == ["score"]


class TestRunBestEffort:
    @pytest.mark.asyncio
    async def test_success(self):
        async def step():
            return 42

        result = await run_best_effort("answer", step())

        assert result.ok is True
        assert result.value == 42

    @pytest.mark.asyncio
    async def test_failure_is_captured(self):
        async def step():
            raise ValueError("broken")

        result = await run_best_effort("buffer_maintenance", step())

        assert result.ok is False
        assert result.step == "buffer_maintenance"
        assert result.error == "ValueError: broken"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def step():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await run_best_effort("cancelled", step())
