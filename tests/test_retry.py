"""Tests for backend retry classification and backoff."""

import asyncio
from unittest.mock import AsyncMock, patch

import anthropic
import httpx
import pytest
from google.genai import errors as genai_errors

from geo_writer.exceptions import GenerationError
from geo_writer.retry import backoff_delay, call_with_retry, is_transient_error


class TestClassification:

    @pytest.mark.unit
    def test_transient_errors(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        assert is_transient_error(anthropic.APITimeoutError(request=request))
        assert is_transient_error(anthropic.APIConnectionError(request=request))
        assert is_transient_error(asyncio.TimeoutError())
        assert is_transient_error(
            genai_errors.ServerError(503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}})
        )

    @pytest.mark.unit
    def test_permanent_errors(self):
        assert not is_transient_error(ValueError("bad"))
        assert not is_transient_error(
            genai_errors.ClientError(400, {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}})
        )

    @pytest.mark.unit
    def test_backoff_doubles(self):
        assert backoff_delay(1, 1.0) == 1.0
        assert backoff_delay(2, 1.0) == 2.0
        assert backoff_delay(3, 0.5) == 2.0


class TestCallWithRetry:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        func = AsyncMock(side_effect=[asyncio.TimeoutError(), asyncio.TimeoutError(), "ok"])
        with patch("geo_writer.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await call_with_retry(func, base_delay=1.0)
        assert result == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        func = AsyncMock(side_effect=ValueError("nope"))
        with pytest.raises(GenerationError) as exc_info:
            await call_with_retry(func, base_delay=0)
        assert func.await_count == 1
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = AsyncMock(side_effect=asyncio.TimeoutError())
        with pytest.raises(GenerationError) as exc_info:
            await call_with_retry(func, label="outline", max_attempts=3, base_delay=0)
        assert func.await_count == 3
        assert isinstance(exc_info.value.__cause__, asyncio.TimeoutError)
        assert str(exc_info.value).startswith("outline failed")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_authentication_error_wrapped(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(401, request=request)
        error = anthropic.AuthenticationError("invalid x-api-key", response=response, body=None)
        func = AsyncMock(side_effect=error)
        with pytest.raises(GenerationError) as exc_info:
            await call_with_retry(func, label="section", base_delay=0)
        assert func.await_count == 1
        assert exc_info.value.__cause__ is error
        assert "invalid x-api-key" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_project_errors_pass_through(self):
        empty = GenerationError("Empty response from text model")
        func = AsyncMock(side_effect=empty)
        with pytest.raises(GenerationError) as exc_info:
            await call_with_retry(func, base_delay=0)
        assert exc_info.value is empty
        assert func.await_count == 1
