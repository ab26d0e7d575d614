"""Tests for the brief source client."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from geo_writer.brief_client import BriefClient
from geo_writer.exceptions import BriefError, ConfigurationError

ACCOUNT = "3f1c2b7a-0000-4000-8000-000000000001"


@pytest.fixture
def client():
    return BriefClient(bearer_token="secret-token", api_key="key-123", base_url="https://api.test/")


class TestConfiguration:

    @pytest.mark.unit
    def test_missing_token_fails_fast(self):
        with pytest.raises(ConfigurationError) as exc_info:
            BriefClient(bearer_token="  ")
        assert exc_info.value.missing == ["ORBIDI_BEARER_TOKEN"]

    @pytest.mark.unit
    def test_brief_url(self, client):
        assert client.brief_url(ACCOUNT) == (
            f"https://api.test/prod-line/space-management/accounts/{ACCOUNT}/brief"
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_account_fails_before_request(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(200, text="{}"))
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(ConfigurationError):
                await client.fetch_raw("")
        session.request.assert_not_called()


class TestFetch:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_headers(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(200, text="{}"))
        with patch.object(client, "_get_session", return_value=session):
            await client.fetch_raw(ACCOUNT)

        method, url = session.request.call_args.args
        headers = session.request.call_args.kwargs["headers"]
        assert method == "GET"
        assert url.endswith(f"/accounts/{ACCOUNT}/brief")
        assert headers["Authorization"] == "Bearer secret-token"
        assert headers["x-api-key"] == "key-123"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bearer_prefix_not_doubled(self, mock_session, mock_aiohttp_response):
        client = BriefClient(bearer_token="Bearer abc")
        session = mock_session(mock_aiohttp_response(200, text="{}"))
        with patch.object(client, "_get_session", return_value=session):
            await client.fetch_raw(ACCOUNT)
        assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer abc"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_html_brief(self, client, mock_session, mock_aiohttp_response, html_brief):
        session = mock_session(mock_aiohttp_response(200, text=html_brief))
        with patch.object(client, "_get_session", return_value=session):
            brief = await client.fetch(ACCOUNT)
        assert brief.is_html is True
        assert brief.website == "https://midominio.com"
        assert "Clínica Dental Sonrisa" in brief.context

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_json_brief(self, client, mock_session, mock_aiohttp_response):
        body = json.dumps({"business_name": "Taller Pérez", "services": ["Frenos"]})
        session = mock_session(mock_aiohttp_response(200, text=body))
        with patch.object(client, "_get_session", return_value=session):
            brief = await client.fetch(ACCOUNT)
        assert brief.is_html is False
        assert brief.website is None
        assert brief.context == "Taller Pérez. Frenos"
        assert brief.to_dict()["account_uuid"] == ACCOUNT

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(404, text="not found"))
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(BriefError) as exc_info:
                await client.fetch(ACCOUNT)
        assert exc_info.value.status_code == 404
        assert "Error 404" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_json(self, client, mock_session, mock_aiohttp_response):
        session = mock_session(mock_aiohttp_response(200, text="plain text body"))
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(BriefError):
                await client.fetch(ACCOUNT)

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, message", [
        (aiohttp.ClientConnectionError("connection refused"), "connection refused"),
        (asyncio.TimeoutError(), "timed out"),
    ])
    async def test_transport_errors_wrapped(self, client, error, message):
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(side_effect=error)
        ctx.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.request = MagicMock(return_value=ctx)
        with patch.object(client, "_get_session", return_value=session):
            with pytest.raises(BriefError) as exc_info:
                await client.fetch(ACCOUNT)
        assert exc_info.value.__cause__ is error
        assert message in str(exc_info.value)
