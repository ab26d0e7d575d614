"""
Client brief source.

Fetches an account's intake brief from the production-line API and turns it
into a ``Brief``: the raw body, the decoded data, a bounded text context
for generation and, for HTML briefs, the detected client website.

Usage:
    async with BriefClient(bearer_token="...", api_key="...") as client:
        brief = await client.fetch("3f1c...-uuid")
        print(brief.context, brief.website)
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from geo_writer.brief_context import extract_context, extract_website, is_html_brief
from geo_writer.config import DEFAULT_ORBIDI_BASE_URL
from geo_writer.exceptions import BriefError, ConfigurationError
from geo_writer.run_log import get_logger

logger = get_logger("brief_client")

BRIEF_PATH = "/prod-line/space-management/accounts/{uuid}/brief"
DEFAULT_TIMEOUT = 30


@dataclass
class Brief:
    """A fetched brief and what was extracted from it."""

    account_uuid: str
    raw: str
    data: Any
    is_html: bool
    context: str
    website: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "account_uuid": self.account_uuid,
            "is_html": self.is_html,
            "context": self.context,
            "website": self.website,
        }


def _bearer(token: str) -> str:
    return token if token.startswith("Bearer ") else f"Bearer {token}"


class BriefClient:
    """Async client for the brief endpoint."""

    def __init__(
        self,
        bearer_token: str,
        api_key: str = "",
        base_url: str = DEFAULT_ORBIDI_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        if not bearer_token or not bearer_token.strip():
            raise ConfigurationError(
                "Brief bearer token is not configured (ORBIDI_BEARER_TOKEN)",
                missing=["ORBIDI_BEARER_TOKEN"],
            )
        self.bearer_token = bearer_token.strip()
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def brief_url(self, account_uuid: str) -> str:
        return self.base_url + BRIEF_PATH.format(uuid=account_uuid)

    async def fetch_raw(self, account_uuid: str) -> str:
        """GET the brief body as text. Non-2xx responses raise BriefError."""
        account_uuid = (account_uuid or "").strip()
        if not account_uuid:
            raise ConfigurationError("Account UUID is required to fetch a brief")

        headers = {
            "Accept": "application/json, text/html",
            "Authorization": _bearer(self.bearer_token),
            "x-api-key": self.api_key,
        }
        session = await self._get_session()
        logger.info("Fetching brief for account %s...", account_uuid[:12])
        try:
            async with session.request("GET", self.brief_url(account_uuid), headers=headers) as resp:
                text = await resp.text()
                if resp.status >= 400:
                    raise BriefError(
                        f"Error {resp.status}: brief could not be fetched",
                        status_code=resp.status,
                    )
        except asyncio.TimeoutError as exc:
            raise BriefError(f"Brief request timed out after {self.timeout}s") from exc
        except aiohttp.ClientError as exc:
            raise BriefError(f"Brief request failed: {exc}") from exc
        logger.info("Brief received (%d chars)", len(text))
        return text

    async def fetch(self, account_uuid: str) -> Brief:
        """Fetch and interpret a brief."""
        raw = await self.fetch_raw(account_uuid)
        html = is_html_brief(raw)
        if html:
            data: Any = raw
            logger.info("Brief is an HTML document")
        else:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise BriefError(f"Brief is neither HTML nor valid JSON: {exc}") from exc
            logger.info("Brief is JSON")

        context = extract_context(data)
        website = extract_website(raw) if html else None
        if website:
            logger.info("Client website detected: %s", website)
        else:
            logger.info("No client website in brief; internal links disabled for this account")
        return Brief(
            account_uuid=account_uuid.strip(),
            raw=raw,
            data=data,
            is_html=html,
            context=context,
            website=website,
        )
