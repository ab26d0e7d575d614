"""
Task tracker integration.

Primary tracker (ClickUp): every published URL is written into a custom
field of its task, and the task's completion field is set. Both calls are
always attempted; a task only counts as completed when both succeed.

Secondary tracker (production line): each listed task gets a fixed
``assigned_team`` property, independent of the published URLs.

Usage:
    clickup = ClickUpClient(api_key="pk_...")
    report = await clickup.update_tasks(rows, published_urls)
    print(report.completed, "/", report.attempted)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from geo_writer.config import (
    DEFAULT_CLICKUP_STATUS_FIELD_ID,
    DEFAULT_CLICKUP_URL_FIELD_ID,
    DEFAULT_ORBIDI_BASE_URL,
)
from geo_writer.exceptions import ConfigurationError, TrackerError
from geo_writer.models import CsvRow
from geo_writer.run_log import get_logger

logger = get_logger("tracker_client")

CLICKUP_API_URL = "https://api.clickup.com/api/v2"
PRODLINE_TASK_PATH = "/prod-line/task/task-management/tasks/{task_id}/properties"
PRODLINE_ASSIGNED_TEAM = "content_factory"

MAX_RETRIES = 2
RETRY_BASE_DELAY = 1.0  # seconds
REQUEST_TIMEOUT = 30


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class TrackerResponse:
    """Outcome of one tracker API call."""
    success: bool
    status_code: int
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    duration_ms: float = 0.0

    def __bool__(self) -> bool:
        return self.success

    def raise_for_error(self) -> "TrackerResponse":
        if not self.success:
            raise TrackerError(self.error or f"HTTP {self.status_code}", status_code=self.status_code)
        return self


@dataclass
class TrackerReport:
    """Accounting for one tracker update run."""
    attempted: int = 0
    completed: int = 0
    failed_task_ids: List[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.completed / self.attempted if self.attempted else 0.0

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["success_rate"] = round(self.success_rate, 3)
        return result


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------


async def _request_with_retry(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    json_data: Optional[Dict[str, Any]] = None,
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
) -> TrackerResponse:
    """
    Perform an HTTP request with exponential-backoff retry on 5xx errors.

    Returns a TrackerResponse regardless of success or failure.
    """
    last_error: Optional[str] = None
    last_status = 0
    elapsed_ms = 0.0

    for attempt in range(max_retries):
        start = time.monotonic()
        try:
            async with session.request(method, url, headers=headers, json=json_data) as resp:
                elapsed_ms = (time.monotonic() - start) * 1000
                last_status = resp.status
                text = await resp.text()

                if 200 <= resp.status < 300:
                    return TrackerResponse(
                        success=True,
                        status_code=resp.status,
                        data={"raw": text} if text else None,
                        duration_ms=round(elapsed_ms, 2),
                    )

                last_error = f"Error {resp.status}: {text}"
                # 4xx -- client error, do not retry
                if 400 <= resp.status < 500:
                    return TrackerResponse(
                        success=False,
                        status_code=resp.status,
                        error=last_error,
                        duration_ms=round(elapsed_ms, 2),
                    )
        except asyncio.TimeoutError:
            elapsed_ms = (time.monotonic() - start) * 1000
            last_error = "Request timed out"
            last_status = 0
        except aiohttp.ClientError as exc:
            elapsed_ms = (time.monotonic() - start) * 1000
            last_error = f"Connection error: {exc}"
            last_status = 0

        if attempt < max_retries - 1:
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Request to %s failed (attempt %d/%d): %s -- retrying in %.1fs",
                url, attempt + 1, max_retries, last_error, delay,
            )
            await asyncio.sleep(delay)

    return TrackerResponse(
        success=False,
        status_code=last_status,
        error=last_error,
        duration_ms=round(elapsed_ms, 2),
    )


class _TrackerClient:
    """Session handling shared by both trackers."""

    def __init__(self, timeout: int = REQUEST_TIMEOUT, retry_base_delay: float = RETRY_BASE_DELAY):
        self.timeout = timeout
        self.retry_base_delay = retry_base_delay
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
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

    async def _post(
        self, url: str, headers: Dict[str, str], json_data: Optional[Dict[str, Any]] = None
    ) -> TrackerResponse:
        session = await self._get_session()
        return await _request_with_retry(
            session, "POST", url, headers=headers, json_data=json_data,
            base_delay=self.retry_base_delay,
        )


# ---------------------------------------------------------------------------
# Primary tracker
# ---------------------------------------------------------------------------


class ClickUpClient(_TrackerClient):
    """Writes published URLs into ClickUp tasks and marks them complete."""

    def __init__(
        self,
        api_key: str,
        url_field_id: str = DEFAULT_CLICKUP_URL_FIELD_ID,
        status_field_id: str = DEFAULT_CLICKUP_STATUS_FIELD_ID,
        **kwargs: Any,
    ):
        if not api_key:
            raise ConfigurationError("CLICKUP_API_KEY is not set", missing=["CLICKUP_API_KEY"])
        super().__init__(**kwargs)
        self.api_key = api_key
        self.url_field_id = url_field_id
        self.status_field_id = status_field_id

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "Authorization": self.api_key,
        }

    async def set_task_url(self, task_id: str, url: str) -> TrackerResponse:
        """Set the task's URL custom field. Raises TrackerError when rejected."""
        logger.info("Setting URL on task %s...", task_id)
        response = await self._post(
            f"{CLICKUP_API_URL}/task/{task_id}/field/{self.url_field_id}",
            self._headers(),
            {"value": url},
        )
        return response.raise_for_error()

    async def mark_task_complete(self, task_id: str) -> TrackerResponse:
        """Set the task's completion field. Raises TrackerError when rejected."""
        logger.info("Marking task %s complete...", task_id)
        response = await self._post(
            f"{CLICKUP_API_URL}/task/{task_id}/field/{self.status_field_id}?custom_task_ids=true",
            self._headers(),
        )
        return response.raise_for_error()

    async def update_tasks(
        self, rows: Sequence[CsvRow], urls: Sequence[str], pause: float = 0.5
    ) -> TrackerReport:
        """Pair URLs with task ids in CSV order and update each task.

        URLs are consumed from a single cursor across all rows, one per task;
        processing stops once the URLs run out.
        """
        report = TrackerReport()
        if not rows or not urls:
            logger.warning("No URLs or CSV rows to report to the tracker")
            return report

        url_index = 0
        for row in rows:
            if url_index >= len(urls):
                break
            task_ids = row.tracker_ids
            if not task_ids:
                logger.warning("No tracker task ids for account %s...", row.account_uuid[:12])
                continue
            logger.info("Processing %d tracker tasks for account %s...", len(task_ids), row.account_uuid[:12])

            for task_id in task_ids:
                if url_index >= len(urls):
                    break
                url = urls[url_index]
                url_index += 1
                report.attempted += 1

                url_ok = await self._attempt(self.set_task_url(task_id, url), task_id)
                if pause:
                    await asyncio.sleep(pause)
                done_ok = await self._attempt(self.mark_task_complete(task_id), task_id)

                if url_ok and done_ok:
                    report.completed += 1
                    logger.info("Task %s completed with %s", task_id, url)
                else:
                    report.failed_task_ids.append(task_id)
                    logger.warning("Task %s not fully updated", task_id)
                if pause:
                    await asyncio.sleep(pause)

        unpaired = sum(len(row.tracker_ids) for row in rows) - report.attempted
        if unpaired:
            logger.warning("No more URLs available for %d tracker tasks", unpaired)
        logger.info("Tracker update: %d/%d tasks completed", report.completed, report.attempted)
        return report

    @staticmethod
    async def _attempt(call, task_id: str) -> bool:
        try:
            await call
        except TrackerError as exc:
            logger.error("Tracker call for task %s failed: %s", task_id, exc)
            return False
        return True


# ---------------------------------------------------------------------------
# Secondary tracker
# ---------------------------------------------------------------------------


class ProdlineClient(_TrackerClient):
    """Assigns production-line tasks to the content team."""

    def __init__(self, api_key: str, base_url: str = DEFAULT_ORBIDI_BASE_URL, **kwargs: Any):
        if not api_key:
            raise ConfigurationError("PRODLINE_API_KEY is not set", missing=["PRODLINE_API_KEY"])
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def assign_task(self, task_id: str) -> TrackerResponse:
        response = await self._post(
            self.base_url + PRODLINE_TASK_PATH.format(task_id=task_id),
            {
                "X-Api-Key": self.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            {"assigned_team": PRODLINE_ASSIGNED_TEAM},
        )
        return response.raise_for_error()

    async def assign_tasks(self, rows: Sequence[CsvRow], pause: float = 0.5) -> TrackerReport:
        """Set the assignment property on every secondary task id in the rows."""
        report = TrackerReport()
        rows_with_ids = [row for row in rows if row.secondary_ids]
        if not rows_with_ids:
            logger.info("No secondary tracker ids in the CSV; add a task_prodline_ids column to enable it")
            return report

        for row in rows_with_ids:
            logger.info("Processing %d secondary tasks...", len(row.secondary_ids))
            for task_id in row.secondary_ids:
                report.attempted += 1
                try:
                    await self.assign_task(task_id)
                except TrackerError as exc:
                    report.failed_task_ids.append(task_id)
                    logger.error("Secondary task %s... failed: %s", task_id[:8], exc)
                else:
                    report.completed += 1
                    logger.info("Secondary task %s... updated", task_id[:8])
                if pause:
                    await asyncio.sleep(pause)

        logger.info("Secondary tracker: %d/%d tasks updated", report.completed, report.attempted)
        return report
