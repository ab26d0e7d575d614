"""
WordPress REST API client used as the publish target.

Publishes an assembled Article: the featured image is uploaded to the media
library (raw binary, then title/alt metadata), the blog category is looked
up by name, and the post is created with ``status=publish``. The category is
optional: when it cannot be found the post goes out without one.

Usage:
    async with WordPressClient("https://example.com", auth_token="Basic ...") as wp:
        url = await wp.publish_article(article)
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from geo_writer.config import DEFAULT_WORDPRESS_BASE_URL, DEFAULT_WORDPRESS_CATEGORY
from geo_writer.exceptions import ConfigurationError, MediaUploadError, PublishError
from geo_writer.image_generator import decode_data_uri
from geo_writer.models import Article, render_article_html
from geo_writer.run_log import get_logger

logger = get_logger("wordpress_client")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
WP_MAX_PER_PAGE = 100

_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


class WordPressClient:
    """
    Async WordPress REST API client for the publishing site.

    Parameters
    ----------
    base_url : str
        Site root, e.g. ``https://example.com``.
    auth_token : str
        Value sent verbatim in the ``Authorization`` header.
    category_name : str
        Category assigned to every published post when it exists.
    timeout : int
        Request timeout in seconds. Default 60.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_WORDPRESS_BASE_URL,
        auth_token: str = "",
        category_name: str = DEFAULT_WORDPRESS_CATEGORY,
        timeout: int = 60,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ):
        if not auth_token:
            raise ConfigurationError(
                "WORDPRESS_TOKEN is not set; publishing is unavailable",
                missing=["WORDPRESS_TOKEN"],
            )
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.category_name = category_name
        self.timeout = timeout
        self.retry_base_delay = retry_base_delay
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/wp-json/wp/v2"

    # -- Session management -------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": "GEO-Writer/1.0",
                    "Accept": "application/json",
                    "Authorization": self.auth_token,
                },
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

    # -- Core HTTP method with retry ----------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_data: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        """
        Make an HTTP request with exponential backoff retry on transient errors.

        Returns
        -------
        tuple of (status_code, response_json_or_text)

        Raises
        ------
        PublishError
            On non-2xx responses after retries, carrying the server's
            ``message`` when the body provides one.
        """
        session = await self._get_session()

        for attempt in range(MAX_RETRIES + 1):
            kwargs: Dict[str, Any] = {}
            if json_data is not None:
                kwargs["json"] = json_data
            if data is not None:
                kwargs["data"] = data
            if headers is not None:
                kwargs["headers"] = headers
            if params is not None:
                kwargs["params"] = {k: v for k, v in params.items() if v is not None}

            try:
                logger.debug("API %s %s (attempt %d/%d)", method, url, attempt + 1, MAX_RETRIES + 1)
                async with session.request(method, url, **kwargs) as resp:
                    status = resp.status
                    try:
                        body = await resp.json(content_type=None)
                    except (json.JSONDecodeError, ValueError):
                        body = await resp.text()

                    if status in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                        delay = self.retry_base_delay * (2 ** attempt)
                        logger.warning(
                            "Retryable error %d from %s, retrying in %.1fs", status, url, delay
                        )
                        await asyncio.sleep(delay)
                        continue

                    if status >= 400:
                        message = body.get("message", "") if isinstance(body, dict) else str(body)
                        raise PublishError(
                            f"HTTP {status} from {self.base_url}: {message or 'request rejected'}",
                            status_code=status,
                            server_message=message,
                        )
                    return status, body

            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt >= MAX_RETRIES:
                    raise PublishError(
                        f"Network error after {MAX_RETRIES} retries for {self.base_url}: {exc}"
                    ) from exc
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Network error on %s (%s), retrying in %.1fs", url, type(exc).__name__, delay
                )
                await asyncio.sleep(delay)

        raise PublishError(f"Request to {url} failed after {MAX_RETRIES} retries")

    # -- Media ----------------------------------------------------------------

    async def upload_media(
        self,
        image_bytes: bytes,
        filename: str,
        mime_type: str = "image/jpeg",
        title: Optional[str] = None,
        alt_text: Optional[str] = None,
    ) -> int:
        """Upload an image and set its title/alt text. Returns the media id."""
        upload_headers = {
            "Content-Type": mime_type,
            "Content-Disposition": f'attachment; filename="{filename}"',
        }
        try:
            _, result = await self._request(
                "POST", f"{self.api_url}/media", data=image_bytes, headers=upload_headers
            )
            media_id = result.get("id") if isinstance(result, dict) else None
            if not media_id:
                raise MediaUploadError("Media upload returned no id")

            update_fields: Dict[str, Any] = {}
            if title is not None:
                update_fields["title"] = title
            if alt_text is not None:
                update_fields["alt_text"] = alt_text
            if update_fields:
                await self._request("POST", f"{self.api_url}/media/{media_id}", json_data=update_fields)
        except MediaUploadError:
            raise
        except PublishError as exc:
            raise MediaUploadError(
                f"Image upload failed: {exc.server_message or exc}",
                status_code=exc.status_code,
                server_message=exc.server_message,
            ) from exc

        logger.info("Uploaded media %s: id=%s", filename, media_id)
        return int(media_id)

    # -- Categories -----------------------------------------------------------

    async def find_category_id(self, name: Optional[str] = None) -> Optional[int]:
        """Look up a category by exact name; None when missing or on lookup failure."""
        name = name or self.category_name
        if not name:
            return None
        logger.info("Looking up category '%s'...", name)
        try:
            _, categories = await self._request(
                "GET",
                f"{self.api_url}/categories",
                params={"search": name, "per_page": WP_MAX_PER_PAGE},
            )
        except PublishError as exc:
            logger.warning("Category lookup failed (%s); publishing without category", exc)
            return None

        for category in categories if isinstance(categories, list) else []:
            if isinstance(category, dict) and category.get("name") == name:
                logger.info("Category found: id %s", category.get("id"))
                return int(category["id"])
        logger.warning("Category '%s' not found; publishing without category", name)
        return None

    # -- Posts ----------------------------------------------------------------

    async def create_post(
        self,
        title: str,
        content: str,
        status: str = "publish",
        featured_media: Optional[int] = None,
        categories: Optional[List[int]] = None,
    ) -> Dict[str, Any]:
        """Create a post and return the API's post object."""
        payload: Dict[str, Any] = {"title": title, "content": content, "status": status}
        if featured_media:
            payload["featured_media"] = featured_media
        if categories:
            payload["categories"] = categories

        _, result = await self._request("POST", f"{self.api_url}/posts", json_data=payload)
        if not isinstance(result, dict):
            raise PublishError("Post creation returned an unexpected body")
        logger.info("Created post %s: %s (status=%s)", result.get("id"), title[:60], status)
        return result

    async def publish_article(self, article: Article) -> str:
        """Upload the cover, resolve the category, publish, and return the post URL."""
        media_id: Optional[int] = None
        if article.featured_image and article.featured_image.base64:
            mime, image_bytes = decode_data_uri(article.featured_image.base64)
            extension = _EXTENSIONS.get(mime, "jpg")
            logger.info("Uploading featured image...")
            media_id = await self.upload_media(
                image_bytes,
                filename=f"seo-image-{int(time.time() * 1000)}.{extension}",
                mime_type=mime,
                title=article.title or "SEO Article Image",
                alt_text=article.featured_image.alt_text or article.title,
            )

        category_id = await self.find_category_id()

        post = await self.create_post(
            title=article.title,
            content=render_article_html(article),
            status="publish",
            featured_media=media_id,
            categories=[category_id] if category_id else None,
        )
        url = post.get("link") or ""
        if not url:
            raise PublishError("Post was created but the response has no link")
        logger.info("Published: %s", url)
        return url
