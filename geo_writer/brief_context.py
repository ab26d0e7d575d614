"""
Brief context extraction.

Turns a raw client brief into a bounded plain-text context for the text
generation backend. Briefs arrive either as an HTML page (the intake form
rendered by the brief service) or as a JSON object. HTML briefs can also
carry the client's website in a labelled question block, which decides
whether internal linking is mandatory for the account.
"""

from __future__ import annotations

import json
import re
from html.parser import HTMLParser
from typing import Any, List, Optional, Tuple

from geo_writer.run_log import get_logger

logger = get_logger("brief_context")

MAX_CONTEXT_CHARS = 12000
MAX_FALLBACK_CHARS = 5000
MIN_HEADING_CHARS = 5
MIN_PARAGRAPH_CHARS = 80

REMOVED_TAGS = frozenset(
    {"nav", "header", "footer", "script", "style", "img", "svg", "button", "form", "input", "aside"}
)
VOID_TAGS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)
HEADING_TAGS = frozenset({"h1", "h2", "h3"})

PRIORITY_KEYS = frozenset(
    {
        "business_name",
        "company_name",
        "brand",
        "service",
        "services",
        "description",
        "business_description",
        "about",
        "objectives",
        "target_audience",
        "value_proposition",
        "notes",
    }
)

WEBSITE_BLOCK_RE = re.compile(r"¿Tienes página web\?[\s\S]*?<p>([\s\S]*?)</p>", re.IGNORECASE)
WEBSITE_DOMAIN_RE = re.compile(
    r"\b((https?://)?([a-z0-9-]+\.)+(com|es|net|org|clinic|health|med|co))\b",
    re.IGNORECASE,
)
_IMG_RE = re.compile(r"<img[\s\S]*?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


# ---------------------------------------------------------------------------
# HTML parser helper (stdlib only, no BeautifulSoup)
# ---------------------------------------------------------------------------


class _BriefTextExtractor(HTMLParser):
    """Collect heading and paragraph text, ignoring page chrome and media."""

    def __init__(self):
        super().__init__()
        self.headings: List[str] = []
        self.paragraphs: List[str] = []
        self._skip_depth = 0
        self._capture: Optional[str] = None
        self._buffer: List[str] = []

    def _finish(self) -> None:
        if self._capture is None:
            return
        text = " ".join("".join(self._buffer).split())
        if self._capture in HEADING_TAGS:
            if len(text) > MIN_HEADING_CHARS:
                self.headings.append(text)
        elif len(text) > MIN_PARAGRAPH_CHARS:
            self.paragraphs.append(text)
        self._capture = None
        self._buffer = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        if tag in REMOVED_TAGS:
            if tag not in VOID_TAGS:
                self._skip_depth += 1
            return
        if self._skip_depth:
            return
        if tag == "p" or tag in HEADING_TAGS:
            self._finish()
            self._capture = tag

    def handle_endtag(self, tag: str) -> None:
        if tag in REMOVED_TAGS:
            if tag not in VOID_TAGS and self._skip_depth:
                self._skip_depth -= 1
            return
        if tag == self._capture:
            self._finish()

    def handle_data(self, data: str) -> None:
        if self._capture is not None and not self._skip_depth:
            self._buffer.append(data)

    def close(self) -> None:
        super().close()
        self._finish()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _dedupe(chunks: List[str]) -> List[str]:
    seen = set()
    unique = []
    for chunk in chunks:
        if chunk not in seen:
            seen.add(chunk)
            unique.append(chunk)
    return unique


def _join(chunks: List[str]) -> str:
    return ". ".join(_dedupe(chunks))[:MAX_CONTEXT_CHARS]


def _walk_json(node: Any, chunks: List[str], parent_key: Optional[str] = None) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            if key in PRIORITY_KEYS and isinstance(value, str):
                if value.strip():
                    chunks.append(value.strip())
            elif isinstance(value, (dict, list)):
                _walk_json(value, chunks, key)
    elif isinstance(node, list):
        for item in node:
            if isinstance(item, str):
                if parent_key in PRIORITY_KEYS and item.strip():
                    chunks.append(item.strip())
            elif isinstance(item, (dict, list)):
                _walk_json(item, chunks, parent_key)


def _context_from_html(html: str) -> str:
    parser = _BriefTextExtractor()
    parser.feed(html)
    parser.close()
    return _join(parser.headings + parser.paragraphs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_html_brief(text: str) -> bool:
    """Tell whether a brief response body is an HTML document."""
    return "<!doctype html" in text.lower() or "<html" in text


def parse_brief_body(text: str) -> Any:
    """Return the brief as a string (HTML) or as decoded JSON.

    Raises json.JSONDecodeError for a non-HTML body that is not valid JSON.
    """
    if is_html_brief(text):
        return text
    return json.loads(text)


def extract_context(data: Any) -> str:
    """Convert a raw brief into plain-text context of at most 12,000 characters.

    HTML strings keep headings (h1-h3 longer than 5 chars) then substantial
    paragraphs (longer than 80 chars), with navigation, scripts, media and
    forms removed. JSON objects contribute only business-describing fields.
    Anything else is stringified and cut to 5,000 characters.
    """
    if isinstance(data, str) and "<" in data:
        context = _context_from_html(data)
        logger.info("HTML brief context built (%d chars)", len(context))
        logger.debug("Context preview: %s...", context[:400])
        return context

    if isinstance(data, (dict, list)):
        chunks: List[str] = []
        _walk_json(data, chunks)
        context = _join(chunks)
        logger.info("JSON brief context built from %d fields (%d chars)", len(chunks), len(context))
        return context

    if data is None:
        return ""
    return str(data)[:MAX_FALLBACK_CHARS]


def extract_website(html: str) -> Optional[str]:
    """Find the client's website in the brief's "¿Tienes página web?" answer.

    Returns an ``https://`` URL, or None when the block or a domain with a
    supported TLD is missing.
    """
    if not html:
        return None
    block = WEBSITE_BLOCK_RE.search(html)
    if not block:
        return None

    answer = _TAG_RE.sub("", _IMG_RE.sub("", block.group(1))).strip()
    match = WEBSITE_DOMAIN_RE.search(answer)
    if not match:
        return None

    domain = match.group(1)
    return domain if domain.lower().startswith("http") else f"https://{domain}"
