"""
Internal Link Inserter
======================

Embeds exactly three links to the client's own site (home, blog, contact)
inside article paragraphs. Anchors are cut from the paragraph's own words
around its midpoint so they read naturally; when the content is too short
for that, a call-to-action sentence carrying the link is appended instead.

Strategies are tried in order, each one only while fewer than three links
have been placed:

    1. long paragraphs (15+ words), 7-word anchor centred on the midpoint
    2. medium paragraphs (10+ words) in sections without a link yet
    3. short paragraphs (6+ words) in sections without a link yet
    4. call-to-action fallback on any unlinked, non-empty paragraph

The insertion is a pure function: sections passed in are never mutated.

Usage:
    from geo_writer.internal_linker import build_client_links, insert_internal_links

    links = build_client_links("https://example.com")
    sections, inserted = insert_internal_links(article.sections, links)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from geo_writer.models import Section
from geo_writer.run_log import get_logger

logger = get_logger("internal_linker")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

REQUIRED_LINKS = 3

CLIENT_LINK_PATHS = ("/", "/blog", "/contacto")

CALL_TO_ACTION_PHRASES = (
    "conoce más sobre nuestros servicios",
    "encuentra información útil en nuestro blog",
    "agenda una consulta personalizada",
)

ANCHOR_ATTRS = 'target="_blank" rel="noopener noreferrer"'

_PARAGRAPH_RE = re.compile(r"<p>[\s\S]*?</p>")
_TAG_RE = re.compile(r"<[^>]+>")
_P_TAG_RE = re.compile(r"</?p>")
_ANCHOR_RE = re.compile(r"<a\s+href=", re.IGNORECASE)
_EXISTING_LINK = "<a href="


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LinkStrategy:
    """One insertion pass, described as data.

    ``anchor_offset`` is how many words before the paragraph midpoint the
    anchor starts; ``anchor_length`` is its maximum word count. A strategy
    with ``call_to_action`` set ignores both and appends a fixed phrase.
    """

    number: int
    name: str
    min_words: int
    anchor_offset: int = 0
    anchor_length: int = 0
    skip_linked_sections: bool = False
    one_per_section: bool = True
    call_to_action: bool = False

    def anchor_window(self, word_count: int) -> Tuple[int, int]:
        """Return the (start, end) word slice for the anchor."""
        start = max(0, word_count // 2 - self.anchor_offset)
        end = min(word_count, start + self.anchor_length)
        return start, end


LINK_STRATEGIES: Tuple[LinkStrategy, ...] = (
    LinkStrategy(1, "long paragraph", min_words=15, anchor_offset=3, anchor_length=7),
    LinkStrategy(
        2, "medium paragraph", min_words=10, anchor_offset=2, anchor_length=5,
        skip_linked_sections=True,
    ),
    LinkStrategy(
        3, "short paragraph", min_words=6, anchor_offset=1, anchor_length=4,
        skip_linked_sections=True,
    ),
    LinkStrategy(
        4, "call to action", min_words=1, one_per_section=False, call_to_action=True,
    ),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_client_links(website: str) -> List[str]:
    """Return the canonical home, blog and contact URLs for a client site."""
    base = website.rstrip("/")
    return [f"{base}{path}" for path in CLIENT_LINK_PATHS]


def count_anchors(sections: Sequence[Section]) -> int:
    """Count ``<a href=`` occurrences across every section."""
    return sum(len(_ANCHOR_RE.findall(s.content or "")) for s in sections)


def _paragraph_words(paragraph: str) -> List[str]:
    return _TAG_RE.sub("", paragraph).split()


def _link_html(url: str, text: str) -> str:
    return f'<a href="{url}" {ANCHOR_ATTRS}>{text}</a>'


def _anchor_in_text(words: List[str], strategy: LinkStrategy, url: str) -> Tuple[str, str]:
    start, end = strategy.anchor_window(len(words))
    anchor = " ".join(words[start:end])
    parts = [" ".join(words[:start]), _link_html(url, anchor), " ".join(words[end:])]
    return f"<p>{' '.join(p for p in parts if p.strip())}</p>", anchor


def _call_to_action(paragraph: str, url: str, index: int) -> Tuple[str, str]:
    text = _P_TAG_RE.sub("", paragraph).strip().rstrip(".").rstrip()
    phrase = CALL_TO_ACTION_PHRASES[index % len(CALL_TO_ACTION_PHRASES)]
    return f"<p>{text}. Puedes {_link_html(url, phrase)}</p>", phrase


def _apply_strategy(
    strategy: LinkStrategy,
    sections: List[Section],
    links: Sequence[str],
    inserted: int,
    required: int,
) -> int:
    """Run one pass over ``sections`` (replaced in the list), return the new count."""
    for index, section in enumerate(sections):
        if inserted >= required:
            break
        content = section.content
        if not content:
            continue
        if strategy.skip_linked_sections and _EXISTING_LINK in content:
            continue

        for paragraph in _PARAGRAPH_RE.findall(content):
            if inserted >= required:
                break
            if strategy.call_to_action and _EXISTING_LINK in paragraph:
                continue
            words = _paragraph_words(paragraph)
            if len(words) < strategy.min_words:
                continue

            url = links[inserted]
            if strategy.call_to_action:
                new_paragraph, anchor = _call_to_action(paragraph, url, inserted)
            else:
                new_paragraph, anchor = _anchor_in_text(words, strategy, url)

            content = content.replace(paragraph, new_paragraph, 1)
            inserted += 1
            logger.info(
                "Link %d/%d placed (pass %d, %s) in section %d: \"%s\"",
                inserted, required, strategy.number, strategy.name, index, anchor,
            )
            if strategy.one_per_section:
                break

        if content != section.content:
            sections[index] = replace(section, content=content)

    return inserted


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def insert_internal_links(
    sections: Sequence[Section],
    links: Sequence[str],
    strategies: Optional[Sequence[LinkStrategy]] = None,
) -> Tuple[List[Section], int]:
    """Insert up to three internal links into the article sections.

    Parameters
    ----------
    sections : sequence of Section
        Written sections in document order.
    links : sequence of str
        At least three target URLs. ``links[n]`` is used for the n-th
        insertion.
    strategies : sequence of LinkStrategy, optional
        Passes to try in order. Defaults to ``LINK_STRATEGIES``.

    Returns
    -------
    tuple of (list of Section, int)
        New section list and the number of links inserted. With fewer than
        three links supplied, the sections come back unchanged with 0.
    """
    result = list(sections)
    if len(links) < REQUIRED_LINKS:
        logger.warning(
            "Internal linking skipped: %d links supplied, %d required",
            len(links), REQUIRED_LINKS,
        )
        return result, 0

    inserted = 0
    for strategy in strategies or LINK_STRATEGIES:
        if inserted >= REQUIRED_LINKS:
            break
        if strategy.number > 1:
            logger.info(
                "Pass %d (%s): %d/%d links so far",
                strategy.number, strategy.name, inserted, REQUIRED_LINKS,
            )
        inserted = _apply_strategy(strategy, result, links, inserted, REQUIRED_LINKS)

    logger.info("Internal linking result: %d of %d links", inserted, REQUIRED_LINKS)
    return result, inserted
