"""
Outline handling: validation, deterministic fallback and title de-duplication.

The generation backend's outline is treated as optional. When its sections
are missing, empty or untitled, a fallback outline is synthesised from
template phrases and the keyword list. Either way the final title is checked
against the titles already produced for the same account and varied until it
is unique.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from geo_writer.exceptions import EmptyArticleError
from geo_writer.models import Article, Section
from geo_writer.run_log import get_logger

logger = get_logger("outline")

CONTENT_TYPES = ("on-page", "comprehensive-guide", "quick-tips", "deep-dive")

FALLBACK_SECTION_COUNT = 4
SECTION_TEMPLATES = (
    ("¿Qué es", "?"),
    ("Beneficios de", ""),
    ("Cómo funciona", ""),
    ("Tipos de", ""),
    ("Guía completa sobre", ""),
)
DEFAULT_SECTION_TEMPLATE = ("Todo sobre", "")

TITLE_VARIATIONS = (
    "Guía completa sobre {kw}",
    "{kw}: Todo lo que necesitas saber",
    "Descubre {kw}: Guía práctica",
    "{kw} explicado: Información esencial",
    "Conoce todo sobre {kw}",
    "{kw}: Guía definitiva",
)

TITLE_SUFFIXES = (
    ": Guía completa",
    ": Todo lo que debes saber",
    ": Información esencial",
    ": Aspectos clave",
    " en detalle",
)


def content_type_for(article_number: int) -> str:
    """Content type for the 1-based article number within an account."""
    index = min(max(article_number, 1) - 1, len(CONTENT_TYPES) - 1)
    return CONTENT_TYPES[index]


def clean_title(title: Any) -> str:
    """Headings never end with a period."""
    return str(title or "").strip().rstrip(".").rstrip()


def has_valid_sections(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    sections = raw.get("sections")
    if not isinstance(sections, list) or not sections:
        return False
    return all(isinstance(s, dict) and clean_title(s.get("title")) for s in sections)


def sections_from_outline(raw: dict) -> List[Section]:
    sections = []
    for index, data in enumerate(raw["sections"]):
        section = Section.from_dict(data, index)
        section.title = clean_title(section.title)
        section.content = ""
        sections.append(section)
    return sections


def fallback_sections(keywords: Sequence[str]) -> List[Section]:
    sections = []
    for index, keyword in enumerate(keywords[:FALLBACK_SECTION_COUNT]):
        if index < len(SECTION_TEMPLATES):
            prefix, suffix = SECTION_TEMPLATES[index]
        else:
            prefix, suffix = DEFAULT_SECTION_TEMPLATE
        sections.append(
            Section(id=f"section-{index + 1}", title=f"{prefix} {keyword}{suffix}", keywords=[keyword])
        )
    return sections


def _with_ordinal(base: str, article_number: int, previous: Sequence[str]) -> str:
    number = article_number
    candidate = f"{base} ({number})"
    while candidate in previous:
        number += 1
        candidate = f"{base} ({number})"
    return candidate


def fallback_title(
    keywords: Sequence[str],
    previous_titles: Sequence[str],
    article_number: int,
    proposed: Optional[str] = None,
) -> str:
    """Pick the backend's title if unused, else the first unused variation."""
    proposed = clean_title(proposed)
    if proposed and proposed not in previous_titles:
        return proposed

    variations = [v.format(kw=keywords[0]) for v in TITLE_VARIATIONS]
    for variation in variations:
        if variation not in previous_titles:
            return variation
    base = variations[(max(article_number, 1) - 1) % len(variations)]
    return _with_ordinal(base, article_number, previous_titles)


def dedupe_title(title: str, previous_titles: Sequence[str], article_number: int) -> str:
    """Return ``title`` or a suffixed variant that is not in ``previous_titles``."""
    if title not in previous_titles:
        return title
    logger.warning("Duplicate title detected: \"%s\"", title)
    for suffix in TITLE_SUFFIXES:
        candidate = f"{title}{suffix}"
        if candidate not in previous_titles:
            logger.info("Title varied to avoid duplicate: \"%s\"", candidate)
            return candidate
    candidate = _with_ordinal(title, article_number, previous_titles)
    logger.info("Title numbered to avoid duplicate: \"%s\"", candidate)
    return candidate


def build_article_outline(
    raw: Any,
    keywords: Sequence[str],
    article_number: int = 1,
    previous_titles: Sequence[str] = (),
    content_type: Optional[str] = None,
) -> Tuple[Article, bool]:
    """Turn a backend outline (or None) into an Article skeleton.

    Returns the skeleton and whether the fallback outline was used. The title
    is guaranteed to differ from every entry in ``previous_titles``.
    """
    keywords = [k for k in keywords if k]
    content_type = content_type or content_type_for(article_number)
    proposed = raw.get("title") if isinstance(raw, dict) else None
    meta = str(raw.get("metaDescription", "")) if isinstance(raw, dict) else ""

    if has_valid_sections(raw):
        sections = sections_from_outline(raw)
        title = clean_title(proposed)
        if title:
            title = dedupe_title(title, previous_titles, article_number)
        else:
            title = fallback_title(keywords or [sections[0].title], previous_titles, article_number)
        used_fallback = False
        logger.info("Backend outline accepted: %d sections", len(sections))
    else:
        if not keywords:
            raise EmptyArticleError("Outline is invalid and there are no keywords to build a fallback")
        logger.warning("Backend returned no valid sections; building fallback outline")
        sections = fallback_sections(keywords)
        title = fallback_title(keywords, previous_titles, article_number, proposed)
        used_fallback = True
        logger.info("Fallback sections: %s", ", ".join(s.title for s in sections))

    article = Article(
        title=title,
        sections=sections,
        primary_keywords=list(keywords),
        meta_description=meta,
        content_type=content_type,
    )
    logger.info("Outline ready: \"%s\" (%s)", title, content_type)
    return article, used_fallback
