"""
Data model shared across the GEO Writer pipeline.

Articles are built up in stages: the outline step creates empty Sections,
the writing step fills their content, link insertion rewrites it, and the
image step attaches a FeaturedImage. Batch descriptors (CsvRow) and
progress snapshots (BatchProgress) live here too so that every module
speaks the same types.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

FEATURED_IMAGE_SIZE = "1536x864"


def split_ids(value: str) -> List[str]:
    """Split a comma-joined id list, trimming blanks."""
    return [part.strip() for part in (value or "").split(",") if part.strip()]


@dataclass
class Section:
    """One H2 block of an article."""

    id: str
    title: str
    content: str = ""
    keywords: list[str] = field(default_factory=list)

    @property
    def is_written(self) -> bool:
        return bool(self.content and self.content.strip())

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "Section":
        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [k.strip() for k in keywords.split(",") if k.strip()]
        return cls(
            id=data.get("id") or f"section-{index + 1}",
            title=str(data.get("title", "")),
            content=data.get("content") or "",
            keywords=[str(k) for k in keywords],
        )


@dataclass
class FeaturedImage:
    """Cover image attached to an article, stored as a data URI."""

    prompt: str
    alt_text: str
    base64: str
    size: str = FEATURED_IMAGE_SIZE

    @property
    def mime_type(self) -> str:
        header = self.base64.split(",", 1)[0]
        if header.startswith("data:") and ";" in header:
            return header[5:].split(";", 1)[0]
        return "image/jpeg"

    def to_dict(self, include_data: bool = False) -> dict:
        """Serialize to a plain dictionary. Image bytes are omitted unless asked."""
        result = {
            "prompt": self.prompt,
            "size": self.size,
            "alt_text": self.alt_text,
        }
        if include_data:
            result["base64"] = self.base64
        return result


@dataclass
class Article:
    """An article under construction, and finally the publishable value."""

    title: str
    sections: list[Section] = field(default_factory=list)
    primary_keywords: list[str] = field(default_factory=list)
    featured_image: Optional[FeaturedImage] = None
    meta_description: str = ""
    content_type: str = "on-page"

    @property
    def primary_keyword(self) -> str:
        return self.primary_keywords[0] if self.primary_keywords else self.title

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary."""
        return {
            "title": self.title,
            "meta_description": self.meta_description,
            "content_type": self.content_type,
            "primary_keywords": list(self.primary_keywords),
            "sections": [s.to_dict() for s in self.sections],
            "featured_image": (
                self.featured_image.to_dict() if self.featured_image else None
            ),
        }


def render_article_html(article: Article) -> str:
    """Assemble the post body: one H2 plus a content div per section."""
    return "".join(
        f"<h2>{section.title}</h2><div>{section.content}</div>"
        for section in article.sections
    )


@dataclass
class CsvRow:
    """One batch task descriptor, read-only once parsed."""

    account_uuid: str
    kw: str
    task_count: int = 1
    tracker_task_ids: str = ""
    secondary_task_ids: str = ""

    @property
    def tracker_ids(self) -> List[str]:
        return split_ids(self.tracker_task_ids)

    @property
    def secondary_ids(self) -> List[str]:
        return split_ids(self.secondary_task_ids)

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary."""
        return asdict(self)


@dataclass
class BatchProgress:
    """Read-only progress snapshot taken from the orchestrator's live state."""

    current_account_index: int = 0
    total_accounts: int = 0
    current_article_index: int = 0
    total_articles_for_account: int = 0
    published_urls: list[str] = field(default_factory=list)
    is_complete: bool = False
    current_account_uuid: Optional[str] = None
    state: str = "idle"

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary."""
        return asdict(self)
