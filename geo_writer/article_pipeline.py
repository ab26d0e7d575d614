"""
Article Assembly Pipeline
=========================

Produces one publish-ready Article from an outline skeleton and the
client's (optional) website. Stages run strictly in order and any failure
aborts the assembly; nothing is published from here.

Pipeline stages:
    1. WRITING          Section prose from the backend, one section at a time,
                        passed through the readability transform
    2. INTERNAL_LINKING Three links to the client site (home, blog, contact);
                        fewer than three is a hard error. Skipped without a website
    3. IMAGE            Editorial cover image, normalised to 1536x864, with
                        its own retry loop; mandatory
    4. ASSEMBLY         Final Article value

Usage:
    assembler = ArticleAssembler(generator, image_generator)
    article = await assembler.assemble(outline, website="https://example.com")
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import List, Optional, Tuple

from geo_writer.config import PacingConfig
from geo_writer.exceptions import EmptyArticleError, ImageGenerationError, InsufficientLinksError
from geo_writer.image_generator import normalize_image
from geo_writer.internal_linker import (
    REQUIRED_LINKS,
    build_client_links,
    count_anchors,
    insert_internal_links,
)
from geo_writer.models import FEATURED_IMAGE_SIZE, Article, FeaturedImage, Section
from geo_writer.readability import improve_readability
from geo_writer.run_log import get_logger

logger = get_logger("article_pipeline")

MAX_IMAGE_ATTEMPTS = 3

IMAGE_PROMPT_TEMPLATE = """\
Create a high-quality editorial image to accompany an SEO article.

The image must visually support the article's content: contextually useful,
not decorative. It should help the reader understand the main topic, concept,
process or environment described. Think of it as the featured image of an
online article.

Editorial style references: The New York Times, National Geographic, Wired,
El País Retina, BBC Mundo, The Guardian.

Style characteristics:
- Clean, editorial, realistic or semi-realistic
- Clear visual focus and natural lighting
- Professional composition
- No exaggerated effects and no stock-photo clichés

Technical requirements (mandatory):
- Size: 1536 x 864 px
- Aspect ratio: 16:9, horizontal (landscape)
- Suitable for a WordPress featured image
- No text overlays, no watermarks, no logos

SEO and accessibility guidance:
- The image must visually match the main keyword and article topic.
- It should be easy to describe with an alt text that includes the main keyword.

Article context
Main keyword: {keyword}

Article topic: {title}

Generate only the image."""


def build_image_prompt(keyword: str, title: str) -> str:
    return IMAGE_PROMPT_TEMPLATE.format(keyword=keyword, title=title)


class ArticleAssembler:
    """Coordinates the text backend, the HTML transforms and the image backend."""

    def __init__(
        self,
        generator,
        image_generator,
        pacing: Optional[PacingConfig] = None,
        max_image_attempts: int = MAX_IMAGE_ATTEMPTS,
    ):
        self.generator = generator
        self.image_generator = image_generator
        self.pacing = pacing or PacingConfig()
        self.max_image_attempts = max_image_attempts

    # -- Stage 1 ------------------------------------------------------------

    async def write_sections(self, article: Article) -> List[Section]:
        """Write every section in outline order."""
        if not article.sections:
            raise EmptyArticleError(f"Article \"{article.title}\" has no sections to write")

        written: List[Section] = []
        total = len(article.sections)
        for index, section in enumerate(article.sections):
            logger.info("Writing section %d/%d: %s", index + 1, total, section.title)
            raw = await self.generator.generate_section_content(
                section.title, section.keywords, article.title
            )
            content = improve_readability(raw)
            if not content or not content.strip():
                raise EmptyArticleError(f"Section \"{section.title}\" came back empty")
            written.append(
                replace(section, id=section.id or f"section-{index + 1}", content=content)
            )
            if index < total - 1 and self.pacing.between_sections:
                await asyncio.sleep(self.pacing.between_sections)
        return written

    # -- Stage 2 ------------------------------------------------------------

    def link_sections(
        self, sections: List[Section], website: Optional[str]
    ) -> Tuple[List[Section], int]:
        """Insert the client links; raise if fewer than three anchors result."""
        if not website:
            logger.info("No client website: internal linking skipped")
            return sections, 0

        links = build_client_links(website)
        logger.info("Inserting internal links for %s", website)
        linked, _ = insert_internal_links(sections, links)
        anchors = count_anchors(linked)
        if anchors < REQUIRED_LINKS:
            logger.error("Internal linking failed: %d/%d anchors", anchors, REQUIRED_LINKS)
            raise InsufficientLinksError(found=anchors, required=REQUIRED_LINKS)
        logger.info("Internal links verified: %d anchors", anchors)
        return linked, anchors

    # -- Stage 3 ------------------------------------------------------------

    async def generate_featured_image(self, title: str, keyword: str) -> FeaturedImage:
        """Generate and normalise the cover image, retrying with growing pauses."""
        prompt = build_image_prompt(keyword, title)
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_image_attempts + 1):
            logger.info("Image attempt %d/%d", attempt, self.max_image_attempts)
            try:
                raw = await self.image_generator.generate_image(prompt)
                if not raw:
                    raise ValueError("The image was not generated")
                normalized = normalize_image(raw)
            except Exception as exc:
                last_error = exc
                logger.warning("Image attempt %d failed: %s", attempt, exc)
                if attempt < self.max_image_attempts:
                    await asyncio.sleep(self.pacing.image_retry_base * attempt)
                continue

            logger.info("Valid image generated (%s)", FEATURED_IMAGE_SIZE)
            return FeaturedImage(
                prompt=prompt,
                alt_text=f"{title} - {keyword}",
                base64=normalized,
                size=FEATURED_IMAGE_SIZE,
            )

        raise ImageGenerationError(self.max_image_attempts, last_error)

    # -- Full assembly ------------------------------------------------------

    async def assemble(self, outline: Article, website: Optional[str] = None) -> Article:
        """Run every stage and return the complete article."""
        logger.info("Assembling \"%s\" (%d sections)", outline.title, len(outline.sections))

        sections = await self.write_sections(outline)
        sections, anchors = self.link_sections(sections, website)
        image = await self.generate_featured_image(outline.title, outline.primary_keyword)

        article = replace(outline, sections=sections, featured_image=image)
        if website:
            logger.info(
                "Article complete: %d sections, %d internal links, cover image",
                len(sections), anchors,
            )
        else:
            logger.info("Article complete: %d sections, cover image", len(sections))
        return article
