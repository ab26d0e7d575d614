"""
Batch Orchestrator
==================

Drives the article assembly pipeline across every CSV row and every article
of a row, strictly in order, then reports the published URLs to the trackers.

State machine::

    IDLE -> LOADING_ACCOUNT -> GENERATING_OUTLINE -> WRITING -> PUBLISHING
                 ^                     ^                            |
                 |                     +---- next article ----------+
                 +------------------------- next account -----------+
                                                                    |
                                                             COMPLETE

All decision-relevant counters live on one ``BatchContext`` owned by the
running coroutine. ``progress()`` and the ``on_progress`` callback only ever
see snapshots built from it.

Any failure aborts the whole batch with ``BatchAbortedError``; articles that
were already published stay published and no tracker update is sent.

Usage:
    orchestrator = BatchOrchestrator(brief_client, generator, assembler, wordpress)
    result = await orchestrator.run(load_csv("tasks.csv"))
    print(result.progress.published_urls)
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence

from geo_writer.config import PacingConfig
from geo_writer.content_generator import unique_keywords
from geo_writer.csv_loader import parse_keywords
from geo_writer.exceptions import (
    BatchAbortedError,
    BriefError,
    ConfigurationError,
    CsvFormatError,
)
from geo_writer.internal_linker import count_anchors
from geo_writer.models import Article, BatchProgress, CsvRow
from geo_writer.outline import build_article_outline, content_type_for
from geo_writer.run_log import OperatorLogHandler, get_logger
from geo_writer.tracker_client import TrackerReport

logger = get_logger("batch_orchestrator")

SINGLE_ARTICLE_CONTENT_TYPE = "on-page"


class BatchState(str, Enum):
    """States of a batch run."""
    IDLE = "idle"
    LOADING_ACCOUNT = "loading_account"
    GENERATING_OUTLINE = "generating_outline"
    WRITING = "writing"
    PUBLISHING = "publishing"
    COMPLETE = "complete"
    FAILED = "failed"


def rotate_keywords(keywords: Sequence[str], article_index: int) -> List[str]:
    """Move the first keyword to the back once per completed article."""
    if not keywords:
        return []
    shift = article_index % len(keywords)
    return list(keywords[shift:]) + list(keywords[:shift])


class AccountMemory:
    """Titles already produced per account, for de-duplication."""

    def __init__(self) -> None:
        self._titles: Dict[str, List[str]] = {}

    def seed(self, account_uuid: str) -> None:
        self._titles.setdefault(account_uuid, [])

    def titles_for(self, account_uuid: str) -> List[str]:
        return list(self._titles.get(account_uuid, []))

    def remember(self, account_uuid: str, title: str) -> None:
        self._titles.setdefault(account_uuid, []).append(title)

    def to_dict(self) -> Dict[str, List[str]]:
        return {uuid: list(titles) for uuid, titles in self._titles.items()}


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class BatchContext:
    """Mutable state of one batch run."""
    rows: List[CsvRow]
    memory: AccountMemory
    state: BatchState = BatchState.IDLE
    account_index: int = 0
    article_index: int = 0
    published_urls: List[str] = field(default_factory=list)
    account_urls: Dict[str, List[str]] = field(default_factory=dict)
    website: Optional[str] = None
    context: str = ""
    original_keywords: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    outline: Optional[Article] = None
    article: Optional[Article] = None

    @property
    def row(self) -> CsvRow:
        return self.rows[self.account_index]


@dataclass
class BatchResult:
    """Outcome of a completed batch."""
    progress: BatchProgress
    tracker_report: Optional[TrackerReport] = None
    secondary_report: Optional[TrackerReport] = None
    log_lines: List[str] = field(default_factory=list)
    account_urls: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "progress": self.progress.to_dict(),
            "tracker_report": self.tracker_report.to_dict() if self.tracker_report else None,
            "secondary_report": self.secondary_report.to_dict() if self.secondary_report else None,
            "log_lines": list(self.log_lines),
            "account_urls": {uuid: list(urls) for uuid, urls in self.account_urls.items()},
        }


@dataclass
class SingleArticleResult:
    """Outcome of the manual single-article flow."""
    article: Article
    keywords: List[str]
    website: Optional[str] = None
    url: Optional[str] = None
    anchors: int = 0
    used_fallback_outline: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.article.title,
            "url": self.url,
            "website": self.website,
            "keywords": list(self.keywords),
            "anchors": self.anchors,
            "used_fallback_outline": self.used_fallback_outline,
            "article": self.article.to_dict(),
        }


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class BatchOrchestrator:
    """Runs accounts and articles sequentially through the assembly pipeline."""

    def __init__(
        self,
        brief_client,
        generator,
        assembler,
        publisher=None,
        tracker=None,
        secondary_tracker=None,
        pacing: Optional[PacingConfig] = None,
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
        memory: Optional[AccountMemory] = None,
    ):
        self.brief_client = brief_client
        self.generator = generator
        self.assembler = assembler
        self.publisher = publisher
        self.tracker = tracker
        self.secondary_tracker = secondary_tracker
        self.pacing = pacing or PacingConfig()
        self.on_progress = on_progress
        self.memory = memory or AccountMemory()
        self.operator_log = OperatorLogHandler()
        self._ctx: Optional[BatchContext] = None
        self._handlers: Dict[BatchState, Callable[[BatchContext], Awaitable[BatchState]]] = {
            BatchState.LOADING_ACCOUNT: self._load_account,
            BatchState.GENERATING_OUTLINE: self._generate_outline,
            BatchState.WRITING: self._write_article,
            BatchState.PUBLISHING: self._publish_article,
        }

    # -- Progress -------------------------------------------------------------

    def progress(self) -> BatchProgress:
        """Snapshot of the live run state."""
        ctx = self._ctx
        if ctx is None:
            return BatchProgress()
        row = ctx.rows[ctx.account_index] if ctx.rows else None
        return BatchProgress(
            current_account_index=ctx.account_index,
            total_accounts=len(ctx.rows),
            current_article_index=ctx.article_index,
            total_articles_for_account=row.task_count if row else 0,
            published_urls=list(ctx.published_urls),
            is_complete=ctx.state == BatchState.COMPLETE,
            current_account_uuid=row.account_uuid if row else None,
            state=ctx.state.value,
        )

    def _set_state(self, ctx: BatchContext, state: BatchState) -> None:
        ctx.state = state
        if self.on_progress:
            self.on_progress(self.progress())

    async def _pause(self, seconds: float) -> None:
        if seconds:
            await asyncio.sleep(seconds)

    @contextmanager
    def _operator_session(self) -> Iterator[OperatorLogHandler]:
        self.operator_log.clear()
        self.operator_log.attach()
        try:
            yield self.operator_log
        finally:
            self.operator_log.detach()

    # -- Batch ----------------------------------------------------------------

    async def run(self, rows: Sequence[CsvRow]) -> BatchResult:
        """Produce every article of every row, then update the trackers."""
        if not rows:
            raise CsvFormatError("No CSV rows to process")
        if self.publisher is None:
            raise ConfigurationError("Batch mode needs a publish target", missing=["WORDPRESS_TOKEN"])

        ctx = BatchContext(rows=list(rows), memory=self.memory)
        self._ctx = ctx

        with self._operator_session() as operator_log:
            total = sum(row.task_count for row in ctx.rows)
            logger.info("Batch started: %d accounts, %d articles", len(ctx.rows), total)

            state = BatchState.LOADING_ACCOUNT
            while state != BatchState.COMPLETE:
                self._set_state(ctx, state)
                try:
                    state = await self._handlers[state](ctx)
                except Exception as exc:
                    logger.error(
                        "Batch aborted on account %d/%d (%s): %s",
                        ctx.account_index + 1, len(ctx.rows), state.value, exc,
                    )
                    self._set_state(ctx, BatchState.FAILED)
                    raise BatchAbortedError(
                        f"Batch aborted on account {ctx.account_index + 1}: {exc}",
                        progress=self.progress(),
                        account_index=ctx.account_index,
                    ) from exc

            self._set_state(ctx, BatchState.COMPLETE)
            logger.info("Batch complete: %d articles published", len(ctx.published_urls))

            tracker_report = await self._update_tracker(ctx)
            secondary_report = await self._update_secondary(ctx)

            return BatchResult(
                progress=self.progress(),
                tracker_report=tracker_report,
                secondary_report=secondary_report,
                log_lines=operator_log.lines(),
                account_urls={uuid: list(urls) for uuid, urls in ctx.account_urls.items()},
            )

    async def _load_account(self, ctx: BatchContext) -> BatchState:
        row = ctx.row
        logger.info(
            "Account %d/%d: %s... (%d articles)",
            ctx.account_index + 1, len(ctx.rows), row.account_uuid[:12], row.task_count,
        )
        brief = await self.brief_client.fetch(row.account_uuid)
        ctx.context = brief.context
        ctx.website = brief.website
        if not ctx.website:
            logger.warning("No client website in the brief; articles will have no internal links")

        ctx.original_keywords = parse_keywords(row.kw)
        ctx.keywords = list(ctx.original_keywords)
        ctx.article_index = 0
        ctx.memory.seed(row.account_uuid)
        ctx.account_urls.setdefault(row.account_uuid, [])
        logger.info("Keywords: %s", ", ".join(ctx.keywords))

        await self._pause(self.pacing.after_keywords)
        return BatchState.GENERATING_OUTLINE

    async def _generate_outline(self, ctx: BatchContext) -> BatchState:
        row = ctx.row
        article_number = ctx.article_index + 1
        ctx.keywords = rotate_keywords(ctx.original_keywords, ctx.article_index)
        content_type = content_type_for(article_number)
        logger.info(
            "Article %d/%d: generating outline for '%s' (%s)",
            article_number, row.task_count, ctx.keywords[0], content_type,
        )

        raw = await self.generator.generate_outline(
            ctx.keywords[0], ctx.keywords, content_type, ctx.context
        )
        outline, used_fallback = build_article_outline(
            raw,
            ctx.keywords,
            article_number=article_number,
            previous_titles=ctx.memory.titles_for(row.account_uuid),
            content_type=content_type,
        )
        if used_fallback:
            logger.warning("Article %d uses the fallback outline", article_number)
        ctx.memory.remember(row.account_uuid, outline.title)
        ctx.outline = outline
        ctx.article = None

        await self._pause(self.pacing.after_outline)
        return BatchState.WRITING

    async def _write_article(self, ctx: BatchContext) -> BatchState:
        ctx.article = await self.assembler.assemble(ctx.outline, website=ctx.website)
        return BatchState.PUBLISHING

    async def _publish_article(self, ctx: BatchContext) -> BatchState:
        row = ctx.row
        await self._pause(self.pacing.before_publish)
        url = await self.publisher.publish_article(ctx.article)

        ctx.published_urls.append(url)
        ctx.account_urls[row.account_uuid].append(url)
        ctx.article_index += 1
        logger.info("Article %d/%d published: %s", ctx.article_index, row.task_count, url)

        if ctx.article_index < row.task_count:
            await self._pause(self.pacing.between_articles)
            return BatchState.GENERATING_OUTLINE
        if ctx.account_index + 1 < len(ctx.rows):
            ctx.account_index += 1
            ctx.article_index = 0
            await self._pause(self.pacing.between_accounts)
            return BatchState.LOADING_ACCOUNT
        return BatchState.COMPLETE

    async def _update_tracker(self, ctx: BatchContext) -> Optional[TrackerReport]:
        if self.tracker is None:
            logger.info("Primary tracker not configured; skipping task updates")
            return None
        return await self.tracker.update_tasks(
            ctx.rows, ctx.published_urls, pause=self.pacing.between_tracker_calls
        )

    async def _update_secondary(self, ctx: BatchContext) -> Optional[TrackerReport]:
        if self.secondary_tracker is None:
            logger.info("Secondary tracker not configured; skipping")
            return None
        return await self.secondary_tracker.assign_tasks(
            ctx.rows, pause=self.pacing.between_tracker_calls
        )

    # -- Single article -------------------------------------------------------

    async def produce_single_article(
        self,
        account_uuid: str,
        keywords: Optional[Sequence[str]] = None,
        publish: bool = True,
    ) -> SingleArticleResult:
        """Manual flow: brief, keywords, outline, assembly and optional publish.

        Errors propagate unchanged; nothing is published unless every step
        succeeded.
        """
        if publish and self.publisher is None:
            raise ConfigurationError("Publishing needs a publish target", missing=["WORDPRESS_TOKEN"])

        with self._operator_session():
            brief = await self.brief_client.fetch(account_uuid)

            if keywords:
                chosen = unique_keywords(keywords)
                logger.info("Using provided keywords: %s", ", ".join(chosen))
            else:
                if not brief.context:
                    raise BriefError("Brief has no usable context to derive keywords from")
                chosen = await self.generator.generate_keywords(brief.context)
                await self._pause(self.pacing.after_keywords)

            raw = await self.generator.generate_outline(
                chosen[0], chosen, SINGLE_ARTICLE_CONTENT_TYPE, brief.context
            )
            outline, used_fallback = build_article_outline(
                raw,
                chosen,
                article_number=1,
                previous_titles=self.memory.titles_for(account_uuid),
                content_type=SINGLE_ARTICLE_CONTENT_TYPE,
            )
            self.memory.remember(account_uuid, outline.title)
            await self._pause(self.pacing.after_outline)

            article = await self.assembler.assemble(outline, website=brief.website)

            url = None
            if publish:
                await self._pause(self.pacing.before_publish)
                url = await self.publisher.publish_article(article)
            else:
                logger.info("Publishing skipped; article kept locally")

            return SingleArticleResult(
                article=article,
                keywords=list(chosen),
                website=brief.website,
                url=url,
                anchors=count_anchors(article.sections),
                used_fallback_outline=used_fallback,
            )
