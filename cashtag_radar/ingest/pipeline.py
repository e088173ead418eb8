"""Per-item ingestion: draft -> comments -> content upsert -> mentions."""

from __future__ import annotations

import logging

from cashtag_radar.core import metrics
from cashtag_radar.core.errors import BlockedError, ExtractionError, StorageError
from cashtag_radar.core.models import CommentBundle, ContentDraft, ContentItem, IngestStats
from cashtag_radar.core.types import Platform
from cashtag_radar.core.utils import (
    content_id_from_url,
    from_unix,
    parse_views,
    posted_at_from_id,
    sanitize,
    utcnow,
)
from cashtag_radar.fetcher.comments import CommentSource
from cashtag_radar.parsing.mention_parser import MentionParser
from cashtag_radar.parsing.symbol_resolver import SymbolResolver
from cashtag_radar.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Turns listing-card drafts into stored content and mention rows.

    Failures stay at the item boundary: an unreadable comment list yields
    an empty bundle, a failed content upsert skips the item, and nothing
    here aborts the caller's batch.
    """

    def __init__(
        self,
        repository: BaseRepository,
        comments: CommentSource,
        parser: MentionParser,
        resolver: SymbolResolver,
    ) -> None:
        self._repo = repository
        self._comments = comments
        self._parser = parser
        self._resolver = resolver

    def reload(self, resolver: SymbolResolver, parser: MentionParser | None = None) -> None:
        """Swap in a freshly loaded token table and, optionally, a matching parser."""
        self._resolver = resolver
        if parser is not None:
            self._parser = parser

    async def process(self, draft: ContentDraft) -> IngestStats:
        """Ingest one draft; the returned stats describe this item only."""
        stats = IngestStats(processed=1)

        content_id = content_id_from_url(draft.video_url)
        if content_id is None:
            logger.warning("Could not extract video id from %s", draft.video_url)
            stats.errors += 1
            return stats

        bundle = await self.fetch_comments(content_id)
        item = self._build_item(content_id, draft, bundle)

        try:
            await self._repo.upsert_content(item)
        except StorageError as exc:
            logger.error("Failed to store content %s (%s): %s", content_id, draft.video_url, exc)
            stats.errors += 1
            return stats

        stats.stored += 1
        metrics.CONTENT_STORED.labels(platform=str(Platform.TIKTOK)).inc()
        logger.info("Stored content %s by @%s", content_id, item.author or "?")

        try:
            stats.mentions_inserted = await self.record_mentions(
                content_id, [draft.description, *bundle.texts], source="scrape"
            )
        except StorageError as exc:
            logger.error("Failed to store mentions for %s: %s", content_id, exc)
            stats.errors += 1

        return stats

    async def fetch_comments(self, content_id: str) -> CommentBundle:
        """Comment text for *content_id*, or an empty bundle on failure."""
        try:
            return await self._comments.fetch(content_id)
        except BlockedError as exc:
            metrics.BLOCKED_FETCHES.labels(platform=str(Platform.TIKTOK)).inc()
            logger.warning("Comments blocked for %s: %s", content_id, exc)
        except ExtractionError as exc:
            logger.warning("Comments unavailable for %s: %s", content_id, exc)
        return CommentBundle.empty()

    async def record_mentions(
        self,
        content_id: str,
        texts: list[str],
        *,
        source: str,
    ) -> int:
        """Parse, resolve and insert mentions; return rows inserted.

        Raises ``StorageError`` if the insert fails.
        """
        tickers = self._parser.parse(texts)
        if not tickers:
            logger.debug("No tickers found for %s", content_id)
            return 0

        drafts = self._resolver.resolve(content_id, tickers)
        if not drafts:
            return 0

        inserted = await self._repo.insert_mentions_if_absent(content_id, drafts)
        if inserted:
            metrics.MENTIONS_INSERTED.labels(source=source).inc(inserted)
        return inserted

    @staticmethod
    def _build_item(
        content_id: str,
        draft: ContentDraft,
        bundle: CommentBundle,
    ) -> ContentItem:
        now = utcnow()
        posted_at = (
            from_unix(draft.posted_timestamp) or posted_at_from_id(content_id) or now
        )

        return ContentItem(
            id=content_id,
            author=sanitize(draft.author),
            url=sanitize(draft.video_url),
            thumbnail_url=sanitize(draft.thumbnail_url),
            posted_at=posted_at,
            fetched_at=now,
            view_count=parse_views(draft.views_raw),
            comment_count=bundle.count,
        )
