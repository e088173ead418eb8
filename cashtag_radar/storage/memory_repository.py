"""In-process storage backend for tests and ``--dry-run`` sessions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Sequence

from cashtag_radar.core.models import (
    AggregateMetric,
    AnalysisSummary,
    ChannelConfig,
    ContentItem,
    MentionActivity,
    MentionDraft,
    TelegramMessage,
    TokenReference,
)
from cashtag_radar.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MemoryRepository(BaseRepository):
    """Dict-backed repository with the same semantics as the Postgres one.

    Nothing survives the process. A single ``asyncio.Lock`` stands in for
    the per-content advisory lock used by the real store.
    """

    def __init__(self, tokens: Iterable[TokenReference] = ()) -> None:
        self._tokens: dict[int, TokenReference] = {t.id: t for t in tokens}
        self._content: dict[str, ContentItem] = {}
        self._mentions: list[MentionDraft] = []
        self._channels: dict[str, ChannelConfig] = {}
        self._messages: dict[tuple[str, int], TelegramMessage] = {}
        self._runs: list[tuple[int, datetime, list[AggregateMetric]]] = []
        self._lock = asyncio.Lock()
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("In-memory repository ready (%d token(s))", len(self._tokens))

    async def close(self) -> None:
        self._connected = False

    async def is_connected(self) -> bool:
        return self._connected

    def add_token(self, token: TokenReference) -> None:
        self._tokens[token.id] = token

    # -- tokens ------------------------------------------------------------

    async def list_tokens(self) -> list[TokenReference]:
        return [self._tokens[k] for k in sorted(self._tokens)]

    # -- content -----------------------------------------------------------

    async def upsert_content(self, item: ContentItem) -> ContentItem:
        existing = self._content.get(item.id)
        stored = replace(item)
        if stored.last_mention_check_at is None and existing is not None:
            stored.last_mention_check_at = existing.last_mention_check_at
        self._content[item.id] = stored
        return replace(stored)

    async def get_content(self, content_id: str) -> ContentItem | None:
        item = self._content.get(content_id)
        return replace(item) if item else None

    async def list_content(
        self,
        *,
        limit: int,
        offset: int = 0,
        search: str = "",
    ) -> tuple[list[ContentItem], int]:
        needle = search.lower()
        matches = [
            item
            for item in self._content.values()
            if not needle
            or needle in item.author.lower()
            or needle in item.url.lower()
        ]
        matches.sort(key=lambda i: i.fetched_at, reverse=True)
        page = matches[offset : offset + limit]
        return [replace(i) for i in page], len(matches)

    async def select_stale_content(
        self,
        *,
        checked_before: datetime,
        limit: int,
    ) -> list[ContentItem]:
        stale = [
            item
            for item in self._content.values()
            if item.last_mention_check_at is None
            or item.last_mention_check_at < checked_before
        ]
        stale.sort(
            key=lambda i: (
                i.last_mention_check_at is not None,
                i.last_mention_check_at or checked_before,
                i.id,
            )
        )
        return [replace(i) for i in stale[:limit]]

    async def mark_mention_checked(self, content_id: str, at: datetime) -> None:
        item = self._content.get(content_id)
        if item is not None:
            item.last_mention_check_at = at

    # -- mentions ----------------------------------------------------------

    async def insert_mentions_if_absent(
        self,
        content_id: str,
        mentions: Sequence[MentionDraft],
    ) -> int:
        if not mentions:
            return 0
        async with self._lock:
            if any(m.content_id == content_id for m in self._mentions):
                logger.info("Mentions already exist for content %s", content_id)
                return 0
            self._mentions.extend(mentions)
        return len(mentions)

    async def count_mentions(self, content_id: str) -> int:
        return sum(1 for m in self._mentions if m.content_id == content_id)

    async def list_mention_activity(self, since: datetime) -> list[MentionActivity]:
        activity: list[MentionActivity] = []
        for m in self._mentions:
            token = self._tokens.get(m.token_id)
            if token is None or m.mention_at < since:
                continue
            content = self._content.get(m.content_id)
            activity.append(
                MentionActivity(
                    token=token,
                    content_id=m.content_id,
                    count=m.count,
                    mention_at=m.mention_at,
                    view_count=content.view_count if content else 0,
                )
            )
        return activity

    # -- telegram ----------------------------------------------------------

    async def add_channel(self, channel: ChannelConfig) -> ChannelConfig:
        existing = self._channels.get(channel.username)
        if existing is None:
            existing = self._channels[channel.username] = replace(channel)
        return replace(existing)

    async def get_channel(self, username: str) -> ChannelConfig | None:
        channel = self._channels.get(username)
        return replace(channel) if channel else None

    async def list_enabled_channels(self) -> list[ChannelConfig]:
        return [replace(c) for c in self._channels.values() if c.enabled]

    async def disable_channel(self, username: str) -> None:
        channel = self._channels.get(username)
        if channel is not None:
            channel.enabled = False

    async def update_channel_cursor(self, username: str, last_message_id: int) -> None:
        channel = self._channels.get(username)
        if channel is not None:
            channel.last_message_id = max(channel.last_message_id, last_message_id)

    async def store_messages(self, messages: Sequence[TelegramMessage]) -> int:
        stored = 0
        for m in messages:
            key = (m.channel_id, m.message_id)
            if key not in self._messages:
                self._messages[key] = m
                stored += 1
        return stored

    async def recent_messages(self, limit: int) -> list[TelegramMessage]:
        ordered = sorted(self._messages.values(), key=lambda m: m.date, reverse=True)
        return ordered[:limit]

    # -- aggregation -------------------------------------------------------

    async def record_analysis(
        self,
        run_at: datetime,
        metrics: Sequence[AggregateMetric],
    ) -> int:
        run_id = len(self._runs) + 1
        snapshot = [replace(m, last_updated=run_at) for m in metrics]
        self._runs.append((run_id, run_at, snapshot))
        return run_id

    async def latest_metrics(self) -> list[AggregateMetric]:
        if not self._runs:
            return []
        _, _, snapshot = max(self._runs, key=lambda r: (r[1], r[0]))
        return [replace(m) for m in snapshot]

    async def analysis_summary(self, high_correlation: float) -> AnalysisSummary:
        if not self._runs:
            return AnalysisSummary()
        rows = [m for _, _, snapshot in self._runs for m in snapshot]
        return AnalysisSummary(
            last_analysis=max(run_at for _, run_at, _ in self._runs),
            total_correlations=len(rows),
            total_recommendations=sum(
                1 for m in rows if m.correlation_score >= high_correlation
            ),
        )
