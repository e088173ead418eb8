"""PostgreSQL (Supabase) storage backend using asyncpg."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Sequence

import asyncpg

from cashtag_radar.config import DatabaseConfig
from cashtag_radar.core import metrics
from cashtag_radar.core.errors import StorageError
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

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tiktoks (
    id                  TEXT            PRIMARY KEY,
    username            TEXT            NOT NULL DEFAULT '',
    url                 TEXT            NOT NULL,
    thumbnail           TEXT            NOT NULL DEFAULT '',
    created_at          TIMESTAMPTZ     NOT NULL,
    fetched_at          TIMESTAMPTZ     NOT NULL,
    views               BIGINT          NOT NULL DEFAULT 0,
    comments            INTEGER         NOT NULL DEFAULT 0,
    last_mention_check  TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_tiktoks_last_check
    ON tiktoks (last_mention_check NULLS FIRST);

CREATE TABLE IF NOT EXISTS tokens (
    id          BIGSERIAL       PRIMARY KEY,
    symbol      TEXT            NOT NULL,
    name        TEXT            NOT NULL DEFAULT '',
    uri         TEXT            NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS mentions (
    id          BIGSERIAL       PRIMARY KEY,
    tiktok_id   TEXT            NOT NULL REFERENCES tiktoks (id),
    token_id    BIGINT          NOT NULL REFERENCES tokens (id),
    count       INTEGER         NOT NULL,
    mention_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_mentions_tiktok ON mentions (tiktok_id);
CREATE INDEX IF NOT EXISTS idx_mentions_time ON mentions (mention_at);

CREATE TABLE IF NOT EXISTS telegram_channels (
    id                       BIGSERIAL   PRIMARY KEY,
    username                 TEXT        NOT NULL UNIQUE,
    display_name             TEXT        NOT NULL DEFAULT '',
    enabled                  BOOLEAN     NOT NULL DEFAULT TRUE,
    last_message_id          BIGINT      NOT NULL DEFAULT 0,
    scrape_media             BOOLEAN     NOT NULL DEFAULT FALSE,
    scrape_interval_minutes  INTEGER     NOT NULL DEFAULT 15,
    created_at               TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at               TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS telegram_messages (
    id              BIGSERIAL       PRIMARY KEY,
    channel_id      TEXT            NOT NULL,
    channel_title   TEXT            NOT NULL DEFAULT '',
    message_id      BIGINT          NOT NULL,
    text            TEXT,
    date            TIMESTAMPTZ     NOT NULL,
    views           INTEGER,
    forwards        INTEGER,
    has_media       BOOLEAN         NOT NULL DEFAULT FALSE,
    media_path      TEXT,
    tickers         JSONB           NOT NULL DEFAULT '{}'::jsonb,
    scraped_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
    UNIQUE (channel_id, message_id)
);

CREATE TABLE IF NOT EXISTS pattern_analysis_results (
    id              BIGSERIAL       PRIMARY KEY,
    timestamp       TIMESTAMPTZ     NOT NULL,
    platform        TEXT            NOT NULL DEFAULT 'tiktok',
    tokens_analyzed INTEGER         NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS pattern_correlations (
    id                  BIGSERIAL       PRIMARY KEY,
    analysis_id         BIGINT          NOT NULL
                        REFERENCES pattern_analysis_results (id) ON DELETE CASCADE,
    token_id            BIGINT          NOT NULL,
    token_uri           TEXT            NOT NULL DEFAULT '',
    token_symbol        TEXT            NOT NULL DEFAULT '',
    token_name          TEXT            NOT NULL DEFAULT '',
    correlation_score   DOUBLE PRECISION NOT NULL DEFAULT 0,
    trading_volume_24h  DOUBLE PRECISION NOT NULL DEFAULT 0,
    tiktok_views_24h    BIGINT          NOT NULL DEFAULT 0,
    price_change_24h    DOUBLE PRECISION NOT NULL DEFAULT 0,
    total_mentions      INTEGER         NOT NULL DEFAULT 0,
    market_cap          DOUBLE PRECISION,
    created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_correlations_analysis
    ON pattern_correlations (analysis_id);
"""

_CONTENT_COLUMNS = (
    "id, username, url, thumbnail, created_at, fetched_at, "
    "views, comments, last_mention_check"
)

_CHANNEL_COLUMNS = (
    "username, display_name, enabled, last_message_id, "
    "scrape_media, scrape_interval_minutes"
)

_MESSAGE_COLUMNS = (
    "channel_id, channel_title, message_id, text, date, views, "
    "forwards, has_media, media_path, tickers"
)


def _content_from_row(row: Any) -> ContentItem:
    return ContentItem(
        id=row["id"],
        author=row["username"],
        url=row["url"],
        thumbnail_url=row["thumbnail"],
        posted_at=row["created_at"],
        fetched_at=row["fetched_at"],
        view_count=row["views"],
        comment_count=row["comments"],
        last_mention_check_at=row["last_mention_check"],
    )


def _channel_from_row(row: Any) -> ChannelConfig:
    return ChannelConfig(
        username=row["username"],
        display_name=row["display_name"],
        enabled=row["enabled"],
        last_message_id=row["last_message_id"],
        scrape_media=row["scrape_media"],
        scrape_interval_minutes=row["scrape_interval_minutes"],
    )


def _message_from_row(row: Any) -> TelegramMessage:
    tickers = row["tickers"]
    if isinstance(tickers, str):
        tickers = json.loads(tickers)
    return TelegramMessage(
        channel_id=row["channel_id"],
        channel_title=row["channel_title"],
        message_id=row["message_id"],
        text=row["text"] or "",
        date=row["date"],
        views=row["views"],
        forwards=row["forwards"],
        has_media=row["has_media"],
        media_path=row["media_path"],
        tickers=dict(tickers or {}),
    )


class PostgresRepository(BaseRepository):
    """asyncpg-backed storage with connection pooling."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._config.dsn,
                min_size=self._config.pool_min,
                max_size=self._config.pool_max,
            )
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageError(f"cannot connect to database: {exc}") from exc
        async with self._connection("ensure_schema") as conn:
            await conn.execute(_SCHEMA_SQL)
        logger.info(
            "PostgreSQL pool created (%d-%d) and schema ensured",
            self._config.pool_min,
            self._config.pool_max,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")

    async def is_connected(self) -> bool:
        if not self._pool:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError):
            return False

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection; driver failures become ``StorageError``."""
        if self._pool is None:
            raise StorageError(f"{operation}: repository is not connected")
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            metrics.STORAGE_ERRORS.labels(operation=operation).inc()
            raise StorageError(f"{operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def list_tokens(self) -> list[TokenReference]:
        async with self._connection("list_tokens") as conn:
            rows = await conn.fetch(
                "SELECT id, symbol, name, uri FROM tokens ORDER BY id ASC"
            )
        return [
            TokenReference(
                id=r["id"], symbol=r["symbol"], name=r["name"], uri=r["uri"]
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def upsert_content(self, item: ContentItem) -> ContentItem:
        sql = f"""
            INSERT INTO tiktoks ({_CONTENT_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            ON CONFLICT (id) DO UPDATE SET
                username = EXCLUDED.username,
                url = EXCLUDED.url,
                thumbnail = EXCLUDED.thumbnail,
                created_at = EXCLUDED.created_at,
                fetched_at = EXCLUDED.fetched_at,
                views = EXCLUDED.views,
                comments = EXCLUDED.comments,
                last_mention_check = COALESCE(
                    EXCLUDED.last_mention_check, tiktoks.last_mention_check
                )
            RETURNING {_CONTENT_COLUMNS}
        """
        async with self._connection("upsert_content") as conn:
            row = await conn.fetchrow(
                sql,
                item.id,
                item.author,
                item.url,
                item.thumbnail_url,
                item.posted_at,
                item.fetched_at,
                item.view_count,
                item.comment_count,
                item.last_mention_check_at,
            )
        return _content_from_row(row)

    async def get_content(self, content_id: str) -> ContentItem | None:
        async with self._connection("get_content") as conn:
            row = await conn.fetchrow(
                f"SELECT {_CONTENT_COLUMNS} FROM tiktoks WHERE id = $1",
                content_id,
            )
        return _content_from_row(row) if row else None

    async def list_content(
        self,
        *,
        limit: int,
        offset: int = 0,
        search: str = "",
    ) -> tuple[list[ContentItem], int]:
        pattern = f"%{search}%" if search else None
        where = "WHERE ($1::text IS NULL OR username ILIKE $1 OR url ILIKE $1)"
        async with self._connection("list_content") as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_CONTENT_COLUMNS} FROM tiktoks
                {where}
                ORDER BY fetched_at DESC
                LIMIT $2 OFFSET $3
                """,
                pattern,
                limit,
                offset,
            )
            total = await conn.fetchval(
                f"SELECT COUNT(*)::int FROM tiktoks {where}", pattern
            )
        return [_content_from_row(r) for r in rows], total or 0

    async def select_stale_content(
        self,
        *,
        checked_before: datetime,
        limit: int,
    ) -> list[ContentItem]:
        sql = f"""
            SELECT {_CONTENT_COLUMNS} FROM tiktoks
            WHERE last_mention_check IS NULL
               OR last_mention_check < $1
            ORDER BY last_mention_check ASC NULLS FIRST, id ASC
            LIMIT $2
        """
        async with self._connection("select_stale_content") as conn:
            rows = await conn.fetch(sql, checked_before, limit)
        return [_content_from_row(r) for r in rows]

    async def mark_mention_checked(self, content_id: str, at: datetime) -> None:
        async with self._connection("mark_mention_checked") as conn:
            await conn.execute(
                "UPDATE tiktoks SET last_mention_check = $2 WHERE id = $1",
                content_id,
                at,
            )

    # ------------------------------------------------------------------
    # Mentions
    # ------------------------------------------------------------------

    async def insert_mentions_if_absent(
        self,
        content_id: str,
        mentions: Sequence[MentionDraft],
    ) -> int:
        if not mentions:
            return 0

        async with self._connection("insert_mentions") as conn:
            async with conn.transaction():
                # Serialise ingesters of the same content id for this check-then-insert.
                await conn.execute(
                    "SELECT pg_advisory_xact_lock(hashtext($1))", content_id
                )
                exists = await conn.fetchval(
                    "SELECT EXISTS (SELECT 1 FROM mentions WHERE tiktok_id = $1)",
                    content_id,
                )
                if exists:
                    logger.info("Mentions already exist for content %s", content_id)
                    return 0
                await conn.executemany(
                    """
                    INSERT INTO mentions (tiktok_id, token_id, count, mention_at)
                    VALUES ($1, $2, $3, $4)
                    """,
                    [
                        (content_id, m.token_id, m.count, m.mention_at)
                        for m in mentions
                    ],
                )
        logger.info("Stored %d mention(s) for content %s", len(mentions), content_id)
        return len(mentions)

    async def count_mentions(self, content_id: str) -> int:
        async with self._connection("count_mentions") as conn:
            return await conn.fetchval(
                "SELECT COUNT(*)::int FROM mentions WHERE tiktok_id = $1",
                content_id,
            ) or 0

    async def list_mention_activity(self, since: datetime) -> list[MentionActivity]:
        sql = """
            SELECT m.tiktok_id, m.count, m.mention_at,
                   t.id AS token_id, t.symbol, t.name, t.uri,
                   COALESCE(c.views, 0) AS views
            FROM mentions m
            JOIN tokens t ON t.id = m.token_id
            LEFT JOIN tiktoks c ON c.id = m.tiktok_id
            WHERE m.mention_at >= $1
        """
        async with self._connection("list_mention_activity") as conn:
            rows = await conn.fetch(sql, since)
        return [
            MentionActivity(
                token=TokenReference(
                    id=r["token_id"], symbol=r["symbol"], name=r["name"], uri=r["uri"]
                ),
                content_id=r["tiktok_id"],
                count=r["count"],
                mention_at=r["mention_at"],
                view_count=r["views"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Telegram
    # ------------------------------------------------------------------

    async def add_channel(self, channel: ChannelConfig) -> ChannelConfig:
        async with self._connection("add_channel") as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO telegram_channels ({_CHANNEL_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (username) DO NOTHING
                RETURNING {_CHANNEL_COLUMNS}
                """,
                channel.username,
                channel.display_name,
                channel.enabled,
                channel.last_message_id,
                channel.scrape_media,
                channel.scrape_interval_minutes,
            )
            if row is None:
                row = await conn.fetchrow(
                    f"SELECT {_CHANNEL_COLUMNS} FROM telegram_channels "
                    "WHERE username = $1",
                    channel.username,
                )
        return _channel_from_row(row)

    async def get_channel(self, username: str) -> ChannelConfig | None:
        async with self._connection("get_channel") as conn:
            row = await conn.fetchrow(
                f"SELECT {_CHANNEL_COLUMNS} FROM telegram_channels WHERE username = $1",
                username,
            )
        return _channel_from_row(row) if row else None

    async def list_enabled_channels(self) -> list[ChannelConfig]:
        async with self._connection("list_enabled_channels") as conn:
            rows = await conn.fetch(
                f"SELECT {_CHANNEL_COLUMNS} FROM telegram_channels "
                "WHERE enabled ORDER BY id ASC"
            )
        return [_channel_from_row(r) for r in rows]

    async def disable_channel(self, username: str) -> None:
        async with self._connection("disable_channel") as conn:
            await conn.execute(
                "UPDATE telegram_channels SET enabled = FALSE, updated_at = NOW() "
                "WHERE username = $1",
                username,
            )

    async def update_channel_cursor(self, username: str, last_message_id: int) -> None:
        async with self._connection("update_channel_cursor") as conn:
            await conn.execute(
                """
                UPDATE telegram_channels
                SET last_message_id = GREATEST(last_message_id, $2),
                    updated_at = NOW()
                WHERE username = $1
                """,
                username,
                last_message_id,
            )

    async def store_messages(self, messages: Sequence[TelegramMessage]) -> int:
        if not messages:
            return 0
        sql = f"""
            INSERT INTO telegram_messages ({_MESSAGE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb)
            ON CONFLICT (channel_id, message_id) DO NOTHING
            RETURNING id
        """
        stored = 0
        async with self._connection("store_messages") as conn:
            async with conn.transaction():
                for m in messages:
                    row = await conn.fetchrow(
                        sql,
                        m.channel_id,
                        m.channel_title,
                        m.message_id,
                        m.text,
                        m.date,
                        m.views,
                        m.forwards,
                        m.has_media,
                        m.media_path,
                        json.dumps(m.tickers),
                    )
                    stored += row is not None
        return stored

    async def recent_messages(self, limit: int) -> list[TelegramMessage]:
        async with self._connection("recent_messages") as conn:
            rows = await conn.fetch(
                f"SELECT {_MESSAGE_COLUMNS} FROM telegram_messages "
                "ORDER BY date DESC LIMIT $1",
                limit,
            )
        return [_message_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    async def record_analysis(
        self,
        run_at: datetime,
        metrics: Sequence[AggregateMetric],
    ) -> int:
        async with self._connection("record_analysis") as conn:
            async with conn.transaction():
                analysis_id = await conn.fetchval(
                    """
                    INSERT INTO pattern_analysis_results (timestamp, tokens_analyzed)
                    VALUES ($1, $2)
                    RETURNING id
                    """,
                    run_at,
                    len(metrics),
                )
                await conn.executemany(
                    """
                    INSERT INTO pattern_correlations (
                        analysis_id, token_id, token_uri, token_symbol, token_name,
                        correlation_score, trading_volume_24h, tiktok_views_24h,
                        price_change_24h, total_mentions, market_cap
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    """,
                    [
                        (
                            analysis_id,
                            m.token_id,
                            m.uri,
                            m.symbol,
                            m.name,
                            m.correlation_score,
                            m.trading_volume_24h,
                            m.total_views,
                            m.price_change_24h,
                            m.total_mentions,
                            m.market_cap,
                        )
                        for m in metrics
                    ],
                )
        return analysis_id

    async def latest_metrics(self) -> list[AggregateMetric]:
        sql = """
            SELECT r.timestamp, c.token_id, c.token_uri, c.token_symbol,
                   c.token_name, c.correlation_score, c.trading_volume_24h,
                   c.tiktok_views_24h, c.price_change_24h, c.total_mentions,
                   c.market_cap
            FROM pattern_correlations c
            JOIN pattern_analysis_results r ON r.id = c.analysis_id
            WHERE c.analysis_id = (
                SELECT id FROM pattern_analysis_results
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
            )
        """
        async with self._connection("latest_metrics") as conn:
            rows = await conn.fetch(sql)
        return [
            AggregateMetric(
                token_id=r["token_id"],
                uri=r["token_uri"],
                symbol=r["token_symbol"],
                name=r["token_name"],
                total_mentions=r["total_mentions"],
                total_views=r["tiktok_views_24h"],
                trading_volume_24h=r["trading_volume_24h"],
                price_change_24h=r["price_change_24h"],
                market_cap=r["market_cap"],
                correlation_score=r["correlation_score"],
                last_updated=r["timestamp"],
            )
            for r in rows
        ]

    async def analysis_summary(self, high_correlation: float) -> AnalysisSummary:
        async with self._connection("analysis_summary") as conn:
            last = await conn.fetchval(
                "SELECT MAX(timestamp) FROM pattern_analysis_results"
            )
            total = await conn.fetchval(
                "SELECT COUNT(*)::int FROM pattern_correlations"
            )
            high = await conn.fetchval(
                "SELECT COUNT(*)::int FROM pattern_correlations "
                "WHERE correlation_score >= $1",
                high_correlation,
            )
        return AnalysisSummary(
            last_analysis=last,
            total_correlations=total or 0,
            total_recommendations=high or 0,
        )
