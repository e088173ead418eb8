"""Domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class ContentDraft:
    """Fields pulled off one listing card, before storage."""

    video_url: str
    author: str = ""
    views_raw: str = ""
    thumbnail_url: str = ""
    posted_timestamp: int | None = None
    description: str = ""


@dataclass(frozen=True, slots=True)
class CommentBundle:
    """Raw comment text gathered for one content item."""

    count: int = 0
    texts: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> CommentBundle:
        return cls()


@dataclass(slots=True)
class ContentItem:
    """One scraped social post - maps 1:1 to the ``tiktoks`` table."""

    id: str
    author: str
    url: str
    thumbnail_url: str
    posted_at: datetime
    fetched_at: datetime
    view_count: int = 0
    comment_count: int = 0
    last_mention_check_at: datetime | None = None

    def __post_init__(self) -> None:
        self.posted_at = _aware(self.posted_at)  # type: ignore[assignment]
        self.fetched_at = _aware(self.fetched_at)  # type: ignore[assignment]
        self.last_mention_check_at = _aware(self.last_mention_check_at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.author,
            "url": self.url,
            "thumbnail": self.thumbnail_url,
            "created_at": self.posted_at.isoformat(),
            "fetched_at": self.fetched_at.isoformat(),
            "views": self.view_count,
            "comments": self.comment_count,
            "last_mention_check": (
                self.last_mention_check_at.isoformat()
                if self.last_mention_check_at
                else None
            ),
        }


@dataclass(frozen=True, slots=True)
class TokenReference:
    """A known tradable token. Symbols are not unique."""

    id: int
    symbol: str
    name: str = ""
    uri: str = ""


@dataclass(frozen=True, slots=True)
class MentionDraft:
    """A mention row about to be inserted."""

    content_id: str
    token_id: int
    count: int
    mention_at: datetime


@dataclass(frozen=True, slots=True)
class MentionActivity:
    """One stored mention joined with its token and content view count."""

    token: TokenReference
    content_id: str
    count: int
    mention_at: datetime
    view_count: int = 0


@dataclass(slots=True)
class ChannelConfig:
    """A monitored Telegram channel - maps to ``telegram_channels``."""

    username: str
    display_name: str = ""
    enabled: bool = True
    last_message_id: int = 0
    scrape_media: bool = False
    scrape_interval_minutes: int = 15


@dataclass(frozen=True, slots=True)
class TelegramMessage:
    """A stored channel post - maps to ``telegram_messages``."""

    channel_id: str
    channel_title: str
    message_id: int
    text: str
    date: datetime
    views: int | None = None
    forwards: int | None = None
    has_media: bool = False
    media_path: str | None = None
    tickers: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "channel_title": self.channel_title,
            "message_id": self.message_id,
            "text": self.text,
            "date": self.date.isoformat(),
            "views": self.views,
            "forwards": self.forwards,
            "has_media": self.has_media,
            "media_path": self.media_path,
            "tickers": dict(self.tickers),
        }


@dataclass(frozen=True, slots=True)
class MarketSnapshot:
    """Market data for one token from the external price source."""

    volume_24h: float = 0.0
    volume_6h: float = 0.0
    volume_1h: float = 0.0
    volume_5m: float = 0.0
    price_change_24h: float = 0.0
    market_cap: float | None = None
    liquidity_usd: float = 0.0


@dataclass(slots=True)
class AggregateMetric:
    """Per-token rollup of social and market signal."""

    token_id: int
    uri: str
    symbol: str
    name: str
    total_mentions: int = 0
    total_views: int = 0
    trading_volume_24h: float = 0.0
    price_change_24h: float = 0.0
    market_cap: float | None = None
    correlation_score: float = 0.0
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "uri": self.uri,
            "symbol": self.symbol,
            "name": self.name,
            "trading_volume_24h": self.trading_volume_24h,
            "tiktok_views_24h": self.total_views,
            "correlation_score": self.correlation_score,
            "price_change_24h": self.price_change_24h,
            "total_mentions": self.total_mentions,
            "market_cap": self.market_cap,
            "last_updated": (
                self.last_updated.isoformat() if self.last_updated else None
            ),
        }


@dataclass(frozen=True, slots=True)
class AnalysisSummary:
    """Headline numbers for the most recent aggregation runs."""

    last_analysis: datetime | None = None
    total_correlations: int = 0
    total_recommendations: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastAnalysis": (
                self.last_analysis.isoformat() if self.last_analysis else "Never"
            ),
            "totalCorrelations": self.total_correlations,
            "totalRecommendations": self.total_recommendations,
        }


@dataclass(slots=True)
class IngestStats:
    """Counters for one scrape or ingestion session."""

    processed: int = 0
    stored: int = 0
    errors: int = 0
    mentions_inserted: int = 0

    def merge(self, other: IngestStats) -> None:
        self.processed += other.processed
        self.stored += other.stored
        self.errors += other.errors
        self.mentions_inserted += other.mentions_inserted


@dataclass(slots=True)
class HealthStatus:
    """Application health snapshot."""

    uptime_seconds: float = 0.0
    db_connected: bool = False
    components: list[str] = field(default_factory=list)
