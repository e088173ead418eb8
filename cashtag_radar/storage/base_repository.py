"""Abstract storage interface - Postgres in production, in-memory for tests."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence

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


class BaseRepository(ABC):
    """Contract for all storage backends.

    Every method raises ``StorageError`` when the backend fails.
    """

    # -- lifecycle ---------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection / pool and ensure schema exists."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all connections."""
        ...

    @abstractmethod
    async def is_connected(self) -> bool:
        """Health check."""
        ...

    # -- tokens ------------------------------------------------------------

    @abstractmethod
    async def list_tokens(self) -> list[TokenReference]:
        """Return the whole token reference table ordered by id."""
        ...

    # -- content -----------------------------------------------------------

    @abstractmethod
    async def upsert_content(self, item: ContentItem) -> ContentItem:
        """Insert or overwrite by ``item.id``; return the stored row.

        A ``None`` ``last_mention_check_at`` never clears a stored value.
        """
        ...

    @abstractmethod
    async def get_content(self, content_id: str) -> ContentItem | None:
        ...

    @abstractmethod
    async def list_content(
        self,
        *,
        limit: int,
        offset: int = 0,
        search: str = "",
    ) -> tuple[list[ContentItem], int]:
        """Newest-fetched first; return the page and the total match count."""
        ...

    @abstractmethod
    async def select_stale_content(
        self,
        *,
        checked_before: datetime,
        limit: int,
    ) -> list[ContentItem]:
        """Items never checked or last checked before *checked_before*.

        Ordered oldest check first with never-checked items leading.
        """
        ...

    @abstractmethod
    async def mark_mention_checked(self, content_id: str, at: datetime) -> None:
        ...

    # -- mentions ----------------------------------------------------------

    @abstractmethod
    async def insert_mentions_if_absent(
        self,
        content_id: str,
        mentions: Sequence[MentionDraft],
    ) -> int:
        """Insert *mentions* only if *content_id* has no mention rows yet.

        Returns the number of rows inserted (0 when skipped or empty).
        """
        ...

    @abstractmethod
    async def count_mentions(self, content_id: str) -> int:
        ...

    @abstractmethod
    async def list_mention_activity(self, since: datetime) -> list[MentionActivity]:
        """Mentions created at or after *since*, joined with token and views."""
        ...

    # -- telegram ----------------------------------------------------------

    @abstractmethod
    async def add_channel(self, channel: ChannelConfig) -> ChannelConfig:
        """Register a channel; an existing username is returned unchanged."""
        ...

    @abstractmethod
    async def get_channel(self, username: str) -> ChannelConfig | None:
        ...

    @abstractmethod
    async def list_enabled_channels(self) -> list[ChannelConfig]:
        ...

    @abstractmethod
    async def disable_channel(self, username: str) -> None:
        ...

    @abstractmethod
    async def update_channel_cursor(self, username: str, last_message_id: int) -> None:
        ...

    @abstractmethod
    async def store_messages(self, messages: Sequence[TelegramMessage]) -> int:
        """Insert messages, ignoring duplicates; return count newly stored."""
        ...

    @abstractmethod
    async def recent_messages(self, limit: int) -> list[TelegramMessage]:
        ...

    # -- aggregation -------------------------------------------------------

    @abstractmethod
    async def record_analysis(
        self,
        run_at: datetime,
        metrics: Sequence[AggregateMetric],
    ) -> int:
        """Persist one aggregation run; return its id."""
        ...

    @abstractmethod
    async def latest_metrics(self) -> list[AggregateMetric]:
        """Metrics of the most recent aggregation run (unordered)."""
        ...

    @abstractmethod
    async def analysis_summary(self, high_correlation: float) -> AnalysisSummary:
        ...
