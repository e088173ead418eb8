"""Shared type aliases and enumerations."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cashtag_radar.extractors.base_extractor import BaseExtractor


class Platform(str, Enum):
    """Scraped social platforms."""

    TIKTOK = "tiktok"
    TELEGRAM = "telegram"

    def __str__(self) -> str:
        return self.value


class TargetKind(str, Enum):
    """How a listing page is addressed on the platform."""

    SEARCH = "search"
    HASHTAG = "hashtag"

    def __str__(self) -> str:
        return self.value


class SortKey(str, Enum):
    """Ranking keys accepted by the trending endpoint."""

    CORRELATION = "correlation"
    VOLUME = "volume"
    VIEWS = "views"
    MENTIONS = "mentions"

    def __str__(self) -> str:
        return self.value


class StopReason(str, Enum):
    """Why the page fetcher stopped paging a listing."""

    TARGET_REACHED = "target_reached"
    END_OF_FEED = "end_of_feed"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"

    def __str__(self) -> str:
        return self.value


# Symbol -> occurrence count, as produced by the mention parser.
TickerCounts = dict[str, int]

ExtractorRegistry = dict[TargetKind, "BaseExtractor"]
