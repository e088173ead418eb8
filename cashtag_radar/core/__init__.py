"""Core models, types, errors and utilities."""

from cashtag_radar.core.errors import (
    BlockedError,
    ConfigurationError,
    ConsecutiveCycleFailure,
    ExtractionError,
    RadarError,
    StorageError,
)
from cashtag_radar.core.models import (
    AggregateMetric,
    ChannelConfig,
    CommentBundle,
    ContentDraft,
    ContentItem,
    MentionDraft,
    TokenReference,
)
from cashtag_radar.core.types import Platform, SortKey, StopReason, TargetKind

__all__ = [
    "AggregateMetric",
    "BlockedError",
    "ChannelConfig",
    "CommentBundle",
    "ConfigurationError",
    "ConsecutiveCycleFailure",
    "ContentDraft",
    "ContentItem",
    "ExtractionError",
    "MentionDraft",
    "Platform",
    "RadarError",
    "SortKey",
    "StopReason",
    "StorageError",
    "TargetKind",
    "TokenReference",
]
