"""Browser page fetching, comment retrieval and pacing."""

from cashtag_radar.fetcher.comments import CommentSource, TikTokCommentClient
from cashtag_radar.fetcher.pacing import Action, PacingPolicy
from cashtag_radar.fetcher.page_fetcher import FetchResult, PageFetcher, SearchTarget

__all__ = [
    "Action",
    "CommentSource",
    "FetchResult",
    "PacingPolicy",
    "PageFetcher",
    "SearchTarget",
    "TikTokCommentClient",
]
