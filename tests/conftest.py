"""Shared fixtures and fake collaborators (browser page, comments, market, Telegram)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, AsyncIterator

import pytest

from cashtag_radar.core.errors import ExtractionError
from cashtag_radar.core.models import CommentBundle, ContentItem, MarketSnapshot, TokenReference
from cashtag_radar.fetcher.pacing import PacingPolicy
from cashtag_radar.storage.memory_repository import MemoryRepository

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------
# Browser fakes
# ---------------------------------------------------------------


class FakeElement:
    def __init__(self, text: str = "", attrs: dict[str, str] | None = None) -> None:
        self._text = text
        self._attrs = attrs or {}

    async def inner_text(self) -> str:
        return self._text

    async def get_attribute(self, name: str) -> str | None:
        return self._attrs.get(name)


class FakeCard:
    """A listing card answering the selectors the TikTok extractor asks for."""

    def __init__(
        self,
        href: str | None,
        author: str = "",
        views: str = "",
        desc: str = "",
        thumb: str = "",
    ) -> None:
        self.href = href
        self._elements: dict[str, FakeElement] = {}
        if href is not None:
            self._elements['a[href*="/video/"]'] = FakeElement(attrs={"href": href})
        if author:
            self._elements['[data-e2e="search-card-user-unique-id"]'] = FakeElement(author)
        if views:
            self._elements['[data-e2e="video-views"]'] = FakeElement(views)
        if desc:
            self._elements['[data-e2e="search-card-desc"]'] = FakeElement(desc)
        if thumb:
            self._elements["img"] = FakeElement(attrs={"src": thumb})

    async def query_selector(self, selector: str) -> FakeElement | None:
        return self._elements.get(selector)


def video_card(video_id: int, author: str = "alice", views: str = "1k", desc: str = "") -> FakeCard:
    return FakeCard(
        href=f"/@{author}/video/{video_id}",
        author=author,
        views=views,
        desc=desc,
        thumb=f"https://cdn.example/{video_id}.jpg",
    )


class FakePage:
    """Infinite-scroll listing split into batches revealed one scroll at a time.

    Height grows with each revealed batch and stops changing after the
    last one. ``block_on_load`` / ``block_after_scrolls`` make the
    verification challenge appear.
    """

    def __init__(
        self,
        batches: list[list[FakeCard]],
        *,
        block_on_load: bool = False,
        block_after_scrolls: int | None = None,
        load_error: Exception | None = None,
    ) -> None:
        self.batches = batches
        self.block_on_load = block_on_load
        self.block_after_scrolls = block_after_scrolls
        self.load_error = load_error
        self.visited: list[str] = []
        self.scrolls = 0
        self._revealed = 1
        self._blocked = False

    async def goto(self, url: str, **_: Any) -> None:
        self.visited.append(url)
        self.scrolls = 0
        self._revealed = 1
        self._blocked = self.block_on_load

    async def wait_for_selector(self, selector: str, **_: Any) -> None:
        if self.load_error is not None:
            raise self.load_error

    async def query_selector(self, selector: str) -> object | None:
        if self._blocked and selector.startswith("text="):
            return object()
        return None

    async def query_selector_all(self, selector: str) -> list[FakeCard]:
        return [card for batch in self.batches[: self._revealed] for card in batch]

    async def evaluate(self, script: str) -> int | None:
        if "scrollTo" in script:
            self.scrolls += 1
            self._revealed = min(self._revealed + 1, len(self.batches))
            if self.block_after_scrolls is not None and self.scrolls >= self.block_after_scrolls:
                self._blocked = True
            return None
        return 1000 * self._revealed


# ---------------------------------------------------------------
# Comment / market fakes
# ---------------------------------------------------------------


class FakeCommentSource:
    """Returns canned comment texts; ids in ``failing`` raise ``error``."""

    def __init__(
        self,
        comments: dict[str, list[str]] | None = None,
        failing: set[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.comments = comments or {}
        self.failing = failing or set()
        self.error = error or ExtractionError("comments unavailable")
        self.calls: list[str] = []

    async def fetch(self, content_id: str) -> CommentBundle:
        self.calls.append(content_id)
        if content_id in self.failing:
            raise self.error
        texts = tuple(self.comments.get(content_id, ()))
        return CommentBundle(count=len(texts), texts=texts)


class FakeMarket:
    def __init__(self, snapshots: dict[str, MarketSnapshot] | None = None) -> None:
        self.snapshots = snapshots or {}
        self.calls: list[str] = []

    async def snapshot(self, uri: str) -> MarketSnapshot | None:
        self.calls.append(uri)
        return self.snapshots.get(uri)


# ---------------------------------------------------------------
# Telegram fakes
# ---------------------------------------------------------------


@dataclass
class FakeMessage:
    id: int
    date: datetime
    message: str = ""
    views: int | None = None
    forwards: int | None = None
    media: Any = None


@dataclass
class FakeChannel:
    entity: SimpleNamespace
    messages: list[FakeMessage] = field(default_factory=list)


class FakeTelegramClient:
    """Serves channel entities and newest-first message history."""

    def __init__(
        self,
        channels: dict[str, FakeChannel] | None = None,
        search_results: dict[str, list[SimpleNamespace]] | None = None,
    ) -> None:
        self.channels = channels or {}
        self.search_results = search_results or {}
        self.downloads: list[tuple[int, str]] = []

    async def get_entity(self, username: str) -> SimpleNamespace:
        if username not in self.channels:
            raise ValueError(f"No user has \"{username}\" as username")
        return self.channels[username].entity

    async def iter_messages(
        self,
        entity: SimpleNamespace,
        limit: int | None = None,
        min_id: int = 0,
    ) -> AsyncIterator[FakeMessage]:
        channel = self.channels.get(entity.username)
        history = sorted(channel.messages if channel else [], key=lambda m: m.id, reverse=True)
        yielded = 0
        for message in history:
            if message.id <= min_id:
                continue
            if limit is not None and yielded >= limit:
                return
            yielded += 1
            yield message

    async def download_media(self, message: FakeMessage, file: str) -> str:
        path = f"{file}{message.id}.jpg"
        self.downloads.append((message.id, path))
        return path

    async def __call__(self, request: Any) -> SimpleNamespace:
        return SimpleNamespace(chats=self.search_results.get(request.q, []))


def channel_entity(username: str, entity_id: int = 100, title: str = "") -> SimpleNamespace:
    return SimpleNamespace(
        id=entity_id, username=username, title=title or username.title(), broadcast=True
    )


# ---------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def pacing() -> PacingPolicy:
    return PacingPolicy.disabled()


@pytest.fixture
def tokens() -> list[TokenReference]:
    return [
        TokenReference(id=1, symbol="BONK", name="Bonk", uri="bonk-mint-1"),
        TokenReference(id=2, symbol="BONK", name="Bonk Clone", uri="bonk-mint-2"),
        TokenReference(id=3, symbol="WIF", name="dogwifhat", uri="wif-mint"),
    ]


@pytest.fixture
def repo(tokens: list[TokenReference]) -> MemoryRepository:
    return MemoryRepository(tokens)


def make_item(
    content_id: str,
    *,
    checked: datetime | None = None,
    fetched: datetime = NOW,
    author: str = "alice",
    views: int = 100,
) -> ContentItem:
    return ContentItem(
        id=content_id,
        author=author,
        url=f"https://www.tiktok.com/@{author}/video/{content_id}",
        thumbnail_url="",
        posted_at=fetched - timedelta(days=1),
        fetched_at=fetched,
        view_count=views,
        comment_count=0,
        last_mention_check_at=checked,
    )
