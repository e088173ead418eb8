"""TikTok search and hashtag card extractor."""

from __future__ import annotations

import logging
from typing import Any, ClassVar
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError

from cashtag_radar.core.errors import ExtractionError
from cashtag_radar.core.models import ContentDraft
from cashtag_radar.core.types import Platform, TargetKind
from cashtag_radar.core.utils import author_from_url, content_id_from_url, sanitize
from cashtag_radar.extractors.base_extractor import BaseExtractor

logger = logging.getLogger(__name__)

_CARD_SELECTORS: dict[TargetKind, str] = {
    TargetKind.SEARCH: 'div[class*="DivItemContainerForSearch"]',
    TargetKind.HASHTAG: 'div[class*="DivItemContainerV2"]',
}

_LINK_SELECTOR = 'a[href*="/video/"]'
_VIEWS_SELECTORS = (
    '[data-e2e="video-views"]',
    'strong[class*="StrongVideoCount"]',
)
_AUTHOR_SELECTORS = (
    '[data-e2e="search-card-user-unique-id"]',
    'p[class*="PUniqueId"]',
)
_DESC_SELECTORS = (
    '[data-e2e="search-card-desc"]',
    '[data-e2e="challenge-item-desc"]',
)
_THUMB_SELECTOR = "img"


class TikTokCardExtractor(BaseExtractor):
    """Pull video URL, author, views and thumbnail from one listing card."""

    _platform: ClassVar[str] = str(Platform.TIKTOK)

    def __init__(self, kind: TargetKind, base_url: str = "https://www.tiktok.com") -> None:
        self._kind = kind
        self._base_url = base_url

    @property
    def platform(self) -> str:
        return self._platform

    @property
    def card_selector(self) -> str:
        return _CARD_SELECTORS[self._kind]

    async def extract(self, card: Any) -> ContentDraft | None:
        try:
            href = await self._attr(card, _LINK_SELECTOR, "href")
            if not href:
                return None
            url = urljoin(self._base_url, href)
            if content_id_from_url(url) is None:
                return None

            author = await self._first_text(card, _AUTHOR_SELECTORS)
            views = await self._first_text(card, _VIEWS_SELECTORS)
            thumb = await self._attr(card, _THUMB_SELECTOR, "src")
            desc = await self._first_text(card, _DESC_SELECTORS)
        except PlaywrightError as exc:
            raise ExtractionError(f"card extraction failed: {exc}") from exc

        return ContentDraft(
            video_url=sanitize(url),
            author=sanitize(author) or author_from_url(url),
            views_raw=views.strip(),
            thumbnail_url=sanitize(thumb),
            description=sanitize(desc),
        )

    @staticmethod
    async def _attr(card: Any, selector: str, name: str) -> str:
        el = await card.query_selector(selector)
        if el is None:
            return ""
        return (await el.get_attribute(name)) or ""

    @staticmethod
    async def _first_text(card: Any, selectors: tuple[str, ...]) -> str:
        for selector in selectors:
            el = await card.query_selector(selector)
            if el is not None:
                text = (await el.inner_text()).strip()
                if text:
                    return text
        return ""
