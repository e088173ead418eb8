"""Listing page fetcher: navigate, detect challenges, scroll and collect cards."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from cashtag_radar.config import ScraperConfig
from cashtag_radar.core import metrics
from cashtag_radar.core.errors import BlockedError, ExtractionError
from cashtag_radar.core.models import ContentDraft
from cashtag_radar.core.types import ExtractorRegistry, StopReason, TargetKind
from cashtag_radar.fetcher.pacing import Action, PacingPolicy

logger = logging.getLogger(__name__)

_BLOCK_SELECTORS = (
    "text=Verify to continue",
    "text=Please verify you are a human",
)
_HEIGHT_JS = "document.documentElement.scrollHeight"
_SCROLL_JS = "window.scrollTo(0, document.documentElement.scrollHeight)"

# Consecutive unchanged-height scrolls that mean the feed is exhausted.
_END_OF_FEED_SCROLLS = 2


@dataclass(frozen=True, slots=True)
class SearchTarget:
    """One keyword search or hashtag listing to page through."""

    kind: TargetKind
    term: str

    def url(self, base_url: str) -> str:
        base = base_url.rstrip("/")
        if self.kind is TargetKind.HASHTAG:
            return f"{base}/tag/{quote(self.term.lstrip('#'))}"
        return f"{base}/search?q={quote(self.term)}"

    @property
    def label(self) -> str:
        return f"#{self.term.lstrip('#')}" if self.kind is TargetKind.HASHTAG else self.term


@dataclass(slots=True)
class FetchResult:
    """Drafts collected for one target and why paging stopped."""

    target: SearchTarget
    drafts: list[ContentDraft] = field(default_factory=list)
    stop_reason: StopReason = StopReason.TARGET_REACHED
    scrolls: int = 0


class PageFetcher:
    """Drives one browser page through search/hashtag listings.

    Handles:
    * Bot-challenge detection (abort the target, keep partial results)
    * Human-pacing pauses after every navigation, scroll and item
    * End-of-feed detection by unchanged page height
    """

    def __init__(
        self,
        page: Any,
        extractors: ExtractorRegistry,
        pacing: PacingPolicy,
        config: ScraperConfig,
    ) -> None:
        self._page = page
        self._extractors = extractors
        self._pacing = pacing
        self._config = config

    async def collect(
        self,
        target: SearchTarget,
        max_results: int,
        seen_urls: set[str],
    ) -> FetchResult:
        """Page through *target* until the result count, end of feed or a block.

        ``seen_urls`` belongs to the calling scrape run; cards whose URL is
        already in it are skipped and new URLs are added.
        """
        result = FetchResult(target=target)
        extractor = self._extractors[target.kind]
        url = target.url(self._config.base_url)
        stale_scrolls = 0

        try:
            await self._load(url, extractor.card_selector)

            while len(result.drafts) < max_results:
                cards = await self._page.query_selector_all(extractor.card_selector)
                if not cards:
                    logger.info("No cards visible for '%s', waiting", target.label)
                    await self._pacing.pause(Action.EMPTY_FEED)

                for card in cards:
                    if len(result.drafts) >= max_results:
                        break
                    try:
                        draft = await extractor.extract(card)
                    except ExtractionError as exc:
                        logger.warning("Skipping card on '%s': %s", target.label, exc)
                        continue
                    if draft is None or draft.video_url in seen_urls:
                        continue
                    seen_urls.add(draft.video_url)
                    result.drafts.append(draft)
                    logger.debug(
                        "Found video %d/%d: %s",
                        len(result.drafts),
                        max_results,
                        draft.video_url,
                    )
                    await self._pacing.pause(Action.INTER_ITEM)

                if len(result.drafts) >= max_results:
                    logger.info("Reached target number of videos for '%s'", target.label)
                    break

                previous_height = await self._page.evaluate(_HEIGHT_JS)
                await self._page.evaluate(_SCROLL_JS)
                result.scrolls += 1
                await self._pacing.pause(Action.SCROLL)
                await self._raise_if_blocked(url)

                new_height = await self._page.evaluate(_HEIGHT_JS)
                if new_height == previous_height:
                    stale_scrolls += 1
                    if stale_scrolls >= _END_OF_FEED_SCROLLS:
                        logger.info("Reached end of feed for '%s'", target.label)
                        result.stop_reason = StopReason.END_OF_FEED
                        break
                else:
                    stale_scrolls = 0

        except BlockedError as exc:
            metrics.BLOCKED_FETCHES.labels(platform=extractor.platform).inc()
            logger.error(
                "Bot challenge on '%s' (%s); keeping %d partial result(s)",
                target.label,
                exc,
                len(result.drafts),
            )
            result.stop_reason = StopReason.BLOCKED
        except PlaywrightTimeoutError:
            logger.error(
                "Timed out on '%s'; keeping %d partial result(s)",
                target.label,
                len(result.drafts),
            )
            result.stop_reason = StopReason.TIMEOUT
        except PlaywrightError:
            logger.exception(
                "Browser error on '%s'; keeping %d partial result(s)",
                target.label,
                len(result.drafts),
            )
            result.stop_reason = StopReason.TIMEOUT

        return result

    async def _load(self, url: str, container_selector: str) -> None:
        logger.info("Loading %s", url)
        await self._page.goto(
            url,
            wait_until="networkidle",
            timeout=self._config.navigation_timeout_ms,
        )
        await self._raise_if_blocked(url)
        await self._page.wait_for_selector(
            container_selector,
            timeout=self._config.container_timeout_ms,
        )
        await self._pacing.pause(Action.PAGE_LOAD)

    async def _raise_if_blocked(self, url: str) -> None:
        for selector in _BLOCK_SELECTORS:
            if await self._page.query_selector(selector) is not None:
                raise BlockedError(url, "verification challenge shown")
