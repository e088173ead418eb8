"""TikTok comment list client (JSON API, paged by cursor)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import aiohttp

from cashtag_radar.config import ScraperConfig, StealthConfig
from cashtag_radar.core.errors import BlockedError, ExtractionError
from cashtag_radar.core.models import CommentBundle
from cashtag_radar.core.utils import sanitize

logger = logging.getLogger(__name__)

_BLOCKED_STATUSES = frozenset({403, 429})


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class CommentSource(Protocol):
    """Anything that can return the comment text for one content id."""

    async def fetch(self, content_id: str) -> CommentBundle: ...


class TikTokCommentClient:
    """Pages through ``/api/comment/list/`` for a video id."""

    def __init__(
        self,
        scraper: ScraperConfig,
        stealth: StealthConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = f"{scraper.base_url.rstrip('/')}/api/comment/list/"
        self._page_size = scraper.comment_page_size
        self._max_pages = scraper.comment_max_pages
        self._headers = {
            "User-Agent": stealth.user_agent,
            "Accept-Language": stealth.accept_language,
            "Referer": stealth.referer,
        }
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._headers)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def fetch(self, content_id: str) -> CommentBundle:
        """Return all comment texts up to the page limit.

        Raises ``BlockedError`` on 403/429 and ``ExtractionError`` on any
        other transport or payload failure.
        """
        session = await self._get_session()
        texts: list[str] = []
        total = 0
        cursor = 0

        for _ in range(self._max_pages):
            payload = await self._fetch_page(session, content_id, cursor)
            comments = payload.get("comments") or []
            if not isinstance(comments, list):
                raise ExtractionError(
                    f"comment payload for {content_id} has no comment list"
                )
            for comment in comments:
                text = comment.get("text") if isinstance(comment, dict) else None
                if text:
                    texts.append(sanitize(str(text)))

            total = max(total, _as_int(payload.get("total")), len(texts))
            if not payload.get("has_more"):
                break
            next_cursor = _as_int(payload.get("cursor"))
            if next_cursor <= cursor:
                break
            cursor = next_cursor

        logger.debug("Fetched %d comment(s) for %s", len(texts), content_id)
        return CommentBundle(count=total, texts=tuple(texts))

    async def _fetch_page(
        self,
        session: aiohttp.ClientSession,
        content_id: str,
        cursor: int,
    ) -> dict[str, Any]:
        params = {
            "aid": "1988",
            "aweme_id": content_id,
            "count": str(self._page_size),
            "cursor": str(cursor),
        }
        try:
            async with session.get(
                self._url,
                params=params,
                headers=self._headers,
                timeout=aiohttp.ClientTimeout(total=15),
            ) as resp:
                if resp.status in _BLOCKED_STATUSES:
                    raise BlockedError(
                        f"comments/{content_id}", f"HTTP {resp.status}"
                    )
                if resp.status != 200:
                    raise ExtractionError(
                        f"comment API returned {resp.status} for {content_id}"
                    )
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise ExtractionError(
                f"comment fetch failed for {content_id}: {exc}"
            ) from exc

        if not isinstance(data, dict):
            raise ExtractionError(f"unexpected comment payload for {content_id}")
        return data
