"""Aggregate HTTP endpoints and the server-sent-event relay for the dashboard."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

from aiohttp import web

from cashtag_radar.config import DashboardConfig
from cashtag_radar.core.errors import StorageError
from cashtag_radar.core.models import AnalysisSummary, HealthStatus
from cashtag_radar.core.types import SortKey
from cashtag_radar.storage.base_repository import BaseRepository
from cashtag_radar.trending.trending_engine import TrendingEngine

logger = logging.getLogger(__name__)

DEFAULT_TRENDING_LIMIT = 10
DEFAULT_CONTENT_LIMIT = 20
DEFAULT_MESSAGES_LIMIT = 50
MAX_LIMIT = 100


def _int_param(request: web.Request, name: str, default: int, *, low: int, high: int) -> int:
    try:
        value = int(request.query.get(name, default))
    except ValueError:
        return default
    return max(low, min(high, value))


def _sort_param(request: web.Request) -> SortKey:
    raw = request.query.get("sortBy", str(SortKey.CORRELATION)).lower()
    try:
        return SortKey(raw)
    except ValueError:
        return SortKey.CORRELATION


def _sse(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, default=str)}\n\n".encode()


class DashboardServer:
    """Serves aggregate JSON to the UI.

    Storage failures answer HTTP 500 with the endpoint's empty payload so
    the UI can render a no-data state.
    """

    def __init__(
        self,
        repository: BaseRepository,
        engine: TrendingEngine,
        config: DashboardConfig,
    ) -> None:
        self._repo = repository
        self._engine = engine
        self._config = config
        self._start_time = time.monotonic()
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/trending", self.handle_trending)
        app.router.add_get("/api/analysis-summary", self.handle_analysis_summary)
        app.router.add_get("/api/content", self.handle_content)
        app.router.add_get("/api/telegram-recent", self.handle_telegram_recent)
        app.router.add_get("/api/events", self.handle_events)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/", self.handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        logger.info("Dashboard API on %s:%d", self._config.host, self._config.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Dashboard API stopped")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def handle_trending(self, request: web.Request) -> web.Response:
        sort_by = _sort_param(request)
        limit = _int_param(request, "limit", DEFAULT_TRENDING_LIMIT, low=1, high=MAX_LIMIT)
        try:
            ranked = await self._engine.trending(sort_by)
        except StorageError as exc:
            logger.error("Trending query failed: %s", exc)
            return web.json_response(
                {"coins": [], "total": 0, "sortBy": str(sort_by), "limit": limit},
                status=500,
            )
        return web.json_response(
            {
                "coins": [m.to_dict() for m in ranked[:limit]],
                "total": len(ranked),
                "sortBy": str(sort_by),
                "limit": limit,
            }
        )

    async def handle_analysis_summary(self, _request: web.Request) -> web.Response:
        try:
            summary = await self._engine.summary()
        except StorageError as exc:
            logger.error("Analysis summary failed: %s", exc)
            return web.json_response(AnalysisSummary().to_dict(), status=500)
        return web.json_response(summary.to_dict())

    async def handle_content(self, request: web.Request) -> web.Response:
        limit = _int_param(request, "limit", DEFAULT_CONTENT_LIMIT, low=1, high=MAX_LIMIT)
        offset = _int_param(request, "offset", 0, low=0, high=10**9)
        search = request.query.get("search", "").strip()
        try:
            items, total = await self._repo.list_content(
                limit=limit, offset=offset, search=search
            )
        except StorageError as exc:
            logger.error("Content query failed: %s", exc)
            return web.json_response(
                {"data": [], "count": 0, "limit": limit, "offset": offset},
                status=500,
            )
        return web.json_response(
            {
                "data": [i.to_dict() for i in items],
                "count": total,
                "limit": limit,
                "offset": offset,
            }
        )

    async def handle_telegram_recent(self, request: web.Request) -> web.Response:
        limit = _int_param(request, "limit", DEFAULT_MESSAGES_LIMIT, low=1, high=MAX_LIMIT)
        try:
            messages = await self._repo.recent_messages(limit)
        except StorageError as exc:
            logger.error("Telegram query failed: %s", exc)
            return web.json_response({"messages": [], "count": 0}, status=500)
        return web.json_response(
            {"messages": [m.to_dict() for m in messages], "count": len(messages)}
        )

    async def handle_events(self, request: web.Request) -> web.StreamResponse:
        """Relay the newest content item and top coin every poll interval."""
        response = web.StreamResponse(
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            }
        )
        await response.prepare(request)

        try:
            await response.write(_sse(
                {
                    "type": "connected",
                    "payload": {"message": "Real-time connection established"},
                }
            ))
            while True:
                await asyncio.sleep(self._config.poll_seconds)
                for payload in await self._poll_updates():
                    await response.write(payload)
        except ConnectionResetError:
            logger.debug("Event stream client disconnected")
        return response

    async def handle_health(self, _request: web.Request) -> web.Response:
        status = HealthStatus(
            uptime_seconds=time.monotonic() - self._start_time,
            db_connected=await self._repo.is_connected(),
            components=["trending", "content", "telegram", "events"],
        )
        code = 200 if status.db_connected else 503
        return web.json_response(
            {
                "status": "ok" if code == 200 else "degraded",
                "uptime_seconds": round(status.uptime_seconds, 1),
                "db_connected": status.db_connected,
                "components": status.components,
            },
            status=code,
        )

    async def _poll_updates(self) -> list[bytes]:
        payloads: list[bytes] = []
        try:
            items, _ = await self._repo.list_content(limit=1)
            top = await self._engine.trending(SortKey.CORRELATION, 1)
        except StorageError as exc:
            logger.warning("Event poll failed: %s", exc)
            return payloads
        if items:
            payloads.append(_sse({"type": "tiktok_update", "payload": items[0].to_dict()}))
        if top:
            payloads.append(_sse({"type": "trending_update", "payload": top[0].to_dict()}))
        return payloads
