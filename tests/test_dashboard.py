"""Tests for the dashboard JSON endpoints and event stream."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

import pytest
from aiohttp import test_utils

from cashtag_radar.config import DashboardConfig, TrendingConfig
from cashtag_radar.core.errors import StorageError
from cashtag_radar.core.models import (
    AggregateMetric,
    AnalysisSummary,
    ContentItem,
    TelegramMessage,
)
from cashtag_radar.dashboard import DashboardServer
from cashtag_radar.storage.memory_repository import MemoryRepository
from cashtag_radar.trending import TrendingEngine

from conftest import FakeMarket, make_item


class BrokenRepository(MemoryRepository):
    async def latest_metrics(self) -> list[AggregateMetric]:
        raise StorageError("latest_metrics failed: timeout")

    async def analysis_summary(self, high_correlation: float) -> AnalysisSummary:
        raise StorageError("analysis_summary failed: timeout")

    async def list_content(
        self, *, limit: int, offset: int = 0, search: str = ""
    ) -> tuple[list[ContentItem], int]:
        raise StorageError("list_content failed: timeout")

    async def recent_messages(self, limit: int) -> list[TelegramMessage]:
        raise StorageError("recent_messages failed: timeout")


def make_client(repo: MemoryRepository, now: datetime) -> test_utils.TestClient:
    engine = TrendingEngine(repo, FakeMarket(), TrendingConfig(high_correlation=0.7), clock=lambda: now)
    server = DashboardServer(repo, engine, DashboardConfig(poll_seconds=0.01))
    return test_utils.TestClient(test_utils.TestServer(server.build_app()))


async def seed_run(repo: MemoryRepository, now: datetime) -> None:
    await repo.record_analysis(
        now,
        [
            AggregateMetric(1, "bonk-mint-1", "BONK", "Bonk", total_mentions=9, correlation_score=0.4),
            AggregateMetric(3, "wif-mint", "WIF", "dogwifhat", total_mentions=2, correlation_score=0.8),
            AggregateMetric(2, "bonk-mint-2", "BONK", "Bonk Clone", total_mentions=5, correlation_score=0.1),
        ],
    )


class TestTrendingEndpoint:
    @pytest.mark.asyncio
    async def test_ranks_latest_run(self, repo: MemoryRepository, now: datetime) -> None:
        await seed_run(repo, now)
        async with make_client(repo, now) as client:
            resp = await client.get("/api/trending", params={"sortBy": "mentions", "limit": "2"})
            body = await resp.json()

        assert resp.status == 200
        assert body["sortBy"] == "mentions"
        assert body["limit"] == 2
        assert body["total"] == 3
        assert [c["token_id"] for c in body["coins"]] == [1, 2]
        assert body["coins"][0]["last_updated"] == now.isoformat()

    @pytest.mark.asyncio
    async def test_defaults_and_invalid_params(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        await seed_run(repo, now)
        async with make_client(repo, now) as client:
            resp = await client.get("/api/trending", params={"sortBy": "hype", "limit": "500"})
            body = await resp.json()

        assert body["sortBy"] == "correlation"
        assert body["limit"] == 100
        assert [c["symbol"] for c in body["coins"]] == ["WIF", "BONK", "BONK"]

    @pytest.mark.asyncio
    async def test_no_runs_is_empty(self, repo: MemoryRepository, now: datetime) -> None:
        async with make_client(repo, now) as client:
            resp = await client.get("/api/trending")
            body = await resp.json()

        assert resp.status == 200
        assert body == {"coins": [], "total": 0, "sortBy": "correlation", "limit": 10}


class TestSummaryEndpoint:
    @pytest.mark.asyncio
    async def test_never_before_first_run(self, repo: MemoryRepository, now: datetime) -> None:
        async with make_client(repo, now) as client:
            body = await (await client.get("/api/analysis-summary")).json()
        assert body == {"lastAnalysis": "Never", "totalCorrelations": 0, "totalRecommendations": 0}

    @pytest.mark.asyncio
    async def test_counts_high_correlations(self, repo: MemoryRepository, now: datetime) -> None:
        await seed_run(repo, now)
        async with make_client(repo, now) as client:
            body = await (await client.get("/api/analysis-summary")).json()
        assert body["lastAnalysis"] == now.isoformat()
        assert body["totalCorrelations"] == 3
        assert body["totalRecommendations"] == 1


class TestContentEndpoints:
    @pytest.mark.asyncio
    async def test_content_page_and_search(self, repo: MemoryRepository, now: datetime) -> None:
        for i, author in enumerate(["alice", "bob", "alicia"]):
            await repo.upsert_content(
                make_item(str(i), author=author, fetched=now + timedelta(minutes=i))
            )
        async with make_client(repo, now) as client:
            body = await (await client.get("/api/content", params={"search": "ali"})).json()
            paged = await (
                await client.get("/api/content", params={"limit": "1", "offset": "1"})
            ).json()

        assert body["count"] == 2
        assert [d["username"] for d in body["data"]] == ["alicia", "alice"]
        assert (body["limit"], body["offset"]) == (20, 0)
        assert paged["count"] == 3
        assert [d["id"] for d in paged["data"]] == ["1"]

    @pytest.mark.asyncio
    async def test_telegram_recent(self, repo: MemoryRepository, now: datetime) -> None:
        await repo.store_messages(
            [
                TelegramMessage("100", "Alpha", 1, "$BONK", now, tickers={"BONK": 1}),
                TelegramMessage("100", "Alpha", 2, "gm", now + timedelta(seconds=5)),
            ]
        )
        async with make_client(repo, now) as client:
            body = await (await client.get("/api/telegram-recent", params={"limit": "1"})).json()

        assert body["count"] == 1
        assert body["messages"][0]["message_id"] == 2


class TestStorageFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/api/trending", {"coins": [], "total": 0, "sortBy": "correlation", "limit": 10}),
            ("/api/analysis-summary", {"lastAnalysis": "Never", "totalCorrelations": 0, "totalRecommendations": 0}),
            ("/api/content", {"data": [], "count": 0, "limit": 20, "offset": 0}),
            ("/api/telegram-recent", {"messages": [], "count": 0}),
        ],
    )
    async def test_returns_500_with_empty_payload(
        self, tokens: list, now: datetime, path: str, expected: dict
    ) -> None:
        async with make_client(BrokenRepository(tokens), now) as client:
            resp = await client.get(path)
            body = await resp.json()

        assert resp.status == 500
        assert body == expected


class TestHealthAndEvents:
    @pytest.mark.asyncio
    async def test_health_reflects_database(self, repo: MemoryRepository, now: datetime) -> None:
        async with make_client(repo, now) as client:
            down = await client.get("/health")
            down_body = await down.json()
            await repo.connect()
            up = await client.get("/health")
            up_body = await up.json()

        assert down.status == 503
        assert down_body["status"] == "degraded"
        assert up.status == 200
        assert up_body["db_connected"] is True
        assert "trending" in up_body["components"]

    @pytest.mark.asyncio
    async def test_event_stream_sends_connected_then_updates(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        await repo.upsert_content(make_item("777"))
        await seed_run(repo, now)

        async with make_client(repo, now) as client:
            resp = await client.get("/api/events")
            assert resp.headers["Content-Type"].startswith("text/event-stream")
            events = []
            while len(events) < 3:
                line = (await resp.content.readline()).decode().strip()
                if line.startswith("data: "):
                    events.append(json.loads(line[len("data: "):]))
            resp.close()

        assert events[0]["type"] == "connected"
        assert events[0]["payload"]["message"]
        assert events[1]["type"] == "tiktok_update"
        assert events[1]["payload"]["id"] == "777"
        assert events[2]["type"] == "trending_update"
        assert events[2]["payload"]["symbol"] == "WIF"
