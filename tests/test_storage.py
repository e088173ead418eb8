"""Repository contract tests against the in-memory backend."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from cashtag_radar.core.models import (
    AggregateMetric,
    ChannelConfig,
    MentionDraft,
    TelegramMessage,
)
from cashtag_radar.storage.memory_repository import MemoryRepository

from conftest import make_item


def _mentions(content_id: str, at: datetime, *token_ids: int) -> list[MentionDraft]:
    return [MentionDraft(content_id, tid, 2, at) for tid in token_ids]


class TestContentUpsert:
    @pytest.mark.asyncio
    async def test_idempotent(self, repo: MemoryRepository) -> None:
        item = make_item("111")
        await repo.upsert_content(item)
        await repo.upsert_content(item)

        items, total = await repo.list_content(limit=10)
        assert total == 1
        assert items[0].id == "111"

    @pytest.mark.asyncio
    async def test_last_write_wins(self, repo: MemoryRepository) -> None:
        await repo.upsert_content(make_item("111", views=10))
        await repo.upsert_content(make_item("111", views=99))
        stored = await repo.get_content("111")
        assert stored is not None
        assert stored.view_count == 99

    @pytest.mark.asyncio
    async def test_rescrape_keeps_check_timestamp(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        await repo.upsert_content(make_item("111"))
        await repo.mark_mention_checked("111", now)
        await repo.upsert_content(make_item("111", views=500))

        stored = await repo.get_content("111")
        assert stored is not None
        assert stored.last_mention_check_at == now
        assert stored.view_count == 500

    @pytest.mark.asyncio
    async def test_list_content_search_and_paging(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        for i, author in enumerate(["alice", "bob", "alicia"]):
            await repo.upsert_content(
                make_item(str(i), author=author, fetched=now + timedelta(minutes=i))
            )

        items, total = await repo.list_content(limit=10, search="ALI")
        assert total == 2
        assert [i.author for i in items] == ["alicia", "alice"]

        page, total = await repo.list_content(limit=1, offset=1)
        assert total == 3
        assert [i.id for i in page] == ["1"]


class TestMentionDedup:
    @pytest.mark.asyncio
    async def test_second_batch_is_skipped(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        await repo.upsert_content(make_item("111"))
        first = await repo.insert_mentions_if_absent("111", _mentions("111", now, 1, 2))
        second = await repo.insert_mentions_if_absent("111", _mentions("111", now, 3))

        assert first == 2
        assert second == 0
        assert await repo.count_mentions("111") == 2

    @pytest.mark.asyncio
    async def test_empty_batch_inserts_nothing(self, repo: MemoryRepository) -> None:
        assert await repo.insert_mentions_if_absent("111", []) == 0
        assert await repo.count_mentions("111") == 0

    @pytest.mark.asyncio
    async def test_concurrent_ingesters_insert_one_batch(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        results = await asyncio.gather(
            *(
                repo.insert_mentions_if_absent("111", _mentions("111", now, 1))
                for _ in range(5)
            )
        )
        assert sorted(results) == [0, 0, 0, 0, 1]
        assert await repo.count_mentions("111") == 1

    @pytest.mark.asyncio
    async def test_activity_joins_token_and_views(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        await repo.upsert_content(make_item("111", views=4000))
        await repo.insert_mentions_if_absent("111", _mentions("111", now, 3))
        await repo.insert_mentions_if_absent(
            "222", _mentions("222", now - timedelta(days=3), 1)
        )

        activity = await repo.list_mention_activity(now - timedelta(hours=24))
        assert len(activity) == 1
        assert activity[0].token.symbol == "WIF"
        assert activity[0].view_count == 4000


class TestStaleSelection:
    @pytest.mark.asyncio
    async def test_nulls_first_then_oldest_excluding_fresh(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        await repo.upsert_content(make_item("fresh", checked=now - timedelta(minutes=2)))
        await repo.upsert_content(make_item("old", checked=now - timedelta(minutes=10)))
        await repo.upsert_content(make_item("never"))

        stale = await repo.select_stale_content(
            checked_before=now - timedelta(minutes=5), limit=10
        )
        assert [i.id for i in stale] == ["never", "old"]

    @pytest.mark.asyncio
    async def test_batch_limit(self, repo: MemoryRepository, now: datetime) -> None:
        for i in range(8):
            await repo.upsert_content(make_item(str(i)))
        stale = await repo.select_stale_content(checked_before=now, limit=5)
        assert len(stale) == 5


class TestChannels:
    @pytest.mark.asyncio
    async def test_add_is_idempotent(self, repo: MemoryRepository) -> None:
        await repo.add_channel(ChannelConfig("alpha", display_name="Alpha"))
        again = await repo.add_channel(ChannelConfig("alpha", display_name="Other"))
        assert again.display_name == "Alpha"
        assert len(await repo.list_enabled_channels()) == 1

    @pytest.mark.asyncio
    async def test_disable_and_cursor(self, repo: MemoryRepository) -> None:
        await repo.add_channel(ChannelConfig("alpha"))
        await repo.add_channel(ChannelConfig("beta"))
        await repo.disable_channel("beta")
        await repo.update_channel_cursor("alpha", 40)
        await repo.update_channel_cursor("alpha", 12)

        enabled = await repo.list_enabled_channels()
        assert [c.username for c in enabled] == ["alpha"]
        assert enabled[0].last_message_id == 40

    @pytest.mark.asyncio
    async def test_store_messages_ignores_duplicates(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        batch = [
            TelegramMessage("100", "Alpha", 1, "$BONK", now, tickers={"BONK": 1}),
            TelegramMessage("100", "Alpha", 2, "gm", now + timedelta(seconds=1)),
        ]
        assert await repo.store_messages(batch) == 2
        assert await repo.store_messages(batch) == 0

        recent = await repo.recent_messages(1)
        assert [m.message_id for m in recent] == [2]


class TestAnalysisRuns:
    @pytest.mark.asyncio
    async def test_summary_without_runs(self, repo: MemoryRepository) -> None:
        summary = await repo.analysis_summary(0.7)
        assert summary.to_dict() == {
            "lastAnalysis": "Never",
            "totalCorrelations": 0,
            "totalRecommendations": 0,
        }
        assert await repo.latest_metrics() == []

    @pytest.mark.asyncio
    async def test_latest_run_and_summary(
        self, repo: MemoryRepository, now: datetime
    ) -> None:
        older = [AggregateMetric(1, "bonk-mint-1", "BONK", "Bonk", correlation_score=0.9)]
        newer = [
            AggregateMetric(3, "wif-mint", "WIF", "dogwifhat", correlation_score=0.75),
            AggregateMetric(2, "bonk-mint-2", "BONK", "Bonk Clone", correlation_score=0.2),
        ]
        await repo.record_analysis(now - timedelta(hours=1), older)
        await repo.record_analysis(now, newer)

        latest = await repo.latest_metrics()
        assert sorted(m.token_id for m in latest) == [2, 3]
        assert all(m.last_updated == now for m in latest)

        summary = await repo.analysis_summary(0.7)
        assert summary.last_analysis == now
        assert summary.total_correlations == 3
        assert summary.total_recommendations == 2
