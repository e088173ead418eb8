"""Unit tests for the mention parser and symbol resolver."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cashtag_radar.core.models import TokenReference
from cashtag_radar.parsing import MatchMode, MentionParser, SymbolResolver
from cashtag_radar.storage.memory_repository import MemoryRepository


@pytest.fixture
def cashtag_parser() -> MentionParser:
    return MentionParser()


@pytest.fixture
def resolver(tokens: list[TokenReference]) -> SymbolResolver:
    return SymbolResolver(tokens)


# ---------------------------------------------------------------
# Mention parser
# ---------------------------------------------------------------


class TestCashtagMode:
    def test_counts_every_occurrence(self, cashtag_parser: MentionParser) -> None:
        text = "this $BONK is mooning, $BONK to the moon"
        assert cashtag_parser.parse_text(text) == {"BONK": 2}

    def test_sums_across_comments(self, cashtag_parser: MentionParser) -> None:
        result = cashtag_parser.parse(["$wif up", "$WIF and $bonk", None, ""])
        assert result == {"WIF": 2, "BONK": 1}

    def test_case_insensitive(self, cashtag_parser: MentionParser) -> None:
        assert cashtag_parser.parse_text("$Bonk $bOnK $BONK") == {"BONK": 3}

    def test_ignores_prices_and_embedded_dollars(
        self, cashtag_parser: MentionParser
    ) -> None:
        assert cashtag_parser.parse_text("made $100 today, US$X, a$b") == {}

    def test_no_matches_gives_empty_map(self, cashtag_parser: MentionParser) -> None:
        result = cashtag_parser.parse(["nothing to see here"])
        assert result == {}
        assert result is not None

    def test_vocabulary_restricts_symbols(self) -> None:
        parser = MentionParser(["bonk"])
        assert parser.parse_text("$BONK $WIF $bonk") == {"BONK": 2}


class TestKeywordMode:
    def test_matches_bare_words_and_cashtags(self) -> None:
        parser = MentionParser(["bonk", "wif"], mode=MatchMode.KEYWORD)
        assert parser.mode is MatchMode.KEYWORD
        result = parser.parse_text("Bonk is up, $BONK again, wif? bonkers no")
        assert result == {"BONK": 2, "WIF": 1}

    def test_cashtag_glued_to_a_word_is_ignored(self) -> None:
        keyword = MentionParser(["bonk"], mode=MatchMode.KEYWORD)
        cashtag = MentionParser()
        text = "x$BONK abc$bonk"
        assert keyword.parse_text(text) == {}
        assert cashtag.parse_text(text) == {}
        assert keyword.parse_text("$$BONK") == {}

    def test_requires_vocabulary(self) -> None:
        with pytest.raises(ValueError):
            MentionParser(mode=MatchMode.KEYWORD)


# ---------------------------------------------------------------
# Symbol resolver
# ---------------------------------------------------------------


class TestSymbolResolver:
    def test_fans_out_shared_symbol(self, resolver: SymbolResolver) -> None:
        at = datetime(2024, 6, 1, tzinfo=timezone.utc)
        drafts = resolver.resolve("12345", {"BONK": 3}, mention_at=at)

        assert len(drafts) == 2
        assert sorted(d.token_id for d in drafts) == [1, 2]
        assert all(d.count == 3 for d in drafts)
        assert all(d.mention_at == at for d in drafts)
        assert all(d.content_id == "12345" for d in drafts)

    def test_unknown_symbol_is_dropped(
        self, resolver: SymbolResolver, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("INFO"):
            drafts = resolver.resolve("1", {"NOPE": 5, "WIF": 1})
        assert [d.token_id for d in drafts] == [3]
        assert "Token not found for symbol: NOPE" in caplog.text

    def test_lookup_is_case_insensitive(self, resolver: SymbolResolver) -> None:
        assert resolver.token_ids("bonk") == [1, 2]
        assert resolver.token_ids("$wif") == [3]
        assert resolver.symbols == frozenset({"BONK", "WIF"})

    def test_empty_tickers(self, resolver: SymbolResolver) -> None:
        assert resolver.resolve("1", {}) == []

    @pytest.mark.asyncio
    async def test_loads_from_repository(self, repo: MemoryRepository) -> None:
        loaded = await SymbolResolver.load(repo)
        assert loaded.token_ids("BONK") == [1, 2]
        assert loaded.token(3).name == "dogwifhat"
