"""Tests for configuration validation and the command-line entry point."""

from __future__ import annotations

import pytest

from cashtag_radar.app import RadarApp, _main, build_mention_parser, parse_args
from cashtag_radar.config import (
    AppConfig,
    DatabaseConfig,
    MentionConfig,
    MetricsConfig,
    TelegramConfig,
)
from cashtag_radar.core.errors import ConfigurationError, ConsecutiveCycleFailure
from cashtag_radar.core.models import TokenReference
from cashtag_radar.parsing import SymbolResolver


def app_config(**overrides: object) -> AppConfig:
    values: dict[str, object] = {
        "database": DatabaseConfig(url="postgresql://u:p@localhost/db"),
        "mentions": MentionConfig(mode="cashtag", vocabulary=(), vocabulary_from_tokens=False),
        "telegram": TelegramConfig(api_id=0, api_hash="", phone=""),
        "metrics": MetricsConfig(enabled=False),
    }
    values.update(overrides)
    return AppConfig(**values)  # type: ignore[arg-type]


# ---------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------


class TestEnvironment:
    def test_configured_telegram_channels(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TELEGRAM_CHANNELS", "alpha, @beta,,")
        assert TelegramConfig().channels == ("alpha", "@beta")

    def test_no_configured_channels_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TELEGRAM_CHANNELS", raising=False)
        assert TelegramConfig().channels == ()


class TestValidate:
    def test_database_required_unless_dry_run(self) -> None:
        config = app_config(database=DatabaseConfig(url="", password=""))
        with pytest.raises(ConfigurationError) as info:
            config.validate("monitor")
        assert any("DATABASE_URL" in p for p in info.value.problems)
        config.validate("monitor", dry_run=True)

    def test_telegram_credentials_listed_together(self) -> None:
        with pytest.raises(ConfigurationError) as info:
            app_config().validate("telegram")
        assert len(info.value.problems) == 3

    def test_keyword_mode_needs_vocabulary(self) -> None:
        config = app_config(mentions=MentionConfig(mode="keyword", vocabulary=()))
        with pytest.raises(ConfigurationError):
            config.validate("scrape")

    def test_unknown_mode_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            app_config(mentions=MentionConfig(mode="fuzzy")).validate("scrape")

    def test_valid_config_passes(self) -> None:
        app_config().validate("aggregate")


class TestBuildMentionParser:
    def test_cashtag_mode(self) -> None:
        parser = build_mention_parser(MentionConfig(mode="cashtag", vocabulary=()))
        assert parser.parse_text("$bonk and bonk") == {"BONK": 1}

    def test_keyword_mode_uses_configured_vocabulary(self) -> None:
        parser = build_mention_parser(MentionConfig(mode="keyword", vocabulary=("bonk",)))
        assert parser.parse_text("BONK szn, $bonk") == {"BONK": 2}

    def test_keyword_vocabulary_from_tokens(self) -> None:
        resolver = SymbolResolver([TokenReference(id=3, symbol="WIF")])
        config = MentionConfig(mode="keyword", vocabulary=(), vocabulary_from_tokens=True)
        assert build_mention_parser(config, resolver).parse_text("wif szn") == {"WIF": 1}

    def test_keyword_mode_without_any_vocabulary(self) -> None:
        config = MentionConfig(mode="keyword", vocabulary=(), vocabulary_from_tokens=True)
        with pytest.raises(ConfigurationError):
            build_mention_parser(config, SymbolResolver([]))


# ---------------------------------------------------------------
# CLI
# ---------------------------------------------------------------


class TestParseArgs:
    def test_mode_required_for_pipeline_commands(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as info:
            parse_args(["monitor"])
        assert info.value.code == 1
        assert "requires --single or --continuous" in capsys.readouterr().err

    def test_dashboard_needs_no_mode(self) -> None:
        args = parse_args(["dashboard"])
        assert args.command == "dashboard"
        assert not args.continuous

    def test_single_and_continuous_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["scrape", "--single", "--continuous"])

    def test_flags(self) -> None:
        args = parse_args(["monitor", "--continuous", "--debug", "--dry-run"])
        assert (args.continuous, args.debug, args.dry_run) == (True, True, True)

    def test_unknown_command(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["backfill", "--single"])


class TestMain:
    @pytest.mark.asyncio
    async def test_missing_database_exits_nonzero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        assert await _main(["aggregate", "--single"]) == 1

    @pytest.mark.asyncio
    async def test_malformed_number_exits_nonzero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MONITOR_BATCH_SIZE", "five")
        assert await _main(["monitor", "--single"]) == 1


class TestRadarApp:
    @pytest.mark.asyncio
    async def test_dry_run_aggregate_records_a_run(self) -> None:
        app = RadarApp(app_config(), "aggregate", dry_run=True)

        await app.run()

        summary = await app.repository.analysis_summary(0.7)
        assert summary.last_analysis is not None
        assert not await app.repository.is_connected()

    @pytest.mark.asyncio
    async def test_continuous_loop_gives_up_after_max_failures(self) -> None:
        app = RadarApp(app_config(), "aggregate", continuous=True, dry_run=True)
        calls = 0

        async def cycle() -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("upstream down")

        with pytest.raises(ConsecutiveCycleFailure) as info:
            await app._repeat("aggregate", cycle, 0, 2)

        assert calls == 2
        assert info.value.loop_name == "aggregate"

    @pytest.mark.asyncio
    async def test_stop_ends_continuous_loop(self) -> None:
        app = RadarApp(app_config(), "aggregate", continuous=True, dry_run=True)
        calls = 0

        async def cycle() -> None:
            nonlocal calls
            calls += 1
            app.stop()

        await app._repeat("aggregate", cycle, 3600, 3)
        assert calls == 1
