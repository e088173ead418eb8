"""Main application entry point - one command per pipeline stage.

Usage:
    python -m cashtag_radar.app scrape --single
    python -m cashtag_radar.app monitor --continuous
    python -m cashtag_radar.app telegram --continuous
    python -m cashtag_radar.app aggregate --single
    python -m cashtag_radar.app dashboard
    python -m cashtag_radar.app monitor --single --debug --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from datetime import timedelta
from typing import Awaitable, Callable, Sequence

from cashtag_radar.config import AppConfig, MentionConfig
from cashtag_radar.core import metrics
from cashtag_radar.core.errors import (
    ConfigurationError,
    ConsecutiveCycleFailure,
    RadarError,
)
from cashtag_radar.core.types import TargetKind
from cashtag_radar.core.utils import setup_logging, utcnow
from cashtag_radar.dashboard import DashboardServer
from cashtag_radar.extractors import TikTokCardExtractor
from cashtag_radar.fetcher import PacingPolicy, PageFetcher, TikTokCommentClient
from cashtag_radar.fetcher.browser import BrowserSession
from cashtag_radar.ingest import IngestionPipeline, ScrapeRun
from cashtag_radar.market import DexscreenerClient
from cashtag_radar.monitor import MentionMonitor
from cashtag_radar.parsing import MatchMode, MentionParser, SymbolResolver
from cashtag_radar.storage import BaseRepository, MemoryRepository, PostgresRepository
from cashtag_radar.telegram import ChannelScraper, TelegramSession
from cashtag_radar.trending import TrendingEngine

logger = logging.getLogger(__name__)

COMMANDS = ("scrape", "monitor", "telegram", "aggregate", "dashboard")


def build_mention_parser(
    config: MentionConfig,
    resolver: SymbolResolver | None = None,
) -> MentionParser:
    """Parser for the configured mode; may draw its vocabulary from the token table."""
    mode = MatchMode(config.mode)
    vocabulary = set(config.vocabulary)
    if config.vocabulary_from_tokens and resolver is not None:
        vocabulary |= resolver.symbols
    if mode is MatchMode.KEYWORD and not vocabulary:
        raise ConfigurationError(["keyword mode found no vocabulary to match"])
    return MentionParser(vocabulary or None, mode=mode)


class RadarApp:
    """Top-level orchestrator: wires one command's components and runs them."""

    def __init__(
        self,
        config: AppConfig,
        command: str,
        continuous: bool = False,
        dry_run: bool = False,
    ) -> None:
        self._config = config
        self._command = command
        self._continuous = continuous
        self._dry_run = dry_run
        self._stop_event = asyncio.Event()
        self._monitor: MentionMonitor | None = None

        self._repo: BaseRepository = (
            MemoryRepository() if dry_run else PostgresRepository(config.database)
        )
        self._pacing = PacingPolicy.from_config(config.pacing)

    @property
    def repository(self) -> BaseRepository:
        return self._repo

    def stop(self) -> None:
        """Request a clean exit after the current cycle."""
        if not self._stop_event.is_set():
            logger.info("Stop requested")
        self._stop_event.set()
        if self._monitor is not None:
            self._monitor.stop()

    async def run(self) -> None:
        logger.info(
            "Starting %s (%s, dry_run=%s)",
            self._command,
            "continuous" if self._continuous else "single",
            self._dry_run,
        )
        await self._repo.connect()

        if self._config.metrics.enabled:
            metrics.start_metrics_server(self._config.metrics.port)

        handlers: dict[str, Callable[[], Awaitable[None]]] = {
            "scrape": self._run_scrape,
            "monitor": self._run_monitor,
            "telegram": self._run_telegram,
            "aggregate": self._run_aggregate,
            "dashboard": self._run_dashboard,
        }
        try:
            await handlers[self._command]()
        finally:
            await self._repo.close()
            logger.info("Shutdown complete")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _run_scrape(self) -> None:
        cfg = self._config
        comments = TikTokCommentClient(cfg.scraper, cfg.stealth)
        extractors = {
            kind: TikTokCardExtractor(kind, cfg.scraper.base_url) for kind in TargetKind
        }

        try:
            async with BrowserSession(cfg.scraper, cfg.stealth) as page:
                fetcher = PageFetcher(page, extractors, self._pacing, cfg.scraper)

                async def cycle() -> None:
                    resolver = await SymbolResolver.load(self._repo)
                    pipeline = IngestionPipeline(
                        self._repo,
                        comments,
                        build_mention_parser(cfg.mentions, resolver),
                        resolver,
                    )
                    await ScrapeRun(fetcher, pipeline, self._pacing, cfg.scraper).run()

                await self._repeat(
                    "scrape",
                    cycle,
                    cfg.scraper.cycle_interval_minutes * 60,
                    cfg.monitor.max_consecutive_failures,
                )
        finally:
            await comments.close()

    async def _run_monitor(self) -> None:
        cfg = self._config
        comments = TikTokCommentClient(cfg.scraper, cfg.stealth)
        resolver = await SymbolResolver.load(self._repo)
        pipeline = IngestionPipeline(
            self._repo, comments, build_mention_parser(cfg.mentions, resolver), resolver
        )
        self._monitor = MentionMonitor(
            self._repo,
            pipeline,
            self._pacing,
            cfg.monitor,
            parser_factory=lambda r: build_mention_parser(cfg.mentions, r),
        )
        if self._stop_event.is_set():
            self._monitor.stop()

        try:
            if self._continuous:
                await self._monitor.run_forever()
            else:
                await self._monitor.run_once()
        finally:
            await comments.close()

    async def _run_telegram(self) -> None:
        cfg = self._config
        session = TelegramSession(cfg.telegram)
        client = await session.start()
        resolver = await SymbolResolver.load(self._repo)
        scraper = ChannelScraper(
            client,
            self._repo,
            build_mention_parser(cfg.mentions, resolver),
            self._pacing,
            cfg.telegram,
        )
        discovery_every = timedelta(hours=cfg.telegram.discovery_interval_hours)
        last_discovery = None

        async def cycle() -> None:
            nonlocal last_discovery
            if cfg.mentions.vocabulary_from_tokens:
                scraper.replace_parser(
                    build_mention_parser(cfg.mentions, await SymbolResolver.load(self._repo))
                )
            now = utcnow()
            if last_discovery is None or now - last_discovery >= discovery_every:
                await scraper.discover_channels()
                last_discovery = now
            await scraper.scrape_all()

        try:
            for username in cfg.telegram.channels:
                await scraper.register_channel(username)
            await self._repeat(
                "telegram",
                cycle,
                cfg.telegram.cycle_interval_minutes * 60,
                cfg.monitor.max_consecutive_failures,
            )
        finally:
            await session.stop()

    async def _run_aggregate(self) -> None:
        cfg = self._config
        market = DexscreenerClient(cfg.market)
        engine = TrendingEngine(self._repo, market, cfg.trending)

        async def cycle() -> None:
            await engine.run()

        try:
            await self._repeat(
                "aggregate",
                cycle,
                cfg.trending.interval_seconds,
                cfg.trending.max_consecutive_failures,
            )
        finally:
            await market.close()

    async def _run_dashboard(self) -> None:
        cfg = self._config
        market = DexscreenerClient(cfg.market)
        server = DashboardServer(
            self._repo, TrendingEngine(self._repo, market, cfg.trending), cfg.dashboard
        )
        await server.start()
        try:
            await self._stop_event.wait()
        finally:
            await server.stop()
            await market.close()

    # ------------------------------------------------------------------
    # Loop helpers
    # ------------------------------------------------------------------

    async def _repeat(
        self,
        name: str,
        cycle: Callable[[], Awaitable[None]],
        interval_seconds: float,
        max_failures: int,
    ) -> None:
        """Run *cycle* once, or on a fixed interval in continuous mode.

        Consecutive failed cycles are counted; reaching *max_failures*
        raises ``ConsecutiveCycleFailure``. A single-mode failure propagates.
        """
        if not self._continuous:
            await cycle()
            return

        failures = 0
        while not self._stop_event.is_set():
            try:
                await cycle()
            except Exception as exc:
                failures += 1
                logger.exception("%s cycle failed (%d/%d)", name, failures, max_failures)
                if failures >= max_failures:
                    raise ConsecutiveCycleFailure(name, failures) from exc
            else:
                failures = 0
            await self._wait(interval_seconds)
        logger.info("%s loop stopped", name)

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cashtag_radar",
        description="Cashtag Radar - social mention ingestion and correlation",
    )
    parser.add_argument("command", choices=COMMANDS, help="Pipeline stage to run")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--single",
        action="store_true",
        help="Run one cycle and exit",
    )
    mode.add_argument(
        "--continuous",
        action="store_true",
        help="Run cycles on the configured interval until stopped",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use the in-memory repository instead of Postgres",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "dashboard" and not (args.single or args.continuous):
        parser.print_usage(sys.stderr)
        print(
            f"{parser.prog}: {args.command} requires --single or --continuous",
            file=sys.stderr,
        )
        raise SystemExit(1)
    return args


async def _main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = AppConfig()
    except ValueError as exc:
        setup_logging()
        logger.error("Configuration error: malformed environment value (%s)", exc)
        return 1

    # Override log level if --debug
    log_level = "DEBUG" if args.debug else config.log_level
    setup_logging(level=log_level, json_format=config.log_json)

    try:
        config.validate(args.command, dry_run=args.dry_run)
    except ConfigurationError as exc:
        for problem in exc.problems:
            logger.error("Configuration error: %s", problem)
        return 1

    app = RadarApp(
        config=config,
        command=args.command,
        continuous=args.continuous,
        dry_run=args.dry_run,
    )

    # Graceful shutdown on SIGINT / SIGTERM
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.stop)

    try:
        await app.run()
    except ConfigurationError as exc:
        for problem in exc.problems:
            logger.error("Configuration error: %s", problem)
        return 1
    except ConsecutiveCycleFailure as exc:
        logger.critical("%s", exc)
        return 1
    except RadarError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0


def main() -> None:
    sys.exit(asyncio.run(_main()))


if __name__ == "__main__":
    main()
