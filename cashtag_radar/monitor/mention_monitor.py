"""Mention monitor: periodically re-check stale content for new mentions."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from cashtag_radar.config import MonitorConfig
from cashtag_radar.core import metrics
from cashtag_radar.core.errors import ConsecutiveCycleFailure, StorageError
from cashtag_radar.core.models import ContentItem
from cashtag_radar.core.utils import utcnow
from cashtag_radar.fetcher.pacing import Action, PacingPolicy
from cashtag_radar.ingest.pipeline import IngestionPipeline
from cashtag_radar.parsing.mention_parser import MentionParser
from cashtag_radar.parsing.symbol_resolver import SymbolResolver
from cashtag_radar.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ParserFactory = Callable[[SymbolResolver], MentionParser]


class MentionMonitor:
    """Revisits content whose last mention check is older than the staleness window.

    Each cycle takes a small batch, oldest check first with never-checked
    items leading. Every selected item gets its check timestamp set to the
    cycle time, whether or not its re-check succeeded, so a poison item
    cannot pin the head of the queue.

    Per-item faults are logged and absorbed. Cycle-level faults (token
    load, selection query) are counted; ``max_consecutive_failures`` in a
    row raise ``ConsecutiveCycleFailure``.
    """

    def __init__(
        self,
        repository: BaseRepository,
        pipeline: IngestionPipeline,
        pacing: PacingPolicy,
        config: MonitorConfig,
        clock: Clock = utcnow,
        parser_factory: ParserFactory | None = None,
    ) -> None:
        self._repo = repository
        self._pipeline = pipeline
        self._parser_factory = parser_factory
        self._pacing = pacing
        self._config = config
        self._clock = clock
        self._stop_event = asyncio.Event()

        self._cycles = 0
        self._new_mentions = 0

    @property
    def new_mentions(self) -> int:
        return self._new_mentions

    @property
    def cycles(self) -> int:
        return self._cycles

    def stop(self) -> None:
        """Ask ``run_forever`` to exit after the current cycle or wait."""
        self._stop_event.set()

    async def run_cycle(self) -> int:
        """Check one batch of stale items; return new mention rows stored."""
        cycle_time = self._clock()
        checked_before = cycle_time - timedelta(minutes=self._config.staleness_minutes)

        resolver = await SymbolResolver.load(self._repo)
        parser = self._parser_factory(resolver) if self._parser_factory else None
        self._pipeline.reload(resolver, parser)
        items = await self._repo.select_stale_content(
            checked_before=checked_before,
            limit=self._config.batch_size,
        )
        logger.info("Found %d item(s) to check for mentions", len(items))

        found = 0
        for item in items:
            try:
                found += await self._check_item(item)
            except Exception:
                logger.exception("Mention check failed for %s (%s)", item.id, item.url)

            try:
                await self._repo.mark_mention_checked(item.id, cycle_time)
            except StorageError as exc:
                logger.error("Failed to mark %s as checked: %s", item.id, exc)
            await self._pacing.pause(Action.MONITOR_ITEM)

        self._cycles += 1
        self._new_mentions += found
        metrics.MONITOR_CYCLES.labels(outcome="success").inc()
        logger.info("Cycle complete: %d new mention row(s)", found)
        return found

    async def run_once(self) -> int:
        try:
            return await self.run_cycle()
        finally:
            self.log_summary()

    async def run_forever(self) -> None:
        """Cycle on a fixed interval until stopped or failing repeatedly."""
        failures = 0
        limit = self._config.max_consecutive_failures
        logger.info(
            "Mention monitor started (every %ds, staleness %d min, batch %d)",
            self._config.interval_seconds,
            self._config.staleness_minutes,
            self._config.batch_size,
        )

        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_cycle()
                except Exception as exc:
                    failures += 1
                    metrics.MONITOR_CYCLES.labels(outcome="failure").inc()
                    logger.exception("Monitor cycle failed (%d/%d)", failures, limit)
                    if failures >= limit:
                        raise ConsecutiveCycleFailure("mention monitor", failures) from exc
                    await self._wait(self._config.retry_delay_seconds)
                    continue

                failures = 0
                await self._wait(self._config.interval_seconds)
        finally:
            self.log_summary()

    def log_summary(self) -> None:
        logger.info(
            "Monitor session: %d cycle(s), %d new mention row(s)",
            self._cycles,
            self._new_mentions,
        )

    async def _check_item(self, item: ContentItem) -> int:
        bundle = await self._pipeline.fetch_comments(item.id)
        if not bundle.texts:
            return 0
        inserted = await self._pipeline.record_mentions(
            item.id, list(bundle.texts), source="monitor"
        )
        if inserted:
            logger.info("Found %d new mention row(s) for %s", inserted, item.id)
        return inserted

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
