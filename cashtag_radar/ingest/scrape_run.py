"""One scrape invocation over every configured search term and hashtag."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cashtag_radar.config import ScraperConfig
from cashtag_radar.core.models import IngestStats
from cashtag_radar.core.types import StopReason, TargetKind
from cashtag_radar.fetcher.pacing import Action, PacingPolicy
from cashtag_radar.fetcher.page_fetcher import PageFetcher, SearchTarget
from cashtag_radar.ingest.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunReport:
    """Outcome of a scrape run, per target and in total."""

    stats: IngestStats = field(default_factory=IngestStats)
    stop_reasons: dict[str, StopReason] = field(default_factory=dict)


class ScrapeRun:
    """Owns the seen-URL set for exactly one pass over all targets.

    Search terms are processed first, then hashtags, with an inter-term
    pause between targets. A block or timeout on one target only ends
    that target.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        pipeline: IngestionPipeline,
        pacing: PacingPolicy,
        config: ScraperConfig,
    ) -> None:
        self._fetcher = fetcher
        self._pipeline = pipeline
        self._pacing = pacing
        self._config = config
        self._seen_urls: set[str] = set()

    @property
    def seen_urls(self) -> frozenset[str]:
        return frozenset(self._seen_urls)

    def targets(self) -> list[tuple[SearchTarget, int]]:
        """``(target, max_results)`` pairs in processing order."""
        searches = [
            (SearchTarget(TargetKind.SEARCH, term), self._config.max_results_search)
            for term in self._config.search_terms
        ]
        hashtags = [
            (SearchTarget(TargetKind.HASHTAG, tag), self._config.max_results_hashtag)
            for tag in self._config.hashtags
        ]
        return searches + hashtags

    async def run(self) -> RunReport:
        report = RunReport()
        targets = self.targets()

        for index, (target, max_results) in enumerate(targets):
            logger.info(
                "Scraping %s '%s' (target %d)", target.kind, target.label, max_results
            )
            result = await self._fetcher.collect(target, max_results, self._seen_urls)
            report.stop_reasons[target.label] = result.stop_reason
            logger.info(
                "Collected %d video(s) for '%s' (%s)",
                len(result.drafts),
                target.label,
                result.stop_reason,
            )

            for draft in result.drafts:
                report.stats.merge(await self._pipeline.process(draft))

            if index < len(targets) - 1:
                await self._pacing.pause(Action.INTER_TERM)

        self._log_summary(report)
        return report

    @staticmethod
    def _log_summary(report: RunReport) -> None:
        stats = report.stats
        logger.info("=" * 50)
        logger.info("Storage summary")
        logger.info("  Successfully stored: %d", stats.stored)
        logger.info("  Errors:              %d", stats.errors)
        logger.info("  Total processed:     %d", stats.processed)
        logger.info("  Mentions inserted:   %d", stats.mentions_inserted)
        logger.info("=" * 50)
