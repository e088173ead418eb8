"""Per-token aggregation of social and market signal, with ranking."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Sequence

from cashtag_radar.config import TrendingConfig
from cashtag_radar.core import metrics as prom
from cashtag_radar.core.models import AggregateMetric, AnalysisSummary, MentionActivity
from cashtag_radar.core.types import SortKey
from cashtag_radar.core.utils import utcnow
from cashtag_radar.market.dexscreener_client import MarketSource
from cashtag_radar.storage.base_repository import BaseRepository
from cashtag_radar.trending.correlation import (
    bucket_mentions,
    bucket_volume,
    correlation_score,
)

logger = logging.getLogger(__name__)

_SORT_FIELDS: dict[SortKey, Callable[[AggregateMetric], float]] = {
    SortKey.CORRELATION: lambda m: m.correlation_score,
    SortKey.VOLUME: lambda m: m.trading_volume_24h,
    SortKey.VIEWS: lambda m: float(m.total_views),
    SortKey.MENTIONS: lambda m: float(m.total_mentions),
}


def rank(
    metrics: Sequence[AggregateMetric],
    sort_by: SortKey = SortKey.CORRELATION,
    limit: int | None = None,
) -> list[AggregateMetric]:
    """Sort descending by *sort_by* and truncate to *limit*.

    Ties fall back to mention count, then symbol and token id, so the order
    is the same for the same input.
    """
    primary = _SORT_FIELDS[sort_by]
    ranked = sorted(
        metrics,
        key=lambda m: (-primary(m), -m.total_mentions, m.symbol, m.token_id),
    )
    if limit is not None:
        ranked = ranked[: max(limit, 0)]
    return ranked


class TrendingEngine:
    """Aggregates mention activity per token and scores it against market volume.

    One ``run`` reads the lookback window of mentions, looks up market data
    for every mentioned token, computes the correlation score and persists
    the whole result set as one analysis run.
    """

    def __init__(
        self,
        repository: BaseRepository,
        market: MarketSource,
        config: TrendingConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._market = market
        self._cfg = config
        self._clock = clock

    async def compute(self) -> list[AggregateMetric]:
        """Build one ``AggregateMetric`` per token mentioned in the lookback window."""
        now = self._clock()
        since = now - timedelta(hours=self._cfg.lookback_hours)
        activity = await self._repo.list_mention_activity(since)
        if not activity:
            logger.info("No mentions in the last %dh", self._cfg.lookback_hours)
            return []

        by_token: dict[int, list[MentionActivity]] = defaultdict(list)
        for row in activity:
            by_token[row.token.id].append(row)

        results: list[AggregateMetric] = []
        for token_id, rows in by_token.items():
            token = rows[0].token
            views_by_content = {r.content_id: r.view_count for r in rows}
            snapshot = await self._market.snapshot(token.uri)

            mention_rates = bucket_mentions(((r.mention_at, r.count) for r in rows), now)
            volume_rates = bucket_volume(snapshot) if snapshot else None

            results.append(
                AggregateMetric(
                    token_id=token_id,
                    uri=token.uri,
                    symbol=token.symbol,
                    name=token.name,
                    total_mentions=sum(r.count for r in rows),
                    total_views=sum(views_by_content.values()),
                    trading_volume_24h=snapshot.volume_24h if snapshot else 0.0,
                    price_change_24h=snapshot.price_change_24h if snapshot else 0.0,
                    market_cap=snapshot.market_cap if snapshot else None,
                    correlation_score=correlation_score(mention_rates, volume_rates),
                    last_updated=now,
                )
            )

        return results

    async def run(self) -> list[AggregateMetric]:
        """Compute and persist one analysis run; return the ranked metrics."""
        run_at = self._clock()
        metrics = await self.compute()
        analysis_id = await self._repo.record_analysis(run_at, metrics)
        prom.TRENDING_GAUGE.set(len(metrics))

        ranked = rank(metrics, SortKey.CORRELATION)
        logger.info(
            "Analysis %d stored: %d token(s)%s",
            analysis_id,
            len(ranked),
            (
                " - top: "
                + ", ".join(f"{m.symbol}(c={m.correlation_score:.2f})" for m in ranked[:5])
                if ranked
                else ""
            ),
        )
        return ranked

    async def trending(
        self,
        sort_by: SortKey = SortKey.CORRELATION,
        limit: int | None = None,
    ) -> list[AggregateMetric]:
        """Rank the most recent persisted analysis run."""
        return rank(await self._repo.latest_metrics(), sort_by, limit)

    async def summary(self) -> AnalysisSummary:
        return await self._repo.analysis_summary(self._cfg.high_correlation)
