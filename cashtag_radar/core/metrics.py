"""Prometheus instruments shared by the pipeline stages."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

CONTENT_STORED = Counter(
    "radar_content_stored_total",
    "Content items upserted into the store",
    ["platform"],
)
MENTIONS_INSERTED = Counter(
    "radar_mentions_inserted_total",
    "Mention rows inserted",
    ["source"],
)
STORAGE_ERRORS = Counter(
    "radar_storage_errors_total",
    "Store operations that failed",
    ["operation"],
)
BLOCKED_FETCHES = Counter(
    "radar_blocked_fetches_total",
    "Listings or comment pages answered with a bot challenge",
    ["platform"],
)
MONITOR_CYCLES = Counter(
    "radar_monitor_cycles_total",
    "Monitor loop cycles by outcome",
    ["outcome"],
)
CHANNELS_SCRAPED = Counter(
    "radar_channels_scraped_total",
    "Telegram channel scrape attempts by outcome",
    ["outcome"],
)
TRENDING_GAUGE = Gauge(
    "radar_trending_tokens",
    "Tokens in the latest aggregation run",
)


def start_metrics_server(port: int) -> None:
    start_http_server(port)
    logger.info("Prometheus metrics on :%d/metrics", port)
