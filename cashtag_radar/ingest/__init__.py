"""Content ingestion: per-item pipeline and scrape runs."""

from cashtag_radar.ingest.pipeline import IngestionPipeline
from cashtag_radar.ingest.scrape_run import RunReport, ScrapeRun

__all__ = ["IngestionPipeline", "RunReport", "ScrapeRun"]
