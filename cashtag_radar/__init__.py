"""Cashtag Radar - social mention ingestion and volume correlation pipeline."""

__version__ = "0.1.0"
