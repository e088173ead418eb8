"""Correlation scoring and trending aggregation."""

from cashtag_radar.trending.correlation import correlation_score, pearson
from cashtag_radar.trending.trending_engine import TrendingEngine, rank

__all__ = ["TrendingEngine", "correlation_score", "pearson", "rank"]
