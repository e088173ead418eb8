"""Pluggable listing card extractors."""

from cashtag_radar.extractors.base_extractor import BaseExtractor
from cashtag_radar.extractors.tiktok_extractor import TikTokCardExtractor

__all__ = ["BaseExtractor", "TikTokCardExtractor"]
