"""Telegram channel discovery and scraping."""

from cashtag_radar.telegram.channel_scraper import ChannelRunSummary, ChannelScraper
from cashtag_radar.telegram.session import TelegramSession

__all__ = ["ChannelRunSummary", "ChannelScraper", "TelegramSession"]
