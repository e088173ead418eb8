"""Stale-content mention monitor."""

from cashtag_radar.monitor.mention_monitor import MentionMonitor

__all__ = ["MentionMonitor"]
