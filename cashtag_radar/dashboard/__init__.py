"""Dashboard aggregate endpoints."""

from cashtag_radar.dashboard.server import DashboardServer

__all__ = ["DashboardServer"]
