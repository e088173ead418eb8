"""External market data."""

from cashtag_radar.market.dexscreener_client import (
    DexscreenerClient,
    MarketSource,
    snapshot_from_pairs,
)

__all__ = ["DexscreenerClient", "MarketSource", "snapshot_from_pairs"]
