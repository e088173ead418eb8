"""Dexscreener market data lookups by token address."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import aiohttp

from cashtag_radar.config import MarketConfig
from cashtag_radar.core.models import MarketSnapshot

logger = logging.getLogger(__name__)


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class MarketSource(Protocol):
    async def snapshot(self, uri: str) -> MarketSnapshot | None: ...


def snapshot_from_pairs(pairs: list[dict[str, Any]]) -> MarketSnapshot | None:
    """Build a snapshot from the most liquid pair in a Dexscreener response."""
    pairs = [p for p in pairs if isinstance(p, dict)]
    if not pairs:
        return None

    pair = max(pairs, key=lambda p: _num((p.get("liquidity") or {}).get("usd")))
    volume = pair.get("volume") or {}
    change = pair.get("priceChange") or {}
    cap = pair.get("marketCap", pair.get("fdv"))

    return MarketSnapshot(
        volume_24h=_num(volume.get("h24")),
        volume_6h=_num(volume.get("h6")),
        volume_1h=_num(volume.get("h1")),
        volume_5m=_num(volume.get("m5")),
        price_change_24h=_num(change.get("h24")),
        market_cap=_num(cap) if cap is not None else None,
        liquidity_usd=_num((pair.get("liquidity") or {}).get("usd")),
    )


class DexscreenerClient:
    """Fetch windowed volume, price change and market cap for a token.

    Lookups fail soft: any transport or payload problem is logged and
    returns ``None`` so the token still ranks with zero volume.
    """

    def __init__(
        self,
        config: MarketConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def snapshot(self, uri: str) -> MarketSnapshot | None:
        if not uri:
            return None
        url = f"{self._config.api_url.rstrip('/')}/{uri}"
        session = await self._get_session()

        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self._config.timeout_seconds)
            ) as resp:
                if resp.status != 200:
                    logger.warning("Dexscreener returned %d for %s", resp.status, uri[:12])
                    return None
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Dexscreener lookup failed for %s: %s", uri[:12], exc)
            return None

        if not isinstance(data, dict):
            return None
        snapshot = snapshot_from_pairs(data.get("pairs") or [])
        if snapshot is None:
            logger.debug("No pairs found on Dexscreener for %s", uri[:12])
        return snapshot
