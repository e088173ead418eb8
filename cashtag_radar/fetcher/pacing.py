"""Human-pacing delay policy.

Every navigation, scroll and per-item step is followed by a pause drawn
uniformly from a bounded range for its action class. Ranges come from
``PacingConfig`` and can be zeroed for tests with ``PacingPolicy.disabled()``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from typing import Awaitable, Callable

from cashtag_radar.config import PacingConfig

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class Action(str, Enum):
    PAGE_LOAD = "page_load"
    SCROLL = "scroll"
    EMPTY_FEED = "empty_feed"
    INTER_ITEM = "inter_item"
    INTER_TERM = "inter_term"
    MONITOR_ITEM = "monitor_item"
    INTER_CHANNEL = "inter_channel"


class PacingPolicy:
    """Maps action classes to ``(min_ms, max_ms)`` and sleeps accordingly."""

    def __init__(
        self,
        ranges: dict[Action, tuple[int, int]],
        rng: random.Random | None = None,
        sleeper: Sleeper = asyncio.sleep,
    ) -> None:
        for action, (lo, hi) in ranges.items():
            if lo < 0 or hi < lo:
                raise ValueError(f"invalid pacing range for {action}: {lo}-{hi}")
        self._ranges = dict(ranges)
        self._rng = rng or random.Random()
        self._sleep = sleeper

    @classmethod
    def from_config(cls, config: PacingConfig) -> PacingPolicy:
        return cls({action: getattr(config, action.value) for action in Action})

    @classmethod
    def disabled(cls) -> PacingPolicy:
        return cls({action: (0, 0) for action in Action})

    def delay_ms(self, action: Action) -> float:
        lo, hi = self._ranges.get(action, (0, 0))
        if hi == lo:
            return float(lo)
        return self._rng.uniform(lo, hi)

    async def pause(self, action: Action) -> float:
        """Sleep for a jittered delay; return the delay in milliseconds."""
        ms = self.delay_ms(action)
        if ms > 0:
            logger.debug("Pacing %s: %.0f ms", action.value, ms)
        await self._sleep(ms / 1000.0)
        return ms
