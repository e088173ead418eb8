"""Windowed mention/volume correlation.

Mentions and trading volume are bucketed into four disjoint windows that
line up with the nested Dexscreener volume windows (m5, h1, h6, h24)::

    [0, 5m)  [5m, 1h)  [1h, 6h)  [6h, 24h)

Each bucket is turned into a per-hour rate so long and short windows are
comparable. The score is the Pearson coefficient of the two rate series
mapped from [-1, 1] onto [0, 1] and rounded to 4 decimals. A series with
zero variance carries no co-movement signal and scores 0.0.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from cashtag_radar.core.models import MarketSnapshot

# Upper bounds of each window, measured back from "now".
WINDOW_EDGES: tuple[timedelta, ...] = (
    timedelta(minutes=5),
    timedelta(hours=1),
    timedelta(hours=6),
    timedelta(hours=24),
)


def _window_hours() -> list[float]:
    hours: list[float] = []
    previous = timedelta(0)
    for edge in WINDOW_EDGES:
        hours.append((edge - previous).total_seconds() / 3600.0)
        previous = edge
    return hours


WINDOW_HOURS: tuple[float, ...] = tuple(_window_hours())


def bucket_mentions(
    mentions: Iterable[tuple[datetime, int]],
    now: datetime,
) -> list[float]:
    """Per-hour mention rate for each window; mentions older than 24h are ignored."""
    totals = [0.0] * len(WINDOW_EDGES)
    for at, count in mentions:
        age = now - at
        if age < timedelta(0):
            age = timedelta(0)
        for index, edge in enumerate(WINDOW_EDGES):
            if age < edge:
                totals[index] += count
                break
    return [total / hours for total, hours in zip(totals, WINDOW_HOURS)]


def bucket_volume(snapshot: MarketSnapshot) -> list[float]:
    """Per-hour volume rate for each window, from the cumulative market windows."""
    cumulative = (
        snapshot.volume_5m,
        snapshot.volume_1h,
        snapshot.volume_6h,
        snapshot.volume_24h,
    )
    rates: list[float] = []
    previous = 0.0
    for total, hours in zip(cumulative, WINDOW_HOURS):
        rates.append(max(total - previous, 0.0) / hours)
        previous = max(previous, total)
    return rates


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float | None:
    """Pearson correlation, or None when undefined (length mismatch, zero variance)."""
    n = len(xs)
    if n < 2 or n != len(ys):
        return None
    mean_x = sum(xs) / n
    mean_y = sum(ys) / n
    dx = [x - mean_x for x in xs]
    dy = [y - mean_y for y in ys]
    var_x = sum(d * d for d in dx)
    var_y = sum(d * d for d in dy)
    if var_x == 0 or var_y == 0:
        return None
    cov = sum(a * b for a, b in zip(dx, dy))
    r = cov / math.sqrt(var_x * var_y)
    return max(-1.0, min(1.0, r))


def correlation_score(
    mention_rates: Sequence[float],
    volume_rates: Sequence[float] | None,
) -> float:
    """Map the Pearson coefficient onto [0, 1]; 0.0 when it is undefined."""
    if not volume_rates:
        return 0.0
    r = pearson(mention_rates, volume_rates)
    if r is None:
        return 0.0
    return round((r + 1.0) / 2.0, 4)
