"""Shared utility helpers."""

from __future__ import annotations

import logging
import math
import re
import sys
from datetime import datetime, timezone

_VIDEO_ID_PATTERN = re.compile(r"/video/(\d+)")
_AUTHOR_PATTERN = re.compile(r"/@([^/?#]+)")

_UNIT_MULTIPLIER: dict[str, int] = {
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
}


def utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging for the application."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        fmt = (
            '{"time":"%(asctime)s","level":"%(levelname)s",'
            '"logger":"%(name)s","message":"%(message)s"}'
        )
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)-34s | %(message)s"

    logging.basicConfig(
        level=numeric_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    # Silence noisy third-party loggers
    for name in ("telethon", "asyncpg", "aiohttp", "playwright"):
        logging.getLogger(name).setLevel(logging.WARNING)


def truncate(text: str, max_len: int = 200) -> str:
    """Truncate text for safe logging."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def sanitize(text: str | None) -> str:
    """Strip NUL characters, which Postgres text columns reject."""
    return text.replace("\x00", "") if text else ""


def _parse_float(raw: str) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_views(raw: str | None) -> int:
    """Expand compact view notation ("12.3k", "4m", "500") to an integer.

    The trailing unit letter is looked up case-insensitively; without a
    known unit the whole string is parsed. Unparseable input yields 0.
    """
    if not raw:
        return 0
    text = raw.strip().replace(",", "")
    if not text:
        return 0

    multiplier = _UNIT_MULTIPLIER.get(text[-1].lower())
    if multiplier is not None:
        value = _parse_float(text[:-1])
        return math.floor(value * multiplier) if value is not None else 0

    value = _parse_float(text)
    return math.floor(value) if value is not None else 0


def content_id_from_url(url: str | None) -> str | None:
    """Return the platform-native video id embedded in a TikTok URL."""
    if not url:
        return None
    match = _VIDEO_ID_PATTERN.search(url)
    return match.group(1) if match else None


def author_from_url(url: str | None) -> str:
    """Return the ``@handle`` segment of a TikTok URL without the ``@``."""
    if not url:
        return ""
    match = _AUTHOR_PATTERN.search(url)
    return match.group(1) if match else ""


def from_unix(seconds: int | float | None) -> datetime | None:
    """Aware UTC datetime for a unix timestamp; None when absent or out of range."""
    if not seconds or seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def posted_at_from_id(content_id: str) -> datetime | None:
    """TikTok video ids carry their creation unix time in the upper 32 bits."""
    try:
        seconds = int(content_id) >> 32
    except ValueError:
        return None
    return from_unix(seconds)
