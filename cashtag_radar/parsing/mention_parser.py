"""Ticker mention extraction from comment and description text."""

from __future__ import annotations

import logging
import re
from collections import Counter
from enum import Enum
from typing import Iterable

from cashtag_radar.core.types import TickerCounts

logger = logging.getLogger(__name__)

# "$BONK", "$wif" - letter first so "$100" is not a ticker.
_CASHTAG_PATTERN = re.compile(r"(?<![\w$])\$([A-Za-z][A-Za-z0-9_]{0,14})(?!\w)")


class MatchMode(str, Enum):
    """How symbols are recognised in free text."""

    CASHTAG = "cashtag"
    KEYWORD = "keyword"

    def __str__(self) -> str:
        return self.value


class MentionParser:
    """Count symbol occurrences across a batch of texts, case-insensitively.

    In ``CASHTAG`` mode every ``$SYMBOL`` is counted, optionally restricted
    to *vocabulary*. In ``KEYWORD`` mode each vocabulary word is counted as
    a bare word or cashtag. Keys of the result are upper-cased symbols.
    """

    def __init__(
        self,
        vocabulary: Iterable[str] | None = None,
        mode: MatchMode = MatchMode.CASHTAG,
    ) -> None:
        self._mode = mode
        self._vocabulary: frozenset[str] | None = (
            frozenset(v.strip().lstrip("$").upper() for v in vocabulary if v.strip())
            if vocabulary is not None
            else None
        )
        self._keyword_pattern: re.Pattern[str] | None = None

        if mode is MatchMode.KEYWORD:
            if not self._vocabulary:
                raise ValueError("keyword mode needs a non-empty vocabulary")
            words = sorted(self._vocabulary, key=len, reverse=True)
            alternation = "|".join(re.escape(w) for w in words)
            self._keyword_pattern = re.compile(
                rf"(?<![\w$])\$?({alternation})(?!\w)",
                re.IGNORECASE,
            )

    @property
    def mode(self) -> MatchMode:
        return self._mode

    def parse(self, texts: Iterable[str | None]) -> TickerCounts:
        """Return ``{symbol: count}`` summed over *texts*; empty if none match."""
        counts: Counter[str] = Counter()
        for text in texts:
            if text:
                counts.update(self._symbols_in(text))
        return dict(counts)

    def parse_text(self, text: str | None) -> TickerCounts:
        return self.parse([text])

    def _symbols_in(self, text: str) -> Iterable[str]:
        if self._keyword_pattern is not None:
            for m in self._keyword_pattern.finditer(text):
                yield m.group(1).upper()
            return

        for m in _CASHTAG_PATTERN.finditer(text):
            symbol = m.group(1).upper()
            if self._vocabulary is None or symbol in self._vocabulary:
                yield symbol
