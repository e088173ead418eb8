"""Map parsed symbols onto known token ids."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from cashtag_radar.core.models import MentionDraft, TokenReference
from cashtag_radar.core.types import TickerCounts
from cashtag_radar.core.utils import utcnow

if TYPE_CHECKING:
    from cashtag_radar.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _key(symbol: str) -> str:
    return symbol.strip().lstrip("$").upper()


class SymbolResolver:
    """In-memory ``symbol -> [token ids]`` multimap built from the token table.

    Several tokens may share a ticker; each one gets its own mention row.
    Unknown symbols are dropped with an INFO notice.
    """

    def __init__(self, tokens: Iterable[TokenReference]) -> None:
        self._by_symbol: dict[str, list[int]] = {}
        self._tokens: dict[int, TokenReference] = {}
        for token in tokens:
            self._tokens[token.id] = token
            ids = self._by_symbol.setdefault(_key(token.symbol), [])
            if token.id not in ids:
                ids.append(token.id)

    @classmethod
    async def load(cls, repository: BaseRepository) -> SymbolResolver:
        """Read the full token table once and build the multimap."""
        tokens = await repository.list_tokens()
        resolver = cls(tokens)
        logger.info(
            "Loaded %d token(s) under %d symbol(s)",
            len(tokens),
            len(resolver._by_symbol),
        )
        return resolver

    @property
    def symbols(self) -> frozenset[str]:
        return frozenset(self._by_symbol)

    def token_ids(self, symbol: str) -> list[int]:
        return list(self._by_symbol.get(_key(symbol), ()))

    def token(self, token_id: int) -> TokenReference | None:
        return self._tokens.get(token_id)

    def resolve(
        self,
        content_id: str,
        tickers: TickerCounts,
        mention_at: datetime | None = None,
    ) -> list[MentionDraft]:
        """Fan each ``{symbol: count}`` out to one draft per matching token."""
        at = mention_at or utcnow()
        drafts: list[MentionDraft] = []

        for symbol, count in tickers.items():
            ids = self.token_ids(symbol)
            if not ids:
                logger.info("Token not found for symbol: %s", symbol)
                continue
            drafts.extend(
                MentionDraft(
                    content_id=content_id,
                    token_id=token_id,
                    count=count,
                    mention_at=at,
                )
                for token_id in ids
            )

        return drafts
