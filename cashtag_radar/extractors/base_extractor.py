"""Abstract base class for platform card extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from cashtag_radar.core.models import ContentDraft


class BaseExtractor(ABC):
    """Every listing extractor must implement ``extract``.

    To support another listing layout:
        1. Create ``myplatform_extractor.py`` in this package.
        2. Subclass ``BaseExtractor``.
        3. Implement ``extract()``, ``card_selector`` and ``platform``.
        4. Register the extractor in ``app.py``.
    """

    @property
    @abstractmethod
    def platform(self) -> str:
        """Return the platform identifier (e.g. 'tiktok')."""
        ...

    @property
    @abstractmethod
    def card_selector(self) -> str:
        """CSS selector matching one content card on the listing page."""
        ...

    @abstractmethod
    async def extract(self, card: Any) -> ContentDraft | None:
        """Convert one card element handle into a draft.

        Parameters
        ----------
        card:
            Browser element handle for the card.

        Returns
        -------
        ContentDraft | None
            ``None`` when the content URL cannot be found.

        Raises
        ------
        ExtractionError
            When the element handle itself fails (detached, crashed page).
        """
        ...
