"""Telegram MTProto user session using Telethon."""

from __future__ import annotations

import logging

from telethon import TelegramClient

from cashtag_radar.config import TelegramConfig

logger = logging.getLogger(__name__)


class TelegramSession:
    """Owns the authenticated Telethon client for channel scraping.

    Handles:
    * Auto-reconnect
    * Interactive first login (code prompt) via ``client.start``
    """

    def __init__(self, config: TelegramConfig) -> None:
        self._config = config
        self._client: TelegramClient | None = None

    @property
    def client(self) -> TelegramClient | None:
        return self._client

    async def start(self) -> TelegramClient:
        """Authenticate and return the connected client."""
        self._client = TelegramClient(
            self._config.session_name,
            self._config.api_id,
            self._config.api_hash,
            auto_reconnect=True,
            retry_delay=5,
            connection_retries=10,
        )

        await self._client.start(phone=self._config.phone)
        me = await self._client.get_me()
        logger.info(
            "Authenticated as %s (id=%d)",
            me.username or me.first_name,
            me.id,
        )
        return self._client

    async def stop(self) -> None:
        """Gracefully disconnect."""
        if self._client and self._client.is_connected():
            await self._client.disconnect()
            logger.info("Telegram client disconnected")
