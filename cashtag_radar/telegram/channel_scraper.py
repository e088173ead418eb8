"""Telegram channel discovery and message scraping."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from telethon import functions
from telethon.errors import FloodWaitError, RPCError

from cashtag_radar.config import TelegramConfig
from cashtag_radar.core import metrics
from cashtag_radar.core.errors import StorageError
from cashtag_radar.core.models import ChannelConfig, TelegramMessage
from cashtag_radar.core.utils import sanitize, truncate, utcnow
from cashtag_radar.fetcher.pacing import Action, PacingPolicy
from cashtag_radar.parsing.mention_parser import MentionParser
from cashtag_radar.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChannelRunSummary:
    """Outcome of one pass over all enabled channels."""

    channels: int = 0
    scraped: int = 0
    disabled: int = 0
    failed: int = 0
    messages_stored: int = 0


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ChannelScraper:
    """Scrapes public channels through a Telethon client.

    Channels with nothing posted inside the recency window are disabled
    instead of scraped. Messages newer than the stored cursor and inside
    the window are stored once per ``(channel_id, message_id)``.
    """

    def __init__(
        self,
        client: Any,
        repository: BaseRepository,
        parser: MentionParser,
        pacing: PacingPolicy,
        config: TelegramConfig,
        clock: Callable[[], datetime] = utcnow,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._repo = repository
        self._parser = parser
        self._pacing = pacing
        self._config = config
        self._clock = clock
        self._sleep = sleeper

    def replace_parser(self, parser: MentionParser) -> None:
        self._parser = parser

    def _cutoff(self) -> datetime:
        return self._clock() - timedelta(days=self._config.recency_days)

    async def register_channel(
        self,
        username: str,
        *,
        display_name: str = "",
        scrape_media: bool = False,
    ) -> ChannelConfig:
        """Manually add a channel; an existing one is returned unchanged."""
        channel = await self._repo.add_channel(
            ChannelConfig(
                username=username.lstrip("@"),
                display_name=display_name or username.lstrip("@"),
                scrape_media=scrape_media,
                scrape_interval_minutes=self._config.cycle_interval_minutes,
            )
        )
        logger.info("Channel registered: @%s", channel.username)
        return channel

    async def has_recent_messages(self, entity: Any, cutoff: datetime | None = None) -> bool:
        """True if the newest message in *entity* is at or after *cutoff*."""
        cutoff = cutoff or self._cutoff()
        async for message in self._client.iter_messages(entity, limit=1):
            return _aware(message.date) >= cutoff
        return False

    async def discover_channels(self) -> int:
        """Search public broadcast channels per keyword; return how many were added."""
        cutoff = self._cutoff()
        added = 0

        for keyword in self._config.discovery_keywords:
            logger.info("Searching channels for '%s'", keyword)
            try:
                result = await self._client(
                    functions.contacts.SearchRequest(
                        q=keyword, limit=self._config.discovery_limit
                    )
                )
            except FloodWaitError as exc:
                logger.warning("Telegram flood-wait: sleeping %d seconds", exc.seconds)
                await self._sleep(exc.seconds)
                continue
            except RPCError as exc:
                logger.error("Channel search failed for '%s': %s", keyword, exc)
                continue

            for chat in getattr(result, "chats", []):
                username = getattr(chat, "username", None)
                if not getattr(chat, "broadcast", False) or not username:
                    continue
                try:
                    if await self._register_discovered(chat, username, cutoff):
                        added += 1
                except RPCError as exc:
                    logger.warning("Cannot read @%s: %s", username, exc)
                except StorageError as exc:
                    logger.error("Storage failed for discovered @%s: %s", username, exc)

            await self._pacing.pause(Action.INTER_CHANNEL)

        logger.info("Discovery complete: %d new channel(s)", added)
        return added

    async def scrape_channel(self, channel: ChannelConfig) -> int:
        """Scrape one channel; return messages newly stored.

        Returns 0 and disables the channel when it has no recent messages.
        """
        entity = await self._client.get_entity(channel.username)
        cutoff = self._cutoff()

        if not await self.has_recent_messages(entity, cutoff):
            await self._repo.disable_channel(channel.username)
            metrics.CHANNELS_SCRAPED.labels(outcome="disabled").inc()
            logger.info(
                "Disabled @%s: nothing posted in %d days",
                channel.username,
                self._config.recency_days,
            )
            return 0

        title = getattr(entity, "title", "") or channel.display_name or channel.username
        messages: list[TelegramMessage] = []

        async for message in self._client.iter_messages(
            entity,
            limit=self._config.messages_per_channel,
            min_id=channel.last_message_id,
        ):
            date = _aware(message.date)
            if date < cutoff:
                break
            text = sanitize(message.message)
            media_path = None
            if channel.scrape_media and message.media is not None:
                media_path = await self._download_media(channel, message)
            messages.append(
                TelegramMessage(
                    channel_id=str(entity.id),
                    channel_title=sanitize(title),
                    message_id=message.id,
                    text=text,
                    date=date,
                    views=getattr(message, "views", None),
                    forwards=getattr(message, "forwards", None),
                    has_media=message.media is not None,
                    media_path=media_path,
                    tickers=self._parser.parse_text(text),
                )
            )

        stored = await self._repo.store_messages(messages)
        if messages:
            await self._repo.update_channel_cursor(
                channel.username, max(m.message_id for m in messages)
            )
        metrics.CHANNELS_SCRAPED.labels(outcome="success").inc()
        logger.info(
            "@%s: %d message(s) read, %d new", channel.username, len(messages), stored
        )
        return stored

    async def scrape_all(self) -> ChannelRunSummary:
        """Scrape every enabled channel; failures skip only that channel."""
        channels = await self._repo.list_enabled_channels()
        summary = ChannelRunSummary(channels=len(channels))
        logger.info("Scraping %d enabled channel(s)", len(channels))

        for index, channel in enumerate(channels):
            try:
                stored = await self.scrape_channel(channel)
            except FloodWaitError as exc:
                summary.failed += 1
                metrics.CHANNELS_SCRAPED.labels(outcome="flood_wait").inc()
                logger.warning(
                    "Flood-wait on @%s: sleeping %d seconds", channel.username, exc.seconds
                )
                await self._sleep(exc.seconds)
            except (RPCError, ValueError) as exc:
                summary.failed += 1
                metrics.CHANNELS_SCRAPED.labels(outcome="error").inc()
                logger.error("Cannot scrape @%s: %s", channel.username, exc)
            except StorageError as exc:
                summary.failed += 1
                metrics.CHANNELS_SCRAPED.labels(outcome="error").inc()
                logger.error("Storage failed for @%s: %s", channel.username, exc)
            else:
                if await self._is_disabled(channel.username):
                    summary.disabled += 1
                else:
                    summary.scraped += 1
                    summary.messages_stored += stored

            if index < len(channels) - 1:
                await self._pacing.pause(Action.INTER_CHANNEL)

        logger.info(
            "Channel pass: %d scraped, %d disabled, %d failed, %d new message(s)",
            summary.scraped,
            summary.disabled,
            summary.failed,
            summary.messages_stored,
        )
        return summary

    async def _register_discovered(self, chat: Any, username: str, cutoff: datetime) -> bool:
        if await self._repo.get_channel(username) is not None:
            return False
        if not await self.has_recent_messages(chat, cutoff):
            logger.info("Skipping @%s: no recent messages", username)
            return False

        await self._repo.add_channel(
            ChannelConfig(
                username=username,
                display_name=getattr(chat, "title", "") or username,
                scrape_interval_minutes=self._config.cycle_interval_minutes,
            )
        )
        logger.info("Discovered channel @%s", username)
        return True

    async def _is_disabled(self, username: str) -> bool:
        channel = await self._repo.get_channel(username)
        return channel is not None and not channel.enabled

    async def _download_media(self, channel: ChannelConfig, message: Any) -> str | None:
        target = Path(self._config.media_dir) / channel.username
        try:
            target.mkdir(parents=True, exist_ok=True)
            path = await self._client.download_media(message, file=f"{target}/")
        except (RPCError, OSError) as exc:
            logger.warning(
                "Media download failed for @%s/%d: %s",
                channel.username,
                message.id,
                truncate(str(exc), 120),
            )
            return None
        return str(path) if path else None
