"""Delivery of alerts and bot replies to Telegram chats."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from telegram.constants import ParseMode
from telegram.error import TelegramError

logger = logging.getLogger(__name__)


class DeliveryFailed(Exception):
    """Raised when a message could not be handed to Telegram."""


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format a moment as ``YYYY-MM-DD HH:MM:SS UTC``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_alert(message: str, now: Optional[datetime] = None) -> str:
    """Build the text delivered for one alert."""
    return f"{message}\n\nTime: {utc_timestamp(now)}"


class DeliveryService:
    """Send single messages through a Telegram bot.

    Each call is one attempt: failures raise :class:`DeliveryFailed` and are
    not retried or queued.
    """

    def __init__(self, bot: Any = None, timeout: float = 10.0):
        self.bot = bot
        self.timeout = timeout

    def attach(self, bot: Any) -> None:
        """Attach the telegram.Bot used for sending once it is initialized."""
        self.bot = bot

    async def send_message(self, chat_id: int, text: str, markdown: bool = True) -> None:
        """Send a bot reply to a chat.

        Args:
            chat_id: Telegram chat ID.
            text: Message body.
            markdown: Render with Telegram Markdown (bot replies use backticks).

        Raises:
            DeliveryFailed: If the bot isn't attached, Telegram rejects the
                message, or the call times out.
        """
        if self.bot is None:
            raise DeliveryFailed("Bot not initialized")

        kwargs = {"parse_mode": ParseMode.MARKDOWN} if markdown else {}
        try:
            await asyncio.wait_for(
                self.bot.send_message(chat_id=chat_id, text=text, **kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Timed out sending message to chatId %s", chat_id)
            raise DeliveryFailed(f"Timed out after {self.timeout}s") from e
        except TelegramError as e:
            logger.error("Telegram rejected message to chatId %s: %s", chat_id, e)
            raise DeliveryFailed(str(e)) from e

    async def send_alert(self, chat_id: int, alert_type: str, message: str) -> None:
        """Deliver one alert to a chat, stamped with the current UTC time.

        Alert bodies come from client software, so they go out as plain text.
        """
        await self.send_message(chat_id, format_alert(message), markdown=False)
        logger.info("Alert sent to chatId %s: %s", chat_id, alert_type)
