"""
Telegram publisher for delivering crowd-wisdom posts.

This module sends finished post text to a Telegram channel or chat using the
python-telegram-bot library. Publishing never raises: failures are logged and
reported as False so one bad post does not end a cycle.
"""

import asyncio
import logging
from typing import Optional, Union

from telegram import Bot
from telegram.error import InvalidToken, RetryAfter, TelegramError, TimedOut, NetworkError

from crowdbot.config import Config
from crowdbot.errors import RateLimitedError

# Configure module logger
logger = logging.getLogger(__name__)


class TelegramPublisher:
    """
    Posts text to a Telegram chat.

    Attributes:
        bot_token: Telegram bot token
        chat_id: Target chat or channel
        dry_run: Log posts instead of sending them
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        dry_run: Optional[bool] = None
    ):
        self.bot_token = bot_token if bot_token is not None else Config.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else Config.TELEGRAM_CHAT_ID
        self.dry_run = Config.DRY_RUN if dry_run is None else dry_run

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def _parsed_chat_id(self) -> Union[int, str]:
        # Numeric ids are ints, channel usernames stay strings
        try:
            return int(self.chat_id)
        except (TypeError, ValueError):
            return self.chat_id

    async def _send(self, text: str) -> None:
        async with Bot(token=self.bot_token) as bot:
            await bot.send_message(chat_id=self._parsed_chat_id(), text=text)

    async def _get_me(self):
        async with Bot(token=self.bot_token) as bot:
            return await bot.get_me()

    def verify(self) -> bool:
        """
        Check the bot token against Telegram.

        Returns:
            True if the bot answered (or dry-run is on), False when not configured

        Raises:
            RateLimitedError: Telegram flood control is active
            TelegramError: The token is invalid or Telegram could not be reached
        """
        if self.dry_run:
            logger.info("Publisher in dry-run mode: posts will be logged, not sent")
            return True

        if not self.is_configured:
            logger.warning("Telegram not configured (missing token or chat_id): posts will be skipped")
            return False

        try:
            me = asyncio.run(self._get_me())
        except RetryAfter as e:
            raise RateLimitedError(f"Telegram flood control: retry after {e.retry_after}") from e
        except InvalidToken:
            logger.error("Telegram rejected the bot token")
            raise

        logger.info(f"Telegram bot verified as @{getattr(me, 'username', 'unknown')}")
        return True

    def publish(self, text: str) -> bool:
        """
        Send a post to Telegram safely with error handling.

        Args:
            text: Post text

        Returns:
            True if the post was sent (or logged in dry-run), False otherwise
        """
        if not text or not text.strip():
            logger.warning("Empty post, not sending")
            return False

        if self.dry_run:
            logger.info(f"[dry-run] Would post:\n{text}")
            return True

        if not self.is_configured:
            logger.debug("Telegram not configured (missing token or chat_id)")
            return False

        try:
            logger.debug(f"Sending post to Telegram chat {self.chat_id}")
            asyncio.run(self._send(text))
            logger.info("Telegram post sent successfully")
            return True

        except RetryAfter as e:
            logger.warning(f"Telegram flood control, post dropped (retry after {e.retry_after}s)")
            return False

        except TimedOut:
            logger.error("Telegram API request timed out")
            return False

        except NetworkError as e:
            logger.error(f"Network error sending Telegram post: {e}")
            return False

        except TelegramError as e:
            logger.error(f"Telegram API error: {e}")
            return False

        except Exception as e:
            logger.error(f"Unexpected error sending Telegram post: {e}", exc_info=True)
            return False
