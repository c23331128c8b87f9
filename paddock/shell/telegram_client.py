"""Telegram Bot Client - Imperative Shell.

This module sends messages through the Telegram Bot API
(https://core.telegram.org/bots/api#sendmessage).
All I/O is contained here; message formatting is in the core module.
"""

import logging
from dataclasses import dataclass

import requests

from paddock.core.config import PushRecipient
from paddock.core.formatter import format_telegram_message
from paddock.core.models import PushNotification


logger = logging.getLogger(__name__)


TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"

# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class TelegramResponse:
    """Response from a sendMessage call.

    Attributes:
        success: Whether the message was accepted
        status_code: HTTP status code (0 if the request never completed)
        message_id: Telegram message ID if successful
        error: Error description if failed
    """
    success: bool
    status_code: int
    message_id: int | None = None
    error: str | None = None


class TelegramClient:
    """Client for sending Telegram messages via a bot.

    The recipient's address is the chat ID; the bot token comes from the
    recipient's credentials (bot_token).
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def send_message(self, bot_token: str, chat_id: str, text: str) -> TelegramResponse:
        """Send a Markdown message to a chat.

        This method performs HTTP I/O.

        Args:
            bot_token: Bot API token
            chat_id: Target chat ID
            text: Message text (Markdown)

        Returns:
            TelegramResponse indicating success or failure
        """
        url = TELEGRAM_API_URL.format(token=bot_token)
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }

        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout:
            logger.error("Telegram request to chat %s timed out", chat_id)
            return TelegramResponse(success=False, status_code=0, error="Request timed out")
        except requests.RequestException as e:
            logger.error("Telegram request to chat %s failed: %s", chat_id, e)
            return TelegramResponse(success=False, status_code=0, error=str(e))

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200 or not body.get("ok"):
            error = body.get("description") or response.text
            logger.warning(
                "Telegram API rejected message to chat %s: %d - %s",
                chat_id,
                response.status_code,
                error,
            )
            return TelegramResponse(
                success=False,
                status_code=response.status_code,
                error=error,
            )

        message_id = body.get("result", {}).get("message_id")
        logger.info("Telegram message %s sent to chat %s", message_id, chat_id)
        return TelegramResponse(
            success=True,
            status_code=response.status_code,
            message_id=message_id,
        )

    def send(self, recipient: PushRecipient, notification: PushNotification) -> bool:
        """Push a notification to a Telegram recipient."""
        bot_token = recipient.credential("bot_token")
        if not bot_token:
            logger.error("Telegram recipient %s has no bot_token", recipient.id)
            return False

        response = self.send_message(
            bot_token,
            recipient.address,
            format_telegram_message(notification),
        )
        return response.success
