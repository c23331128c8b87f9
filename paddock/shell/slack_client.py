"""Slack Webhook Client - Imperative Shell.

This module handles HTTP communication with Slack webhooks.
All I/O is contained here; message formatting is in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any

import requests

from paddock.core.config import PushRecipient
from paddock.core.formatter import format_slack_message
from paddock.core.models import PushNotification


logger = logging.getLogger(__name__)


# Default timeout for webhook requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class SlackResponse:
    """Response from Slack webhook.

    Attributes:
        success: Whether the message was sent successfully
        status_code: HTTP status code
        error: Error message if failed
    """
    success: bool
    status_code: int
    error: str | None = None


class SlackClient:
    """Client for posting notifications to Slack via incoming webhooks.

    The recipient's address is the webhook URL.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def send_message(
        self,
        webhook_url: str,
        payload: dict[str, Any],
    ) -> SlackResponse:
        """Post a payload to a Slack webhook.

        This method performs HTTP I/O.

        Args:
            webhook_url: Slack incoming webhook URL
            payload: Message payload (from formatter)

        Returns:
            SlackResponse indicating success or failure
        """
        try:
            response = requests.post(
                webhook_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.error("Slack webhook request timed out")
            return SlackResponse(success=False, status_code=0, error="Request timed out")
        except requests.RequestException as e:
            logger.error("Slack webhook request failed: %s", str(e))
            return SlackResponse(success=False, status_code=0, error=str(e))

        if response.status_code != 200:
            logger.warning(
                "Slack webhook returned non-200: %d - %s",
                response.status_code,
                response.text,
            )
            return SlackResponse(
                success=False,
                status_code=response.status_code,
                error=response.text,
            )

        return SlackResponse(success=True, status_code=response.status_code)

    def send(self, recipient: PushRecipient, notification: PushNotification) -> bool:
        """Push a notification to a Slack recipient."""
        response = self.send_message(recipient.address, format_slack_message(notification))
        return response.success
