"""WhatsApp Client via Twilio - Imperative Shell.

This module handles sending WhatsApp messages via Twilio's WhatsApp API.
All I/O is contained here; message formatting is in the core module.
"""

import logging
from dataclasses import dataclass

from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from paddock.core.config import PushRecipient
from paddock.core.formatter import format_whatsapp_message
from paddock.core.models import PushNotification


logger = logging.getLogger(__name__)


# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 10

WHATSAPP_PREFIX = "whatsapp:"


@dataclass
class WhatsAppResponse:
    """Response from WhatsApp send attempt.

    Attributes:
        success: Whether the message was sent successfully
        message_sid: Twilio message SID if successful
        error: Error message if failed
    """
    success: bool
    message_sid: str | None = None
    error: str | None = None


@dataclass
class WhatsAppCredentials:
    """Twilio credentials for WhatsApp API.

    Attributes:
        account_sid: Twilio Account SID
        auth_token: Twilio Auth Token
        from_number: WhatsApp sender number (format: whatsapp:+14155238886)
    """
    account_sid: str
    auth_token: str
    from_number: str


def _with_prefix(number: str) -> str:
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


class WhatsAppClient:
    """Client for sending WhatsApp messages via Twilio.

    The recipient's address is the destination number; Twilio credentials
    come from the recipient's credentials.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def send_message(
        self,
        text: str,
        to_number: str,
        credentials: WhatsAppCredentials,
    ) -> WhatsAppResponse:
        """Send a WhatsApp message via Twilio.

        This method performs HTTP I/O.

        Args:
            text: Message text
            to_number: Recipient number, with or without the whatsapp: prefix
            credentials: Twilio credentials

        Returns:
            WhatsAppResponse indicating success or failure
        """
        try:
            client = Client(
                credentials.account_sid,
                credentials.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout),
            )
            message = client.messages.create(
                body=text,
                from_=_with_prefix(credentials.from_number),
                to=_with_prefix(to_number),
            )
        except TwilioRestException as e:
            logger.error("Twilio API error: %s", str(e))
            return WhatsAppResponse(success=False, error=f"Twilio error: {e.msg}")
        except Exception as e:
            logger.error("WhatsApp send failed: %s", str(e))
            return WhatsAppResponse(success=False, error=str(e))

        logger.info("WhatsApp message sent: %s", message.sid)
        return WhatsAppResponse(success=True, message_sid=message.sid)

    def send(self, recipient: PushRecipient, notification: PushNotification) -> bool:
        """Push a notification to a WhatsApp recipient."""
        credentials = WhatsAppCredentials(
            account_sid=recipient.credential("account_sid") or "",
            auth_token=recipient.credential("auth_token") or "",
            from_number=recipient.credential("from_number") or "",
        )
        if not (credentials.account_sid and credentials.auth_token and credentials.from_number):
            logger.error("WhatsApp recipient %s has incomplete Twilio credentials", recipient.id)
            return False

        response = self.send_message(
            format_whatsapp_message(notification),
            recipient.address,
            credentials,
        )
        return response.success
