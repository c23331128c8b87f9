"""Tests for WhatsApp client via Twilio.

Uses unittest.mock to mock Twilio API calls.
"""

from unittest.mock import MagicMock, Mock, patch

from twilio.base.exceptions import TwilioRestException

from paddock.core.config import CHANNEL_WHATSAPP, PushRecipient
from paddock.core.models import PushNotification
from paddock.shell.whatsapp_client import WhatsAppClient, WhatsAppCredentials


TEST_CREDS = WhatsAppCredentials(
    account_sid="test_account_sid",
    auth_token="test_auth_token",
    from_number="+14155238886",
)

NOTIFICATION = PushNotification(title="Thunder left the safe zone", body="Check the location", tag="a-1")


def twilio_mock(mock_client_class, sid="SM123"):
    mock_client = MagicMock()
    mock_client_class.return_value = mock_client
    mock_client.messages.create.return_value = Mock(sid=sid)
    return mock_client


class TestSendMessage:
    """Tests for WhatsAppClient.send_message()."""

    @patch("paddock.shell.whatsapp_client.Client")
    def test_successful_send(self, mock_client_class):
        """Successful send returns the message SID."""
        twilio_mock(mock_client_class, sid="SM1234567890")

        result = WhatsAppClient().send_message("Test", "whatsapp:+1234567890", TEST_CREDS)

        assert result.success is True
        assert result.message_sid == "SM1234567890"

    @patch("paddock.shell.whatsapp_client.Client")
    def test_adds_whatsapp_prefix_to_numbers(self, mock_client_class):
        """Numbers without whatsapp: prefix get it added, once."""
        mock_client = twilio_mock(mock_client_class)

        WhatsAppClient().send_message("Test", "whatsapp:+1234567890", TEST_CREDS)

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["from_"] == "whatsapp:+14155238886"
        assert kwargs["to"] == "whatsapp:+1234567890"

    @patch("paddock.shell.whatsapp_client.Client")
    def test_twilio_error_returns_failure(self, mock_client_class):
        mock_client = twilio_mock(mock_client_class)
        mock_client.messages.create.side_effect = TwilioRestException(
            status=400, uri="/Messages", msg="Invalid 'To' number"
        )

        result = WhatsAppClient().send_message("Test", "+1", TEST_CREDS)

        assert result.success is False
        assert "Invalid 'To' number" in result.error

    @patch("paddock.shell.whatsapp_client.Client")
    def test_unexpected_error_returns_failure(self, mock_client_class):
        mock_client_class.side_effect = RuntimeError("network down")

        result = WhatsAppClient().send_message("Test", "+1", TEST_CREDS)

        assert result.success is False
        assert result.error == "network down"


class TestSend:
    """Tests for WhatsAppClient.send()."""

    @patch("paddock.shell.whatsapp_client.Client")
    def test_uses_recipient_credentials(self, mock_client_class):
        mock_client = twilio_mock(mock_client_class)
        recipient = PushRecipient(
            id="groom",
            name="Groom",
            channel_type=CHANNEL_WHATSAPP,
            address="+1234567890",
            credentials=(
                ("account_sid", "AC1"),
                ("auth_token", "tok"),
                ("from_number", "+14155238886"),
            ),
        )

        assert WhatsAppClient().send(recipient, NOTIFICATION) is True
        mock_client_class.assert_called_once()
        assert mock_client_class.call_args.args == ("AC1", "tok")
        assert mock_client.messages.create.call_args.kwargs["body"].startswith("*Thunder")

    @patch("paddock.shell.whatsapp_client.Client")
    def test_incomplete_credentials_skip_twilio(self, mock_client_class):
        """A recipient missing credentials fails without calling Twilio."""
        recipient = PushRecipient(
            id="groom",
            name="Groom",
            channel_type=CHANNEL_WHATSAPP,
            address="+1234567890",
            credentials=(("account_sid", "AC1"),),
        )

        assert WhatsAppClient().send(recipient, NOTIFICATION) is False
        mock_client_class.assert_not_called()
