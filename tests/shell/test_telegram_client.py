"""Tests for the Telegram client.

Uses the `responses` library to mock HTTP requests.
"""

import json

import pytest
import requests
import responses

from paddock.core.config import CHANNEL_TELEGRAM, PushRecipient
from paddock.core.models import PushNotification
from paddock.shell.telegram_client import TelegramClient


TOKEN = "123:abc"
URL = f"https://api.telegram.org/bot{TOKEN}/sendMessage"


@pytest.fixture
def recipient():
    return PushRecipient(
        id="manager",
        name="Stable manager",
        channel_type=CHANNEL_TELEGRAM,
        address="4242",
        credentials=(("bot_token", TOKEN),),
    )


@pytest.fixture
def notification():
    return PushNotification(title="Thunder left the safe zone", body="Check the location", tag="a-1")


class TestSendMessage:
    """Tests for TelegramClient.send_message()."""

    @responses.activate
    def test_successful_send(self):
        """Returns the message ID on success."""
        responses.add(responses.POST, URL, json={"ok": True, "result": {"message_id": 77}}, status=200)

        result = TelegramClient().send_message(TOKEN, "4242", "*hi*")

        assert result.success is True
        assert result.message_id == 77
        body = json.loads(responses.calls[0].request.body)
        assert body["chat_id"] == "4242"
        assert body["parse_mode"] == "Markdown"

    @responses.activate
    def test_api_rejection(self):
        """ok=false is a failure even with HTTP 200."""
        responses.add(responses.POST, URL, json={"ok": False, "description": "chat not found"}, status=200)

        result = TelegramClient().send_message(TOKEN, "4242", "hi")

        assert result.success is False
        assert result.error == "chat not found"

    @responses.activate
    def test_http_error(self):
        responses.add(responses.POST, URL, body="Bad Gateway", status=502)

        result = TelegramClient().send_message(TOKEN, "4242", "hi")

        assert result.success is False
        assert result.status_code == 502

    @responses.activate
    def test_timeout(self):
        """Timeouts are reported, not raised."""
        responses.add(responses.POST, URL, body=requests.Timeout())

        result = TelegramClient(timeout=1).send_message(TOKEN, "4242", "hi")

        assert result.success is False
        assert result.status_code == 0
        assert "timed out" in result.error

    @responses.activate
    def test_connection_error(self):
        responses.add(responses.POST, URL, body=requests.ConnectionError("refused"))

        result = TelegramClient().send_message(TOKEN, "4242", "hi")

        assert result.success is False


class TestSend:
    """Tests for TelegramClient.send()."""

    @responses.activate
    def test_formats_notification(self, recipient, notification):
        responses.add(responses.POST, URL, json={"ok": True, "result": {"message_id": 1}})

        assert TelegramClient().send(recipient, notification) is True
        body = json.loads(responses.calls[0].request.body)
        assert body["text"].startswith("*Thunder left the safe zone*")

    def test_missing_token_fails_without_request(self, notification):
        recipient = PushRecipient(id="x", name="x", channel_type=CHANNEL_TELEGRAM, address="1")
        assert TelegramClient().send(recipient, notification) is False
