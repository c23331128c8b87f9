"""Notification Dispatcher - Fans alerts out to subscribers and recipients.

Two sinks:
- the real-time hub, which gets every lifecycle event and every push;
- push recipients (Telegram, Slack, WhatsApp), sent concurrently so one
  slow or failing channel never holds up the others.

The dispatcher keeps no memory of what it sent. Whether an alert has been
pushed is recorded on the alert itself (push_sent).
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Protocol

from paddock.core.config import (
    CHANNEL_SLACK,
    CHANNEL_TELEGRAM,
    CHANNEL_WHATSAPP,
    PushRecipient,
)
from paddock.core.formatter import (
    alert_to_dict,
    format_resolved_notification,
    notification_to_dict,
)
from paddock.core.lifecycle import EVENT_DISMISSED, LifecycleEvent
from paddock.core.models import PushNotification
from paddock.shell.realtime_hub import RealtimeHub
from paddock.shell.slack_client import SlackClient
from paddock.shell.telegram_client import TelegramClient
from paddock.shell.whatsapp_client import WhatsAppClient


logger = logging.getLogger(__name__)


DEFAULT_MAX_WORKERS = 8


class PushSink(Protocol):
    """Anything that can deliver a notification to a recipient."""

    def send(self, recipient: PushRecipient, notification: PushNotification) -> bool:
        ...


@dataclass
class DispatchResult:
    """Outcome of one push fan-out.

    Attributes:
        sent: IDs of recipients that accepted the notification
        failed: IDs of recipients whose send failed or raised
    """
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        """Human-readable summary."""
        return f"{len(self.sent)} sent, {len(self.failed)} failed"


def default_sinks(timeout: float) -> dict[str, PushSink]:
    """One client per channel type, sharing a request timeout."""
    return {
        CHANNEL_TELEGRAM: TelegramClient(timeout=timeout),
        CHANNEL_SLACK: SlackClient(timeout=timeout),
        CHANNEL_WHATSAPP: WhatsAppClient(timeout=timeout),
    }


class NotificationDispatcher:
    """Delivers lifecycle events and push notifications."""

    def __init__(
        self,
        hub: RealtimeHub,
        recipients: list[PushRecipient] | None = None,
        sinks: dict[str, PushSink] | None = None,
        timeout: float = 10,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        """Initialize dispatcher.

        Args:
            hub: Real-time subscriber hub
            recipients: Push recipients (none means real-time only)
            sinks: Client per channel type (defaults created if not provided)
            timeout: Per-request timeout for default sinks
            max_workers: Concurrent push sends
        """
        self.hub = hub
        self.recipients = list(recipients or [])
        self.sinks = sinks if sinks is not None else default_sinks(timeout)
        self.max_workers = max_workers

    def on_lifecycle_event(self, event: LifecycleEvent) -> None:
        """Observer hook for the lifecycle manager and sweeps."""
        delivered = self.hub.broadcast({
            "type": f"alert_{event.type}",
            "alert": alert_to_dict(event.alert),
        })
        logger.debug("alert_%s for %s delivered to %d subscribers", event.type, event.alert.id, delivered)

        # Recipients who were paged about an alert also hear that it cleared
        if event.type == EVENT_DISMISSED and event.alert.push_sent:
            self.dispatch_push(format_resolved_notification(event.alert))

    def _send_one(self, recipient: PushRecipient, notification: PushNotification) -> bool:
        sink = self.sinks.get(recipient.channel_type)
        if sink is None:
            logger.warning(
                "No client for channel type '%s' (recipient %s)",
                recipient.channel_type,
                recipient.id,
            )
            return False
        return sink.send(recipient, notification)

    def dispatch_push(self, notification: PushNotification) -> DispatchResult:
        """Send a push notification to real-time subscribers and recipients.

        Never raises for delivery problems; failures are logged and
        reported in the result.
        """
        self.hub.broadcast({
            "type": "push_notification",
            "notification": notification_to_dict(notification),
        })

        result = DispatchResult()
        if not self.recipients:
            return result

        workers = min(self.max_workers, len(self.recipients))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push") as executor:
            futures = {
                executor.submit(self._send_one, recipient, notification): recipient
                for recipient in self.recipients
            }
            for future in as_completed(futures):
                recipient = futures[future]
                try:
                    ok = future.result()
                except Exception:
                    logger.exception("Push to %s (%s) raised", recipient.name, recipient.channel_type)
                    ok = False

                if ok:
                    result.sent.append(recipient.id)
                else:
                    logger.warning("Push to %s (%s) failed", recipient.name, recipient.channel_type)
                    result.failed.append(recipient.id)

        logger.info("Push '%s': %s", notification.title, result.summary)
        return result
