"""Message formatting - Pure functions.

This module turns alerts into titles, push notifications and per-channel
message payloads. All functions are pure with no side effects.
"""

from datetime import datetime
from typing import Any

from paddock.core.models import (
    ALERT_TYPE_DEVICE_OFFLINE,
    ALERT_TYPE_GEOFENCE,
    ALERT_TYPE_LOW_BATTERY,
    Alert,
    PushNotification,
    TrackedEntity,
)


LEFT_ZONE_PHRASE = "left the safe zone"
URGENT_PREFIX = "🚨 URGENT: "


def get_alert_emoji(alert: Alert) -> str:
    """Get an emoji representing the alert type.

    Pure function.
    """
    if alert.type == ALERT_TYPE_GEOFENCE:
        return "🚨" if alert.escalated else "⚠️"
    elif alert.type == ALERT_TYPE_DEVICE_OFFLINE:
        return "🔋"
    elif alert.type == ALERT_TYPE_LOW_BATTERY:
        return "🪫"
    else:
        return "⚠️"


def _format_duration(seconds: int) -> str:
    """Render a threshold as "2 minutes" / "90 seconds"."""
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"


def format_geofence_alert(entity: TrackedEntity) -> tuple[str, str]:
    """Title and description for a fresh geofence exit.

    Pure function.

    Returns:
        (title, description) tuple
    """
    return (
        f"{entity.name} {LEFT_ZONE_PHRASE}",
        "Outside all safe zones • Check the location",
    )


def format_escalated_alert(alert: Alert, threshold_seconds: int) -> tuple[str, str]:
    """Urgent title and description for an alert that stayed unresolved.

    Pure function.

    Args:
        alert: The alert being escalated
        threshold_seconds: Escalation threshold, used in the wording

    Returns:
        (title, description) tuple
    """
    duration = _format_duration(threshold_seconds)
    headline = alert.title.replace(
        LEFT_ZONE_PHRASE,
        f"has been outside the safe zone for over {duration}",
    )
    return (
        f"{URGENT_PREFIX}{headline}",
        f"Over {duration} • Immediate attention required",
    )


def format_offline_alert(
    entity: TrackedEntity,
    device_id: str,
    silent_minutes: float,
    battery_level: float | None,
) -> tuple[str, str]:
    """Title and description for a device that stopped reporting.

    Pure function.

    Returns:
        (title, description) tuple
    """
    battery = "unknown" if battery_level is None else f"{battery_level:g}%"
    return (
        f"Lost contact with {entity.name}",
        f"Device {device_id} silent for {round(silent_minutes)} min • "
        f"Battery was {battery}",
    )


def format_push_notification(alert: Alert) -> PushNotification:
    """Build the push payload for an alert.

    Pure function. Urgent alerts stay on screen until acknowledged.
    """
    return PushNotification(
        title=alert.title,
        body=alert.description,
        tag=alert.id,
        require_interaction=alert.escalated,
    )


def format_resolved_notification(alert: Alert) -> PushNotification:
    """Build the follow-up push sent when a notified alert is dismissed.

    Pure function.
    """
    return PushNotification(
        title=f"✅ Resolved: {alert.title.removeprefix(URGENT_PREFIX)}",
        body="The alert has been cleared.",
        tag=alert.id,
        require_interaction=False,
    )


def format_telegram_message(notification: PushNotification) -> str:
    """Format a notification as Telegram Markdown text.

    Pure function.
    """
    lines = [
        f"*{notification.title}*",
        "",
        notification.body,
    ]
    if notification.require_interaction:
        lines.extend(["", "❗ Needs attention now."])

    return "\n".join(lines)


def format_slack_message(notification: PushNotification) -> dict[str, Any]:
    """Format a notification as a Slack webhook payload.

    Pure function.

    Returns:
        Slack message payload dict
    """
    text = notification.title
    if notification.require_interaction:
        text = f"<!channel> {text}"

    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": notification.title,
            },
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": notification.body,
            },
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"Alert `{notification.tag}`",
                },
            ],
        },
    ]

    return {
        "text": text,
        "blocks": blocks,
    }


def format_whatsapp_message(notification: PushNotification) -> str:
    """Format a notification as plain WhatsApp text.

    Pure function. WhatsApp bolds text between single asterisks.
    """
    return f"*{notification.title}*\n\n{notification.body}"


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def alert_to_dict(alert: Alert) -> dict[str, Any]:
    """Serialize an alert for real-time subscribers and the HTTP API.

    Pure function.
    """
    return {
        "id": alert.id,
        "entityId": alert.entity_id,
        "type": alert.type,
        "severity": alert.severity,
        "title": alert.title,
        "description": alert.description,
        "isActive": alert.is_active,
        "escalated": alert.escalated,
        "escalatedAt": _isoformat(alert.escalated_at),
        "pushSent": alert.push_sent,
        "createdAt": _isoformat(alert.created_at),
        "geofenceId": alert.geofence_id,
    }


def notification_to_dict(notification: PushNotification) -> dict[str, Any]:
    """Serialize a push notification for real-time subscribers.

    Pure function.
    """
    return {
        "title": notification.title,
        "body": notification.body,
        "tag": notification.tag,
        "requireInteraction": notification.require_interaction,
    }
