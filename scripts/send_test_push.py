#!/usr/bin/env python3
"""Send a test push notification to configured recipients.

⚠️  WARNING: This script sends REAL notifications!
    - Telegram: Messages real chats
    - Slack: Messages real channels
    - WhatsApp: Sends to real phone numbers

A synthetic geofence alert is built and pushed through the production
dispatcher. A [TEST] marker is added to the title.

Usage:
    # Dry run (preview only, no sends)
    python scripts/send_test_push.py --dry-run

    # Send to one recipient only
    python scripts/send_test_push.py --recipient stable-manager

    # Send the escalated (urgent) variant
    python scripts/send_test_push.py --escalated

Environment:
    CONFIG_PATH: Path to config file (default: config/config.yaml)
    GCP_PROJECT: GCP project ID for Secret Manager access
"""

import argparse
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from paddock.core.formatter import (
    format_escalated_alert,
    format_geofence_alert,
    format_push_notification,
)
from paddock.core.models import (
    ALERT_TYPE_GEOFENCE,
    SEVERITY_URGENT,
    SEVERITY_WARNING,
    Alert,
    TrackedEntity,
)
from paddock.dispatcher import NotificationDispatcher
from paddock.shell.config_loader import load_config
from paddock.shell.realtime_hub import RealtimeHub

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def create_test_alert(entity_name: str, escalated: bool, threshold_seconds: int) -> Alert:
    """Create a synthetic geofence alert."""
    now = datetime.now(timezone.utc)
    title, description = format_geofence_alert(TrackedEntity(id="test", name=entity_name))
    alert = Alert(
        id="test-alert-" + now.strftime("%Y%m%d%H%M%S"),
        entity_id="test",
        type=ALERT_TYPE_GEOFENCE,
        severity=SEVERITY_WARNING,
        title=title,
        description=description,
        created_at=now,
    )

    if escalated:
        title, description = format_escalated_alert(alert, threshold_seconds)
        alert = replace(
            alert,
            severity=SEVERITY_URGENT,
            escalated=True,
            escalated_at=now,
            title=title,
            description=description,
        )

    return replace(alert, title=f"[TEST] {alert.title}")


def main():
    parser = argparse.ArgumentParser(
        description="Send a test push notification to configured recipients",
        epilog="⚠️  WARNING: This sends REAL notifications! Use --dry-run first.",
    )
    parser.add_argument(
        "--entity-name",
        type=str,
        default="Thunder",
        help="Entity name used in the alert (default: Thunder)",
    )
    parser.add_argument(
        "--escalated",
        action="store_true",
        help="Send the urgent, escalated variant",
    )
    parser.add_argument(
        "--recipient",
        type=str,
        default=None,
        help="Send to this recipient ID only (default: all recipients)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be sent without actually sending",
    )
    args = parser.parse_args()

    config = load_config(os.environ.get("CONFIG_PATH"))

    recipients = config.push_recipients
    if args.recipient:
        recipients = [r for r in recipients if r.id == args.recipient]
        if not recipients:
            logger.error("Recipient '%s' not found in configuration", args.recipient)
            return 1

    if not recipients:
        logger.error("No push recipients configured")
        return 1

    alert = create_test_alert(args.entity_name, args.escalated, config.escalation_threshold_seconds)
    notification = format_push_notification(alert)

    logger.info("Test notification:")
    logger.info("  Title: %s", notification.title)
    logger.info("  Body: %s", notification.body)
    logger.info("  Requires interaction: %s", notification.require_interaction)
    logger.info("")

    if args.dry_run:
        logger.info("DRY RUN - Would send to the following recipients:")
        for recipient in recipients:
            logger.info("  - %s (%s)", recipient.name, recipient.channel_type)
        return 0

    dispatcher = NotificationDispatcher(
        RealtimeHub(),
        recipients=recipients,
        timeout=config.push_timeout_seconds,
    )
    result = dispatcher.dispatch_push(notification)

    logger.info("=" * 50)
    logger.info("Test Push Summary: %s", result.summary)
    for recipient_id in result.sent:
        logger.info("  ✓ %s", recipient_id)
    for recipient_id in result.failed:
        logger.info("  ✗ %s", recipient_id)

    return 0 if not result.failed else 1


if __name__ == "__main__":
    sys.exit(main())
