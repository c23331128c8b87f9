"""Alert lifecycle rules - Pure functions.

This module decides what should happen to an alert given the latest
observation: create, dismiss, escalate, or nothing. All functions are pure;
applying the decision (persisting, notifying) is the coordinators' job.

Per (entity, type) the alert moves through
NONE -> ACTIVE(warning) -> ACTIVE(escalated) -> DISMISSED, and a dismissed
alert is replaced by a new one on a fresh violation.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import TypeVar

from paddock.core.formatter import format_escalated_alert
from paddock.core.models import (
    ALERT_TYPE_GEOFENCE,
    SEVERITY_URGENT,
    Alert,
    Device,
)


Record = TypeVar("Record", Alert, Device)

ACTION_CREATE = "create"
ACTION_DISMISS = "dismiss"

EVENT_CREATED = "created"
EVENT_DISMISSED = "dismissed"
EVENT_ESCALATED = "escalated"


@dataclass(frozen=True)
class LifecycleEvent:
    """A committed alert transition.

    Attributes:
        type: EVENT_CREATED, EVENT_DISMISSED or EVENT_ESCALATED
        alert: Alert state after the transition
    """
    type: str
    alert: Alert


def decide_geofence_action(is_contained: bool, has_active_alert: bool) -> str | None:
    """Decide what to do with the geofence alert after a position fix.

    Pure function. Repeating the same input never produces a second
    create or dismiss.

    Args:
        is_contained: Whether the position is inside any safe zone
        has_active_alert: Whether an active geofence alert exists

    Returns:
        ACTION_CREATE, ACTION_DISMISS, or None for no change
    """
    if not is_contained and not has_active_alert:
        return ACTION_CREATE

    if is_contained and has_active_alert:
        return ACTION_DISMISS

    return None


def minutes_between(earlier: datetime, later: datetime) -> float:
    """Elapsed minutes from earlier to later.

    Pure function.
    """
    return (later - earlier).total_seconds() / 60


def decide_connectivity_action(
    silent_minutes: float,
    battery_level: float | None,
    has_active_alert: bool,
    offline_threshold_minutes: float,
    recovery_threshold_minutes: float,
    low_battery_floor_percent: float,
) -> str | None:
    """Decide what to do with a device's offline alert.

    Pure function. Between the recovery and offline thresholds nothing
    changes, so a device hovering near one boundary cannot flap. A device
    that went quiet with a nearly empty battery is not reported as a
    connectivity fault.

    Args:
        silent_minutes: Minutes since the device's last signal
        battery_level: Last known battery percentage (None if unknown)
        has_active_alert: Whether an active device_offline alert exists
        offline_threshold_minutes: Silence that counts as offline
        recovery_threshold_minutes: Silence that counts as back online
        low_battery_floor_percent: Battery at or below this skips the alert

    Returns:
        ACTION_CREATE, ACTION_DISMISS, or None for no change
    """
    if silent_minutes > offline_threshold_minutes:
        if has_active_alert:
            return None
        if battery_level is None or battery_level <= low_battery_floor_percent:
            return None
        return ACTION_CREATE

    if silent_minutes <= recovery_threshold_minutes and has_active_alert:
        return ACTION_DISMISS

    return None


def is_due_for_escalation(
    alert: Alert,
    now: datetime,
    threshold_seconds: float,
) -> bool:
    """Check if a geofence alert has been unresolved long enough to escalate.

    Pure function. Only active, not-yet-escalated geofence alerts qualify.

    Args:
        alert: Alert to check
        now: Current time
        threshold_seconds: Age an alert must exceed

    Returns:
        True if the alert should be escalated now
    """
    if not alert.is_active or alert.escalated:
        return False

    if alert.type != ALERT_TYPE_GEOFENCE:
        return False

    age_seconds = (now - alert.created_at).total_seconds()
    return age_seconds > threshold_seconds


def escalation_changes(
    alert: Alert,
    now: datetime,
    threshold_seconds: int,
) -> dict[str, object]:
    """Field changes that promote an alert to urgent.

    Pure function. All fields change together so an escalated alert always
    carries its escalated_at.

    Returns:
        Mapping of field name to new value
    """
    title, description = format_escalated_alert(alert, threshold_seconds)
    return {
        "severity": SEVERITY_URGENT,
        "escalated": True,
        "escalated_at": now,
        "title": title,
        "description": description,
    }


def apply_changes(record: Record, changes: dict[str, object]) -> Record:
    """Return a copy of an alert or device with changes applied.

    Pure function.
    """
    return replace(record, **changes)


def matches_expected(record: object, expected: dict[str, object]) -> bool:
    """Check that every expected field currently holds the expected value.

    Pure function. Used for compare-and-set style conditional updates.
    """
    return all(getattr(record, name) == value for name, value in expected.items())


def sort_active_alerts(alerts: list[Alert]) -> list[Alert]:
    """Order active alerts for display: escalated first, then newest first.

    Pure function. Inactive alerts are dropped.
    """
    active = [a for a in alerts if a.is_active]
    newest_first = sorted(active, key=lambda a: a.created_at, reverse=True)
    return sorted(newest_first, key=lambda a: not a.escalated)
