"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Domain models and collar payload parsing
- Geofence containment
- Alert lifecycle decisions (create, dismiss, escalate)
- Message formatting
- Configuration validation

All functions here are deterministic and have no I/O.
"""

from paddock.core.models import (
    Alert,
    AlertDraft,
    Device,
    Geofence,
    PositionReport,
    PushNotification,
    TrackedEntity,
    parse_device_payload,
)
from paddock.core.geofence import contains, is_in_any_safe_zone, parse_vertices
from paddock.core.lifecycle import (
    LifecycleEvent,
    decide_connectivity_action,
    decide_geofence_action,
    is_due_for_escalation,
    sort_active_alerts,
)
from paddock.core.formatter import format_push_notification, alert_to_dict

__all__ = [
    # Models
    "Alert",
    "AlertDraft",
    "Device",
    "Geofence",
    "PositionReport",
    "PushNotification",
    "TrackedEntity",
    "parse_device_payload",
    # Geofence
    "contains",
    "is_in_any_safe_zone",
    "parse_vertices",
    # Lifecycle
    "LifecycleEvent",
    "decide_connectivity_action",
    "decide_geofence_action",
    "is_due_for_escalation",
    "sort_active_alerts",
    # Formatter
    "format_push_notification",
    "alert_to_dict",
]
