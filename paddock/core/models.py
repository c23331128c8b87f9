"""Domain models and payload parsing - Pure functions.

Tracked entities, devices, geofences, position reports and alerts are all
immutable. State transitions produce new objects via dataclasses.replace;
persisting them is the job of the imperative shell.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


ALERT_TYPE_GEOFENCE = "geofence"
ALERT_TYPE_DEVICE_OFFLINE = "device_offline"
ALERT_TYPE_LOW_BATTERY = "low_battery"

ALERT_TYPES = (
    ALERT_TYPE_GEOFENCE,
    ALERT_TYPE_DEVICE_OFFLINE,
    ALERT_TYPE_LOW_BATTERY,
)

SEVERITY_WARNING = "warning"
SEVERITY_URGENT = "urgent"


@dataclass(frozen=True)
class TrackedEntity:
    """An animal wearing a GPS collar.

    Attributes:
        id: Unique entity ID
        name: Display name (e.g., "Thunder")
        device_id: External ID of the collar, if one is assigned
        status: Free-form status label (active, warning, offline)
    """
    id: str
    name: str
    device_id: str | None = None
    status: str = "active"


@dataclass(frozen=True)
class PositionReport:
    """A single GPS fix. Append-only once recorded."""
    id: str
    entity_id: str
    latitude: float
    longitude: float
    timestamp: datetime
    accuracy: float | None = None
    battery_level: float | None = None

    @property
    def coordinates(self) -> tuple[float, float]:
        """Return (latitude, longitude) tuple."""
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Geofence:
    """A named polygonal safe zone.

    Attributes:
        id: Unique geofence ID
        name: Human-readable name (e.g., "North paddock")
        vertices: Raw vertex payload, either a JSON string or a sequence
            of [latitude, longitude] pairs. Parsed lazily so one broken
            geofence cannot poison the others.
        is_active: Inactive geofences are ignored by evaluation
        description: Optional notes
    """
    id: str
    name: str
    vertices: Any
    is_active: bool = True
    description: str | None = None


@dataclass(frozen=True)
class Device:
    """A GPS collar as seen by the backend.

    Attributes:
        id: Internal device record ID
        device_id: External hardware ID sent by the collar
        entity_id: Entity wearing the collar (None until assigned)
        battery_level: Last reported battery percentage
        is_online: Whether the device is currently considered reachable
        last_signal: Time of the last report
        firmware_version: Reported or assumed firmware version
    """
    id: str
    device_id: str
    entity_id: str | None = None
    battery_level: float | None = None
    is_online: bool = False
    last_signal: datetime | None = None
    firmware_version: str = "1.0.0"


@dataclass(frozen=True)
class Alert:
    """A monitoring alert.

    At most one alert with is_active=True may exist per (entity_id, type).
    Alerts are never deleted; dismissal flips is_active.

    Attributes:
        id: Unique alert ID
        entity_id: Entity the alert is about
        type: One of ALERT_TYPES
        severity: SEVERITY_WARNING or SEVERITY_URGENT
        title: Short headline
        description: Longer human-readable detail
        created_at: Creation time (UTC)
        is_active: False once dismissed
        escalated: True once promoted to urgent
        escalated_at: When escalation happened
        push_sent: True once a push notification was claimed for this alert
        geofence_id: Geofence involved, if known
    """
    id: str
    entity_id: str
    type: str
    severity: str
    title: str
    description: str
    created_at: datetime
    is_active: bool = True
    escalated: bool = False
    escalated_at: datetime | None = None
    push_sent: bool = False
    geofence_id: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """The (entity_id, type) key the single-active invariant applies to."""
        return (self.entity_id, self.type)


@dataclass(frozen=True)
class AlertDraft:
    """Caller-supplied part of an alert, before an ID and timestamp exist."""
    entity_id: str
    type: str
    severity: str
    title: str
    description: str
    escalated: bool = False
    escalated_at: datetime | None = None
    geofence_id: str | None = None


@dataclass(frozen=True)
class PushNotification:
    """Payload for push recipients.

    Attributes:
        title: Notification headline
        body: Notification text
        tag: Collapse key; the alert ID so repeats replace each other
        require_interaction: Keep the notification on screen until acted on
    """
    title: str
    body: str
    tag: str
    require_interaction: bool = False


@dataclass(frozen=True)
class DevicePayload:
    """A raw report from a collar, after validation."""
    device_id: str
    latitude: float
    longitude: float
    battery_level: float


def materialize_alert(draft: AlertDraft, alert_id: str, now: datetime) -> Alert:
    """Turn a draft into a fresh, active alert.

    Pure function.

    Args:
        draft: Caller-supplied alert fields
        alert_id: ID to assign
        now: Creation time

    Returns:
        Alert with defaults applied (active, not push-notified)
    """
    return Alert(
        id=alert_id,
        entity_id=draft.entity_id,
        type=draft.type,
        severity=draft.severity,
        title=draft.title,
        description=draft.description,
        created_at=now,
        is_active=True,
        escalated=draft.escalated,
        escalated_at=draft.escalated_at,
        push_sent=False,
        geofence_id=draft.geofence_id,
    )


def parse_device_payload(data: dict[str, Any]) -> DevicePayload | None:
    """Parse a collar report of the form {id, x, y, battery}.

    Pure function. The collar firmware sends x as longitude and y as
    latitude.

    Args:
        data: Decoded JSON body

    Returns:
        DevicePayload, or None if fields are missing or not numeric
    """
    if not isinstance(data, dict):
        return None

    device_id = data.get("id")
    if not device_id:
        return None

    try:
        longitude = float(data["x"])
        latitude = float(data["y"])
        battery_level = float(data["battery"])
    except (KeyError, TypeError, ValueError):
        return None

    # NaN never compares equal to itself
    if any(v != v for v in (longitude, latitude, battery_level)):
        return None

    return DevicePayload(
        device_id=str(device_id),
        latitude=latitude,
        longitude=longitude,
        battery_level=battery_level,
    )
