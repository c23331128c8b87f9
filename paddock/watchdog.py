"""Connectivity Watchdog - Raises and clears device_offline alerts.

A collar that has been silent longer than the offline threshold, while its
last reported battery was healthy, gets an urgent alert. A collar heard from
again within the recovery threshold has its alert cleared. Silence between
the two thresholds changes nothing, so a device near one boundary does not
flap.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from paddock.alert_manager import AlertLifecycleManager
from paddock.core.config import Config
from paddock.core.formatter import format_offline_alert, format_push_notification
from paddock.core.lifecycle import (
    ACTION_CREATE,
    ACTION_DISMISS,
    decide_connectivity_action,
    minutes_between,
)
from paddock.core.models import (
    ALERT_TYPE_DEVICE_OFFLINE,
    SEVERITY_URGENT,
    Alert,
    AlertDraft,
    Device,
    TrackedEntity,
)
from paddock.dispatcher import NotificationDispatcher


logger = logging.getLogger(__name__)


@dataclass
class WatchdogResult:
    """Result of one connectivity sweep.

    Attributes:
        created: Offline alerts raised
        dismissed: IDs of offline alerts cleared
        errors: Per-device failures (the sweep carried on)
    """
    created: list[Alert] = field(default_factory=list)
    dismissed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return (
            f"{len(self.created)} offline, "
            f"{len(self.dismissed)} recovered, "
            f"{len(self.errors)} errors"
        )


class ConnectivityWatchdog:
    """Checks every assigned device for silence."""

    def __init__(
        self,
        manager: AlertLifecycleManager,
        dispatcher: NotificationDispatcher,
        config: Config,
    ) -> None:
        self.manager = manager
        self.repository = manager.repository
        self.dispatcher = dispatcher
        self.config = config

    def _raise_offline(
        self,
        device: Device,
        entity: TrackedEntity,
        silent_minutes: float,
        now: datetime,
    ) -> Alert | None:
        title, description = format_offline_alert(
            entity,
            device.device_id,
            silent_minutes,
            device.battery_level,
        )
        alert = self.manager.create(AlertDraft(
            entity_id=entity.id,
            type=ALERT_TYPE_DEVICE_OFFLINE,
            severity=SEVERITY_URGENT,
            title=title,
            description=description,
            escalated=True,
            escalated_at=now,
        ))
        if alert is None:
            return None

        claimed = self.manager.claim_push(alert.id)
        if claimed is not None:
            self.dispatcher.dispatch_push(format_push_notification(claimed))
        return claimed or alert

    def _check_device(self, listed: Device, now: datetime, result: WatchdogResult) -> None:
        key = (listed.entity_id, ALERT_TYPE_DEVICE_OFFLINE)

        with self.manager.locks.hold(key):
            # The listing may be stale if a report arrived since the sweep began
            device = self.repository.get_device_by_external_id(listed.device_id)
            if device is None or device.entity_id is None or device.last_signal is None:
                return

            silent_minutes = minutes_between(device.last_signal, now)

            if silent_minutes > self.config.offline_threshold_minutes and device.is_online:
                marked = self.repository.update_device_if(
                    device.id,
                    expected={"last_signal": device.last_signal, "is_online": True},
                    changes={"is_online": False},
                )
                if marked is None:
                    logger.info("Device %s reported during the sweep, skipping", device.device_id)
                    return

            active = self.manager.active_alert(device.entity_id, ALERT_TYPE_DEVICE_OFFLINE)
            action = decide_connectivity_action(
                silent_minutes=silent_minutes,
                battery_level=device.battery_level,
                has_active_alert=active is not None,
                offline_threshold_minutes=self.config.offline_threshold_minutes,
                recovery_threshold_minutes=self.config.recovery_threshold_minutes,
                low_battery_floor_percent=self.config.low_battery_floor_percent,
            )

        # Alert writes are conditional, so observers and pushes run unlocked
        if action == ACTION_CREATE:
            entity = self.repository.get_entity(device.entity_id)
            if entity is None:
                logger.warning(
                    "Device %s is assigned to unknown entity %s",
                    device.device_id,
                    device.entity_id,
                )
                return
            alert = self._raise_offline(device, entity, silent_minutes, now)
            if alert is not None:
                result.created.append(alert)
        elif action == ACTION_DISMISS:
            if self.manager.dismiss(active.id):
                result.dismissed.append(active.id)

    def check_devices(self, now: datetime | None = None) -> WatchdogResult:
        """Run one sweep over all devices.

        Devices without an entity or without any signal yet are skipped.

        Args:
            now: Sweep time (defaults to the manager's clock)

        Returns:
            WatchdogResult with alerts raised and cleared
        """
        now = now or self.manager.clock()
        result = WatchdogResult()

        for device in self.repository.list_devices():
            if device.entity_id is None or device.last_signal is None:
                continue
            try:
                self._check_device(device, now, result)
            except Exception as e:
                logger.exception("Connectivity check failed for device %s", device.device_id)
                result.errors.append(f"{device.device_id}: {e}")

        if result.created or result.dismissed or result.errors:
            logger.info("Connectivity sweep: %s", result.summary)
        return result
