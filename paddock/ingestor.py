"""Position Ingestor - Entry point for collar reports.

Records each fix, keeps the reporting device's connectivity fields current,
and hands containment results to the lifecycle manager. The report is
persisted before evaluation; if evaluation fails afterwards the report is
kept and the failure logged.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime

from paddock.alert_manager import AlertLifecycleManager
from paddock.core.geofence import is_in_any_safe_zone
from paddock.core.models import (
    Device,
    DevicePayload,
    PositionReport,
    TrackedEntity,
)
from paddock.exceptions import UnknownEntityError


logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Result of handling a raw device payload.

    Attributes:
        device: Device record after the update
        report: Recorded position, or None if the device has no entity
        created: True if the device was auto-registered by this payload
    """
    device: Device
    report: PositionReport | None = None
    created: bool = False


class PositionIngestor:
    """Accepts positions and device payloads."""

    def __init__(self, manager: AlertLifecycleManager) -> None:
        self.manager = manager
        self.repository = manager.repository

    def _touch_device(
        self,
        external_id: str,
        now: datetime,
        entity_id: str | None = None,
        battery_level: float | None = None,
    ) -> tuple[Device, bool]:
        """Mark a device as heard from, registering it if unknown."""
        device = self.repository.get_device_by_external_id(external_id)
        created = device is None

        if device is None:
            logger.info("Registering new device %s", external_id)
            device = Device(
                id=str(uuid.uuid4()),
                device_id=external_id,
                entity_id=entity_id,
            )

        device = replace(
            device,
            entity_id=device.entity_id or entity_id,
            battery_level=battery_level if battery_level is not None else device.battery_level,
            is_online=True,
            last_signal=now,
        )
        return self.repository.save_device(device), created

    def _append_and_evaluate(
        self,
        entity: TrackedEntity,
        latitude: float,
        longitude: float,
        now: datetime,
        accuracy: float | None,
        battery_level: float | None,
    ) -> PositionReport:
        report = self.repository.add_position(PositionReport(
            id=str(uuid.uuid4()),
            entity_id=entity.id,
            latitude=latitude,
            longitude=longitude,
            timestamp=now,
            accuracy=accuracy,
            battery_level=battery_level,
        ))

        try:
            geofences = self.repository.get_geofences()
            contained = is_in_any_safe_zone(report.coordinates, geofences)
            self.manager.on_position_evaluated(entity.id, contained)
        except Exception:
            logger.exception("Evaluation failed for position %s of %s", report.id, entity.id)

        return report

    def record(
        self,
        entity_id: str,
        latitude: float,
        longitude: float,
        accuracy: float | None = None,
        battery_level: float | None = None,
    ) -> PositionReport:
        """Record a position for an entity and evaluate it.

        Raises:
            UnknownEntityError: If the entity does not exist
            RepositoryError: If the report could not be persisted
        """
        entity = self.repository.get_entity(entity_id)
        if entity is None:
            raise UnknownEntityError(entity_id)

        now = self.manager.clock()
        if entity.device_id:
            self._touch_device(entity.device_id, now, entity.id, battery_level)

        return self._append_and_evaluate(
            entity, latitude, longitude, now, accuracy, battery_level
        )

    def handle_device_payload(self, payload: DevicePayload) -> IngestResult:
        """Handle a raw collar report.

        Unknown devices are registered. A position is only recorded once
        the device is linked to an entity.
        """
        now = self.manager.clock()
        device, created = self._touch_device(
            payload.device_id,
            now,
            battery_level=payload.battery_level,
        )

        if device.entity_id is None:
            logger.info("Device %s has no entity yet, position not recorded", device.device_id)
            return IngestResult(device=device, created=created)

        entity = self.repository.get_entity(device.entity_id)
        if entity is None:
            logger.warning(
                "Device %s is linked to unknown entity %s",
                device.device_id,
                device.entity_id,
            )
            return IngestResult(device=device, created=created)

        report = self._append_and_evaluate(
            entity,
            payload.latitude,
            payload.longitude,
            now,
            accuracy=None,
            battery_level=payload.battery_level,
        )
        return IngestResult(device=device, report=report, created=created)
