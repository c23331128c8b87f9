"""Repository - Imperative Shell.

The monitoring engine never touches storage directly. It talks to a
Repository, which offers plain CRUD plus two atomic primitives that the
single-active-alert invariant depends on:

- insert_alert_if_absent: insert only if no active alert holds the same
  (entity_id, type) key.
- update_alert_if: compare-and-set on alert fields, so guards such as
  escalated/is_active/push_sent are re-checked at write time.

InMemoryRepository is the reference implementation used by tests and
single-process deployments. FirestoreRepository lives in its own module.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from paddock.core.lifecycle import apply_changes, matches_expected
from paddock.core.models import (
    Alert,
    Device,
    Geofence,
    PositionReport,
    TrackedEntity,
)


logger = logging.getLogger(__name__)


class Repository(ABC):
    """Storage contract for the monitoring engine.

    Implementations raise paddock.exceptions.RepositoryError when the
    underlying store fails; a failed write must leave no partial state.
    """

    # Entities

    @abstractmethod
    def get_entity(self, entity_id: str) -> TrackedEntity | None:
        """Fetch an entity by ID."""

    @abstractmethod
    def save_entity(self, entity: TrackedEntity) -> TrackedEntity:
        """Create or replace an entity."""

    # Geofences

    @abstractmethod
    def get_geofences(self) -> list[Geofence]:
        """Fetch all geofences, active or not."""

    @abstractmethod
    def save_geofence(self, geofence: Geofence) -> Geofence:
        """Create or replace a geofence."""

    # Devices

    @abstractmethod
    def list_devices(self) -> list[Device]:
        """Fetch all devices."""

    @abstractmethod
    def get_device_by_external_id(self, device_id: str) -> Device | None:
        """Fetch a device by the hardware ID the collar reports."""

    @abstractmethod
    def save_device(self, device: Device) -> Device:
        """Create or replace a device."""

    @abstractmethod
    def update_device_if(
        self,
        device_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Device | None:
        """Atomically apply changes to a device if every expected field still matches.

        Args:
            device_id: Internal device ID (Device.id)

        Returns:
            The updated device, or None if it is missing or has changed
        """

    # Positions

    @abstractmethod
    def add_position(self, report: PositionReport) -> PositionReport:
        """Append a position report."""

    @abstractmethod
    def get_positions(self, entity_id: str, limit: int | None = None) -> list[PositionReport]:
        """Fetch an entity's reports, newest first."""

    # Alerts

    @abstractmethod
    def get_alert(self, alert_id: str) -> Alert | None:
        """Fetch an alert by ID."""

    @abstractmethod
    def find_alerts(
        self,
        entity_id: str | None = None,
        type: str | None = None,
        active: bool | None = None,
    ) -> list[Alert]:
        """Fetch alerts matching every filter that is not None."""

    @abstractmethod
    def insert_alert_if_absent(self, alert: Alert) -> bool:
        """Atomically insert an active alert unless its key is taken.

        Returns:
            True if inserted, False if an active alert already exists for
            (alert.entity_id, alert.type)
        """

    @abstractmethod
    def update_alert_if(
        self,
        alert_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Alert | None:
        """Atomically apply changes if every expected field still matches.

        Returns:
            The updated alert, or None if the alert is missing or a
            precondition no longer holds
        """


class InMemoryRepository(Repository):
    """Thread-safe, process-local repository.

    Every operation runs under one lock, so each conditional write is a
    single atomic step.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entities: dict[str, TrackedEntity] = {}
        self._geofences: dict[str, Geofence] = {}
        self._devices: dict[str, Device] = {}
        self._positions: list[PositionReport] = []
        self._alerts: dict[str, Alert] = {}

    def get_entity(self, entity_id: str) -> TrackedEntity | None:
        with self._lock:
            return self._entities.get(entity_id)

    def save_entity(self, entity: TrackedEntity) -> TrackedEntity:
        with self._lock:
            self._entities[entity.id] = entity
            return entity

    def get_geofences(self) -> list[Geofence]:
        with self._lock:
            return list(self._geofences.values())

    def save_geofence(self, geofence: Geofence) -> Geofence:
        with self._lock:
            self._geofences[geofence.id] = geofence
            return geofence

    def list_devices(self) -> list[Device]:
        with self._lock:
            return list(self._devices.values())

    def get_device_by_external_id(self, device_id: str) -> Device | None:
        with self._lock:
            for device in self._devices.values():
                if device.device_id == device_id:
                    return device
            return None

    def save_device(self, device: Device) -> Device:
        with self._lock:
            self._devices[device.id] = device
            return device

    def update_device_if(
        self,
        device_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Device | None:
        with self._lock:
            current = self._devices.get(device_id)
            if current is None or not matches_expected(current, expected):
                return None

            updated = apply_changes(current, changes)
            self._devices[device_id] = updated
            return updated

    def add_position(self, report: PositionReport) -> PositionReport:
        with self._lock:
            self._positions.append(report)
            return report

    def get_positions(self, entity_id: str, limit: int | None = None) -> list[PositionReport]:
        with self._lock:
            reports = [p for p in self._positions if p.entity_id == entity_id]
        reports.sort(key=lambda p: p.timestamp, reverse=True)
        return reports if limit is None else reports[:limit]

    def get_alert(self, alert_id: str) -> Alert | None:
        with self._lock:
            return self._alerts.get(alert_id)

    def find_alerts(
        self,
        entity_id: str | None = None,
        type: str | None = None,
        active: bool | None = None,
    ) -> list[Alert]:
        with self._lock:
            alerts = list(self._alerts.values())

        return [
            a for a in alerts
            if (entity_id is None or a.entity_id == entity_id)
            and (type is None or a.type == type)
            and (active is None or a.is_active == active)
        ]

    def insert_alert_if_absent(self, alert: Alert) -> bool:
        with self._lock:
            for existing in self._alerts.values():
                if existing.is_active and existing.key == alert.key:
                    logger.debug(
                        "Active %s alert %s already exists for %s",
                        alert.type,
                        existing.id,
                        alert.entity_id,
                    )
                    return False

            self._alerts[alert.id] = replace(alert, is_active=True)
            return True

    def update_alert_if(
        self,
        alert_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Alert | None:
        with self._lock:
            current = self._alerts.get(alert_id)
            if current is None or not matches_expected(current, expected):
                return None

            updated = apply_changes(current, changes)
            self._alerts[alert_id] = updated
            return updated
