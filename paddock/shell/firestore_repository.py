"""Firestore Repository - Imperative Shell.

Persists entities, geofences, devices, position reports and alerts to
Google Cloud Firestore.

The single-active-alert invariant is enforced with a "slot" document per
(entity_id, type) in the alert_slots collection. The slot exists exactly
while an active alert holds the key; inserting and dismissing read and
write the slot inside the same transaction as the alert itself.

Document structure (alerts):
{
    "entity_id": "...",
    "type": "geofence",
    "severity": "warning",
    "title": "...",
    "description": "...",
    "is_active": true,
    "escalated": false,
    "escalated_at": <timestamp> | null,
    "push_sent": false,
    "created_at": <timestamp>,
    "geofence_id": null
}
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from paddock.core.lifecycle import apply_changes, matches_expected
from paddock.core.models import (
    Alert,
    Device,
    Geofence,
    PositionReport,
    TrackedEntity,
)
from paddock.exceptions import RepositoryError
from paddock.shell.repository import Repository


logger = logging.getLogger(__name__)


ENTITIES = "entities"
GEOFENCES = "geofences"
DEVICES = "devices"
POSITIONS = "positions"
ALERTS = "alerts"
ALERT_SLOTS = "alert_slots"


@dataclass
class FirestoreConfig:
    """Configuration for the Firestore repository.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
        collection_prefix: Prefix prepended to every collection name
    """
    project_id: str | None = None
    database: str | None = None
    collection_prefix: str = "paddock"


def _slot_id(entity_id: str, alert_type: str) -> str:
    """Document ID of the active-alert slot for a key."""
    return f"{entity_id}__{alert_type}"


def _as_utc(value: datetime | None) -> datetime | None:
    """Firestore returns timezone-aware datetimes; normalize naive ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(model: Any) -> dict[str, Any]:
    """Convert a model to a Firestore document, dropping the ID field."""
    record = asdict(model)
    record.pop("id", None)
    return record


def _to_alert(doc_id: str, data: dict[str, Any]) -> Alert:
    return Alert(
        id=doc_id,
        entity_id=data["entity_id"],
        type=data["type"],
        severity=data["severity"],
        title=data.get("title", ""),
        description=data.get("description", ""),
        created_at=_as_utc(data["created_at"]),
        is_active=bool(data.get("is_active", True)),
        escalated=bool(data.get("escalated", False)),
        escalated_at=_as_utc(data.get("escalated_at")),
        push_sent=bool(data.get("push_sent", False)),
        geofence_id=data.get("geofence_id"),
    )


def _to_device(doc_id: str, data: dict[str, Any]) -> Device:
    return Device(
        id=doc_id,
        device_id=data["device_id"],
        entity_id=data.get("entity_id"),
        battery_level=data.get("battery_level"),
        is_online=bool(data.get("is_online", False)),
        last_signal=_as_utc(data.get("last_signal")),
        firmware_version=data.get("firmware_version", "1.0.0"),
    )


def _to_position(doc_id: str, data: dict[str, Any]) -> PositionReport:
    return PositionReport(
        id=doc_id,
        entity_id=data["entity_id"],
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        timestamp=_as_utc(data["timestamp"]),
        accuracy=data.get("accuracy"),
        battery_level=data.get("battery_level"),
    )


class FirestoreRepository(Repository):
    """Repository backed by Google Cloud Firestore.

    This is part of the imperative shell - it handles database I/O.
    Google API errors are wrapped in RepositoryError.
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore repository.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.config.project_id:
                kwargs['project'] = self.config.project_id
            if self.config.database:
                kwargs['database'] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _collection(self, name: str) -> Any:
        return self.client.collection(f"{self.config.collection_prefix}_{name}")

    def _get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            doc = self._collection(collection).document(doc_id).get()
        except google_exceptions.GoogleAPICallError as e:
            raise RepositoryError(f"Failed to read {collection}/{doc_id}: {e}") from e
        return doc.to_dict() if doc.exists else None

    def _set(self, collection: str, doc_id: str, record: dict[str, Any]) -> None:
        try:
            self._collection(collection).document(doc_id).set(record)
        except google_exceptions.GoogleAPICallError as e:
            raise RepositoryError(f"Failed to write {collection}/{doc_id}: {e}") from e

    def _stream(self, query: Any) -> list[Any]:
        try:
            return list(query.stream())
        except google_exceptions.GoogleAPICallError as e:
            raise RepositoryError(f"Query failed: {e}") from e

    # Entities

    def get_entity(self, entity_id: str) -> TrackedEntity | None:
        data = self._get(ENTITIES, entity_id)
        if data is None:
            return None
        return TrackedEntity(
            id=entity_id,
            name=data["name"],
            device_id=data.get("device_id"),
            status=data.get("status", "active"),
        )

    def save_entity(self, entity: TrackedEntity) -> TrackedEntity:
        self._set(ENTITIES, entity.id, _to_record(entity))
        return entity

    # Geofences

    def get_geofences(self) -> list[Geofence]:
        docs = self._stream(self._collection(GEOFENCES))
        geofences = []
        for doc in docs:
            data = doc.to_dict()
            geofences.append(Geofence(
                id=doc.id,
                name=data.get("name", doc.id),
                vertices=data.get("vertices"),
                is_active=bool(data.get("is_active", True)),
                description=data.get("description"),
            ))
        return geofences

    def save_geofence(self, geofence: Geofence) -> Geofence:
        record = _to_record(geofence)
        # Firestore rejects nested arrays, so vertices are stored as JSON text
        if not isinstance(record["vertices"], str):
            record["vertices"] = json.dumps([list(v) for v in record["vertices"]])
        self._set(GEOFENCES, geofence.id, record)
        return geofence

    # Devices

    def list_devices(self) -> list[Device]:
        docs = self._stream(self._collection(DEVICES))
        return [_to_device(doc.id, doc.to_dict()) for doc in docs]

    def get_device_by_external_id(self, device_id: str) -> Device | None:
        query = (
            self._collection(DEVICES)
            .where(filter=FieldFilter("device_id", "==", device_id))
            .limit(1)
        )
        docs = self._stream(query)
        if not docs:
            return None
        return _to_device(docs[0].id, docs[0].to_dict())

    def save_device(self, device: Device) -> Device:
        self._set(DEVICES, device.id, _to_record(device))
        return device

    def update_device_if(
        self,
        device_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Device | None:
        """Compare-and-set a device inside a transaction."""
        device_ref = self._collection(DEVICES).document(device_id)

        @firestore.transactional
        def _update(transaction: firestore.Transaction) -> Device | None:
            snapshot = device_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None

            current = _to_device(device_id, snapshot.to_dict())
            if not matches_expected(current, expected):
                return None

            updated = apply_changes(current, changes)
            transaction.set(device_ref, _to_record(updated))
            return updated

        try:
            return _update(self.client.transaction())
        except google_exceptions.GoogleAPICallError as e:
            raise RepositoryError(f"Failed to update device {device_id}: {e}") from e

    # Positions

    def add_position(self, report: PositionReport) -> PositionReport:
        self._set(POSITIONS, report.id, _to_record(report))
        return report

    def get_positions(self, entity_id: str, limit: int | None = None) -> list[PositionReport]:
        query = (
            self._collection(POSITIONS)
            .where(filter=FieldFilter("entity_id", "==", entity_id))
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
        )
        if limit is not None:
            query = query.limit(limit)
        return [_to_position(doc.id, doc.to_dict()) for doc in self._stream(query)]

    # Alerts

    def get_alert(self, alert_id: str) -> Alert | None:
        data = self._get(ALERTS, alert_id)
        return _to_alert(alert_id, data) if data is not None else None

    def find_alerts(
        self,
        entity_id: str | None = None,
        type: str | None = None,
        active: bool | None = None,
    ) -> list[Alert]:
        query = self._collection(ALERTS)
        if entity_id is not None:
            query = query.where(filter=FieldFilter("entity_id", "==", entity_id))
        if type is not None:
            query = query.where(filter=FieldFilter("type", "==", type))
        if active is not None:
            query = query.where(filter=FieldFilter("is_active", "==", active))

        return [_to_alert(doc.id, doc.to_dict()) for doc in self._stream(query)]

    def insert_alert_if_absent(self, alert: Alert) -> bool:
        """Insert an alert and claim its slot in one transaction.

        This is an atomic operation.
        """
        slot_ref = self._collection(ALERT_SLOTS).document(_slot_id(alert.entity_id, alert.type))
        alert_ref = self._collection(ALERTS).document(alert.id)
        record = _to_record(alert)
        record["is_active"] = True

        @firestore.transactional
        def _insert(transaction: firestore.Transaction) -> bool:
            slot = slot_ref.get(transaction=transaction)
            if slot.exists:
                return False
            transaction.set(alert_ref, record)
            transaction.set(slot_ref, {
                "alert_id": alert.id,
                "updated_at": datetime.now(timezone.utc),
            })
            return True

        try:
            return _insert(self.client.transaction())
        except google_exceptions.GoogleAPICallError as e:
            raise RepositoryError(f"Failed to insert alert {alert.id}: {e}") from e

    def update_alert_if(
        self,
        alert_id: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Alert | None:
        """Compare-and-set an alert inside a transaction.

        Deactivating an alert releases its slot in the same transaction.
        """
        alert_ref = self._collection(ALERTS).document(alert_id)

        @firestore.transactional
        def _update(transaction: firestore.Transaction) -> Alert | None:
            snapshot = alert_ref.get(transaction=transaction)
            if not snapshot.exists:
                return None

            current = _to_alert(alert_id, snapshot.to_dict())
            if not matches_expected(current, expected):
                return None

            updated = apply_changes(current, changes)
            transaction.set(alert_ref, _to_record(updated))

            if current.is_active and not updated.is_active:
                slot_ref = self._collection(ALERT_SLOTS).document(
                    _slot_id(current.entity_id, current.type)
                )
                transaction.delete(slot_ref)

            return updated

        try:
            return _update(self.client.transaction())
        except google_exceptions.GoogleAPICallError as e:
            raise RepositoryError(f"Failed to update alert {alert_id}: {e}") from e
