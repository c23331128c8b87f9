"""Alert Lifecycle Manager - Wires lifecycle rules to the repository.

Owns the create/dismiss transitions and the push claim for every alert
type. The single-active-alert invariant is enforced twice: a per-key lock
serializes read-decide-write inside this process, and the repository's
conditional writes make the final check atomic across processes.

Observers receive a LifecycleEvent after each committed transition.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from paddock.core.formatter import format_geofence_alert
from paddock.core.lifecycle import (
    ACTION_CREATE,
    ACTION_DISMISS,
    EVENT_CREATED,
    EVENT_DISMISSED,
    LifecycleEvent,
    decide_geofence_action,
    sort_active_alerts,
)
from paddock.core.models import (
    ALERT_TYPE_GEOFENCE,
    SEVERITY_WARNING,
    Alert,
    AlertDraft,
    materialize_alert,
)
from paddock.locks import KeyedLock
from paddock.shell.repository import Repository


logger = logging.getLogger(__name__)


Observer = Callable[[LifecycleEvent], None]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


class AlertLifecycleManager:
    """Creates, dismisses and claims pushes for alerts.

    Attributes:
        repository: Storage for alerts and entities
        clock: Callable returning the current time
        locks: Per-(entity_id, type) locks, shareable with sweeps
    """

    def __init__(
        self,
        repository: Repository,
        observers: list[Observer] | None = None,
        clock: Clock | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self.repository = repository
        self.clock = clock or utc_now
        self.locks = locks or KeyedLock()
        self._observers: list[Observer] = list(observers or [])

    def subscribe(self, observer: Observer) -> None:
        """Register an observer for lifecycle events."""
        self._observers.append(observer)

    def emit(self, event_type: str, alert: Alert) -> None:
        """Notify observers of a committed transition.

        State is already persisted; an observer that raises is logged and
        the remaining observers still run.
        """
        event = LifecycleEvent(type=event_type, alert=alert)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Observer failed on %s event for alert %s",
                    event_type,
                    alert.id,
                )

    def active_alert(self, entity_id: str, alert_type: str) -> Alert | None:
        """The active alert for (entity_id, alert_type), if any."""
        alerts = self.repository.find_alerts(
            entity_id=entity_id,
            type=alert_type,
            active=True,
        )
        if len(alerts) > 1:
            logger.error(
                "Found %d active %s alerts for %s",
                len(alerts),
                alert_type,
                entity_id,
            )
        return alerts[0] if alerts else None

    def active_alerts(self) -> list[Alert]:
        """All active alerts, escalated first, then newest first."""
        return sort_active_alerts(self.repository.find_alerts(active=True))

    def _insert(self, draft: AlertDraft) -> Alert | None:
        alert = materialize_alert(draft, str(uuid.uuid4()), self.clock())

        with self.locks.hold(alert.key):
            if not self.repository.insert_alert_if_absent(alert):
                logger.debug(
                    "Skipping %s alert for %s: one is already active",
                    draft.type,
                    draft.entity_id,
                )
                return None

        logger.info(
            "Created %s alert %s for %s: %s",
            alert.type,
            alert.id,
            alert.entity_id,
            alert.title,
        )
        return alert

    def _deactivate(self, alert_id: str) -> Alert | None:
        current = self.repository.get_alert(alert_id)
        if current is None:
            logger.warning("Cannot dismiss unknown alert %s", alert_id)
            return None

        with self.locks.hold(current.key):
            dismissed = self.repository.update_alert_if(
                alert_id,
                expected={"is_active": True},
                changes={"is_active": False},
            )

        if dismissed is None:
            logger.debug("Alert %s was already inactive", alert_id)
            return None

        logger.info("Dismissed %s alert %s for %s", dismissed.type, alert_id, dismissed.entity_id)
        return dismissed

    def create(self, draft: AlertDraft) -> Alert | None:
        """Create an alert unless one is already active for its key.

        Returns:
            The new alert, or None if an active alert already holds
            (draft.entity_id, draft.type)

        Raises:
            RepositoryError: If the write fails (nothing is emitted)
        """
        alert = self._insert(draft)
        if alert is not None:
            self.emit(EVENT_CREATED, alert)
        return alert

    def dismiss(self, alert_id: str) -> bool:
        """Deactivate an alert.

        Returns:
            True if this call dismissed it; False if it is missing or was
            already inactive

        Raises:
            RepositoryError: If the write fails (nothing is emitted)
        """
        dismissed = self._deactivate(alert_id)
        if dismissed is None:
            return False
        self.emit(EVENT_DISMISSED, dismissed)
        return True

    def claim_push(self, alert_id: str) -> Alert | None:
        """Mark an alert as push-notified.

        Only the caller that flips push_sent from False to True may send the
        push, so each alert is pushed at most once.

        Returns:
            The updated alert if this call won the claim, else None
        """
        claimed = self.repository.update_alert_if(
            alert_id,
            expected={"push_sent": False},
            changes={"push_sent": True},
        )
        if claimed is None:
            logger.debug("Push for alert %s already claimed", alert_id)
        return claimed

    def on_position_evaluated(self, entity_id: str, is_contained: bool) -> None:
        """Apply the geofence rules after a position has been evaluated.

        The decision and its write run under the entity's geofence lock.
        Observers are notified after the lock is released.

        Raises:
            RepositoryError: If a read or write fails
        """
        entity = self.repository.get_entity(entity_id)
        if entity is None:
            logger.warning("Ignoring evaluation for unknown entity %s", entity_id)
            return

        created = dismissed = None
        with self.locks.hold((entity_id, ALERT_TYPE_GEOFENCE)):
            active = self.active_alert(entity_id, ALERT_TYPE_GEOFENCE)
            action = decide_geofence_action(is_contained, active is not None)

            if action == ACTION_CREATE:
                title, description = format_geofence_alert(entity)
                # An exit lies outside every zone, so there is no geofence_id
                created = self._insert(AlertDraft(
                    entity_id=entity_id,
                    type=ALERT_TYPE_GEOFENCE,
                    severity=SEVERITY_WARNING,
                    title=title,
                    description=description,
                ))
            elif action == ACTION_DISMISS:
                dismissed = self._deactivate(active.id)

        if created is not None:
            self.emit(EVENT_CREATED, created)
        if dismissed is not None:
            self.emit(EVENT_DISMISSED, dismissed)
