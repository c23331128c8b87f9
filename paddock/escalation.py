"""Escalation Scheduler - Promotes stale geofence alerts to urgent.

Run periodically. Each due alert is escalated with a single conditional
write guarded on is_active/escalated, so overlapping sweeps (or a sweep
racing a dismissal) escalate an alert at most once and never revive a
dismissed one.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from paddock.alert_manager import AlertLifecycleManager
from paddock.core.config import Config
from paddock.core.formatter import format_push_notification
from paddock.core.lifecycle import (
    EVENT_ESCALATED,
    escalation_changes,
    is_due_for_escalation,
)
from paddock.core.models import ALERT_TYPE_GEOFENCE, Alert
from paddock.dispatcher import NotificationDispatcher


logger = logging.getLogger(__name__)


@dataclass
class EscalationResult:
    """Result of one escalation sweep.

    Attributes:
        escalated: Alerts this sweep promoted
        errors: Per-alert failures (the sweep carried on)
    """
    escalated: list[Alert] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return f"{len(self.escalated)} escalated, {len(self.errors)} errors"


class EscalationScheduler:
    """Escalates geofence alerts unresolved past the threshold."""

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

    def _escalate(self, alert: Alert, now: datetime) -> Alert | None:
        changes = escalation_changes(alert, now, self.config.escalation_threshold_seconds)

        with self.manager.locks.hold(alert.key):
            escalated = self.repository.update_alert_if(
                alert.id,
                expected={"is_active": True, "escalated": False},
                changes=changes,
            )

        if escalated is None:
            logger.debug("Alert %s was dismissed or escalated concurrently", alert.id)
            return None

        logger.info("Escalated alert %s for %s", alert.id, alert.entity_id)
        self.manager.emit(EVENT_ESCALATED, escalated)

        if not escalated.push_sent:
            claimed = self.manager.claim_push(escalated.id)
            if claimed is not None:
                self.dispatcher.dispatch_push(format_push_notification(claimed))

        return escalated

    def escalate_due(self, now: datetime | None = None) -> EscalationResult:
        """Run one sweep.

        Args:
            now: Sweep time (defaults to the manager's clock)

        Returns:
            EscalationResult with the alerts promoted and any errors
        """
        now = now or self.manager.clock()
        threshold = self.config.escalation_threshold_seconds
        result = EscalationResult()

        candidates = self.repository.find_alerts(
            type=ALERT_TYPE_GEOFENCE,
            active=True,
        )
        due = [a for a in candidates if is_due_for_escalation(a, now, threshold)]

        for alert in due:
            try:
                escalated = self._escalate(alert, now)
            except Exception as e:
                logger.exception("Failed to escalate alert %s", alert.id)
                result.errors.append(f"{alert.id}: {e}")
                continue

            if escalated is not None:
                result.escalated.append(escalated)

        if due:
            logger.info("Escalation sweep: %s", result.summary)
        return result
