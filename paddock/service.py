"""Service wiring - Connects core, shell and coordinators.

build_service() turns a Config into a ready-to-use MonitoringService:
repository, real-time hub, dispatcher, lifecycle manager, ingestor and the
two sweeps, with the dispatcher subscribed to lifecycle events.
"""

import logging
from dataclasses import dataclass
from typing import Any

from paddock.alert_manager import AlertLifecycleManager, Clock
from paddock.core.config import STORAGE_FIRESTORE, Config, validate_config
from paddock.dispatcher import NotificationDispatcher, PushSink
from paddock.escalation import EscalationResult, EscalationScheduler
from paddock.exceptions import ConfigError
from paddock.ingestor import PositionIngestor
from paddock.scheduler import SweepScheduler
from paddock.shell.firestore_repository import FirestoreConfig, FirestoreRepository
from paddock.shell.realtime_hub import RealtimeHub
from paddock.shell.repository import InMemoryRepository, Repository
from paddock.watchdog import ConnectivityWatchdog, WatchdogResult


logger = logging.getLogger(__name__)


ESCALATION_SWEEP = "escalation"
CONNECTIVITY_SWEEP = "connectivity"


@dataclass
class SweepReport:
    """Combined result of running both sweeps once."""
    escalation: EscalationResult
    connectivity: WatchdogResult

    @property
    def success(self) -> bool:
        return not (self.escalation.errors or self.connectivity.errors)

    @property
    def summary(self) -> str:
        return f"escalation: {self.escalation.summary}; connectivity: {self.connectivity.summary}"


@dataclass
class MonitoringService:
    """All long-lived components of a running monitor."""
    config: Config
    repository: Repository
    hub: RealtimeHub
    dispatcher: NotificationDispatcher
    manager: AlertLifecycleManager
    ingestor: PositionIngestor
    escalation: EscalationScheduler
    watchdog: ConnectivityWatchdog

    def run_sweeps(self) -> SweepReport:
        """Run escalation and connectivity sweeps once, in that order."""
        now = self.manager.clock()
        return SweepReport(
            escalation=self.escalation.escalate_due(now),
            connectivity=self.watchdog.check_devices(now),
        )

    def build_scheduler(self) -> SweepScheduler:
        """Create a scheduler with both sweeps registered (not started)."""
        scheduler = SweepScheduler()
        scheduler.add_sweep(
            ESCALATION_SWEEP,
            self.escalation.escalate_due,
            self.config.escalation_sweep_interval_seconds,
        )
        scheduler.add_sweep(
            CONNECTIVITY_SWEEP,
            self.watchdog.check_devices,
            self.config.connectivity_sweep_interval_seconds,
        )
        return scheduler


def build_repository(config: Config) -> Repository:
    """Create the repository selected by config.storage_backend."""
    if config.storage_backend == STORAGE_FIRESTORE:
        return FirestoreRepository(FirestoreConfig(
            database=config.firestore_database,
            collection_prefix=config.firestore_collection_prefix,
        ))
    return InMemoryRepository()


def build_service(
    config: Config,
    repository: Repository | None = None,
    hub: RealtimeHub | None = None,
    sinks: dict[str, PushSink] | None = None,
    clock: Clock | None = None,
) -> MonitoringService:
    """Wire a MonitoringService from configuration.

    Args:
        config: Application configuration
        repository: Storage (created from config if not provided)
        hub: Real-time hub (created if not provided)
        sinks: Push client per channel type (defaults if not provided)
        clock: Time source (UTC wall clock if not provided)

    Returns:
        MonitoringService ready to ingest and sweep

    Raises:
        ConfigError: If the configuration has critical errors
    """
    validation = validate_config(config)
    for warning in validation.warnings:
        logger.warning("Config warning: %s - %s", warning.field, warning.message)
    if not validation.valid:
        problems = "; ".join(f"{e.field}: {e.message}" for e in validation.critical_errors)
        raise ConfigError(f"Invalid configuration: {problems}")

    repository = repository or build_repository(config)
    hub = hub or RealtimeHub()

    dispatcher = NotificationDispatcher(
        hub,
        recipients=config.push_recipients,
        sinks=sinks,
        timeout=config.push_timeout_seconds,
    )
    manager = AlertLifecycleManager(
        repository,
        observers=[dispatcher.on_lifecycle_event],
        clock=clock,
    )

    return MonitoringService(
        config=config,
        repository=repository,
        hub=hub,
        dispatcher=dispatcher,
        manager=manager,
        ingestor=PositionIngestor(manager),
        escalation=EscalationScheduler(manager, dispatcher, config),
        watchdog=ConnectivityWatchdog(manager, dispatcher, config),
    )


def sweep_report_to_dict(report: SweepReport) -> dict[str, Any]:
    """Serialize a sweep report for HTTP responses."""
    response: dict[str, Any] = {
        "status": "success" if report.success else "partial_failure",
        "summary": report.summary,
        "escalated": [a.id for a in report.escalation.escalated],
        "offline_created": [a.id for a in report.connectivity.created],
        "offline_dismissed": report.connectivity.dismissed,
    }
    errors = report.escalation.errors + report.connectivity.errors
    if errors:
        response["errors"] = errors
    return response
