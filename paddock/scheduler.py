"""Sweep Scheduler - Runs periodic sweeps on APScheduler.

Each sweep is an interval job. max_instances=1 keeps a slow sweep from
overlapping itself, and coalesce=True collapses missed runs into one.
"""

import logging
from collections.abc import Callable
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler


logger = logging.getLogger(__name__)


class SweepScheduler:
    """Background interval jobs for escalation and connectivity sweeps."""

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._sweeps: dict[str, Callable[[], Any]] = {}

    def add_sweep(self, name: str, func: Callable[[], Any], interval_seconds: float) -> None:
        """Register a sweep to run every interval_seconds."""
        if name in self._sweeps:
            raise ValueError(f"Sweep '{name}' already registered")

        self._sweeps[name] = func
        self.scheduler.add_job(
            self._run,
            "interval",
            seconds=interval_seconds,
            args=[name],
            id=name,
            name=name,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled sweep %s every %ss", name, interval_seconds)

    def _run(self, name: str) -> Any:
        try:
            return self._sweeps[name]()
        except Exception:
            logger.exception("Sweep %s failed", name)
            return None

    def run_now(self, name: str) -> Any:
        """Run a registered sweep immediately in the calling thread.

        Raises:
            KeyError: If no sweep has that name
        """
        if name not in self._sweeps:
            raise KeyError(name)
        return self._run(name)

    @property
    def sweep_names(self) -> list[str]:
        return list(self._sweeps)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Sweep scheduler started with %d sweeps", len(self._sweeps))

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Sweep scheduler stopped")
