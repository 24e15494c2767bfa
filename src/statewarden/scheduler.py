"""Periodic background jobs, one interval job per reconciliation concern."""

import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from statewarden.models import utcnow

logger = logging.getLogger(__name__)


class PeriodicJobs:
    """Runs registered functions on a thread-backed APScheduler.

    Every job is added with ``max_instances=1`` and ``coalesce=True``: a
    tick never overlaps the previous one of the same job, and ticks missed
    while it ran collapse into one. An exception in a tick is logged and
    the job keeps its schedule.

    Usage::

        jobs = PeriodicJobs()
        jobs.add("state-monitor", 1, monitor_tick)
        jobs.start()
        # ... service runs ...
        jobs.stop()
    """

    def __init__(self, scheduler: BackgroundScheduler | None = None):
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.run_counts: dict[str, int] = {}
        self.last_errors: dict[str, str | None] = {}

    def add(
        self, name: str, interval: float, func: Callable[[], object], run_immediately: bool = False
    ) -> None:
        """Schedule ``func`` every ``interval`` seconds under the job id ``name``.

        Raises:
            ValueError: ``interval`` is not positive.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        extra = {"next_run_time": utcnow()} if run_immediately else {}
        self._scheduler.add_job(
            self.run_job,
            trigger=IntervalTrigger(seconds=interval, timezone="UTC"),
            args=[name, func],
            id=name,
            name=name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **extra,
        )
        self.run_counts[name] = 0
        self.last_errors[name] = None

    def run_job(self, name: str, func: Callable[[], object]) -> None:
        """Execute one tick of ``name``. This is the function APScheduler calls."""
        try:
            func()
            self.last_errors[name] = None
        except Exception as e:
            self.last_errors[name] = str(e)
            logger.exception("Job %s failed: %s", name, e)
        finally:
            self.run_counts[name] = self.run_counts.get(name, 0) + 1

    def start(self) -> None:
        self._scheduler.start()
        logger.info("Started jobs: %s", ", ".join(self.run_counts))

    def stop(self, wait: bool = True) -> None:
        """Shut the scheduler down, by default waiting for running ticks to finish."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Stopped jobs")

    @property
    def running(self) -> bool:
        return self._scheduler.running
