"""Periodic benchmark runs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import AppConfig
from .errors import IbencError

LOGGER = logging.getLogger(__name__)

JOB_ID = "scheduled-benchmark"


class SchedulerService:
    def __init__(
        self,
        config: AppConfig,
        run_cycle: Callable[..., object],
        scheduler: Optional[BlockingScheduler] = None,
    ) -> None:
        self.config = config
        self.run_cycle = run_cycle
        self.scheduler = scheduler or BlockingScheduler(timezone="UTC")
        self.started = False

    def interval_minutes(self, override: Optional[int] = None) -> int:
        if override is not None:
            return override
        return self.config.scheduler.interval_minutes

    def add_job(self, interval_minutes: Optional[int] = None, **cycle_kwargs) -> int:
        interval = self.interval_minutes(interval_minutes)
        if interval <= 0:
            raise ValueError("interval_minutes must be greater than 0")
        # run right away, then every interval; never overlap two cycles
        self.scheduler.add_job(
            self._run_cycle,
            trigger=IntervalTrigger(minutes=interval),
            id=JOB_ID,
            kwargs=cycle_kwargs,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        return interval

    def start(self, interval_minutes: Optional[int] = None, **cycle_kwargs) -> None:
        """Block and run a benchmark every interval until interrupted.

        ``cycle_kwargs`` are passed to every ``run_cycle`` call.
        """
        if self.started:
            LOGGER.warning("Scheduler already started, ignoring duplicate start request")
            return

        interval = self.add_job(interval_minutes, **cycle_kwargs)
        LOGGER.info("Scheduler started with interval %s minutes", interval)
        self.started = True
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            LOGGER.info("Scheduler interrupted, shutting down")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        if self.started:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.started = False

    def _run_cycle(self, **cycle_kwargs) -> None:
        LOGGER.info("Starting scheduled benchmark cycle at %s", datetime.now(timezone.utc).isoformat())
        try:
            self.run_cycle(**cycle_kwargs)
        except IbencError as exc:
            # one failed cycle must not stop the next ones
            LOGGER.error("Scheduled benchmark failed: %s", exc)
