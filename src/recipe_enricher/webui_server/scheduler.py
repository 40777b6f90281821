from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_ID = "weekly-enrichment"


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class SchedulerService:
    """Runs the weekly enrichment job on a cron trigger (UTC)."""

    def __init__(
        self,
        job: Callable[[], Any],
        *,
        enabled: bool,
        day_of_week: str = "mon",
        hour: int = 9,
        minute: int = 0,
    ) -> None:
        self.job = job
        self.enabled = enabled
        self.trigger = CronTrigger(day_of_week=day_of_week, hour=hour, minute=minute, timezone="UTC")
        self.scheduler = BackgroundScheduler(timezone="UTC")

    def _run_job(self) -> None:
        try:
            result = self.job()
            logger.info("Scheduled enrichment finished: %s", result)
        except Exception:
            logger.exception("Scheduled enrichment failed")

    def start(self) -> None:
        if not self.enabled:
            logger.info("Enrichment schedule disabled")
            return
        if not self.scheduler.running:
            self.scheduler.start()
        self.scheduler.add_job(
            self._run_job,
            trigger=self.trigger,
            id=JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def next_run_at(self) -> str | None:
        job = self.scheduler.get_job(JOB_ID) if self.scheduler.running else None
        if job is None:
            return None
        return _iso(job.next_run_time)
