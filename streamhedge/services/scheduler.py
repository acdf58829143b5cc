"""
Scheduler service for the poll loop and delayed trade exits.

Uses APScheduler with a single worker thread: polls never overlap and an
exit never runs concurrently with a poll batch.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from streamhedge.core.config import Settings, get_settings
from streamhedge.core.logging import get_logger
from streamhedge.core.timeutil import now_utc

logger = get_logger("scheduler")


@dataclass
class ScheduledHandle:
    """Cancellable reference to a one-shot job."""
    job_id: str
    run_at: datetime
    _scheduler: Any = None

    def cancel(self) -> bool:
        """
        Cancel the job if it has not fired yet.

        Returns:
            True if the job was removed
        """
        if self._scheduler is None:
            return False
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            return False
        logger.debug(f"Cancelled job {self.job_id}")
        return True


class SchedulerService:
    """APScheduler wrapper: one interval job for polling, date jobs for exits."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._jobs: dict[str, str] = {}  # name -> job_id

    @property
    def scheduler(self) -> BackgroundScheduler:
        """Lazy-initialize scheduler."""
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(
                executors={"default": ThreadPoolExecutor(max_workers=1)},
                job_defaults={"misfire_grace_time": None},
                timezone=self.settings.timezone,
            )
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def add_interval_job(
        self,
        name: str,
        func: Callable,
        seconds: float,
        args: Optional[tuple] = None,
        kwargs: Optional[dict] = None,
    ) -> str:
        """
        Add a job that runs at fixed intervals.

        A run that is still in progress when the next one is due is not
        overlapped; missed runs are coalesced into one.
        """
        job = self.scheduler.add_job(
            func,
            "interval",
            seconds=seconds,
            args=args or (),
            kwargs=kwargs or {},
            id=name,
            name=name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        self._jobs[name] = job.id
        logger.info(f"Added interval job: {name} every {seconds}s")
        return job.id

    def schedule(self, delay_seconds: float, func: Callable, *args: Any) -> ScheduledHandle:
        """Run ``func(*args)`` once after ``delay_seconds``."""
        run_at = now_utc() + timedelta(seconds=max(delay_seconds, 0.0))
        job_id = f"once_{uuid.uuid4().hex[:12]}"
        self.scheduler.add_job(
            func,
            "date",
            run_date=run_at,
            args=args,
            id=job_id,
            name=getattr(func, "__name__", job_id),
        )
        logger.debug(f"Scheduled {job_id} at {run_at.isoformat()}")
        return ScheduledHandle(job_id=job_id, run_at=run_at, _scheduler=self.scheduler)

    def remove_job(self, name: str) -> bool:
        """Drop a named interval job; False if it was never added."""
        job_id = self._jobs.pop(name, None)
        if job_id is None:
            return False
        ScheduledHandle(job_id=job_id, run_at=now_utc(), _scheduler=self.scheduler).cancel()
        logger.info(f"Removed job {name}")
        return True

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info(f"Scheduler started with {len(self.scheduler.get_jobs())} job(s)")

    def stop(self, wait: bool = True) -> None:
        """Shut down; ``wait`` lets an in-flight poll or exit finish first."""
        if self.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")

    def get_jobs(self) -> list[dict[str, Any]]:
        """Pending jobs for the status view; the job store keeps them in run order."""
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
            }
            for job in self.scheduler.get_jobs()
        ]
