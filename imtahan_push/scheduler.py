import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import pytz
from croniter import croniter

from .clock import Clock, utc_now

logger = logging.getLogger(__name__)

# Upper bound on a single sleep so wall-clock jumps are noticed
MAX_SLEEP_SECONDS = 60


class CronParseError(Exception):
    """Raised when a cron string cannot be parsed or is invalid."""
    pass


class Task(Protocol):
    name: str

    def run(self, clock: Clock, firestore_db) -> Any:
        ...


@dataclass
class ScheduledJob:
    name: str
    cron: str
    task: Task
    next_run: Optional[datetime] = None


class Scheduler:
    """Runs housekeeping tasks on cron schedules until stopped.

    Jobs run one at a time on the calling thread. ``stop()`` only takes effect
    between runs, so a task is never interrupted halfway through a commit.
    """

    def __init__(self, firestore_db, timezone: str = "UTC", clock: Clock = utc_now):
        self.firestore_db = firestore_db
        self.timezone = pytz.timezone(timezone)
        self.clock = clock
        self.jobs: List[ScheduledJob] = []
        self._stop = threading.Event()

    def add_job(self, task: Task, cron: str) -> ScheduledJob:
        if not croniter.is_valid(cron) or len(cron.split()) != 5:
            raise CronParseError(f"Invalid cron string: {cron}")
        job = ScheduledJob(name=task.name, cron=cron, task=task)
        job.next_run = self._next_after(job, self.clock())
        self.jobs.append(job)
        logger.info(f"Scheduled {job.name} ({cron} {self.timezone.zone}), next run at {job.next_run.isoformat()}")
        return job

    def _next_after(self, job: ScheduledJob, moment: datetime) -> datetime:
        return croniter(job.cron, moment.astimezone(self.timezone)).get_next(datetime)

    def run_job(self, job: ScheduledJob) -> Optional[Any]:
        """Run one job, logging instead of raising on failure."""
        logger.info(f"Running scheduled job {job.name}")
        try:
            result = job.task.run(self.clock, self.firestore_db)
            logger.info(f"Scheduled job {job.name} finished: {result}")
            return result
        except Exception as e:
            logger.error(f"Scheduled job {job.name} failed: {str(e)}", exc_info=True)
            return None

    def run_pending(self) -> Dict[str, Any]:
        """Run every job whose next run time has passed and reschedule it."""
        results = {}
        for job in self.jobs:
            if self._stop.is_set():
                break
            now = self.clock()
            if job.next_run <= now:
                results[job.name] = self.run_job(job)
                job.next_run = self._next_after(job, self.clock())
        return results

    def seconds_until_next_run(self) -> float:
        if not self.jobs:
            return MAX_SLEEP_SECONDS
        next_run = min(job.next_run for job in self.jobs)
        delay = (next_run - self.clock()).total_seconds()
        return min(max(delay, 0), MAX_SLEEP_SECONDS)

    def run_forever(self) -> None:
        logger.info("Scheduler started")
        while not self._stop.is_set():
            self.run_pending()
            self._stop.wait(timeout=self.seconds_until_next_run())
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._stop.set()
