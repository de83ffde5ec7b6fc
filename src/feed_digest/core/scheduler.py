"""
Periodic trigger for digest runs.

Uses APScheduler to call the run orchestrator on a fixed interval. The run
result is only logged; a scheduled run never raises into the scheduler.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feed_digest.config import get_config
from feed_digest.core.orchestrator import RunOrchestrator, RunResult
from feed_digest.logger import get_logger

logger = get_logger(__name__)

RUN_JOB_ID = "digest_run"
PURGE_JOB_ID = "store_purge"


@dataclass
class JobStatus:
    """Status of the scheduled run job."""

    job_id: str
    name: str
    next_run_time: Optional[datetime]
    is_active: bool
    trigger: str
    last_result: Optional[RunResult] = None
    last_error: Optional[str] = None


@dataclass
class SchedulerStats:
    """Statistics for scheduled runs."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    skipped_executions: int = 0
    last_execution_time: Optional[datetime] = None
    uptime_seconds: float = 0.0


class DigestScheduler:
    """Runs the orchestrator every few minutes in a background thread."""

    def __init__(
        self,
        orchestrator: RunOrchestrator,
        interval_minutes: Optional[int] = None,
    ):
        """Initialize scheduler.

        Args:
            orchestrator: Orchestrator whose run() is triggered
            interval_minutes: Minutes between runs (default from config)
        """
        config = get_config()

        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes or config.scheduler.interval_minutes
        self.misfire_grace_time = config.scheduler.misfire_grace_time
        self.purge_interval_minutes = config.scheduler.purge_interval_minutes

        # One worker: runs never overlap within a process
        self.scheduler = BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            timezone=config.scheduler.timezone,
        )

        self.stats = SchedulerStats()
        self.start_time: Optional[datetime] = None
        self._last_result: Optional[RunResult] = None
        self._last_error: Optional[str] = None

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_skipped, EVENT_JOB_MAX_INSTANCES)

    def start(self) -> None:
        """Add the run and purge jobs and start the scheduler."""
        if self.scheduler.running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=RUN_JOB_ID,
            name="Digest run",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.misfire_grace_time,
            replace_existing=True,
        )
        self.scheduler.add_job(
            func=self.orchestrator.purge_expired,
            trigger=IntervalTrigger(minutes=self.purge_interval_minutes),
            id=PURGE_JOB_ID,
            name="Store purge",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.misfire_grace_time,
            replace_existing=True,
        )
        self.scheduler.start()
        self.start_time = datetime.now()
        logger.info(f"Scheduler started (every {self.interval_minutes} minutes)")

    def stop(self, wait: bool = True) -> None:
        """Stop the scheduler.

        Args:
            wait: Whether to wait for a running job to complete
        """
        if not self.scheduler.running:
            logger.warning("Scheduler is not running")
            return

        self.scheduler.shutdown(wait=wait)
        if self.start_time:
            self.stats.uptime_seconds = (datetime.now() - self.start_time).total_seconds()
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self.scheduler.running

    def run_once(self) -> Optional[RunResult]:
        """Execute one run, logging instead of raising.

        Returns:
            RunResult, or None if the run raised
        """
        self.stats.total_executions += 1
        self.stats.last_execution_time = datetime.now()

        try:
            result = self.orchestrator.run()
        except Exception as e:
            self.stats.failed_executions += 1
            self._last_error = f"{type(e).__name__}: {e}"
            logger.exception(f"Scheduled run failed: {e}")
            return None

        self.stats.successful_executions += 1
        self._last_result = result
        self._last_error = None
        logger.info(f"Scheduled run: {result.message}")
        return result

    def get_job_status(self) -> Optional[JobStatus]:
        """Status of the run job, or None if not scheduled."""
        job = self.scheduler.get_job(RUN_JOB_ID)
        if job is None:
            return None
        return JobStatus(
            job_id=job.id,
            name=job.name,
            next_run_time=job.next_run_time,
            is_active=job.next_run_time is not None,
            trigger=str(job.trigger),
            last_result=self._last_result,
            last_error=self._last_error,
        )

    def get_stats(self) -> SchedulerStats:
        """Get scheduler statistics."""
        if self.start_time and self.scheduler.running:
            self.stats.uptime_seconds = (datetime.now() - self.start_time).total_seconds()
        return self.stats

    def _on_job_executed(self, event: JobEvent) -> None:
        logger.debug(f"Job {event.job_id} executed")

    def _on_job_error(self, event: JobEvent) -> None:
        exception = getattr(event, "exception", None)
        if exception:
            logger.error(f"Job {event.job_id} failed: {type(exception).__name__}: {exception}")

    def _on_job_skipped(self, event: JobEvent) -> None:
        self.stats.skipped_executions += 1
        logger.warning(f"Job {event.job_id} skipped: previous run still in progress")


def create_scheduler(
    orchestrator: RunOrchestrator,
    interval_minutes: Optional[int] = None,
) -> DigestScheduler:
    """Create a configured DigestScheduler instance.

    Args:
        orchestrator: Orchestrator to trigger
        interval_minutes: Minutes between runs

    Returns:
        Configured DigestScheduler instance
    """
    return DigestScheduler(orchestrator, interval_minutes=interval_minutes)
