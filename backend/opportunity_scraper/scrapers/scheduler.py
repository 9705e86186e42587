"""APScheduler-based scraping scheduler.

Owns three jobs on an AsyncIOScheduler: the recurring scrape, the weekly
retention cleanup and an optional one-off run shortly after startup.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from opportunity_scraper.config import settings
from opportunity_scraper.core.exceptions import RunInProgressError
from opportunity_scraper.scrapers.base import RunSummary
from opportunity_scraper.scrapers.orchestrator import ScrapeOrchestrator

logger = structlog.get_logger(__name__)

SCRAPE_JOB_ID = "scrape_all_feeds"
CLEANUP_JOB_ID = "cleanup_old_opportunities"
STARTUP_JOB_ID = "startup_scrape"


class ScraperScheduler:
    """Manages the periodic scrape and cleanup jobs.

    This scheduler:
    - Starts and stops all jobs together
    - Skips a fire when a run or cleanup is still in progress
    - Logs job failures without unregistering the job
    """

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        cron_schedule: Optional[str] = None,
        run_on_startup: Optional[bool] = None,
        startup_delay_seconds: Optional[int] = None,
        retention_days: Optional[int] = None,
    ):
        """Initialize scraper scheduler.

        Args:
            orchestrator: Orchestrator that performs runs and cleanup
            cron_schedule: Crontab expression for the scrape job (UTC)
            run_on_startup: Schedule a one-off run shortly after start()
            startup_delay_seconds: Delay of the startup run
            retention_days: Retention window passed to the weekly cleanup
        """
        self.orchestrator = orchestrator
        self.cron_schedule = cron_schedule or settings.CRON_SCHEDULE
        self.run_on_startup = settings.RUN_ON_STARTUP if run_on_startup is None else run_on_startup
        self.startup_delay_seconds = (
            settings.STARTUP_DELAY_SECONDS if startup_delay_seconds is None else startup_delay_seconds
        )
        self.retention_days = retention_days or settings.RETENTION_DAYS
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.last_summary: Optional[RunSummary] = None
        self.logger = logger.bind(service="scraper_scheduler")
        self._job_ids = {}  # Map job name -> job_id

    def start(self) -> None:
        """Start the scheduler and register its jobs.

        Must be called from inside a running event loop.
        """
        if self.scheduler.running:
            self.logger.warning("scheduler_already_running")
            return

        self.scheduler.start()
        self._add_scrape_job()
        self._add_cleanup_job()
        if self.run_on_startup:
            self._add_startup_job()

        self.logger.info(
            "scheduler_started",
            cron_schedule=self.cron_schedule,
            run_on_startup=self.run_on_startup,
            jobs=list(self._job_ids),
        )

    def stop(self) -> None:
        """Remove all jobs and shut the scheduler down.

        Does not wait for, or interrupt, a run already in progress.
        """
        for name, job_id in list(self._job_ids.items()):
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
                self.logger.debug("job_removed", job=name)
        self._job_ids.clear()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def _add_scrape_job(self) -> Job:
        job = self.scheduler.add_job(
            func=self._run_scrape_wrapper,
            trigger=CronTrigger.from_crontab(self.cron_schedule, timezone="UTC"),
            args=["scheduled"],
            id=SCRAPE_JOB_ID,
            name="Scrape all feeds",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._job_ids["scrape"] = job.id
        return job

    def _add_cleanup_job(self) -> Job:
        # Sundays at 02:00 UTC
        job = self.scheduler.add_job(
            func=self._run_cleanup_wrapper,
            trigger=CronTrigger(day_of_week="sun", hour=2, minute=0, timezone="UTC"),
            id=CLEANUP_JOB_ID,
            name="Clean up old opportunities",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._job_ids["cleanup"] = job.id
        return job

    def _add_startup_job(self) -> Job:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=self.startup_delay_seconds)
        job = self.scheduler.add_job(
            func=self._run_scrape_wrapper,
            trigger=DateTrigger(run_date=run_date, timezone="UTC"),
            args=["startup"],
            id=STARTUP_JOB_ID,
            name="Startup scrape",
            replace_existing=True,
        )
        self._job_ids["startup"] = job.id
        self.logger.info("startup_run_scheduled", run_at=run_date.isoformat())
        return job

    async def _run_scrape_wrapper(self, trigger: str) -> None:
        """Run a scrape for APScheduler, never letting an exception escape.

        Args:
            trigger: "scheduled" or "startup"
        """
        self.logger.info("scrape_job_triggered", trigger=trigger)
        try:
            self.last_summary = await self.orchestrator.execute_run(trigger)
        except RunInProgressError:
            self.logger.warning("scrape_job_skipped", trigger=trigger, reason="run_in_progress")
        except Exception as e:
            self.logger.error(
                "scrape_job_failed",
                trigger=trigger,
                error=str(e),
                exc_info=True,
            )
        else:
            self.logger.info(
                "scrape_job_completed",
                trigger=trigger,
                duration_seconds=round(self.last_summary.duration, 2),
                saved=self.last_summary.total_saved,
                duplicates=self.last_summary.total_duplicates,
                errors=self.last_summary.total_errors,
            )

    async def _run_cleanup_wrapper(self) -> None:
        """Run the weekly retention cleanup for APScheduler."""
        self.logger.info("cleanup_job_triggered", retention_days=self.retention_days)
        try:
            deleted = await self.orchestrator.cleanup_old_opportunities(self.retention_days)
        except RunInProgressError:
            self.logger.warning("cleanup_job_skipped", reason="run_in_progress")
        except Exception as e:
            self.logger.error("cleanup_job_failed", error=str(e), exc_info=True)
        else:
            self.logger.info("cleanup_job_completed", deleted=deleted)

    def get_jobs_status(self) -> dict:
        """Get status of all scheduled jobs.

        Returns:
            Dict with job information keyed by job name
        """
        jobs = {}
        for name, job_id in self._job_ids.items():
            job = self.scheduler.get_job(job_id)
            if job:
                jobs[name] = {
                    "job_id": job_id,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                    "trigger": str(job.trigger),
                }
        return jobs

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running
