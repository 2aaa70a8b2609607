"""Cron schedule for the re-assessment sweep and assessment retention cleanup"""

import logging
from typing import List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from pytz import timezone
from sqlalchemy.orm import sessionmaker

from credit_engine.config import settings
from credit_engine.infrastructure.database.session import SessionLocal
from credit_engine.services.reassessment import ReassessmentSweep, cleanup_old_assessments

logger = logging.getLogger(__name__)

REASSESSMENT_JOB_ID = "monthly_reassessment"
CLEANUP_JOB_ID = "assessment_cleanup"


class ReassessmentScheduler:
    """
    Runs batch jobs on crontab schedules:
    - re-assessment of stale merchants (02:00 on the 1st of every month by default)
    - deletion of assessments past retention (03:00 on 1 January by default)
    """

    def __init__(
        self,
        sweep: ReassessmentSweep,
        session_factory: sessionmaker = SessionLocal,
        enabled: bool | None = None,
        reassessment_cron: str | None = None,
        cleanup_cron: str | None = None,
        timezone_name: str | None = None,
    ):
        self.sweep = sweep
        self.session_factory = session_factory
        self.enabled = settings.reassessment_enabled if enabled is None else enabled
        self.reassessment_cron = reassessment_cron or settings.reassessment_cron
        self.cleanup_cron = cleanup_cron or settings.cleanup_cron
        self.timezone_name = timezone_name or settings.scheduler_timezone
        self.tz = timezone(self.timezone_name)

        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    @property
    def job_ids(self) -> List[str]:
        if self._scheduler is None:
            return []
        return [job.id for job in self._scheduler.get_jobs()]

    async def start(self) -> None:
        """Register both jobs and start; must be called from a running event loop"""
        if not self.enabled:
            logger.info("Re-assessment scheduler is disabled, skipping start")
            return
        if self._scheduler is not None:
            logger.warning("Re-assessment scheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.tz)
        scheduler.add_job(
            self.run_reassessment,
            CronTrigger.from_crontab(self.reassessment_cron, timezone=self.tz),
            id=REASSESSMENT_JOB_ID,
            name="Monthly merchant re-assessment",
            replace_existing=True,
            max_instances=1,
        )
        scheduler.add_job(
            self.run_cleanup,
            CronTrigger.from_crontab(self.cleanup_cron, timezone=self.tz),
            id=CLEANUP_JOB_ID,
            name="Old assessment cleanup",
            replace_existing=True,
            max_instances=1,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "Re-assessment scheduler started",
            extra={
                "reassessment_cron": self.reassessment_cron,
                "cleanup_cron": self.cleanup_cron,
                "timezone": self.timezone_name,
            },
        )

    async def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Re-assessment scheduler stopped")

    async def run_reassessment(self) -> None:
        logger.info("Starting scheduled re-assessment")
        try:
            report = await self.sweep.run()
        except Exception:
            logger.exception("Scheduled re-assessment failed")
            return
        if report.failed:
            logger.warning(
                "Scheduled re-assessment finished with failures",
                extra={"failed_merchant_ids": report.failed_merchant_ids},
            )

    async def run_cleanup(self) -> None:
        try:
            cleanup_old_assessments(self.session_factory)
        except Exception:
            logger.exception("Scheduled assessment cleanup failed")
