"""Unit tests for the cron-driven batch jobs"""

import asyncio
from datetime import datetime, timedelta, timezone

from credit_engine.domain.models import CreditAssessment, RiskCategory
from credit_engine.infrastructure.database.repositories import AssessmentRepository
from credit_engine.services.reassessment import SweepReport
from credit_engine.services.scheduler import CLEANUP_JOB_ID, REASSESSMENT_JOB_ID, ReassessmentScheduler


class RecordingSweep:
    def __init__(self, error=None):
        self.runs = 0
        self.error = error

    async def run(self, now=None):
        self.runs += 1
        if self.error:
            raise self.error
        return SweepReport(total=2, succeeded=1, failed=1, failed_merchant_ids=["M_B"])


def test_start_registers_both_jobs():
    """Test the re-assessment and cleanup jobs are scheduled on their crontabs"""
    scheduler = ReassessmentScheduler(RecordingSweep(), enabled=True, timezone_name="UTC")

    async def scenario():
        await scheduler.start()
        try:
            jobs = {job.id: job for job in scheduler._scheduler.get_jobs()}
            return sorted(jobs), str(jobs[REASSESSMENT_JOB_ID].trigger), scheduler.is_running
        finally:
            await scheduler.stop()

    job_ids, trigger, running = asyncio.run(scenario())

    assert job_ids == sorted([REASSESSMENT_JOB_ID, CLEANUP_JOB_ID])
    assert "day='1'" in trigger and "hour='2'" in trigger
    assert running is True
    assert scheduler.is_running is False


def test_disabled_scheduler_registers_nothing():
    scheduler = ReassessmentScheduler(RecordingSweep(), enabled=False)

    asyncio.run(scheduler.start())

    assert scheduler.is_running is False
    assert scheduler.job_ids == []


def test_reassessment_job_runs_the_sweep():
    sweep = RecordingSweep()
    asyncio.run(ReassessmentScheduler(sweep, enabled=True).run_reassessment())
    assert sweep.runs == 1


def test_reassessment_job_survives_a_failing_sweep():
    """Test a crashing sweep is logged, not raised into the scheduler"""
    sweep = RecordingSweep(error=RuntimeError("database gone"))
    asyncio.run(ReassessmentScheduler(sweep, enabled=True).run_reassessment())
    assert sweep.runs == 1


def test_cleanup_job_deletes_expired_assessments(session_factory):
    with session_factory() as db:
        AssessmentRepository(db).save(
            CreditAssessment(
                merchant_id="M_ANCIENT",
                credit_score=40,
                risk_category=RiskCategory.HIGH,
                is_eligible=False,
                assessed_at=datetime.now(timezone.utc) - timedelta(days=1000),
                rules_version="1.0.0",
            )
        )
        db.commit()

    asyncio.run(ReassessmentScheduler(RecordingSweep(), session_factory=session_factory).run_cleanup())

    with session_factory() as db:
        assert AssessmentRepository(db).find_latest("M_ANCIENT") is None
