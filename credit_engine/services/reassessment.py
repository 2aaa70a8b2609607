"""Batch re-assessment of merchants whose latest assessment has gone stale"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from credit_engine.config import settings
from credit_engine.infrastructure.database.repositories import AssessmentRepository
from credit_engine.infrastructure.database.session import SessionLocal, session_scope
from credit_engine.infrastructure.observability.metrics import sweep_merchants_counter
from credit_engine.services.assessment import CreditAssessmentService
from credit_engine.utils.date_utils import days_ago

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_merchant_ids: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class ReassessmentSweep:
    """
    Re-assesses every stale merchant once per run.

    Merchants are processed by at most `max_concurrency` workers, each with
    its own database session, pausing `delay_seconds` after every merchant.
    A failing merchant is logged and counted; it never stops the sweep.
    """

    def __init__(
        self,
        service_factory: Callable[[Session], CreditAssessmentService],
        session_factory: sessionmaker = SessionLocal,
        staleness_days: int | None = None,
        delay_seconds: float | None = None,
        max_concurrency: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service_factory = service_factory
        self.session_factory = session_factory
        self.staleness_days = staleness_days or settings.reassessment_staleness_days
        self.delay_seconds = settings.sweep_delay_seconds if delay_seconds is None else delay_seconds
        self.max_concurrency = max(1, max_concurrency or settings.sweep_max_concurrency)
        self.sleep = sleep

    def find_stale_merchants(self, now: Optional[datetime] = None) -> List[str]:
        with session_scope(self.session_factory) as db:
            return AssessmentRepository(db).find_stale(days_ago(self.staleness_days, now))

    async def run(self, now: Optional[datetime] = None) -> SweepReport:
        start_time = time.time()
        merchant_ids = self.find_stale_merchants(now)
        report = SweepReport(total=len(merchant_ids))
        logger.info("Starting re-assessment sweep", extra={"merchant_count": report.total})

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(merchant_id: str) -> None:
            async with semaphore:
                try:
                    with session_scope(self.session_factory) as db:
                        await self.service_factory(db).assess(merchant_id)
                    report.succeeded += 1
                    sweep_merchants_counter.labels(result="succeeded").inc()
                except Exception:
                    report.failed += 1
                    report.failed_merchant_ids.append(merchant_id)
                    sweep_merchants_counter.labels(result="failed").inc()
                    logger.exception("Failed to re-assess merchant", extra={"merchant_id": merchant_id})
                await self.sleep(self.delay_seconds)

        await asyncio.gather(*(process(merchant_id) for merchant_id in merchant_ids))

        report.duration_seconds = time.time() - start_time
        logger.info(
            "Re-assessment sweep completed",
            extra={
                "merchant_count": report.total,
                "succeeded": report.succeeded,
                "failed": report.failed,
                "duration_ms": report.duration_seconds * 1000,
            },
        )
        return report


def cleanup_old_assessments(
    session_factory: sessionmaker = SessionLocal,
    retention_days: int | None = None,
    now: Optional[datetime] = None,
) -> int:
    """Delete assessments past the retention period, returning the number removed"""
    cutoff = days_ago(retention_days or settings.assessment_retention_days, now)
    with session_scope(session_factory) as db:
        deleted = AssessmentRepository(db).delete_before(cutoff)
    logger.info("Cleaned up old assessments", extra={"deleted_count": deleted, "cutoff": cutoff.isoformat()})
    return deleted
