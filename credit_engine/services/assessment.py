"""Credit assessment application service - fetch, measure, score, persist"""

import logging
import time
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from credit_engine.config import settings
from credit_engine.domain.exceptions import MissingInputError, TransactionSourceError
from credit_engine.domain.metrics import calculate_metrics
from credit_engine.domain.models import CreditAssessment, Transaction
from credit_engine.domain.orchestrator import ScoringOrchestrator
from credit_engine.infrastructure.clients.retry import FetchOutcome, RetryPolicy, fetch_with_retry
from credit_engine.infrastructure.clients.synthetic import SyntheticTransactionGenerator
from credit_engine.infrastructure.clients.upi import TransactionSource
from credit_engine.infrastructure.database.repositories import AssessmentRepository, to_assessment
from credit_engine.infrastructure.observability.logging import log_assessment
from credit_engine.infrastructure.observability.metrics import record_assessment
from credit_engine.utils.date_utils import assessment_window

logger = logging.getLogger(__name__)


class CreditAssessmentService:
    """Runs and looks up credit assessments for merchants"""

    def __init__(
        self,
        db: Session,
        orchestrator: ScoringOrchestrator,
        source: TransactionSource,
        retry_policy: RetryPolicy | None = None,
        generator: SyntheticTransactionGenerator | None = None,
        use_mock_data: bool | None = None,
        fallback_to_mock: bool | None = None,
        window_months: int | None = None,
    ):
        self.repository = AssessmentRepository(db)
        self.db = db
        self.orchestrator = orchestrator
        self.source = source
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.generator = generator or SyntheticTransactionGenerator()
        self.use_mock_data = settings.use_mock_data if use_mock_data is None else use_mock_data
        self.fallback_to_mock = settings.fallback_to_mock if fallback_to_mock is None else fallback_to_mock
        self.window_months = window_months or settings.assessment_window_months

    async def assess(self, merchant_id: str, request_id: str = "") -> CreditAssessment:
        """
        Assess a merchant over the configured transaction window.

        Flow:
        1. Fetch transactions (synthetic in mock mode, retried otherwise)
        2. Calculate financial metrics
        3. Score, check eligibility and derive loan terms
        4. Persist the assessment as a new record

        Raises:
            MissingInputError: If merchant_id is blank
            TransactionSourceError: If the platform failed and fallback is disabled
        """
        if not merchant_id or not merchant_id.strip():
            raise MissingInputError("Merchant ID is required")

        start_time = time.time()
        start_date, end_date = assessment_window(self.window_months)

        if self.use_mock_data:
            transactions = self.generator.generate(merchant_id, start_date, end_date)
        else:
            result = await fetch_with_retry(
                self.source,
                merchant_id,
                start_date,
                end_date,
                policy=self.retry_policy,
                fallback=self.generator if self.fallback_to_mock else None,
            )
            if result.outcome == FetchOutcome.EXHAUSTED:
                raise TransactionSourceError(
                    f"Could not fetch transactions for merchant {merchant_id}: {result.error}"
                )
            transactions = result.transactions

        return self._score_and_save(merchant_id, transactions, start_date, end_date, start_time, request_id)

    async def assess_scenario(self, scenario: str, merchant_id: str, request_id: str = "") -> CreditAssessment:
        """Assess a merchant on synthetic data generated for a named demo scenario"""
        if not merchant_id or not merchant_id.strip():
            raise MissingInputError("Merchant ID is required")

        start_time = time.time()
        start_date, end_date = assessment_window(self.window_months)
        transactions = self.generator.generate_scenario(scenario, merchant_id, start_date, end_date)
        logger.info(
            "Generated demo scenario transactions",
            extra={"merchant_id": merchant_id, "scenario": scenario, "transaction_count": len(transactions)},
        )
        return self._score_and_save(merchant_id, transactions, start_date, end_date, start_time, request_id)

    def _score_and_save(
        self,
        merchant_id: str,
        transactions: List[Transaction],
        start_date: date,
        end_date: date,
        start_time: float,
        request_id: str,
    ) -> CreditAssessment:
        metrics = calculate_metrics(transactions, merchant_id, start_date, end_date)
        assessment = self.orchestrator.assess(merchant_id, metrics)

        try:
            self.repository.save(assessment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        duration = time.time() - start_time
        record_assessment(assessment.risk_category.value, assessment.is_eligible, assessment.credit_score, duration)
        log_assessment(
            merchant_id=merchant_id,
            credit_score=assessment.credit_score,
            risk_category=assessment.risk_category.value,
            eligible=assessment.is_eligible,
            rules_version=assessment.rules_version,
            duration_ms=duration * 1000,
            request_id=request_id,
        )
        return assessment

    def get_latest(self, merchant_id: str) -> Optional[CreditAssessment]:
        record = self.repository.find_latest(merchant_id)
        return to_assessment(record) if record else None

    def get_by_id(self, assessment_id: uuid.UUID) -> Optional[CreditAssessment]:
        record = self.repository.find_by_id(assessment_id)
        return to_assessment(record) if record else None

    def get_history(self, merchant_id: str, limit: int = 20) -> List[CreditAssessment]:
        return [to_assessment(r) for r in self.repository.find_history(merchant_id, limit=limit)]
