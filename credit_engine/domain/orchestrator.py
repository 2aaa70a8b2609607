"""Scoring orchestration - metrics in, CreditAssessment out"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from credit_engine.domain.exceptions import MissingInputError
from credit_engine.domain.models import CreditAssessment, FinancialMetrics, RiskCategory
from credit_engine.rules.loader import RulesStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationInput:
    """What-if metric values; anything left out takes a typical default"""

    monthly_volume: Decimal = Decimal("0")
    consistency_score: Decimal = Decimal("70")
    growth_rate: Decimal = Decimal("0")
    bounce_rate: Decimal = Decimal("5")
    customer_concentration: Decimal = Decimal("30")


@dataclass(frozen=True)
class SimulatedComponent:
    name: str
    input_value: Decimal
    raw_score: Decimal
    weight: Decimal
    weighted_score: Decimal
    label: str


@dataclass(frozen=True)
class SimulationResult:
    credit_score: int
    risk_category: RiskCategory
    components: Tuple[SimulatedComponent, ...]
    rules_version: str


class ScoringOrchestrator:
    """
    Runs the rule engine over a merchant's metrics.

    One rule snapshot is taken per call, so scoring, eligibility and loan
    terms of an assessment always come from the same rules version.
    """

    def __init__(self, rules_store: RulesStore):
        self.rules_store = rules_store

    def assess(
        self,
        merchant_id: str,
        metrics: Optional[FinancialMetrics],
        assessed_at: Optional[datetime] = None,
    ) -> CreditAssessment:
        """
        Build a complete assessment from pre-computed metrics.

        Raises:
            MissingInputError: If merchant_id is blank or metrics are missing
        """
        if not merchant_id or not merchant_id.strip():
            raise MissingInputError("Merchant ID is required")
        if metrics is None:
            raise MissingInputError(f"Metrics are required to assess merchant {merchant_id}")

        engine = self.rules_store.engine()

        scoring = engine.score(metrics)
        fraud_indicators = engine.check_fraud_indicators(metrics)
        eligibility = engine.check_eligibility(metrics, engine.fraud_indicator_count(metrics, fraud_indicators))

        loan_amount = tenure_days = interest_rate = None
        if eligibility.eligible:
            terms = engine.loan_parameters(scoring.risk_category, metrics)
            loan_amount = terms.amount
            tenure_days = terms.tenure_days
            interest_rate = terms.interest_rate

        logger.info(
            "Merchant scored",
            extra={
                "merchant_id": merchant_id,
                "step": "scoring",
                "credit_score": scoring.credit_score,
                "risk_category": scoring.risk_category.value,
                "eligible": eligibility.eligible,
                "rules_version": engine.version,
            },
        )

        return CreditAssessment(
            merchant_id=merchant_id,
            credit_score=scoring.credit_score,
            risk_category=scoring.risk_category,
            is_eligible=eligibility.eligible,
            assessed_at=assessed_at or datetime.now(timezone.utc),
            rules_version=engine.version,
            eligible_loan_amount=loan_amount,
            max_tenure_days=tenure_days,
            interest_rate=interest_rate,
            component_scores=scoring.components,
            failed_rules=eligibility.failures,
            fraud_indicators=fraud_indicators,
            warnings=scoring.warnings,
            strengths=scoring.strengths,
            metrics=metrics,
        )

    def simulate(self, simulation: SimulationInput) -> SimulationResult:
        """Score hypothetical metric values against the active rules"""
        engine = self.rules_store.engine()
        metrics = FinancialMetrics(
            average_monthly_volume=Decimal(simulation.monthly_volume),
            consistency_score=Decimal(simulation.consistency_score),
            growth_rate=Decimal(simulation.growth_rate),
            bounce_rate=Decimal(simulation.bounce_rate),
            customer_concentration=Decimal(simulation.customer_concentration),
        )
        scoring = engine.score(metrics)

        return SimulationResult(
            credit_score=scoring.credit_score,
            risk_category=scoring.risk_category,
            components=tuple(
                SimulatedComponent(
                    name=c.name,
                    input_value=c.metric_value,
                    raw_score=c.score,
                    weight=c.weight,
                    weighted_score=c.weighted_score,
                    label=c.label,
                )
                for c in scoring.components
            ),
            rules_version=scoring.rules_version,
        )
