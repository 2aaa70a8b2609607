"""Data access layer for credit assessments"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from credit_engine.domain.models import (
    ComponentScore,
    CreditAssessment,
    RiskCategory,
    RuleOutcome,
)
from credit_engine.infrastructure.database.models import CreditAssessmentRecord


class AssessmentRepository:
    """Repository for credit assessments"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, assessment: CreditAssessment) -> CreditAssessmentRecord:
        """Persist an assessment as a new row"""
        metrics = assessment.metrics
        record = CreditAssessmentRecord(
            assessment_id=assessment.assessment_id,
            merchant_id=assessment.merchant_id,
            assessment_date=assessment.assessed_at,
            rules_version=assessment.rules_version,
            credit_score=assessment.credit_score,
            risk_category=assessment.risk_category.value,
            is_eligible=assessment.is_eligible,
            eligible_loan_amount=assessment.eligible_loan_amount,
            max_tenure_days=assessment.max_tenure_days,
            recommended_interest_rate=assessment.interest_rate,
            ineligibility_reason="; ".join(assessment.ineligibility_reasons) or None,
            component_scores=[_component_to_json(c) for c in assessment.component_scores],
            failed_rules=[_outcome_to_json(o) for o in assessment.failed_rules],
            fraud_indicators=[_outcome_to_json(o) for o in assessment.fraud_indicators],
            warnings=list(assessment.warnings),
            strengths=list(assessment.strengths),
        )
        if metrics is not None:
            record.last_3_months_volume = metrics.last_3_months_volume
            record.last_6_months_volume = metrics.last_6_months_volume
            record.last_12_months_volume = metrics.last_12_months_volume
            record.average_monthly_volume = metrics.average_monthly_volume
            record.average_transaction_value = metrics.average_transaction_value
            record.transaction_count = metrics.total_transaction_count
            record.unique_customer_count = metrics.unique_counterparty_count
            record.consistency_score = metrics.consistency_score
            record.growth_rate = metrics.growth_rate
            record.bounce_rate = metrics.bounce_rate
            record.customer_concentration = metrics.customer_concentration

        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def find_latest(self, merchant_id: str) -> Optional[CreditAssessmentRecord]:
        """Most recent assessment for a merchant"""
        return (
            self.db.query(CreditAssessmentRecord)
            .filter(CreditAssessmentRecord.merchant_id == merchant_id)
            .order_by(CreditAssessmentRecord.assessment_date.desc())
            .first()
        )

    def find_by_id(self, assessment_id: uuid.UUID) -> Optional[CreditAssessmentRecord]:
        return (
            self.db.query(CreditAssessmentRecord)
            .filter(CreditAssessmentRecord.assessment_id == assessment_id)
            .first()
        )

    def find_history(self, merchant_id: str, limit: int = 20) -> List[CreditAssessmentRecord]:
        """Assessments for a merchant, newest first"""
        return (
            self.db.query(CreditAssessmentRecord)
            .filter(CreditAssessmentRecord.merchant_id == merchant_id)
            .order_by(CreditAssessmentRecord.assessment_date.desc())
            .limit(limit)
            .all()
        )

    def find_stale(self, before: datetime) -> List[str]:
        """Merchants whose latest assessment is older than `before`"""
        latest = func.max(CreditAssessmentRecord.assessment_date)
        rows = (
            self.db.query(CreditAssessmentRecord.merchant_id)
            .group_by(CreditAssessmentRecord.merchant_id)
            .having(latest < before)
            .order_by(CreditAssessmentRecord.merchant_id)
            .all()
        )
        return [row.merchant_id for row in rows]

    def delete_before(self, cutoff: datetime) -> int:
        """Delete assessments older than cutoff, returning the number removed"""
        return (
            self.db.query(CreditAssessmentRecord)
            .filter(CreditAssessmentRecord.assessment_date < cutoff)
            .delete(synchronize_session=False)
        )


def to_assessment(record: CreditAssessmentRecord) -> CreditAssessment:
    """Rebuild the domain assessment from a stored row (metrics are not restored)"""
    return CreditAssessment(
        assessment_id=record.assessment_id,
        merchant_id=record.merchant_id,
        credit_score=record.credit_score,
        risk_category=RiskCategory(record.risk_category),
        is_eligible=record.is_eligible,
        assessed_at=record.assessment_date,
        rules_version=record.rules_version,
        eligible_loan_amount=record.eligible_loan_amount,
        max_tenure_days=record.max_tenure_days,
        interest_rate=record.recommended_interest_rate,
        component_scores=tuple(_component_from_json(c) for c in record.component_scores or ()),
        failed_rules=tuple(_outcome_from_json(o) for o in record.failed_rules or ()),
        fraud_indicators=tuple(_outcome_from_json(o) for o in record.fraud_indicators or ()),
        warnings=tuple(record.warnings or ()),
        strengths=tuple(record.strengths or ()),
    )


def _component_to_json(component: ComponentScore) -> Dict[str, Any]:
    return {
        "name": component.name,
        "metric_value": str(component.metric_value),
        "score": str(component.score),
        "weight": str(component.weight),
        "weighted_score": str(component.weighted_score),
        "label": component.label,
        "matched": component.matched,
    }


def _component_from_json(data: Dict[str, Any]) -> ComponentScore:
    return ComponentScore(
        name=data["name"],
        metric_value=Decimal(data["metric_value"]),
        score=Decimal(data["score"]),
        weight=Decimal(data["weight"]),
        weighted_score=Decimal(data["weighted_score"]),
        label=data.get("label", ""),
        matched=data.get("matched", True),
    )


def _outcome_to_json(outcome: RuleOutcome) -> Dict[str, Any]:
    return {
        "rule_id": outcome.rule_id,
        "name": outcome.name,
        "passed": outcome.passed,
        "actual_value": str(outcome.actual_value),
        "threshold": str(outcome.threshold),
        "operator": outcome.operator,
        "failure_message": outcome.failure_message,
        "recommendation": outcome.recommendation,
    }


def _outcome_from_json(data: Dict[str, Any]) -> RuleOutcome:
    return RuleOutcome(
        rule_id=data["rule_id"],
        name=data["name"],
        passed=data["passed"],
        actual_value=Decimal(data["actual_value"]),
        threshold=Decimal(data["threshold"]),
        operator=data["operator"],
        failure_message=data.get("failure_message"),
        recommendation=data.get("recommendation"),
    )
