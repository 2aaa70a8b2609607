"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from credit_engine.domain.models import ComponentScore, CreditAssessment, RuleOutcome
from credit_engine.domain.orchestrator import SimulationResult


class ComponentScoreSchema(BaseModel):
    """Score of one scoring component"""

    name: str
    metric_value: Decimal
    score: Decimal
    weight: Decimal
    weighted_score: Decimal
    label: str

    @classmethod
    def from_domain(cls, component: ComponentScore) -> "ComponentScoreSchema":
        return cls(
            name=component.name,
            metric_value=component.metric_value,
            score=component.score,
            weight=component.weight,
            weighted_score=component.weighted_score,
            label=component.label,
        )


class RuleOutcomeSchema(BaseModel):
    """An eligibility rule that failed or a fraud rule that triggered"""

    rule_id: str
    name: str
    actual_value: Decimal
    operator: str
    threshold: Decimal
    message: Optional[str] = None
    recommendation: Optional[str] = None

    @classmethod
    def from_domain(cls, outcome: RuleOutcome) -> "RuleOutcomeSchema":
        return cls(
            rule_id=outcome.rule_id,
            name=outcome.name,
            actual_value=outcome.actual_value,
            operator=outcome.operator,
            threshold=outcome.threshold,
            message=outcome.failure_message,
            recommendation=outcome.recommendation,
        )


class AssessmentResponse(BaseModel):
    """Response for assessment endpoints"""

    assessment_id: str
    merchant_id: str
    credit_score: int
    risk_category: str
    is_eligible: bool
    eligible_loan_amount: Optional[Decimal] = None
    max_tenure_days: Optional[int] = None
    interest_rate: Optional[Decimal] = None
    assessed_at: datetime
    rules_version: str
    component_scores: List[ComponentScoreSchema] = []
    failed_rules: List[RuleOutcomeSchema] = []
    fraud_indicators: List[RuleOutcomeSchema] = []
    warnings: List[str] = []
    strengths: List[str] = []

    @classmethod
    def from_domain(cls, assessment: CreditAssessment) -> "AssessmentResponse":
        return cls(
            assessment_id=str(assessment.assessment_id),
            merchant_id=assessment.merchant_id,
            credit_score=assessment.credit_score,
            risk_category=assessment.risk_category.value,
            is_eligible=assessment.is_eligible,
            eligible_loan_amount=assessment.eligible_loan_amount,
            max_tenure_days=assessment.max_tenure_days,
            interest_rate=assessment.interest_rate,
            assessed_at=assessment.assessed_at,
            rules_version=assessment.rules_version,
            component_scores=[ComponentScoreSchema.from_domain(c) for c in assessment.component_scores],
            failed_rules=[RuleOutcomeSchema.from_domain(o) for o in assessment.failed_rules],
            fraud_indicators=[RuleOutcomeSchema.from_domain(o) for o in assessment.fraud_indicators],
            warnings=list(assessment.warnings),
            strengths=list(assessment.strengths),
        )


class HistoryItem(BaseModel):
    """Single assessment in history"""

    assessment_id: str
    credit_score: int
    risk_category: str
    is_eligible: bool
    eligible_loan_amount: Optional[Decimal] = None
    rules_version: str
    assessed_at: datetime


class HistoryResponse(BaseModel):
    """Response for GET /v1/assessments/{merchant_id}/history"""

    merchant_id: str
    assessments: List[HistoryItem]


class SimulationRequest(BaseModel):
    """Request body for POST /v1/rules/simulate; omitted values take typical defaults"""

    monthly_volume: Decimal = Field(Decimal("0"), ge=0, description="Average monthly volume in INR")
    consistency_score: Decimal = Field(Decimal("70"), ge=0, le=100)
    growth_rate: Decimal = Field(Decimal("0"), description="Growth in percent, may be negative")
    bounce_rate: Decimal = Field(Decimal("5"), ge=0, le=100)
    customer_concentration: Decimal = Field(Decimal("30"), ge=0, le=100)


class SimulatedComponentSchema(BaseModel):
    name: str
    input_value: Decimal
    raw_score: Decimal
    weight: Decimal
    weighted_score: Decimal
    label: str


class SimulationResponse(BaseModel):
    """Response for POST /v1/rules/simulate"""

    credit_score: int
    risk_category: str
    components: List[SimulatedComponentSchema]
    rules_version: str

    @classmethod
    def from_domain(cls, result: SimulationResult) -> "SimulationResponse":
        return cls(
            credit_score=result.credit_score,
            risk_category=result.risk_category.value,
            components=[
                SimulatedComponentSchema(
                    name=c.name,
                    input_value=c.input_value,
                    raw_score=c.raw_score,
                    weight=c.weight,
                    weighted_score=c.weighted_score,
                    label=c.label,
                )
                for c in result.components
            ],
            rules_version=result.rules_version,
        )


class RulesVersionResponse(BaseModel):
    version: str
    last_updated: Optional[str] = None
    name: str


class ReloadResponse(BaseModel):
    previous_version: str
    version: str
    warnings: List[str] = []


RulesSection = Dict[str, Any]
