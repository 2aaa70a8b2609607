"""Pydantic models for the declarative scoring rules document"""

import datetime as dt
from decimal import Decimal
from typing import Dict, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class RulesModel(BaseModel):
    """Base for rule document sections: immutable, tolerant of unknown keys"""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def _float_as_text(cls, value):
        # YAML floats go through their repr so 0.30 becomes Decimal("0.3"), not its binary expansion
        if isinstance(value, float):
            return repr(value)
        return value


class Maintainer(RulesModel):
    name: str
    email: Optional[str] = None


class Metadata(RulesModel):
    name: str = "OpenCredit Scoring"
    description: str = ""
    target_users: Tuple[str, ...] = ()
    data_sources: Tuple[str, ...] = ()
    excluded_factors: Tuple[str, ...] = ()


class ScoringTier(RulesModel):
    """Scored bucket: min inclusive, max exclusive, either bound optional"""

    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    score: Decimal
    label: str = ""
    description: Optional[str] = None

    def contains(self, value: Decimal) -> bool:
        return (self.min is None or self.min <= value) and (self.max is None or value < self.max)


class SeasonalAdjustment(RulesModel):
    enabled: bool = False
    bonus_if_seasonal: Decimal = Decimal("0")
    description: Optional[str] = None


class ScoringComponent(RulesModel):
    weight: Decimal
    metric: str
    unit: Optional[str] = None
    description: Optional[str] = None
    tiers: Tuple[ScoringTier, ...] = ()
    seasonal_adjustment: Optional[SeasonalAdjustment] = None


class Scoring(RulesModel):
    components: Dict[str, ScoringComponent] = Field(default_factory=dict)


class RuleCondition(RulesModel):
    field: str = Field(validation_alias=AliasChoices("field", "metric"))
    operator: str
    value: Decimal
    unit: Optional[str] = None

    def describe(self) -> str:
        unit = f" {self.unit}" if self.unit else ""
        return f"{self.field} {self.operator} {self.value}{unit}"


class EligibilityRule(RulesModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    condition: RuleCondition
    failure_message: Optional[str] = None
    recommendation: Optional[str] = None


class Eligibility(RulesModel):
    description: str = ""
    rules: Tuple[EligibilityRule, ...] = ()


class FraudRule(RulesModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    condition: RuleCondition
    severity: str = "MEDIUM"
    action: str = "FLAG"
    explanation: Optional[str] = None


class FraudDetection(RulesModel):
    description: str = ""
    rules: Tuple[FraudRule, ...] = ()


class ScoreRange(RulesModel):
    min: int
    max: int


class RiskCategoryBand(RulesModel):
    score_range: ScoreRange
    label: str = ""
    description: Optional[str] = None
    color: Optional[str] = None


class RiskMultiplier(RulesModel):
    multiplier: Decimal
    description: Optional[str] = None


class Limits(RulesModel):
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None
    currency: str = "INR"


class LoanAmount(RulesModel):
    description: str = ""
    by_risk_category: Dict[str, RiskMultiplier] = Field(default_factory=dict)
    limits: Optional[Limits] = None


class TenureConfig(RulesModel):
    max_days: int
    default_days: Optional[int] = None
    description: Optional[str] = None


class ConsistencyAdjustment(RulesModel):
    """
    Linear tenure adjustment driven by the consistency score.

    factor = clamp(intercept + slope * consistency_score, min_factor, max_factor)

    Applied only when enabled and, if `below` is set, only when the
    consistency score is under that threshold. A flat reduction is a slope
    of 0 with the reduction as intercept (`reduction_factor` is accepted as
    an alias for intercept).
    """

    enabled: bool = False
    below: Optional[Decimal] = Field(default=None, validation_alias=AliasChoices("below", "threshold"))
    slope: Decimal = Decimal("0")
    intercept: Decimal = Field(
        default=Decimal("1"), validation_alias=AliasChoices("intercept", "reduction_factor")
    )
    min_factor: Decimal = Decimal("0")
    max_factor: Optional[Decimal] = None
    description: Optional[str] = None


class LoanTenure(RulesModel):
    description: str = ""
    by_risk_category: Dict[str, TenureConfig] = Field(default_factory=dict)
    consistency_adjustment: Optional[ConsistencyAdjustment] = None


class RateConfig(RulesModel):
    annual_rate: Decimal
    description: Optional[str] = None


class InterestRate(RulesModel):
    description: str = ""
    by_risk_category: Dict[str, RateConfig] = Field(default_factory=dict)
    regulatory_note: Optional[str] = None


class LoanParameters(RulesModel):
    description: str = ""
    amount: Optional[LoanAmount] = None
    tenure: Optional[LoanTenure] = None
    interest_rate: Optional[InterestRate] = None


class ChangeProcessStep(RulesModel):
    step: int
    action: str
    description: Optional[str] = None


class Governance(RulesModel):
    description: str = ""
    change_process: Tuple[ChangeProcessStep, ...] = ()
    principles: Tuple[str, ...] = ()


class ChangelogEntry(RulesModel):
    version: str
    date: Optional[Union[dt.date, str]] = None
    changes: Tuple[str, ...] = ()
    contributors: Tuple[str, ...] = ()


class ScoringRules(RulesModel):
    """Versioned rule set; one instance is one immutable snapshot"""

    version: str
    last_updated: Optional[Union[dt.date, str]] = None
    maintainers: Tuple[Maintainer, ...] = ()
    metadata: Metadata = Field(default_factory=Metadata)
    scoring: Scoring = Field(default_factory=Scoring)
    eligibility: Optional[Eligibility] = None
    fraud_detection: Optional[FraudDetection] = None
    risk_categories: Dict[str, RiskCategoryBand] = Field(default_factory=dict)
    loan_parameters: Optional[LoanParameters] = None
    governance: Optional[Governance] = None
    changelog: Tuple[ChangelogEntry, ...] = ()
