"""Domain models - pure Python dataclasses representing business entities"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple


class TransactionType(str, enum.Enum):
    CREDIT = "CREDIT"  # Money received by merchant
    DEBIT = "DEBIT"  # Money paid by merchant


class TransactionStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PENDING = "PENDING"


class RiskCategory(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Transaction:
    """UPI transaction fetched from the collection platform"""

    transaction_id: str
    merchant_id: str
    timestamp: datetime
    amount: Decimal
    counterparty: Optional[str]  # payer VPA
    transaction_type: TransactionType
    status: TransactionStatus
    category: Optional[str] = None


@dataclass(frozen=True)
class MonthlyVolume:
    """Successful credit volume for one calendar month"""

    month: str  # YYYY-MM
    volume: Decimal
    transaction_count: int
    unique_counterparties: int


@dataclass(frozen=True)
class FinancialMetrics:
    """Metrics derived from a merchant's transaction window"""

    merchant_id: Optional[str] = None
    window_start: Optional[date] = None
    window_end: Optional[date] = None

    # Volume
    monthly_volumes: Tuple[MonthlyVolume, ...] = ()
    last_3_months_volume: Decimal = Decimal("0")
    last_6_months_volume: Decimal = Decimal("0")
    last_12_months_volume: Decimal = Decimal("0")
    previous_period_volume: Decimal = Decimal("0")
    average_monthly_volume: Decimal = Decimal("0")
    average_transaction_value: Decimal = Decimal("0")

    # Counts
    total_transaction_count: int = 0
    successful_transaction_count: int = 0
    failed_transaction_count: int = 0

    # Counterparties
    unique_counterparty_count: int = 0
    top_10_counterparty_volume: Decimal = Decimal("0")
    customer_concentration: Decimal = Decimal("0")

    # Performance
    consistency_score: Decimal = Decimal("0")
    growth_rate: Decimal = Decimal("0")
    bounce_rate: Decimal = Decimal("0")
    coefficient_of_variation: Decimal = Decimal("0")

    # Seasonality
    is_seasonal_business: bool = False
    peak_month: Optional[str] = None
    trough_month: Optional[str] = None

    # Fraud indicators
    has_sudden_volume_spike: bool = False
    has_low_counterparty_diversity: bool = False
    has_single_payer_dominance: bool = False

    skipped_record_count: int = 0

    @property
    def business_tenure_months(self) -> int:
        """Months from the first month with credits to the end of the series"""
        for index, month in enumerate(self.monthly_volumes):
            if month.transaction_count > 0:
                return len(self.monthly_volumes) - index
        return 0

    @property
    def fraud_flag_count(self) -> int:
        return sum(
            [
                self.has_sudden_volume_spike,
                self.has_low_counterparty_diversity,
                self.has_single_payer_dominance,
            ]
        )


@dataclass(frozen=True)
class ComponentScore:
    """Score of a single rule component"""

    name: str
    metric_value: Decimal
    score: Decimal
    weight: Decimal
    weighted_score: Decimal
    label: str
    matched: bool = True
    description: Optional[str] = None


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one eligibility or fraud rule"""

    rule_id: str
    name: str
    passed: bool
    actual_value: Decimal
    threshold: Decimal
    operator: str
    failure_message: Optional[str] = None
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class LoanTerms:
    """Loan parameters for a risk category"""

    amount: Decimal
    tenure_days: int
    interest_rate: Decimal
    amount_multiplier: Decimal


@dataclass(frozen=True)
class CreditAssessment:
    """Output of a credit assessment run, never mutated after creation"""

    merchant_id: str
    credit_score: int
    risk_category: RiskCategory
    is_eligible: bool
    assessed_at: datetime
    rules_version: str
    eligible_loan_amount: Optional[Decimal] = None
    max_tenure_days: Optional[int] = None
    interest_rate: Optional[Decimal] = None
    assessment_id: uuid.UUID = field(default_factory=uuid.uuid4)
    component_scores: Tuple[ComponentScore, ...] = ()
    failed_rules: Tuple[RuleOutcome, ...] = ()
    fraud_indicators: Tuple[RuleOutcome, ...] = ()
    warnings: Tuple[str, ...] = ()
    strengths: Tuple[str, ...] = ()
    metrics: Optional[FinancialMetrics] = None

    @property
    def ineligibility_reasons(self) -> Tuple[str, ...]:
        return tuple(r.failure_message or r.name for r in self.failed_rules)
