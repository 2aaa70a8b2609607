"""Rule engine - evaluates a ScoringRules snapshot against FinancialMetrics"""

import logging
from dataclasses import dataclass, fields
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence, Tuple

from credit_engine.domain import statistics as stats
from credit_engine.domain.models import (
    ComponentScore,
    FinancialMetrics,
    LoanTerms,
    RiskCategory,
    RuleOutcome,
)
from credit_engine.infrastructure.observability.metrics import rules_config_warning_counter
from credit_engine.rules.models import (
    RuleCondition,
    ScoringComponent,
    ScoringRules,
    ScoringTier,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
UNMATCHED_TIER_SCORE = Decimal("20")
UNMATCHED_TIER_LABEL = "Unmatched"

# Rule files may name metrics by their published aliases
METRIC_ALIASES: Dict[str, str] = {
    "monthly_volume": "average_monthly_volume",
    "growth_rate_percentage": "growth_rate",
    "bounce_rate_percentage": "bounce_rate",
    "top_10_customer_concentration_percentage": "customer_concentration",
    "top_customer_percentage": "customer_concentration",
    "unique_customer_count": "unique_counterparty_count",
    "total_transactions": "total_transaction_count",
}
DERIVED_METRICS = ("business_tenure_months", "fraud_indicators", "volume_spike_percentage")
NUMERIC_METRICS = frozenset(
    f.name for f in fields(FinancialMetrics) if f.type in (Decimal, int, bool, "Decimal", "int", "bool")
)

OPERATORS = {
    ">=": lambda a, b: a >= b,
    ">": lambda a, b: a > b,
    "<=": lambda a, b: a <= b,
    "<": lambda a, b: a < b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}
OPERATOR_WORDS = {
    "GREATER_THAN_OR_EQUAL": ">=",
    "GREATER_THAN": ">",
    "LESS_THAN_OR_EQUAL": "<=",
    "LESS_THAN": "<",
    "EQUAL": "==",
    "NOT_EQUAL": "!=",
}

# Loan defaults when the rule set carries no loan tables
DEFAULT_MULTIPLIERS = {
    RiskCategory.LOW: Decimal("0.30"),
    RiskCategory.MEDIUM: Decimal("0.25"),
    RiskCategory.HIGH: Decimal("0.15"),
}
DEFAULT_TENURE_DAYS = {RiskCategory.LOW: 365, RiskCategory.MEDIUM: 90, RiskCategory.HIGH: 30}
DEFAULT_INTEREST_RATES = {
    RiskCategory.LOW: Decimal("18"),
    RiskCategory.MEDIUM: Decimal("24"),
    RiskCategory.HIGH: Decimal("30"),
}

# Component name -> (warn at or below, warning, strength at or above, strength)
COMPONENT_INSIGHTS: Dict[str, Tuple[Decimal, str, Decimal, str]] = {
    "volume": (Decimal("40"), "Low transaction volume", Decimal("80"), "Strong transaction volume"),
    "consistency": (Decimal("50"), "Inconsistent monthly volumes", Decimal("85"), "Very consistent business"),
    "growth": (Decimal("30"), "Business volume is declining", Decimal("85"), "Strong growth trajectory"),
    "bounce_rate": (Decimal("50"), "High transaction failure rate", Decimal("85"), "Excellent transaction success rate"),
    "concentration": (Decimal("45"), "High customer concentration risk", Decimal("85"), "Well-diversified customer base"),
}


def normalize_operator(operator: str) -> str:
    op = operator.strip()
    return OPERATOR_WORDS.get(op.upper(), op)


def is_known_metric(name: str) -> bool:
    name = METRIC_ALIASES.get(name, name)
    return name in NUMERIC_METRICS or name in DERIVED_METRICS


def match_tier(value: Decimal, tiers: Sequence[ScoringTier]) -> Optional[ScoringTier]:
    """First tier in declaration order whose [min, max) contains value"""
    for tier in tiers:
        if tier.contains(value):
            return tier
    return None


def max_month_over_month_increase(metrics: FinancialMetrics) -> Decimal:
    volumes = [m.volume for m in metrics.monthly_volumes]
    increases = [
        stats.growth_rate(current, previous)
        for previous, current in zip(volumes, volumes[1:])
        if previous > ZERO
    ]
    return max(increases, default=ZERO)


@dataclass(frozen=True)
class ScoringResult:
    credit_score: int
    risk_category: RiskCategory
    components: Tuple[ComponentScore, ...]
    weighted_total: Decimal
    rules_version: str
    warnings: Tuple[str, ...] = ()
    strengths: Tuple[str, ...] = ()
    config_warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    outcomes: Tuple[RuleOutcome, ...]
    rules_version: str

    @property
    def failures(self) -> Tuple[RuleOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.passed)

    @property
    def rules_checked(self) -> int:
        return len(self.outcomes)

    @property
    def rules_passed(self) -> int:
        return sum(1 for o in self.outcomes if o.passed)


class RuleEngine:
    """
    Evaluates one immutable ScoringRules snapshot.

    The engine holds no per-evaluation state, so a single instance can be
    shared by any number of concurrent assessments.
    """

    def __init__(self, rules: ScoringRules):
        self.rules = rules

    @property
    def version(self) -> str:
        return self.rules.version

    # Scoring

    def score(self, metrics: FinancialMetrics) -> ScoringResult:
        """
        Score every component and combine them into a 0-100 credit score.

        Components are summed in declaration order with exact Decimal
        arithmetic; the total is rounded half-up once at the end.
        """
        components: List[ComponentScore] = []
        warnings: List[str] = []
        strengths: List[str] = []
        config_warnings: List[str] = []
        total = ZERO

        for name, component in self.rules.scoring.components.items():
            value, known = self._metric_value(component.metric, metrics)
            if not known:
                config_warnings.append(f"Component '{name}' uses unknown metric '{component.metric}'")

            scored = self.score_component(name, component, value, metrics.is_seasonal_business)
            if not scored.matched:
                config_warnings.append(f"No tier of component '{name}' matches value {value}")
            components.append(scored)
            total += scored.weighted_score

            warning, strength = _component_insight(name, scored)
            if warning:
                warnings.append(warning)
            if strength:
                strengths.append(strength)

        for message in config_warnings:
            self._flag_config_warning(message)

        credit_score = stats.clamp(int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)), 0, 100)

        return ScoringResult(
            credit_score=credit_score,
            risk_category=self.classify_risk(credit_score),
            components=tuple(components),
            weighted_total=total,
            rules_version=self.version,
            warnings=tuple(warnings),
            strengths=tuple(strengths),
            config_warnings=tuple(config_warnings),
        )

    def score_component(
        self,
        name: str,
        component: ScoringComponent,
        value: Decimal,
        is_seasonal: bool = False,
    ) -> ComponentScore:
        tier = match_tier(value, component.tiers)
        if tier is None:
            score, label = UNMATCHED_TIER_SCORE, UNMATCHED_TIER_LABEL
        else:
            score, label = tier.score, tier.label

        adjustment = component.seasonal_adjustment
        if adjustment is not None and adjustment.enabled and is_seasonal:
            score = min(score + adjustment.bonus_if_seasonal, stats.HUNDRED)

        return ComponentScore(
            name=name,
            metric_value=value,
            score=score,
            weight=component.weight,
            weighted_score=score * component.weight,
            label=label,
            matched=tier is not None,
            description=component.description,
        )

    def classify_risk(self, score: int) -> RiskCategory:
        """
        Map a final score onto the configured risk bands.

        Bands are tried from the highest lower bound down; a score outside
        every band falls back to >=80 LOW, >=60 MEDIUM, else HIGH.
        """
        bands = sorted(
            self.rules.risk_categories.items(),
            key=lambda item: item[1].score_range.min,
            reverse=True,
        )
        for name, band in bands:
            if band.score_range.min <= score <= band.score_range.max:
                category = _risk_category_from_key(name)
                if category is not None:
                    return category
                self._flag_config_warning(f"Risk category '{name}' is not LOW, MEDIUM or HIGH")

        if score >= 80:
            return RiskCategory.LOW
        if score >= 60:
            return RiskCategory.MEDIUM
        return RiskCategory.HIGH

    # Eligibility and fraud rules

    def check_fraud_indicators(self, metrics: FinancialMetrics) -> Tuple[RuleOutcome, ...]:
        """Fraud-detection rules whose condition triggered"""
        if self.rules.fraud_detection is None:
            return ()
        triggered = []
        for rule in self.rules.fraud_detection.rules:
            outcome = self._evaluate(rule.id, rule.name, rule.condition, metrics, fraud_indicator_count=0)
            if outcome.passed:
                triggered.append(
                    RuleOutcome(
                        rule_id=outcome.rule_id,
                        name=outcome.name,
                        passed=True,
                        actual_value=outcome.actual_value,
                        threshold=outcome.threshold,
                        operator=outcome.operator,
                        failure_message=rule.explanation,
                        recommendation=rule.action,
                    )
                )
        return tuple(triggered)

    def fraud_indicator_count(
        self,
        metrics: FinancialMetrics,
        triggered: Optional[Sequence[RuleOutcome]] = None,
    ) -> int:
        """
        Triggered fraud rules, or the metric fraud flags when no fraud rules are declared.

        Pass the result of check_fraud_indicators as `triggered` to avoid
        evaluating the fraud rules a second time.
        """
        if self.rules.fraud_detection is None:
            return metrics.fraud_flag_count
        if triggered is None:
            triggered = self.check_fraud_indicators(metrics)
        return len(triggered)

    def check_eligibility(
        self,
        metrics: FinancialMetrics,
        fraud_indicator_count: Optional[int] = None,
    ) -> EligibilityResult:
        """
        Evaluate every eligibility rule, even after a failure.

        The result carries one outcome per declared rule so callers get the
        complete list of unmet requirements. No declared rules means eligible.
        """
        if fraud_indicator_count is None:
            fraud_indicator_count = self.fraud_indicator_count(metrics)

        outcomes = []
        if self.rules.eligibility is not None:
            for rule in self.rules.eligibility.rules:
                outcome = self._evaluate(rule.id, rule.name, rule.condition, metrics, fraud_indicator_count)
                outcomes.append(
                    RuleOutcome(
                        rule_id=outcome.rule_id,
                        name=outcome.name,
                        passed=outcome.passed,
                        actual_value=outcome.actual_value,
                        threshold=outcome.threshold,
                        operator=outcome.operator,
                        failure_message=rule.failure_message,
                        recommendation=rule.recommendation,
                    )
                )

        return EligibilityResult(
            eligible=all(o.passed for o in outcomes),
            outcomes=tuple(outcomes),
            rules_version=self.version,
        )

    # Loan parameters

    def loan_parameters(self, risk_category: RiskCategory, metrics: FinancialMetrics) -> LoanTerms:
        """
        Derive loan amount, tenure and interest rate for a risk category.

        Amount is average monthly volume times the category multiplier,
        bounded by the configured limits. Tenure comes from the category table
        and is then scaled by the consistency adjustment function.
        """
        params = self.rules.loan_parameters
        keys = _risk_keys(risk_category)

        multiplier = DEFAULT_MULTIPLIERS[risk_category]
        amount_config = params.amount if params is not None else None
        if amount_config is not None:
            entry = _lookup(amount_config.by_risk_category, keys)
            if entry is not None:
                multiplier = entry.multiplier

        amount = metrics.average_monthly_volume * multiplier
        if amount_config is not None and amount_config.limits is not None:
            limits = amount_config.limits
            if limits.minimum is not None:
                amount = max(amount, limits.minimum)
            if limits.maximum is not None:
                amount = min(amount, limits.maximum)

        tenure_days = DEFAULT_TENURE_DAYS[risk_category]
        tenure_config = params.tenure if params is not None else None
        if tenure_config is not None:
            entry = _lookup(tenure_config.by_risk_category, keys)
            if entry is not None:
                tenure_days = entry.max_days
            tenure_days = self._adjust_tenure(tenure_days, metrics.consistency_score)

        rate = DEFAULT_INTEREST_RATES[risk_category]
        rate_config = params.interest_rate if params is not None else None
        if rate_config is not None:
            entry = _lookup(rate_config.by_risk_category, keys)
            if entry is not None:
                rate = entry.annual_rate

        return LoanTerms(
            amount=amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP),
            tenure_days=tenure_days,
            interest_rate=rate,
            amount_multiplier=multiplier,
        )

    def _adjust_tenure(self, tenure_days: int, consistency: Decimal) -> int:
        adjustment = self.rules.loan_parameters.tenure.consistency_adjustment
        if adjustment is None or not adjustment.enabled:
            return tenure_days
        if adjustment.below is not None and consistency >= adjustment.below:
            return tenure_days

        factor = adjustment.intercept + adjustment.slope * consistency
        factor = max(factor, adjustment.min_factor)
        if adjustment.max_factor is not None:
            factor = min(factor, adjustment.max_factor)
        return int((Decimal(tenure_days) * factor).to_integral_value(rounding=ROUND_DOWN))

    # Helpers

    def _metric_value(
        self,
        name: str,
        metrics: FinancialMetrics,
        fraud_indicator_count: int = 0,
    ) -> Tuple[Decimal, bool]:
        """Resolve a metric by name; unknown names evaluate to 0"""
        name = METRIC_ALIASES.get(name, name)
        if name == "business_tenure_months":
            return Decimal(metrics.business_tenure_months), True
        if name == "fraud_indicators":
            return Decimal(fraud_indicator_count), True
        if name == "volume_spike_percentage":
            return max_month_over_month_increase(metrics), True
        if name in NUMERIC_METRICS:
            value = getattr(metrics, name)
            return Decimal(int(value) if isinstance(value, bool) else value), True
        return ZERO, False

    def _evaluate(
        self,
        rule_id: str,
        rule_name: str,
        condition: RuleCondition,
        metrics: FinancialMetrics,
        fraud_indicator_count: int,
    ) -> RuleOutcome:
        actual, known = self._metric_value(condition.field, metrics, fraud_indicator_count)
        if not known:
            self._flag_config_warning(f"Rule '{rule_id}' uses unknown metric '{condition.field}'")

        operator = normalize_operator(condition.operator)
        compare = OPERATORS.get(operator)
        if compare is None:
            self._flag_config_warning(f"Rule '{rule_id}' uses unknown operator '{condition.operator}'")
            passed = False
        else:
            passed = compare(actual, condition.value)

        return RuleOutcome(
            rule_id=rule_id,
            name=rule_name or rule_id,
            passed=passed,
            actual_value=actual,
            threshold=condition.value,
            operator=operator,
        )

    def _flag_config_warning(self, message: str) -> None:
        rules_config_warning_counter.inc()
        logger.warning(message, extra={"rules_version": self.version, "step": "rule_evaluation"})


def _risk_category_from_key(key: str) -> Optional[RiskCategory]:
    name = key.upper()
    if name.endswith("_RISK"):
        name = name[: -len("_RISK")]
    try:
        return RiskCategory(name)
    except ValueError:
        return None


def _risk_keys(risk_category: RiskCategory) -> Tuple[str, ...]:
    base = risk_category.value.lower()
    return (f"{base}_risk", base, risk_category.value)


def _lookup(table: Dict, keys: Sequence[str]):
    for key in keys:
        if key in table:
            return table[key]
    return None


def _component_insight(name: str, scored: ComponentScore) -> Tuple[Optional[str], Optional[str]]:
    insight = COMPONENT_INSIGHTS.get(name)
    if insight is None or not scored.matched:
        return None, None
    warn_at, warning, strong_at, strength = insight
    if name == "growth":
        if scored.metric_value < ZERO:
            return warning, None
        return None, strength if scored.score >= strong_at else None
    if scored.score <= warn_at:
        return warning, None
    if scored.score >= strong_at:
        return None, strength
    return None, None
