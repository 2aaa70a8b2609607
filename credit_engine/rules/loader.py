"""Loading, validating and hot-reloading the scoring rules document"""

import logging
import threading
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import ValidationError

from credit_engine.domain.exceptions import RulesLoadError
from credit_engine.infrastructure.observability.metrics import (
    rules_config_warning_counter,
    rules_info_gauge,
    rules_reload_counter,
)
from credit_engine.rules.engine import OPERATORS, RuleEngine, is_known_metric, normalize_operator
from credit_engine.rules.models import (
    RiskCategoryBand,
    ScoreRange,
    Scoring,
    ScoringComponent,
    ScoringRules,
    ScoringTier,
)

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "scoring-rules.yaml"
DEFAULT_RULES_VERSION = "1.0.0-default"


def parse_rules(text: str, source: str = "<string>") -> ScoringRules:
    """
    Parse a YAML rules document.

    Raises:
        RulesLoadError: If the text is not valid YAML or does not describe a rule set
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RulesLoadError(f"Invalid YAML in {source}: {e}") from e

    if not isinstance(data, dict):
        raise RulesLoadError(f"Rules document {source} must be a mapping")

    try:
        return ScoringRules.model_validate(data)
    except ValidationError as e:
        raise RulesLoadError(f"Invalid rules document {source}: {e}") from e


def load_rules(path: Union[str, Path]) -> ScoringRules:
    """Read and parse a rules file"""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RulesLoadError(f"Cannot read rules file {path}: {e}") from e
    return parse_rules(text, source=str(path))


def dump_rules(rules: ScoringRules) -> str:
    """Serialize a rule set back to YAML"""
    data = rules.model_dump(mode="json", exclude_none=True)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def default_rules() -> ScoringRules:
    """Minimal volume-only rule set used when no rules file can be loaded"""
    tiers = (
        ScoringTier(min=Decimal("500000"), score=Decimal("100"), label="Excellent"),
        ScoringTier(min=Decimal("200000"), max=Decimal("500000"), score=Decimal("80"), label="Good"),
        ScoringTier(min=Decimal("100000"), max=Decimal("200000"), score=Decimal("60"), label="Fair"),
        ScoringTier(min=Decimal("50000"), max=Decimal("100000"), score=Decimal("40"), label="Poor"),
        ScoringTier(min=Decimal("0"), max=Decimal("50000"), score=Decimal("20"), label="Very Poor"),
    )
    return ScoringRules(
        version=DEFAULT_RULES_VERSION,
        scoring=Scoring(
            components={
                "volume": ScoringComponent(
                    weight=Decimal("1.0"),
                    metric="average_monthly_volume",
                    unit="INR",
                    tiers=tiers,
                )
            }
        ),
        risk_categories={
            "low_risk": RiskCategoryBand(score_range=ScoreRange(min=80, max=100), label="Low Risk"),
            "medium_risk": RiskCategoryBand(score_range=ScoreRange(min=60, max=79), label="Medium Risk"),
            "high_risk": RiskCategoryBand(score_range=ScoreRange(min=0, max=59), label="High Risk"),
        },
    )


def validate_rules(rules: ScoringRules) -> List[str]:
    """
    Check a rule set for configuration problems.

    Returns a list of human-readable warnings; an empty list means the rule
    set is consistent. Nothing here rejects the rule set on its own.
    """
    problems: List[str] = []
    components = rules.scoring.components

    if not components:
        problems.append("No scoring components defined")
    else:
        total_weight = sum((c.weight for c in components.values()), Decimal("0"))
        if total_weight != Decimal("1"):
            problems.append(f"Component weights sum to {total_weight}, expected 1")

    for name, component in components.items():
        problems.extend(_component_problems(name, component))

    problems.extend(_band_problems(rules))

    conditions = []
    if rules.eligibility is not None:
        conditions.extend((r.id, r.condition) for r in rules.eligibility.rules)
    if rules.fraud_detection is not None:
        conditions.extend((r.id, r.condition) for r in rules.fraud_detection.rules)
    for rule_id, condition in conditions:
        if normalize_operator(condition.operator) not in OPERATORS:
            problems.append(f"Rule '{rule_id}' uses unknown operator '{condition.operator}'")
        if not is_known_metric(condition.field):
            problems.append(f"Rule '{rule_id}' uses unknown metric '{condition.field}'")

    return problems


def _component_problems(name: str, component: ScoringComponent) -> List[str]:
    problems = []
    if not is_known_metric(component.metric):
        problems.append(f"Component '{name}' uses unknown metric '{component.metric}'")
    if not component.tiers:
        problems.append(f"Component '{name}' has no tiers")
        return problems

    for tier in component.tiers:
        if not Decimal("0") <= tier.score <= Decimal("100"):
            problems.append(f"Component '{name}' tier '{tier.label}' score {tier.score} is outside 0-100")

    # Coverage of the number line: sort by lower bound, unbounded first
    ordered = sorted(
        component.tiers,
        key=lambda t: (t.min is not None, t.min if t.min is not None else Decimal("0")),
    )
    for lower, upper in zip(ordered, ordered[1:]):
        if lower.max is None:
            problems.append(f"Component '{name}' tier '{lower.label}' overlaps tier '{upper.label}'")
        elif upper.min is None or lower.max > upper.min:
            problems.append(f"Component '{name}' tiers '{lower.label}' and '{upper.label}' overlap")
        elif lower.max < upper.min:
            problems.append(f"Component '{name}' has a gap between {lower.max} and {upper.min}")
    if ordered[-1].max is not None:
        problems.append(f"Component '{name}' has no open-ended top tier above {ordered[-1].max}")
    return problems


def _band_problems(rules: ScoringRules) -> List[str]:
    problems = []
    bands = sorted(rules.risk_categories.items(), key=lambda item: item[1].score_range.min)
    for name, band in bands:
        if band.score_range.min > band.score_range.max:
            problems.append(f"Risk category '{name}' has min above max")
    for (lower_name, lower), (upper_name, upper) in zip(bands, bands[1:]):
        if lower.score_range.max >= upper.score_range.min:
            problems.append(f"Risk categories '{lower_name}' and '{upper_name}' overlap")
        elif lower.score_range.max + 1 < upper.score_range.min:
            problems.append(
                f"Scores {lower.score_range.max + 1}-{upper.score_range.min - 1} fall in no risk category"
            )
    return problems


class RulesStore:
    """
    Holds the active rule snapshot and swaps it atomically on reload.

    Readers call engine() and keep the returned RuleEngine for the whole
    evaluation; a concurrent reload never changes a snapshot in use.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, strict: bool = False):
        self.path = Path(path) if path else DEFAULT_RULES_PATH
        self.strict = strict
        self._lock = threading.Lock()
        self._engine = RuleEngine(self._initial_rules())

    @property
    def current(self) -> ScoringRules:
        return self._engine.rules

    @property
    def version(self) -> str:
        return self._engine.version

    def engine(self) -> RuleEngine:
        return self._engine

    def reload(self) -> ScoringRules:
        """
        Load the rules file again and publish it.

        On failure the previous snapshot stays active and RulesLoadError
        propagates to the caller.
        """
        with self._lock:
            try:
                rules = self._load_checked()
            except RulesLoadError:
                rules_reload_counter.labels(result="failure").inc()
                logger.exception("Rules reload failed", extra={"rules_path": str(self.path)})
                raise
            self._publish(rules)
            rules_reload_counter.labels(result="success").inc()
            logger.info(
                "Rules reloaded",
                extra={"rules_path": str(self.path), "rules_version": rules.version},
            )
            return rules

    def replace(self, rules: ScoringRules) -> None:
        """Publish an already-parsed rule set"""
        with self._lock:
            self._check(rules)
            self._publish(rules)

    def _initial_rules(self) -> ScoringRules:
        try:
            return self._load_checked()
        except RulesLoadError:
            if self.strict:
                raise
            logger.exception(
                "Could not load scoring rules, using built-in defaults",
                extra={"rules_path": str(self.path), "rules_version": DEFAULT_RULES_VERSION},
            )
            return default_rules()

    def _load_checked(self) -> ScoringRules:
        rules = load_rules(self.path)
        self._check(rules)
        return rules

    def _check(self, rules: ScoringRules) -> None:
        problems = validate_rules(rules)
        for problem in problems:
            rules_config_warning_counter.inc()
            logger.warning(problem, extra={"rules_version": rules.version, "step": "rules_validation"})
        if problems and self.strict:
            raise RulesLoadError(f"Rules {rules.version} failed validation: " + "; ".join(problems))

    def _publish(self, rules: ScoringRules) -> None:
        self._engine = RuleEngine(rules)
        rules_info_gauge.set(len(rules.scoring.components))
