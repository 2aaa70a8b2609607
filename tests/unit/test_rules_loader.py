"""Unit tests for loading, validating and reloading scoring rules"""

import pytest
from decimal import Decimal
from pathlib import Path

from credit_engine.domain.exceptions import RulesLoadError
from credit_engine.domain.models import FinancialMetrics
from credit_engine.rules.engine import RuleEngine
from credit_engine.rules.loader import (
    DEFAULT_RULES_PATH,
    DEFAULT_RULES_VERSION,
    RulesStore,
    default_rules,
    dump_rules,
    load_rules,
    parse_rules,
    validate_rules,
)


def _rules_yaml(version: str = "1.0.0", weight_a: str = "0.5", weight_b: str = "0.5", tiers_b: str = None) -> str:
    tiers_b = tiers_b or """
        - {min: 10, score: 100, label: Low}
        - {min: 0, max: 10, score: 40, label: High}"""
    return f"""
version: "{version}"
scoring:
  components:
    volume:
      weight: {weight_a}
      metric: average_monthly_volume
      tiers:
        - {{min: 100000, score: 100, label: Big}}
        - {{min: 0, max: 100000, score: 50, label: Small}}
    bounce:
      weight: {weight_b}
      metric: bounce_rate
      tiers:{tiers_b}
risk_categories:
  low_risk: {{score_range: {{min: 80, max: 100}}}}
  medium_risk: {{score_range: {{min: 60, max: 79}}}}
  high_risk: {{score_range: {{min: 0, max: 59}}}}
"""


def test_published_rules_load_and_validate_cleanly():
    """Test the bundled rules file parses and has no configuration problems"""
    rules = load_rules(DEFAULT_RULES_PATH)

    assert rules.version == "2.1.0"
    assert list(rules.scoring.components) == ["volume", "consistency", "growth", "bounce_rate", "concentration"]
    assert rules.scoring.components["volume"].weight == Decimal("0.3")
    assert len(rules.eligibility.rules) == 5
    assert len(rules.fraud_detection.rules) == 3
    assert "Caste" in rules.metadata.excluded_factors
    assert validate_rules(rules) == []


def test_default_rules_are_valid():
    rules = default_rules()

    assert rules.version == DEFAULT_RULES_VERSION
    assert validate_rules(rules) == []


def test_unknown_keys_are_ignored():
    rules = parse_rules(_rules_yaml() + "\nexperimental_section: {enabled: true}\n")
    assert rules.version == "1.0.0"


def test_invalid_yaml_raises():
    with pytest.raises(RulesLoadError):
        parse_rules("version: [unclosed")


def test_non_mapping_document_raises():
    with pytest.raises(RulesLoadError):
        parse_rules("- just\n- a list\n")


def test_schema_violation_raises():
    """Test a component without weight is rejected by the model"""
    with pytest.raises(RulesLoadError):
        parse_rules("version: x\nscoring:\n  components:\n    volume: {metric: bounce_rate}\n")


def test_missing_file_raises(tmp_path: Path):
    with pytest.raises(RulesLoadError):
        load_rules(tmp_path / "missing.yaml")


def test_validate_reports_weight_mismatch():
    problems = validate_rules(parse_rules(_rules_yaml(weight_a="0.6", weight_b="0.6")))
    assert any("weights sum to 1.2" in p for p in problems)


def test_validate_reports_tier_gap_and_overlap():
    gap = validate_rules(
        parse_rules(_rules_yaml(tiers_b="\n        - {min: 10, score: 100}\n        - {min: 0, max: 5, score: 40}"))
    )
    overlap = validate_rules(
        parse_rules(_rules_yaml(tiers_b="\n        - {min: 5, score: 100}\n        - {min: 0, max: 10, score: 40}"))
    )

    assert any("gap between 5 and 10" in p for p in gap)
    assert any("overlap" in p for p in overlap)


def test_validate_reports_bounded_top_tier_and_bad_score():
    problems = validate_rules(
        parse_rules(_rules_yaml(tiers_b="\n        - {min: 0, max: 10, score: 140, label: Capped}"))
    )

    assert any("no open-ended top tier" in p for p in problems)
    assert any("outside 0-100" in p for p in problems)


def test_validate_reports_band_gap():
    rules = parse_rules(
        _rules_yaml().replace("medium_risk: {score_range: {min: 60, max: 79}}", "medium_risk: {score_range: {min: 65, max: 79}}")
    )
    assert any("60-64 fall in no risk category" in p for p in validate_rules(rules))


def test_validate_reports_unknown_operator_and_metric():
    rules = parse_rules(
        _rules_yaml()
        + """
eligibility:
  rules:
    - id: R1
      condition: {field: shoe_size, operator: ">=", value: 1}
    - id: R2
      condition: {field: bounce_rate, operator: "=>", value: 1}
"""
    )
    problems = validate_rules(rules)

    assert any("unknown metric 'shoe_size'" in p for p in problems)
    assert any("unknown operator '=>'" in p for p in problems)


def test_dump_and_reload_scores_identically():
    """Test rules serialized back to YAML score every merchant the same"""
    original = load_rules(DEFAULT_RULES_PATH)
    reloaded = parse_rules(dump_rules(original))

    assert reloaded == original
    metrics = FinancialMetrics(
        average_monthly_volume=Decimal("187500"),
        consistency_score=Decimal("64.2"),
        growth_rate=Decimal("-12"),
        bounce_rate=Decimal("4.5"),
        customer_concentration=Decimal("41"),
    )
    assert RuleEngine(reloaded).score(metrics) == RuleEngine(original).score(metrics)


def test_store_falls_back_to_default_rules(tmp_path: Path):
    """Test an unreadable rules file degrades to the embedded rules instead of failing"""
    store = RulesStore(tmp_path / "missing.yaml")
    assert store.version == DEFAULT_RULES_VERSION


def test_strict_store_refuses_broken_rules(tmp_path: Path):
    path = tmp_path / "rules.yaml"
    path.write_text(_rules_yaml(weight_a="0.9"))

    with pytest.raises(RulesLoadError):
        RulesStore(path, strict=True)


def test_reload_publishes_new_snapshot(tmp_path: Path):
    """Test an engine taken before reload keeps evaluating the old rules"""
    path = tmp_path / "rules.yaml"
    path.write_text(_rules_yaml(version="1.0.0"))
    store = RulesStore(path)
    engine_before = store.engine()

    path.write_text(_rules_yaml(version="1.1.0"))
    rules = store.reload()

    assert rules.version == "1.1.0"
    assert store.version == "1.1.0"
    assert store.engine() is not engine_before
    assert engine_before.version == "1.0.0"


def test_failed_reload_keeps_previous_rules(tmp_path: Path):
    path = tmp_path / "rules.yaml"
    path.write_text(_rules_yaml(version="1.0.0"))
    store = RulesStore(path)

    path.write_text("version: [broken")
    with pytest.raises(RulesLoadError):
        store.reload()

    assert store.version == "1.0.0"


def test_replace_publishes_parsed_rules():
    store = RulesStore()
    store.replace(parse_rules(_rules_yaml(version="9.9.9")))
    assert store.current.version == "9.9.9"
