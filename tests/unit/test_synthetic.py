"""Unit tests for synthetic transaction generation"""

from datetime import date
from decimal import Decimal

from credit_engine.domain.metrics import calculate_metrics
from credit_engine.domain.models import TransactionType
from credit_engine.infrastructure.clients.synthetic import (
    PROFILES,
    SCENARIOS,
    SyntheticTransactionGenerator,
    profile_for,
)

START = date(2026, 1, 1)
END = date(2026, 6, 30)


def test_profile_from_merchant_id_keywords():
    assert profile_for("gold_kirana_42") == PROFILES["LOW_RISK"]
    assert profile_for("RISKY_STALL") == PROFILES["HIGH_RISK"]
    assert profile_for("rising_cafe") == PROFILES["GROWING"]
    assert profile_for("FESTIVAL_SWEETS") == PROFILES["SEASONAL"]
    assert profile_for("fresh_bakery") == PROFILES["NEW_BUSINESS"]
    assert profile_for("NEW_SHOP") == PROFILES["NEW_BUSINESS"]
    assert profile_for("new_risky_stall") == PROFILES["HIGH_RISK"]


def test_profile_without_keywords_is_stable():
    assert profile_for("MERCHANT_00917") == profile_for("MERCHANT_00917")


def test_generation_is_deterministic():
    """Test the same merchant always gets the same history"""
    generator = SyntheticTransactionGenerator()

    first = generator.generate("GOLD_STORE", START, END)
    second = generator.generate("GOLD_STORE", START, END)

    assert first == second
    assert first != generator.generate("GOLD_STORE_2", START, END)


def test_generated_transactions_are_well_formed():
    transactions = SyntheticTransactionGenerator().generate("GOLD_STORE", START, END)

    assert transactions
    assert len({t.transaction_id for t in transactions}) == len(transactions)
    assert all(t.transaction_type == TransactionType.CREDIT for t in transactions)
    assert all(t.amount >= Decimal("10") for t in transactions)
    assert all(START <= t.timestamp.date() <= END for t in transactions)
    assert all(8 <= t.timestamp.hour < 22 for t in transactions)


def test_profiles_separate_merchants():
    """Test a premium merchant out-earns a risky one"""
    generator = SyntheticTransactionGenerator()

    gold = calculate_metrics(generator.generate("GOLD_STORE", START, END))
    risky = calculate_metrics(generator.generate("RISKY_STALL", START, END))

    assert gold.average_monthly_volume > risky.average_monthly_volume
    assert gold.bounce_rate < risky.bounce_rate


def test_scenario_overrides_profile():
    generator = SyntheticTransactionGenerator()

    ineligible = generator.generate_scenario("INELIGIBLE", "GOLD_STORE", START, END)
    metrics = calculate_metrics(ineligible)

    assert SCENARIOS["INELIGIBLE"].max_daily_transactions == 3
    assert metrics.average_monthly_volume < Decimal("25000")
