"""Deterministic synthetic UPI transactions for demos, tests and platform outages"""

import logging
import random
import zlib
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from credit_engine.domain.models import Transaction, TransactionStatus, TransactionType
from credit_engine.utils.date_utils import whole_months_between

logger = logging.getLogger(__name__)

PAYER_VPAS = (
    "customer1@oksbi", "customer2@okaxis", "buyer3@ybl", "shopper4@paytm",
    "client5@okicici", "user6@upi", "merchant7@oksbi", "trader8@ybl",
    "retailer9@paytm", "vendor10@okaxis", "consumer11@oksbi", "business12@okicici",
    "partner13@ybl", "supplier14@paytm", "dealer15@okaxis", "agent16@oksbi",
    "reseller17@ybl", "distributor18@okicici", "wholesaler19@paytm", "customer20@ybl",
)
TOP_PAYERS = 5

MERCHANT_CATEGORIES = (
    "RETAIL", "FOOD", "SERVICES", "GROCERY", "ELECTRONICS",
    "FASHION", "PHARMACY", "FUEL", "RESTAURANT", "GENERAL",
)

MIN_AMOUNT = Decimal("10")
WEEKEND_BOOST = 1.3


@dataclass(frozen=True)
class MerchantProfile:
    min_monthly_volume: int
    max_monthly_volume: int
    bounce_rate: float
    monthly_growth_rate: float
    customer_concentration: float  # share of payments from the top payers
    min_daily_transactions: int
    max_daily_transactions: int
    seasonal: bool = False


PROFILES: Dict[str, MerchantProfile] = {
    "LOW_RISK": MerchantProfile(300_000, 600_000, 0.03, 0.05, 0.10, 20, 50),
    "MEDIUM_RISK": MerchantProfile(100_000, 300_000, 0.08, -0.05, 0.30, 10, 30),
    "HIGH_RISK": MerchantProfile(25_000, 100_000, 0.18, -0.15, 0.50, 5, 15),
    "GROWING": MerchantProfile(150_000, 400_000, 0.04, 0.25, 0.20, 15, 40),
    "SEASONAL": MerchantProfile(100_000, 500_000, 0.05, 0.10, 0.25, 10, 35, seasonal=True),
    "NEW_BUSINESS": MerchantProfile(30_000, 80_000, 0.12, 0.40, 0.35, 3, 10),
}

# Demo scenarios on top of the merchant profiles
SCENARIOS: Dict[str, MerchantProfile] = {
    "EXCELLENT": PROFILES["LOW_RISK"],
    "GOOD": PROFILES["MEDIUM_RISK"],
    "POOR": PROFILES["HIGH_RISK"],
    "GROWING": PROFILES["GROWING"],
    "DECLINING": MerchantProfile(150_000, 300_000, 0.10, -0.08, 0.30, 10, 25),
    "SEASONAL": PROFILES["SEASONAL"],
    "STARTUP": PROFILES["NEW_BUSINESS"],
    "INELIGIBLE": MerchantProfile(10_000, 20_000, 0.25, -0.20, 0.70, 1, 3),
}
SCENARIO_DESCRIPTIONS: Dict[str, str] = {
    "EXCELLENT": "Low risk merchant: high volume, consistent, low bounce rate",
    "GOOD": "Medium risk merchant: moderate volume, acceptable metrics",
    "POOR": "High risk merchant: low volume, high bounce rate",
    "GROWING": "Growing business: strong month-over-month growth",
    "DECLINING": "Declining business: negative growth trend",
    "SEASONAL": "Seasonal business: festival peaks and quiet months",
    "STARTUP": "New business: small and fast-growing",
    "INELIGIBLE": "Below the minimum volume and transaction thresholds",
}

# Merchant id keywords, checked in order
PROFILE_KEYWORDS = (
    (("LOW", "PREMIUM", "GOLD"), "LOW_RISK"),
    (("HIGH", "RISKY"), "HIGH_RISK"),
    (("GROW", "RISING"), "GROWING"),
    (("SEASONAL", "FESTIVAL"), "SEASONAL"),
    (("STARTUP", "FRESH", "NEW"), "NEW_BUSINESS"),
)
HASHED_PROFILES = ("LOW_RISK", "MEDIUM_RISK", "MEDIUM_RISK", "GROWING", "SEASONAL")


def merchant_seed(merchant_id: str) -> int:
    return zlib.crc32(merchant_id.encode("utf-8"))


def profile_for(merchant_id: str) -> MerchantProfile:
    """Pick a profile from keywords in the merchant id, else from its hash"""
    upper = merchant_id.upper()
    for keywords, name in PROFILE_KEYWORDS:
        if any(keyword in upper for keyword in keywords):
            return PROFILES[name]
    return PROFILES[HASHED_PROFILES[merchant_seed(merchant_id) % len(HASHED_PROFILES)]]


def _seasonal_factor(month: int) -> float:
    if 10 <= month <= 12:  # festival season
        return 1.8
    if 1 <= month <= 3:
        return 0.7
    return 1.0


class SyntheticTransactionGenerator:
    """
    Generates realistic-looking UPI credit transactions.

    Output depends only on the merchant id, date range and profile, so the
    same merchant always gets the same history.
    """

    def generate(self, merchant_id: str, start_date: date, end_date: date) -> List[Transaction]:
        return self.generate_with_profile(merchant_id, start_date, end_date, profile_for(merchant_id))

    def generate_scenario(
        self, scenario: str, merchant_id: str, start_date: date, end_date: date
    ) -> List[Transaction]:
        profile = SCENARIOS.get(scenario.upper()) or profile_for(merchant_id)
        return self.generate_with_profile(merchant_id, start_date, end_date, profile)

    def generate_with_profile(
        self,
        merchant_id: str,
        start_date: date,
        end_date: date,
        profile: MerchantProfile,
    ) -> List[Transaction]:
        rng = random.Random(merchant_seed(merchant_id))
        base_volume = rng.randint(profile.min_monthly_volume, profile.max_monthly_volume)
        per_day_divisor = 30 * max(1, profile.max_daily_transactions)

        transactions: List[Transaction] = []
        current = start_date
        while current <= end_date:
            daily = rng.randint(profile.min_daily_transactions, profile.max_daily_transactions)
            if current.weekday() >= 5:
                daily = int(daily * WEEKEND_BOOST)

            growth = (1 + profile.monthly_growth_rate) ** whole_months_between(start_date, current)
            season = _seasonal_factor(current.month) if profile.seasonal else 1.0
            average = Decimal(str(base_volume * growth * season)) / per_day_divisor

            for _ in range(daily):
                failed = rng.random() < profile.bounce_rate
                amount = (average * Decimal(str(0.5 + rng.random() * 1.5))).quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                )
                if amount < MIN_AMOUNT:
                    amount = MIN_AMOUNT + rng.randrange(100)

                if rng.random() < profile.customer_concentration:
                    payer = PAYER_VPAS[rng.randrange(TOP_PAYERS)]
                else:
                    payer = rng.choice(PAYER_VPAS)

                transactions.append(
                    Transaction(
                        transaction_id=f"TXN_{merchant_id}_{len(transactions) + 1:06d}",
                        merchant_id=merchant_id,
                        timestamp=datetime.combine(current, time(8 + rng.randrange(14), rng.randrange(60))),
                        amount=amount,
                        counterparty=payer,
                        transaction_type=TransactionType.CREDIT,
                        status=TransactionStatus.FAILED if failed else TransactionStatus.SUCCESS,
                        category=rng.choice(MERCHANT_CATEGORIES),
                    )
                )
            current += timedelta(days=1)

        logger.info(
            "Generated synthetic transactions",
            extra={"merchant_id": merchant_id, "transaction_count": len(transactions)},
        )
        return transactions
