"""Financial metrics calculation - turns a transaction window into FinancialMetrics"""

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple

from credit_engine.domain import statistics as stats
from credit_engine.domain.exceptions import MissingInputError
from credit_engine.domain.models import (
    FinancialMetrics,
    MonthlyVolume,
    Transaction,
    TransactionStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Heuristic thresholds
SEASONALITY_CV_THRESHOLD = Decimal("0.50")
SEASONALITY_MIN_MONTHS = 6  # two quarterly cycles
VOLUME_SPIKE_PERCENT = Decimal("200")  # month-over-month increase
MIN_COUNTERPARTY_DIVERSITY = 5
SINGLE_PAYER_DOMINANCE_PERCENT = Decimal("80")
TOP_COUNTERPARTIES = 10
GROWTH_PERIOD_MONTHS = 3


def calculate_metrics(
    transactions: Optional[Sequence[Transaction]],
    merchant_id: Optional[str] = None,
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
) -> FinancialMetrics:
    """
    Aggregate a merchant's transaction window into FinancialMetrics.

    Volume figures only count successful CREDIT transactions; bounce rate
    is computed over every valid transaction. Records with missing fields
    are skipped and reported through skipped_record_count.

    Raises:
        MissingInputError: If transactions is None (caller contract violation)
    """
    if transactions is None:
        raise MissingInputError("Transaction list is required")

    valid, skipped = _partition_valid(transactions)
    if skipped:
        logger.warning(
            "Skipped malformed transactions",
            extra={"merchant_id": merchant_id, "skipped_count": skipped},
        )

    if not valid:
        return FinancialMetrics(
            merchant_id=merchant_id,
            window_start=window_start,
            window_end=window_end,
            skipped_record_count=skipped,
        )

    credits = [
        t for t in valid
        if t.transaction_type == TransactionType.CREDIT and t.status == TransactionStatus.SUCCESS
    ]

    monthly = _monthly_breakdown(credits, window_start, window_end)
    volumes = [m.volume for m in monthly]

    # Rolling volumes over the tail of the monthly series
    last_3 = sum(volumes[-3:], ZERO)
    last_6 = sum(volumes[-6:], ZERO)
    last_12 = sum(volumes[-12:], ZERO)
    average_monthly = stats.mean(volumes)

    # Growth: most recent period vs the preceding period of equal length
    period = min(GROWTH_PERIOD_MONTHS, len(volumes) // 2)
    if period:
        current_period = sum(volumes[-period:], ZERO)
        previous_period = sum(volumes[-2 * period:-period], ZERO)
    else:
        current_period = previous_period = ZERO
    growth = stats.growth_rate(current_period, previous_period)

    # Counts and bounce rate
    total_count = len(valid)
    successful_count = sum(1 for t in valid if t.status == TransactionStatus.SUCCESS)
    failed_count = sum(1 for t in valid if t.status == TransactionStatus.FAILED)
    bounce = stats.percentage(Decimal(failed_count), Decimal(total_count))

    total_volume = sum((Decimal(t.amount) for t in credits), ZERO)
    avg_transaction_value = (
        stats.round_half_up(total_volume / len(credits), stats.FOUR_PLACES) if credits else ZERO
    )

    # Counterparty concentration
    counterparty_volumes = _counterparty_volumes(credits)
    top_volume = sum(
        sorted(counterparty_volumes.values(), reverse=True)[:TOP_COUNTERPARTIES], ZERO
    )
    concentration = stats.clamp(stats.percentage(top_volume, total_volume), ZERO, stats.HUNDRED)

    # Variability
    cv = stats.coefficient_of_variation(volumes)
    consistency = stats.consistency_score(volumes)

    is_seasonal = cv > SEASONALITY_CV_THRESHOLD and len(monthly) >= SEASONALITY_MIN_MONTHS
    peak_month = trough_month = None
    if is_seasonal:
        peak_month = max(monthly, key=lambda m: m.volume).month
        trough_month = min(monthly, key=lambda m: m.volume).month

    return FinancialMetrics(
        merchant_id=merchant_id,
        window_start=window_start,
        window_end=window_end,
        monthly_volumes=tuple(monthly),
        last_3_months_volume=last_3,
        last_6_months_volume=last_6,
        last_12_months_volume=last_12,
        previous_period_volume=previous_period,
        average_monthly_volume=average_monthly,
        average_transaction_value=avg_transaction_value,
        total_transaction_count=total_count,
        successful_transaction_count=successful_count,
        failed_transaction_count=failed_count,
        unique_counterparty_count=len(counterparty_volumes),
        top_10_counterparty_volume=top_volume,
        customer_concentration=concentration,
        consistency_score=consistency,
        growth_rate=growth,
        bounce_rate=bounce,
        coefficient_of_variation=cv,
        is_seasonal_business=is_seasonal,
        peak_month=peak_month,
        trough_month=trough_month,
        has_sudden_volume_spike=detect_volume_spike(volumes),
        has_low_counterparty_diversity=len(counterparty_volumes) < MIN_COUNTERPARTY_DIVERSITY,
        has_single_payer_dominance=concentration > SINGLE_PAYER_DOMINANCE_PERCENT,
        skipped_record_count=skipped,
    )


def detect_volume_spike(volumes: Sequence[Decimal]) -> bool:
    """True if any month grew by more than VOLUME_SPIKE_PERCENT over the previous one"""
    for previous, current in zip(volumes, volumes[1:]):
        if previous > ZERO and (current - previous) / previous * stats.HUNDRED > VOLUME_SPIKE_PERCENT:
            return True
    return False


def _partition_valid(transactions: Sequence[Transaction]) -> Tuple[List[Transaction], int]:
    valid = []
    skipped = 0
    for txn in transactions:
        if _is_valid(txn):
            valid.append(txn)
        else:
            skipped += 1
    return valid, skipped


def _is_valid(txn: Optional[Transaction]) -> bool:
    if txn is None:
        return False
    if txn.timestamp is None or txn.amount is None:
        return False
    if txn.status not in tuple(TransactionStatus) or txn.transaction_type not in tuple(TransactionType):
        return False
    try:
        return Decimal(txn.amount).is_finite()
    except (InvalidOperation, TypeError, ValueError):
        return False


def _month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _monthly_breakdown(
    credits: Sequence[Transaction],
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
) -> List[MonthlyVolume]:
    """
    Bucket credits by calendar month, zero-filling months with no activity.

    With a window the series spans every month from window_start to
    window_end, so idle months at either end count as zero volume.
    """
    if not credits:
        return []

    buckets: Dict[Tuple[int, int], List[Transaction]] = defaultdict(list)
    for txn in credits:
        buckets[(txn.timestamp.year, txn.timestamp.month)].append(txn)

    first = min(buckets)
    last = max(buckets)
    if window_start is not None:
        first = min(first, (window_start.year, window_start.month))
    if window_end is not None:
        last = max(last, (window_end.year, window_end.month))
    months = []
    year, month = first
    while (year, month) <= last:
        bucket = buckets.get((year, month), [])
        months.append(
            MonthlyVolume(
                month=_month_key(year, month),
                volume=sum((Decimal(t.amount) for t in bucket), ZERO),
                transaction_count=len(bucket),
                unique_counterparties=len({t.counterparty for t in bucket if t.counterparty}),
            )
        )
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def _counterparty_volumes(credits: Sequence[Transaction]) -> Dict[str, Decimal]:
    volumes: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in credits:
        if txn.counterparty:
            volumes[txn.counterparty] += Decimal(txn.amount)
    return dict(volumes)
