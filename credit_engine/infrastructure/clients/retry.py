"""Transaction fetching with linear backoff retry and synthetic fallback"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, List, Optional, Tuple

from credit_engine.config import settings
from credit_engine.domain.exceptions import TransactionSourceError
from credit_engine.domain.models import Transaction
from credit_engine.infrastructure.clients.synthetic import SyntheticTransactionGenerator
from credit_engine.infrastructure.clients.upi import TransactionSource
from credit_engine.infrastructure.observability.metrics import (
    source_fallback_counter,
    source_fetch_failures_counter,
)

logger = logging.getLogger(__name__)


class FetchOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FALLBACK_USED = "FALLBACK_USED"
    EXHAUSTED = "EXHAUSTED"


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to call the transaction source.

    backoff_seconds[i] is the wait after failed attempt i + 1; the last value
    repeats if there are more attempts than entries.
    """

    max_attempts: int = 3
    backoff_seconds: Tuple[float, ...] = (1.0, 2.0, 3.0)

    @classmethod
    def linear(cls, max_attempts: int, base: float) -> "RetryPolicy":
        """Linear backoff: base, 2*base, 3*base, ..."""
        return cls(
            max_attempts=max_attempts,
            backoff_seconds=tuple(base * attempt for attempt in range(1, max_attempts + 1)),
        )

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls.linear(settings.upi_retry_attempts, settings.upi_backoff_base)

    def delay_after(self, attempt: int) -> float:
        if not self.backoff_seconds:
            return 0.0
        return self.backoff_seconds[min(attempt, len(self.backoff_seconds)) - 1]


@dataclass(frozen=True)
class FetchResult:
    outcome: FetchOutcome
    transactions: List[Transaction] = field(default_factory=list)
    attempts: int = 0
    error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.outcome == FetchOutcome.FALLBACK_USED


async def fetch_with_retry(
    source: TransactionSource,
    merchant_id: str,
    start_date: date,
    end_date: date,
    policy: RetryPolicy | None = None,
    fallback: SyntheticTransactionGenerator | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FetchResult:
    """
    Fetch transactions, retrying TransactionSourceError per the policy.

    Retry strategy:
    - Linear backoff between attempts (1s, 2s, 3s by default)
    - After the last failure, synthetic data from `fallback` if one is given
    - Otherwise an EXHAUSTED result carrying the last error; never an
      empty SUCCESS
    """
    policy = policy or RetryPolicy.from_settings()
    last_error: Optional[TransactionSourceError] = None
    attempt = 0

    while attempt < policy.max_attempts:
        attempt += 1
        try:
            transactions = await source.fetch_transactions(merchant_id, start_date, end_date)
            return FetchResult(outcome=FetchOutcome.SUCCESS, transactions=transactions, attempts=attempt)

        except TransactionSourceError as e:
            last_error = e
            source_fetch_failures_counter.inc()
            logger.warning(
                "Transaction fetch attempt failed",
                extra={"merchant_id": merchant_id, "attempt": attempt, "error": str(e)},
            )
            if attempt < policy.max_attempts:
                await sleep(policy.delay_after(attempt))

    if fallback is not None:
        source_fallback_counter.inc()
        logger.warning(
            "UPI platform unavailable, falling back to synthetic transactions",
            extra={"merchant_id": merchant_id, "attempts": attempt},
        )
        return FetchResult(
            outcome=FetchOutcome.FALLBACK_USED,
            transactions=fallback.generate(merchant_id, start_date, end_date),
            attempts=attempt,
            error=str(last_error) if last_error else None,
        )

    logger.error(
        "Failed to fetch transactions after all attempts",
        extra={"merchant_id": merchant_id, "attempts": attempt},
    )
    return FetchResult(
        outcome=FetchOutcome.EXHAUSTED,
        attempts=attempt,
        error=str(last_error) if last_error else "No fetch attempts made",
    )
