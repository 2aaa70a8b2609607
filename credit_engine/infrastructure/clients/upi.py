"""UPI collection platform HTTP client for fetching merchant transaction history"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Protocol

import httpx

from credit_engine.config import settings
from credit_engine.domain.exceptions import TransactionSourceError
from credit_engine.domain.models import Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)


class TransactionSource(Protocol):
    async def fetch_transactions(self, merchant_id: str, start_date: date, end_date: date) -> List[Transaction]:
        ...


class UpiPlatformClient:
    """Client for the UPI collection platform transaction API"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.upi_api_base
        self.api_key = api_key if api_key is not None else settings.upi_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
        )

    async def fetch_transactions(self, merchant_id: str, start_date: date, end_date: date) -> List[Transaction]:
        """
        Fetch a merchant's transactions between two dates (both inclusive).

        A 404 means the platform has no history for the merchant and
        returns an empty list. Individual records with missing fields are
        passed through with None values; metrics calculation skips them.

        Raises:
            TransactionSourceError: On timeout, network failure, unexpected status, or unreadable body
        """
        async with self._client() as client:
            try:
                response = await client.get(
                    f"{self.base_url}/api/v1/merchants/{merchant_id}/transactions",
                    params={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
                )
                if response.status_code == 404:
                    logger.warning("No transactions found", extra={"merchant_id": merchant_id})
                    return []
                response.raise_for_status()
                data = response.json()

                records = data.get("transactions", []) if isinstance(data, dict) else data
                transactions = [parse_transaction(record, merchant_id) for record in records]
                logger.info(
                    "Fetched transactions",
                    extra={"merchant_id": merchant_id, "transaction_count": len(transactions)},
                )
                return transactions

            except httpx.TimeoutException as e:
                raise TransactionSourceError(f"UPI platform timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise TransactionSourceError(f"UPI platform error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise TransactionSourceError(f"UPI platform unreachable: {e}") from e
            except (AttributeError, TypeError, ValueError) as e:
                raise TransactionSourceError(f"Invalid transaction data from UPI platform: {e}") from e

    async def is_available(self) -> bool:
        """True if the platform health endpoint answers 200"""
        async with self._client() as client:
            try:
                response = await client.get(f"{self.base_url}/health", timeout=5.0)
                return response.status_code == 200
            except httpx.HTTPError:
                return False


def parse_transaction(record: Dict[str, Any], merchant_id: str) -> Transaction:
    return Transaction(
        transaction_id=record.get("transaction_id", ""),
        merchant_id=record.get("merchant_id") or merchant_id,
        timestamp=_parse_timestamp(record.get("transaction_date")),
        amount=_parse_amount(record.get("amount")),
        counterparty=record.get("payer_vpa"),
        transaction_type=_parse_enum(TransactionType, record.get("transaction_type")),
        status=_parse_enum(TransactionStatus, record.get("status")),
        category=record.get("merchant_category"),
    )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _parse_enum(enum_cls, value: Any):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return None
