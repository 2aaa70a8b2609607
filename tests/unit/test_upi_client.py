"""Unit tests for the UPI platform HTTP client"""

import asyncio
import httpx
import pytest
from datetime import date, datetime
from decimal import Decimal

from credit_engine.domain.exceptions import TransactionSourceError
from credit_engine.domain.models import TransactionStatus, TransactionType
from credit_engine.infrastructure.clients.upi import UpiPlatformClient

START = date(2026, 1, 1)
END = date(2026, 3, 31)


def _client(handler) -> UpiPlatformClient:
    return UpiPlatformClient(
        base_url="http://upi.test",
        api_key="secret",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_fetch_transactions_parses_records():
    """Test records are mapped to domain transactions and auth header is sent"""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["api_key"] = request.headers.get("X-API-Key")
        return httpx.Response(
            200,
            json=[
                {
                    "transaction_id": "TXN_1",
                    "merchant_id": "M1",
                    "transaction_date": "2026-01-15T10:30:00",
                    "amount": 1250.50,
                    "payer_vpa": "customer1@oksbi",
                    "transaction_type": "CREDIT",
                    "status": "SUCCESS",
                    "merchant_category": "GROCERY",
                }
            ],
        )

    transactions = asyncio.run(_client(handler).fetch_transactions("M1", START, END))

    assert seen["url"].path == "/api/v1/merchants/M1/transactions"
    assert seen["url"].params["start_date"] == "2026-01-01"
    assert seen["url"].params["end_date"] == "2026-03-31"
    assert seen["api_key"] == "secret"

    txn = transactions[0]
    assert txn.timestamp == datetime(2026, 1, 15, 10, 30)
    assert txn.amount == Decimal("1250.5")
    assert txn.counterparty == "customer1@oksbi"
    assert txn.transaction_type == TransactionType.CREDIT
    assert txn.status == TransactionStatus.SUCCESS
    assert txn.category == "GROCERY"


def test_malformed_record_is_passed_through_with_missing_fields():
    """Test a bad record does not fail the whole fetch"""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"transactions": [{"transaction_id": "TXN_2", "status": "WEIRD"}]})

    transactions = asyncio.run(_client(handler).fetch_transactions("M1", START, END))

    assert transactions[0].merchant_id == "M1"
    assert transactions[0].timestamp is None
    assert transactions[0].amount is None
    assert transactions[0].status is None


def test_not_found_means_no_history():
    transactions = asyncio.run(_client(lambda request: httpx.Response(404)).fetch_transactions("M1", START, END))
    assert transactions == []


def test_server_error_raises():
    with pytest.raises(TransactionSourceError, match="503"):
        asyncio.run(_client(lambda request: httpx.Response(503)).fetch_transactions("M1", START, END))


def test_network_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransactionSourceError):
        asyncio.run(_client(handler).fetch_transactions("M1", START, END))


def test_is_available():
    assert asyncio.run(_client(lambda request: httpx.Response(200)).is_available()) is True
    assert asyncio.run(_client(lambda request: httpx.Response(500)).is_available()) is False
