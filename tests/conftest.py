"""Pytest fixtures for testing"""

import pytest
from datetime import datetime
from decimal import Decimal
from typing import Generator, List, Sequence
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from credit_engine.api.dependencies import get_rules_store
from credit_engine.api.main import create_app
from credit_engine.config import settings
from credit_engine.domain.models import Transaction, TransactionStatus, TransactionType
from credit_engine.domain.orchestrator import ScoringOrchestrator
from credit_engine.infrastructure.database.models import Base
from credit_engine.infrastructure.database.session import get_db
from credit_engine.rules.engine import RuleEngine
from credit_engine.rules.loader import RulesStore
from credit_engine.utils.date_utils import assessment_window


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def build_history(
    merchant_id: str,
    monthly_volumes: Sequence[int],
    payers: int = 20,
    failed_per_month: int = 0,
    start_year: int = 2026,
    start_month: int = 1,
) -> List[Transaction]:
    """
    Successful UPI credits spread evenly over `payers` payers each month.

    Failed transactions carry the same amount but never count as volume.
    """
    transactions = []
    year, month = start_year, start_month
    for index, volume in enumerate(monthly_volumes):
        amount = Decimal(volume) / payers
        for p in range(payers):
            transactions.append(
                Transaction(
                    transaction_id=f"{merchant_id}_{index}_{p}",
                    merchant_id=merchant_id,
                    timestamp=datetime(year, month, 1 + p % 28, 12, 0),
                    amount=amount,
                    counterparty=f"payer{p}@ybl",
                    transaction_type=TransactionType.CREDIT,
                    status=TransactionStatus.SUCCESS,
                )
            )
        for f in range(failed_per_month):
            transactions.append(
                Transaction(
                    transaction_id=f"{merchant_id}_{index}_failed_{f}",
                    merchant_id=merchant_id,
                    timestamp=datetime(year, month, 15, 18, 30),
                    amount=Decimal("500"),
                    counterparty=f"payer{f}@ybl",
                    transaction_type=TransactionType.CREDIT,
                    status=TransactionStatus.FAILED,
                )
            )
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return transactions


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    """Session factory over the test database, for code that opens its own sessions"""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def rules_store() -> RulesStore:
    """Store holding the bundled scoring rules"""
    return RulesStore()


@pytest.fixture
def rule_engine(rules_store: RulesStore) -> RuleEngine:
    return rules_store.engine()


@pytest.fixture
def orchestrator(rules_store: RulesStore) -> ScoringOrchestrator:
    return ScoringOrchestrator(rules_store)


@pytest.fixture
def client(db: Session, rules_store: RulesStore, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Create FastAPI test client with test database and bundled rules"""
    monkeypatch.setattr(settings, "use_mock_data", False)
    monkeypatch.setattr(settings, "fallback_to_mock", True)
    monkeypatch.setattr(settings, "upi_backoff_base", 0.0)

    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rules_store] = lambda: rules_store
    return TestClient(app)


@pytest.fixture
def history_builder():
    """The build_history helper, for tests that need custom volume series"""
    return build_history


@pytest.fixture
def steady_history() -> List[Transaction]:
    """Six months at INR 150,000 a month from 20 payers"""
    return build_history("MERCHANT_STEADY", [150000] * 6)


@pytest.fixture
def window_history() -> List[Transaction]:
    """INR 150,000 a month from 20 payers over every month of the current assessment window"""
    start, _ = assessment_window(settings.assessment_window_months)
    return build_history(
        "MERCHANT_STEADY",
        [150000] * settings.assessment_window_months,
        start_year=start.year,
        start_month=start.month,
    )

