"""Integration tests for API endpoints"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from credit_engine.config import settings
from credit_engine.domain.exceptions import TransactionSourceError

FETCH = "credit_engine.infrastructure.clients.upi.UpiPlatformClient.fetch_transactions"


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["rules_version"] == "2.1.0"


def test_startup_schedules_batch_jobs(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    """Test app startup registers the re-assessment and cleanup jobs, and shutdown stops them"""
    monkeypatch.setattr(settings, "reassessment_enabled", True)

    with client:
        scheduler = client.app.state.scheduler
        assert sorted(scheduler.job_ids) == ["assessment_cleanup", "monthly_reassessment"]

    assert scheduler.is_running is False


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "credit_score_bucket" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@patch(FETCH, new_callable=AsyncMock)
def test_assessment_endpoint(mock_fetch: AsyncMock, client: TestClient, window_history):
    """Test POST /v1/assessments/{merchant_id} for a steady merchant"""
    mock_fetch.return_value = window_history

    response = client.post("/v1/assessments/MERCHANT_STEADY")

    assert response.status_code == 200
    data = response.json()
    assert data["merchant_id"] == "MERCHANT_STEADY"
    assert data["credit_score"] == 75
    assert data["risk_category"] == "MEDIUM"
    assert data["is_eligible"] is True
    assert Decimal(data["eligible_loan_amount"]) == Decimal("37500")
    assert data["max_tenure_days"] == 90
    assert Decimal(data["interest_rate"]) == Decimal("24")
    assert data["rules_version"] == "2.1.0"
    assert [c["name"] for c in data["component_scores"]] == [
        "volume",
        "consistency",
        "growth",
        "bounce_rate",
        "concentration",
    ]
    assert data["failed_rules"] == []
    assert data["fraud_indicators"] == []


@patch(FETCH, new_callable=AsyncMock)
def test_assessment_lookups(mock_fetch: AsyncMock, client: TestClient, window_history):
    """Test latest, history and by-id lookups after two assessments"""
    mock_fetch.return_value = window_history
    first = client.post("/v1/assessments/MERCHANT_STEADY").json()
    second = client.post("/v1/assessments/MERCHANT_STEADY").json()

    latest = client.get("/v1/assessments/MERCHANT_STEADY")
    assert latest.status_code == 200
    assert latest.json()["assessment_id"] == second["assessment_id"]

    history = client.get("/v1/assessments/MERCHANT_STEADY/history")
    assert history.status_code == 200
    ids = [item["assessment_id"] for item in history.json()["assessments"]]
    assert set(ids) == {first["assessment_id"], second["assessment_id"]}

    limited = client.get("/v1/assessments/MERCHANT_STEADY/history", params={"limit": 1})
    assert len(limited.json()["assessments"]) == 1

    by_id = client.get(f"/v1/assessments/by-id/{first['assessment_id']}")
    assert by_id.status_code == 200
    assert by_id.json()["credit_score"] == 75


def test_unknown_merchant_returns_404(client: TestClient):
    response = client.get("/v1/assessments/MERCHANT_NEVER_SEEN")
    assert response.status_code == 404
    assert "No assessment yet" in response.json()["detail"]


def test_unknown_assessment_id_returns_404(client: TestClient):
    response = client.get("/v1/assessments/by-id/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


@patch(FETCH, new_callable=AsyncMock)
def test_platform_down_without_fallback(
    mock_fetch: AsyncMock, client: TestClient, monkeypatch: pytest.MonkeyPatch
):
    """Test a 503 when every fetch fails and synthetic fallback is disabled"""
    monkeypatch.setattr(settings, "fallback_to_mock", False)
    mock_fetch.side_effect = TransactionSourceError("connection refused")

    response = client.post("/v1/assessments/MERCHANT_DOWN")

    assert response.status_code == 503
    assert mock_fetch.await_count == settings.upi_retry_attempts
    assert client.get("/v1/assessments/MERCHANT_DOWN").status_code == 404


@patch(FETCH, new_callable=AsyncMock)
def test_platform_down_with_fallback(mock_fetch: AsyncMock, client: TestClient):
    """Test synthetic transactions are scored when the platform stays down"""
    mock_fetch.side_effect = TransactionSourceError("connection refused")

    response = client.post("/v1/assessments/gold_kirana_7")

    assert response.status_code == 200
    data = response.json()
    assert 0 <= data["credit_score"] <= 100
    assert data["risk_category"] in {"LOW", "MEDIUM", "HIGH"}


def test_rules_version(client: TestClient):
    response = client.get("/v1/rules/version")
    assert response.status_code == 200
    assert response.json()["version"] == "2.1.0"
    assert response.json()["last_updated"] == "2026-09-01"


def test_rules_sections(client: TestClient):
    methodology = client.get("/v1/rules/methodology").json()
    assert len(methodology["scoring"]["components"]) == 5
    assert set(methodology["risk_categories"]) == {"low_risk", "medium_risk", "high_risk"}

    eligibility = client.get("/v1/rules/eligibility").json()
    assert [r["id"] for r in eligibility["eligibility"]["rules"]][0] == "ELG-001"
    assert len(eligibility["fraud_detection"]["rules"]) == 3

    loan = client.get("/v1/rules/loan-parameters").json()
    assert "tenure" in loan["loan_parameters"]

    assert client.get("/v1/rules/governance").json()["governance"]["principles"]
    assert client.get("/v1/rules/changelog").json()["changelog"][0]["version"] == "2.1.0"
    assert client.get("/v1/rules/full").json()["version"] == "2.1.0"


def test_simulate_score(client: TestClient):
    """Test what-if scoring against the active rules"""
    response = client.post(
        "/v1/rules/simulate",
        json={"monthly_volume": 150000, "consistency_score": 70, "bounce_rate": 8},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["credit_score"] == 68
    assert data["risk_category"] == "MEDIUM"
    assert len(data["components"]) == 5


def test_simulate_rejects_out_of_range_input(client: TestClient):
    response = client.post("/v1/rules/simulate", json={"bounce_rate": 150})
    assert response.status_code == 422


def test_reload_rules(client: TestClient):
    response = client.post("/v1/rules/reload")
    assert response.status_code == 200
    data = response.json()
    assert data["previous_version"] == "2.1.0"
    assert data["version"] == "2.1.0"
    assert data["warnings"] == []


def test_demo_scenarios_listed(client: TestClient):
    response = client.get("/v1/demo/scenarios")
    assert response.status_code == 200
    assert set(response.json()) == {
        "EXCELLENT", "GOOD", "POOR", "GROWING", "DECLINING", "SEASONAL", "STARTUP", "INELIGIBLE",
    }


@patch(FETCH, new_callable=AsyncMock)
def test_demo_scenario_assessment(mock_fetch: AsyncMock, client: TestClient):
    """Test a scenario assessment uses generated data and is stored like any other"""
    response = client.post("/v1/demo/assess/ineligible/DEMO_INELIGIBLE_001")

    assert response.status_code == 200
    data = response.json()
    assert data["is_eligible"] is False
    assert data["eligible_loan_amount"] is None
    assert "ELG-001" in [rule["rule_id"] for rule in data["failed_rules"]]
    mock_fetch.assert_not_awaited()

    latest = client.get("/v1/assessments/DEMO_INELIGIBLE_001")
    assert latest.json()["assessment_id"] == data["assessment_id"]


def test_demo_unknown_scenario_returns_404(client: TestClient):
    response = client.post("/v1/demo/assess/BOGUS/DEMO_001")
    assert response.status_code == 404
    assert "EXCELLENT" in response.json()["detail"]
