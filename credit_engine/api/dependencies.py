"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from credit_engine.config import settings
from credit_engine.domain.orchestrator import ScoringOrchestrator
from credit_engine.infrastructure.clients.upi import UpiPlatformClient
from credit_engine.infrastructure.database.session import get_db
from credit_engine.rules.loader import RulesStore
from credit_engine.services.assessment import CreditAssessmentService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_rules_store() -> RulesStore:
    """Process-wide rule snapshot holder"""
    return RulesStore(settings.rules_path or None, strict=settings.strict_rules)


def get_orchestrator(rules_store: RulesStore = Depends(get_rules_store)) -> ScoringOrchestrator:
    return ScoringOrchestrator(rules_store)


def get_upi_client() -> UpiPlatformClient:
    """Provide UPI platform client instance"""
    return UpiPlatformClient()


def get_assessment_service(
    db: Session = Depends(get_db),
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
    upi_client: UpiPlatformClient = Depends(get_upi_client),
) -> CreditAssessmentService:
    return CreditAssessmentService(db, orchestrator, upi_client)
