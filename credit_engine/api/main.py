"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from credit_engine.api.dependencies import get_rules_store
from credit_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from credit_engine.api.v1 import assessments, demo, rules
from credit_engine.domain.orchestrator import ScoringOrchestrator
from credit_engine.infrastructure.clients.upi import UpiPlatformClient
from credit_engine.infrastructure.observability.logging import setup_logging
from credit_engine.config import settings
from credit_engine.rules.loader import RulesStore
from credit_engine.services.assessment import CreditAssessmentService
from credit_engine.services.reassessment import ReassessmentSweep
from credit_engine.services.scheduler import ReassessmentScheduler

setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


def build_scheduler(store: RulesStore) -> ReassessmentScheduler:
    """Scheduler whose sweep assesses through the platform client and the shared rules store"""
    orchestrator = ScoringOrchestrator(store)
    sweep = ReassessmentSweep(lambda db: CreditAssessmentService(db, orchestrator, UpiPlatformClient()))
    return ReassessmentScheduler(sweep)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Load rules before the first request so a broken file shows up at boot
    store = app.dependency_overrides.get(get_rules_store, get_rules_store)()
    logger.info(
        "Scoring rules active",
        extra={"rules_version": store.version, "rules_path": str(store.path)},
    )

    app.state.scheduler = build_scheduler(store)
    await app.state.scheduler.start()
    try:
        yield
    finally:
        await app.state.scheduler.stop()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="UPI Merchant Credit Engine",
        description="Rule-based credit scoring for merchants from UPI transaction history",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Last added runs first: request id is set before latency is measured
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check(store: RulesStore = Depends(get_rules_store)):
        return {"status": "ok", "service": settings.service_name, "rules_version": store.version}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(assessments.router, prefix="/v1", tags=["assessments"])
    app.include_router(rules.router, prefix="/v1", tags=["rules"])
    app.include_router(demo.router, prefix="/v1", tags=["demo"])

    return app


app = create_app()
