"""/v1/demo - assess merchants on synthetic data for named business scenarios"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from credit_engine.api.dependencies import get_assessment_service, get_request_id
from credit_engine.api.v1.schemas import AssessmentResponse
from credit_engine.domain.exceptions import MissingInputError
from credit_engine.infrastructure.clients.synthetic import SCENARIO_DESCRIPTIONS, SCENARIOS
from credit_engine.services.assessment import CreditAssessmentService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/demo/scenarios")
def list_scenarios():
    return SCENARIO_DESCRIPTIONS


@router.post("/demo/assess/{scenario}/{merchant_id}", response_model=AssessmentResponse)
async def assess_scenario(
    scenario: str,
    merchant_id: str,
    request: Request,
    service: CreditAssessmentService = Depends(get_assessment_service),
):
    """
    Run and store an assessment on generated transactions for a scenario.

    The UPI platform is never called, whatever the mock data setting.
    """
    if scenario.upper() not in SCENARIOS:
        logger.warning("Unknown demo scenario requested", extra={"scenario": scenario})
        raise HTTPException(
            status_code=404,
            detail=f"Unknown scenario '{scenario}'; choose one of {', '.join(SCENARIOS)}",
        )

    request_id = get_request_id(request)
    try:
        assessment = await service.assess_scenario(scenario, merchant_id, request_id=request_id)
    except MissingInputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AssessmentResponse.from_domain(assessment)
