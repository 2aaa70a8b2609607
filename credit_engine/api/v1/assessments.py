"""/v1/assessments - run and look up merchant credit assessments"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from credit_engine.api.dependencies import get_assessment_service, get_request_id
from credit_engine.api.v1.schemas import AssessmentResponse, HistoryItem, HistoryResponse
from credit_engine.domain.exceptions import MissingInputError, TransactionSourceError
from credit_engine.services.assessment import CreditAssessmentService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/assessments/{merchant_id}", response_model=AssessmentResponse)
async def create_assessment(
    merchant_id: str,
    request: Request,
    service: CreditAssessmentService = Depends(get_assessment_service),
):
    """
    Assess a merchant's creditworthiness from UPI transaction history.

    Every call creates a new assessment record; earlier ones stay in history.
    """
    request_id = get_request_id(request)

    try:
        assessment = await service.assess(merchant_id, request_id=request_id)
        return AssessmentResponse.from_domain(assessment)

    except TransactionSourceError as e:
        logger.error(f"UPI platform error: {e}", extra={"request_id": request_id, "merchant_id": merchant_id})
        raise HTTPException(status_code=503, detail="UPI transaction platform unavailable")

    except MissingInputError as e:
        logger.warning(f"Invalid assessment input: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        logger.error(f"Unexpected error: {e}", extra={"request_id": request_id, "merchant_id": merchant_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/assessments/by-id/{assessment_id}", response_model=AssessmentResponse)
def get_assessment_by_id(
    assessment_id: uuid.UUID,
    service: CreditAssessmentService = Depends(get_assessment_service),
):
    assessment = service.get_by_id(assessment_id)
    if assessment is None:
        raise HTTPException(status_code=404, detail=f"Assessment {assessment_id} not found")
    return AssessmentResponse.from_domain(assessment)


@router.get("/assessments/{merchant_id}", response_model=AssessmentResponse)
def get_latest_assessment(
    merchant_id: str,
    service: CreditAssessmentService = Depends(get_assessment_service),
):
    """Most recent assessment for a merchant"""
    assessment = service.get_latest(merchant_id)
    if assessment is None:
        raise HTTPException(
            status_code=404,
            detail=f"No assessment yet for merchant {merchant_id}; POST to this URL to create one",
        )
    return AssessmentResponse.from_domain(assessment)


@router.get("/assessments/{merchant_id}/history", response_model=HistoryResponse)
def get_assessment_history(
    merchant_id: str,
    limit: int = Query(20, ge=1, le=100, description="Maximum number of assessments"),
    service: CreditAssessmentService = Depends(get_assessment_service),
):
    """
    Retrieve recent assessments for a merchant, newest first.

    Returns:
        List of assessments with score, risk category and eligibility
    """
    history_items = [
        HistoryItem(
            assessment_id=str(a.assessment_id),
            credit_score=a.credit_score,
            risk_category=a.risk_category.value,
            is_eligible=a.is_eligible,
            eligible_loan_amount=a.eligible_loan_amount,
            rules_version=a.rules_version,
            assessed_at=a.assessed_at,
        )
        for a in service.get_history(merchant_id, limit=limit)
    ]

    return HistoryResponse(merchant_id=merchant_id, assessments=history_items)
