"""/v1/rules - publish the active scoring rules and simulate scores against them"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from credit_engine.api.dependencies import get_orchestrator, get_rules_store
from credit_engine.api.v1.schemas import (
    ReloadResponse,
    RulesSection,
    RulesVersionResponse,
    SimulationRequest,
    SimulationResponse,
)
from credit_engine.domain.exceptions import RulesLoadError
from credit_engine.domain.orchestrator import ScoringOrchestrator, SimulationInput
from credit_engine.rules.loader import RulesStore, validate_rules

logger = logging.getLogger(__name__)

router = APIRouter()


def _dump(section) -> RulesSection:
    if section is None:
        return {}
    return section.model_dump(mode="json", exclude_none=True)


@router.get("/rules/version", response_model=RulesVersionResponse)
def get_rules_version(store: RulesStore = Depends(get_rules_store)):
    rules = store.current
    return RulesVersionResponse(
        version=rules.version,
        last_updated=str(rules.last_updated) if rules.last_updated else None,
        name=rules.metadata.name,
    )


@router.get("/rules/full")
def get_full_rules(store: RulesStore = Depends(get_rules_store)) -> RulesSection:
    """The complete active rule set"""
    return _dump(store.current)


@router.get("/rules/methodology")
def get_methodology(store: RulesStore = Depends(get_rules_store)) -> RulesSection:
    """How scores are computed: components, weights, tiers and risk bands"""
    rules = store.current
    return {
        "version": rules.version,
        "metadata": _dump(rules.metadata),
        "scoring": _dump(rules.scoring),
        "risk_categories": {name: _dump(band) for name, band in rules.risk_categories.items()},
    }


@router.get("/rules/eligibility")
def get_eligibility_rules(store: RulesStore = Depends(get_rules_store)) -> RulesSection:
    rules = store.current
    return {
        "version": rules.version,
        "eligibility": _dump(rules.eligibility),
        "fraud_detection": _dump(rules.fraud_detection),
    }


@router.get("/rules/loan-parameters")
def get_loan_parameters(store: RulesStore = Depends(get_rules_store)) -> RulesSection:
    rules = store.current
    return {"version": rules.version, "loan_parameters": _dump(rules.loan_parameters)}


@router.get("/rules/governance")
def get_governance(store: RulesStore = Depends(get_rules_store)) -> RulesSection:
    rules = store.current
    return {
        "version": rules.version,
        "maintainers": [_dump(m) for m in rules.maintainers],
        "governance": _dump(rules.governance),
    }


@router.get("/rules/changelog")
def get_changelog(store: RulesStore = Depends(get_rules_store)) -> RulesSection:
    rules = store.current
    return {"version": rules.version, "changelog": [_dump(entry) for entry in rules.changelog]}


@router.post("/rules/simulate", response_model=SimulationResponse)
def simulate_score(
    request_body: SimulationRequest,
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
):
    """Score hypothetical metric values without fetching or storing anything"""
    result = orchestrator.simulate(SimulationInput(**request_body.model_dump()))
    return SimulationResponse.from_domain(result)


@router.post("/rules/reload", response_model=ReloadResponse)
def reload_rules(store: RulesStore = Depends(get_rules_store)):
    """Re-read the rules file; the previous rules stay active if it is invalid"""
    previous_version = store.version
    try:
        rules = store.reload()
    except RulesLoadError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ReloadResponse(
        previous_version=previous_version,
        version=rules.version,
        warnings=validate_rules(rules),
    )
