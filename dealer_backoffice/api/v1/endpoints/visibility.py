"""API endpoints for invoice field and page visibility."""
from typing import Any, Dict, List

from fastapi import APIRouter, Body, HTTPException

from dealer_backoffice.schemas.visibility import (
    ConditionInfo,
    ReevaluateRequest,
    ReevaluateResponse,
    VisibilityResult,
)
from dealer_backoffice.services.condition_evaluator import (
    CONDITIONS,
    UnknownConditionError,
    conditions_affected_by,
    evaluate_visibility,
    reevaluate,
)

router = APIRouter()


@router.get("/conditions", response_model=List[ConditionInfo])
async def list_conditions():
    """The full condition table, with the fields each condition depends on."""
    return [
        ConditionInfo(
            condition_id=condition.condition_id,
            description=condition.description,
            dependencies=sorted(condition.dependencies),
        )
        for condition in CONDITIONS.values()
    ]


# Declared before /{condition_id} so it is not captured as an id
@router.post("/reevaluate", response_model=ReevaluateResponse)
async def reevaluate_conditions(request: ReevaluateRequest):
    """Refresh visibility after the editor changed one field."""
    try:
        results = reevaluate(request.previous, request.snapshot, request.changed_field)
    except UnknownConditionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ReevaluateResponse(
        results=dict(results),
        reevaluated=list(conditions_affected_by(request.changed_field)),
    )


@router.post("/{condition_id}", response_model=VisibilityResult)
async def check_visibility(condition_id: str, snapshot: Dict[str, Any] = Body(...)):
    try:
        visible = evaluate_visibility(condition_id, snapshot)
    except UnknownConditionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return VisibilityResult(condition_id=condition_id, visible=visible)
