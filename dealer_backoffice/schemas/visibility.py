"""Pydantic schemas for the visibility endpoints."""
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ConditionInfo(BaseModel):
    condition_id: str
    description: str
    dependencies: List[str]


class VisibilityResult(BaseModel):
    condition_id: str
    visible: bool


class ReevaluateRequest(BaseModel):
    """Editor state after a single field change."""
    snapshot: Dict[str, Any]
    changed_field: str
    previous: Dict[str, bool] = Field(default_factory=dict)


class ReevaluateResponse(BaseModel):
    results: Dict[str, bool]
    reevaluated: List[str]
