# backend/revenue_projections/api/scenarios.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.errors import ProjectionError
from ..services.scenarios import create_scenario, get_scenario, list_scenarios
from .deps import get_db, get_organization_id, http_error

router = APIRouter(prefix="/scenarios", tags=["scenarios"])

Method = Literal["simple_average", "weighted_average", "trend"]
Status = Literal["draft", "active", "archived"]


# =========================
# Schemas
# =========================
class ScenarioIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    base_year: int = Field(..., ge=1900, le=3000)
    historical_months: int = Field(12, ge=1, le=120)
    projection_years: int = Field(1, ge=1, le=10)
    calculation_method: Method = "simple_average"
    include_inflation: bool = True
    is_baseline: bool = False
    status: Status = "draft"


class ScenarioOut(ScenarioIn):
    id: int
    organization_id: int

    class Config:
        from_attributes = True


# =========================
# Routes
# =========================
@router.get("", response_model=List[ScenarioOut], summary="List scenarios of the organization")
def list_all(
    status_filter: Optional[Status] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    return list_scenarios(db, org_id, status_filter)


@router.post("", response_model=ScenarioOut, status_code=status.HTTP_201_CREATED, summary="Create a scenario")
def create(
    payload: ScenarioIn,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return create_scenario(db, org_id, **payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{scenario_id}", response_model=ScenarioOut, summary="Get a scenario")
def get_one(
    scenario_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return get_scenario(db, org_id, scenario_id)
    except ProjectionError as e:
        raise http_error(e)
