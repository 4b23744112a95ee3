# backend/revenue_projections/api/projections.py
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.errors import ProjectionError
from ..services.comparison import ComparisonAggregator, ComparisonFilters
from ..services.projection_service import ProjectionService
from .deps import get_db, get_organization_id, http_error

router = APIRouter(tags=["projections"])


# =========================
# Schemas
# =========================
class ProjectionDetailOut(BaseModel):
    month: int
    subtotal: float
    tax: float
    amount: float
    base_amount: float
    seasonality_factor: float

    class Config:
        from_attributes = True


class ProjectionOut(BaseModel):
    id: int
    scenario_id: int
    year: int
    business_group_id: Optional[int]
    customer_type_id: Optional[int]
    customer_id: Optional[int]
    product_id: Optional[int]
    base_amount: float
    total_subtotal: float
    total_tax: float
    total_amount: float
    growth_applied: float
    inflation_applied: float
    calculation_method: str
    calculated_at: Optional[datetime]
    deleted_at: Optional[datetime] = None
    details: List[ProjectionDetailOut] = []

    class Config:
        from_attributes = True


class SliceFailureOut(BaseModel):
    dimension: Dict[str, Optional[int]]
    year: Optional[int]
    reason: str
    message: str


class SliceSuccessOut(BaseModel):
    dimension: Dict[str, Optional[int]]
    year: int
    projection_id: int
    total_amount: float


class CalculationReportOut(BaseModel):
    scenario_id: int
    invalidated: int
    succeeded: List[SliceSuccessOut]
    failed: List[SliceFailureOut]


class CompareIn(BaseModel):
    scenario_ids: List[int] = Field(..., description="2..4 scenario ids")
    year: Optional[int] = Field(None, ge=1900, le=3000)
    business_group_id: Optional[int] = Field(None, ge=1)
    customer_type_id: Optional[int] = Field(None, ge=1)
    customer_id: Optional[int] = Field(None, ge=1)


# =========================
# Routes
# =========================
@router.post(
    "/scenarios/{scenario_id}/projections/calculate",
    response_model=CalculationReportOut,
    summary="Calculate every projection of a scenario (partial failures reported)",
)
def calculate_scenario(
    scenario_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        report = ProjectionService(db, org_id).calculate_scenario(scenario_id)
    except ProjectionError as e:
        raise http_error(e)
    return report.to_dict()


@router.get(
    "/scenarios/{scenario_id}/projections",
    response_model=List[ProjectionOut],
    summary="List active projections (empty = needs calculation)",
)
def list_projections(
    scenario_id: int = Path(..., ge=1),
    year: Optional[int] = Query(None, ge=1900, le=3000),
    customer_id: Optional[int] = Query(None, ge=1),
    include_stale: bool = Query(False),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return ProjectionService(db, org_id).list_projections(scenario_id, year, customer_id, include_stale)
    except ProjectionError as e:
        raise http_error(e)


@router.get("/projections/{projection_id}", response_model=ProjectionOut, summary="Get a projection with its months")
def get_projection(
    projection_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return ProjectionService(db, org_id).get_projection(projection_id)
    except ProjectionError as e:
        raise http_error(e)


@router.post(
    "/projections/{projection_id}/recalculate",
    response_model=ProjectionOut,
    summary="Recalculate one projection (same dimension / year)",
)
def recalculate_projection(
    projection_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return ProjectionService(db, org_id).recalculate_projection(projection_id)
    except ProjectionError as e:
        raise http_error(e)


@router.post("/projections/compare", summary="Compare 2..4 scenarios year by year")
def compare_scenarios(
    payload: CompareIn,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    filters = ComparisonFilters(
        year=payload.year,
        business_group_id=payload.business_group_id,
        customer_type_id=payload.customer_type_id,
        customer_id=payload.customer_id,
    )
    try:
        return ComparisonAggregator(db, org_id).compare(payload.scenario_ids, filters)
    except ProjectionError as e:
        raise http_error(e)
