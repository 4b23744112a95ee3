# backend/revenue_projections/api/assumptions.py
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session

from ..core.errors import InvalidSeasonalityFactors, ProjectionError
from ..services.assumption_resolver import AssumptionResolver
from ..services.assumptions import AssumptionService
from ..services.dimensions import DimensionTuple, scope_level
from ..services.scenarios import get_scenario
from ..services.seasonality import SeasonalityFactors
from .deps import get_db, get_organization_id, http_error

router = APIRouter(prefix="/scenarios", tags=["assumptions"])

AdjustmentType = Literal["percentage", "fixed_amount"]


# =========================
# Schemas
# =========================
def _check_factors(v):
    if v is None:
        return v
    try:
        return SeasonalityFactors.strict(v).as_floats()
    except InvalidSeasonalityFactors as e:
        raise ValueError(str(e))


class AssumptionIn(BaseModel):
    year: int = Field(..., ge=1900, le=3000)
    business_group_id: Optional[int] = Field(None, ge=1)
    customer_type_id: Optional[int] = Field(None, ge=1)
    customer_id: Optional[int] = Field(None, ge=1)
    product_id: Optional[int] = Field(None, ge=1)

    adjustment_type: AdjustmentType = "percentage"
    growth_rate: Decimal = Field(Decimal("0"), ge=-100, le=1000)
    inflation_rate: Optional[Decimal] = Field(None, ge=-100, le=1000)
    fixed_amount: Optional[Decimal] = None
    seasonality_factors: Optional[List[float]] = None
    notes: Optional[str] = None

    @validator("seasonality_factors")
    def _factors_ok(cls, v):
        return _check_factors(v)


class AssumptionUpdate(BaseModel):
    year: Optional[int] = Field(None, ge=1900, le=3000)
    business_group_id: Optional[int] = Field(None, ge=1)
    customer_type_id: Optional[int] = Field(None, ge=1)
    customer_id: Optional[int] = Field(None, ge=1)
    product_id: Optional[int] = Field(None, ge=1)

    adjustment_type: Optional[AdjustmentType] = None
    growth_rate: Optional[Decimal] = Field(None, ge=-100, le=1000)
    inflation_rate: Optional[Decimal] = Field(None, ge=-100, le=1000)
    fixed_amount: Optional[Decimal] = None
    seasonality_factors: Optional[List[float]] = None
    notes: Optional[str] = None

    @validator("seasonality_factors")
    def _factors_ok(cls, v):
        return _check_factors(v)


class AssumptionOut(BaseModel):
    id: int
    scenario_id: int
    year: int
    business_group_id: Optional[int]
    customer_type_id: Optional[int]
    customer_id: Optional[int]
    product_id: Optional[int]
    adjustment_type: str
    growth_rate: float
    inflation_rate: Optional[float]
    fixed_amount: Optional[float]
    seasonality_factors: Optional[List[float]]
    notes: Optional[str]

    class Config:
        from_attributes = True


class AssumptionMutationOut(BaseModel):
    assumption: Optional[AssumptionOut] = None
    invalidated_projections: int = 0


class ResolvedAssumptionOut(BaseModel):
    level: str
    assumption: AssumptionOut
    candidates: List[AssumptionOut] = []


# =========================
# Routes
# =========================
@router.get("/{scenario_id}/assumptions", response_model=List[AssumptionOut], summary="List assumptions")
def list_assumptions(
    scenario_id: int = Path(..., ge=1),
    year: Optional[int] = Query(None, ge=1900, le=3000),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return AssumptionService(db, org_id).list(scenario_id, year)
    except ProjectionError as e:
        raise http_error(e)


@router.post(
    "/{scenario_id}/assumptions",
    response_model=AssumptionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an assumption (existing projections stay active)",
)
def create_assumption(
    payload: AssumptionIn,
    scenario_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        return AssumptionService(db, org_id).create(scenario_id, payload.model_dump())
    except (ProjectionError, ValueError) as e:
        raise http_error(e)


@router.put(
    "/{scenario_id}/assumptions/{assumption_id}",
    response_model=AssumptionMutationOut,
    summary="Update an assumption and mark the scenario's projections stale",
)
def update_assumption(
    payload: AssumptionUpdate,
    scenario_id: int = Path(..., ge=1),
    assumption_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        row, invalidated = AssumptionService(db, org_id).update(
            scenario_id, assumption_id, payload.model_dump(exclude_unset=True)
        )
    except (ProjectionError, ValueError) as e:
        raise http_error(e)
    return AssumptionMutationOut(assumption=AssumptionOut.model_validate(row), invalidated_projections=invalidated)


@router.delete(
    "/{scenario_id}/assumptions/{assumption_id}",
    response_model=AssumptionMutationOut,
    summary="Delete an assumption and mark the scenario's projections stale",
)
def delete_assumption(
    scenario_id: int = Path(..., ge=1),
    assumption_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    try:
        invalidated = AssumptionService(db, org_id).delete(scenario_id, assumption_id)
    except ProjectionError as e:
        raise http_error(e)
    return AssumptionMutationOut(invalidated_projections=invalidated)


@router.get(
    "/{scenario_id}/assumptions/resolve",
    response_model=ResolvedAssumptionOut,
    summary="Show which assumption governs a year / dimension tuple",
)
def resolve_assumption(
    scenario_id: int = Path(..., ge=1),
    year: int = Query(..., ge=1900, le=3000),
    business_group_id: Optional[int] = Query(None, ge=1),
    customer_type_id: Optional[int] = Query(None, ge=1),
    customer_id: Optional[int] = Query(None, ge=1),
    product_id: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_organization_id),
):
    dims = DimensionTuple(business_group_id, customer_type_id, customer_id, product_id)
    resolver = AssumptionResolver(db, org_id)
    try:
        get_scenario(db, org_id, scenario_id)
        row = resolver.resolve(scenario_id, year, dims)
    except ProjectionError as e:
        raise http_error(e)
    return ResolvedAssumptionOut(
        level=scope_level(row),
        assumption=AssumptionOut.model_validate(row),
        candidates=[AssumptionOut.model_validate(r) for r in resolver.applicable(scenario_id, year, dims)],
    )
