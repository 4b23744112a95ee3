# backend/revenue_projections/api/deps.py
from fastapi import Header, HTTPException, status

from ..core.config import get_db  # noqa: F401  (re-exported for routers / test overrides)
from ..core.errors import (
    InsufficientHistoricalData,
    InvalidSeasonalityFactors,
    NoApplicableAssumption,
    NotFound,
    ProjectionError,
    RecalculationInProgress,
    ScenarioCountError,
    ValidationError,
)


# ---------------------------
# Tenant
# ---------------------------
def get_organization_id(x_organization_id: int = Header(..., ge=1)) -> int:
    """Organization the request acts for; threaded explicitly into every service call."""
    return x_organization_id


# ---------------------------
# Engine errors -> HTTP
# ---------------------------
_STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (RecalculationInProgress, status.HTTP_409_CONFLICT),
    (ScenarioCountError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidSeasonalityFactors, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InsufficientHistoricalData, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NoApplicableAssumption, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def http_error(e: Exception) -> HTTPException:
    if isinstance(e, ProjectionError):
        for cls, code in _STATUS_BY_ERROR:
            if isinstance(e, cls):
                return HTTPException(status_code=code, detail={"reason": e.reason, "message": str(e)})
        return HTTPException(status_code=400, detail={"reason": e.reason, "message": str(e)})
    # plain ValueError from service-side consistency checks
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
