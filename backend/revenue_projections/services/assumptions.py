# revenue_projections/services/assumptions.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models import ADJUSTMENT_TYPES, ScenarioAssumption
from .dimensions import DIMENSION_FIELDS
from .invalidation import InvalidationTracker
from .scenarios import get_scenario
from .seasonality import SeasonalityFactors

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "year",
    *DIMENSION_FIELDS,
    "adjustment_type",
    "growth_rate",
    "inflation_rate",
    "fixed_amount",
    "seasonality_factors",
    "notes",
)


def _check_consistency(row: ScenarioAssumption) -> None:
    for name in ("year", "adjustment_type", "growth_rate"):
        if getattr(row, name) is None:
            raise ValueError(f"{name} cannot be null")
    if row.adjustment_type not in ADJUSTMENT_TYPES:
        raise ValueError(f"adjustment_type must be one of {list(ADJUSTMENT_TYPES)}")
    if row.adjustment_type == "fixed_amount" and row.fixed_amount is None:
        raise ValueError("fixed_amount is required when adjustment_type is fixed_amount")
    if row.seasonality_factors is not None:
        # stored as plain floats once validated
        row.seasonality_factors = SeasonalityFactors.strict(row.seasonality_factors).as_floats()


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, (int, float, Decimal)) and isinstance(b, (int, float, Decimal)):
        return Decimal(str(a)) == Decimal(str(b))
    return a == b


class AssumptionService:
    """
    Assumption CRUD. Update and delete stale the scenario's projections in the
    same transaction as the change itself.
    """

    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id
        self.tracker = InvalidationTracker(db)

    def list(self, scenario_id: int, year: Optional[int] = None) -> List[ScenarioAssumption]:
        get_scenario(self.db, self.organization_id, scenario_id)
        stmt = select(ScenarioAssumption).where(ScenarioAssumption.scenario_id == scenario_id)
        if year is not None:
            stmt = stmt.where(ScenarioAssumption.year == year)
        stmt = stmt.order_by(ScenarioAssumption.year.asc(), ScenarioAssumption.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def get(self, scenario_id: int, assumption_id: int) -> ScenarioAssumption:
        get_scenario(self.db, self.organization_id, scenario_id)
        row = self.db.get(ScenarioAssumption, assumption_id)
        if not row or row.scenario_id != scenario_id:
            raise NotFound(f"Assumption {assumption_id} not found")
        return row

    def create(self, scenario_id: int, data: Dict[str, Any]) -> ScenarioAssumption:
        get_scenario(self.db, self.organization_id, scenario_id)
        row = ScenarioAssumption(scenario_id=scenario_id, **{k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        if row.adjustment_type is None:
            row.adjustment_type = "percentage"
        if row.growth_rate is None:
            row.growth_rate = Decimal("0")
        _check_consistency(row)
        try:
            self.db.add(row)
            self.db.flush()
            self.tracker.on_assumption_created(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return row

    def update(self, scenario_id: int, assumption_id: int, changes: Dict[str, Any]) -> Tuple[ScenarioAssumption, int]:
        """Apply changes; returns (row, number of projections invalidated)."""
        row = self.get(scenario_id, assumption_id)
        changed = False
        try:
            for key, value in changes.items():
                if key not in EDITABLE_FIELDS:
                    continue
                if not _same(getattr(row, key), value):
                    setattr(row, key, value)
                    changed = True
            _check_consistency(row)

            invalidated = 0
            if changed:
                self.db.flush()
                invalidated = self.tracker.on_assumption_updated(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return row, invalidated

    def delete(self, scenario_id: int, assumption_id: int) -> int:
        """Delete the row; returns the number of projections invalidated."""
        row = self.get(scenario_id, assumption_id)
        try:
            invalidated = self.tracker.on_assumption_deleted(row)
            self.db.delete(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return invalidated
