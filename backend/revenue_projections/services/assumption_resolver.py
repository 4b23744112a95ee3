# revenue_projections/services/assumption_resolver.py
from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NoApplicableAssumption
from ..models import Scenario, ScenarioAssumption
from .dimensions import DimensionTuple, matches, scope_rank


def rank_applicable(rows: Sequence[ScenarioAssumption], target: DimensionTuple) -> List[ScenarioAssumption]:
    """
    Matching rows, best first: scope precedence, then lowest id so an
    inconsistent store (two rows with the same scope) still resolves the same
    way every time.
    """
    hits = [r for r in rows if matches(r, target)]
    return sorted(hits, key=lambda r: (tuple(not b for b in scope_rank(r)), r.id or 0))


def pick_assumption(rows: Sequence[ScenarioAssumption], target: DimensionTuple) -> Optional[ScenarioAssumption]:
    ranked = rank_applicable(rows, target)
    return ranked[0] if ranked else None


class AssumptionResolver:
    """Finds the single assumption row that governs a (scenario, year, dimension tuple)."""

    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id

    def _candidates(self, scenario_id: int, year: int) -> List[ScenarioAssumption]:
        stmt = (
            select(ScenarioAssumption)
            .join(Scenario, Scenario.id == ScenarioAssumption.scenario_id)
            .where(
                Scenario.organization_id == self.organization_id,
                ScenarioAssumption.scenario_id == scenario_id,
                ScenarioAssumption.year == year,
            )
            .order_by(ScenarioAssumption.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def applicable(self, scenario_id: int, year: int, dimensions: DimensionTuple) -> List[ScenarioAssumption]:
        """Every matching row in precedence order."""
        return rank_applicable(self._candidates(scenario_id, year), dimensions)

    def resolve(self, scenario_id: int, year: int, dimensions: DimensionTuple) -> ScenarioAssumption:
        row = pick_assumption(self._candidates(scenario_id, year), dimensions)
        if row is None:
            raise NoApplicableAssumption(
                f"No assumption for scenario {scenario_id}, year {year}, dimensions {dimensions.as_dict()}"
            )
        return row
