# revenue_projections/services/invalidation.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..models import Projection, ScenarioAssumption

logger = logging.getLogger(__name__)


def soft_delete_projections(db: Session, scenario_id: int, now: Optional[datetime] = None) -> int:
    """
    Mark every active projection of the scenario as stale.
    Flushes but does not commit: the caller owns the transaction.
    """
    stamp = now or datetime.utcnow()
    result = db.execute(
        update(Projection)
        .where(Projection.scenario_id == scenario_id, Projection.deleted_at.is_(None))
        .values(deleted_at=stamp)
        .execution_options(synchronize_session="fetch")
    )
    return int(result.rowcount or 0)


def active_projection_count(db: Session, scenario_id: int) -> int:
    stmt = select(func.count(Projection.id)).where(
        Projection.scenario_id == scenario_id,
        Projection.deleted_at.is_(None),
    )
    return int(db.execute(stmt).scalar_one())


class InvalidationTracker:
    """
    Keeps projections honest when assumptions change.

    Invalidation is scenario-wide: an update or delete of any assumption
    stales every projection of its scenario, whatever its dimension scope.
    """

    def __init__(self, db: Session):
        self.db = db

    def on_assumption_created(self, assumption: ScenarioAssumption) -> int:
        # a new row may outrank a fallback some projection used; those stay active until recalculated
        logger.debug(
            "Assumption %s created for scenario %s year %s; projections left as is",
            assumption.id, assumption.scenario_id, assumption.year,
        )
        return 0

    def on_assumption_updated(self, assumption: ScenarioAssumption) -> int:
        return self._invalidate(assumption.scenario_id, "updated", assumption.id)

    def on_assumption_deleted(self, assumption: ScenarioAssumption) -> int:
        return self._invalidate(assumption.scenario_id, "deleted", assumption.id)

    def _invalidate(self, scenario_id: int, event: str, assumption_id: Optional[int]) -> int:
        count = soft_delete_projections(self.db, scenario_id)
        logger.info(
            "Assumption %s %s: %d projection(s) of scenario %s marked stale",
            assumption_id, event, count, scenario_id,
        )
        return count
