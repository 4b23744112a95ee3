# revenue_projections/services/scenarios.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models import CALCULATION_METHODS, SCENARIO_STATUSES, Scenario


def get_scenario(db: Session, organization_id: int, scenario_id: int) -> Scenario:
    sc = db.get(Scenario, scenario_id)
    if not sc or sc.organization_id != organization_id or sc.deleted_at is not None:
        raise NotFound(f"Scenario {scenario_id} not found")
    return sc


def list_scenarios(db: Session, organization_id: int, status: Optional[str] = None) -> List[Scenario]:
    stmt = select(Scenario).where(Scenario.organization_id == organization_id, Scenario.deleted_at.is_(None))
    if status:
        stmt = stmt.where(Scenario.status == status)
    stmt = stmt.order_by(Scenario.base_year.desc(), Scenario.id.asc())
    return list(db.execute(stmt).scalars().all())


def create_scenario(db: Session, organization_id: int, **fields) -> Scenario:
    method = fields.get("calculation_method", "simple_average")
    if method not in CALCULATION_METHODS:
        raise ValueError(f"calculation_method must be one of {list(CALCULATION_METHODS)}")
    status = fields.get("status", "draft")
    if status not in SCENARIO_STATUSES:
        raise ValueError(f"status must be one of {list(SCENARIO_STATUSES)}")

    sc = Scenario(organization_id=organization_id, **fields)
    db.add(sc)
    db.commit()
    db.refresh(sc)
    return sc
