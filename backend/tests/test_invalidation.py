# backend/tests/test_invalidation.py
from decimal import Decimal

import pytest

from conftest import add_monthly_invoices, make_assumption, make_scenario
from revenue_projections.core.errors import NotFound
from revenue_projections.models import Projection
from revenue_projections.services.assumptions import AssumptionService
from revenue_projections.services.invalidation import active_projection_count
from revenue_projections.services.projection_service import ProjectionService


@pytest.fixture
def calculated(db, seed):
    for cust in seed.customers:
        add_monthly_invoices(db, cust, 2024, 1160)
    db.commit()
    sc = make_scenario(db, seed.org, projection_years=2)
    row = make_assumption(db, sc, year=2025)
    make_assumption(db, sc, year=2026)
    report = ProjectionService(db, seed.org.id).calculate_scenario(sc.id)
    assert len(report.succeeded) == 4
    return sc, row


def test_create_leaves_projections_active(db, seed, calculated):
    sc, _ = calculated
    AssumptionService(db, seed.org.id).create(
        sc.id, {"year": 2025, "customer_id": seed.customers[0].id, "growth_rate": Decimal("50")}
    )
    assert active_projection_count(db, sc.id) == 4


def test_update_stales_every_projection_of_the_scenario(db, seed, calculated):
    sc, row = calculated
    updated, invalidated = AssumptionService(db, seed.org.id).update(sc.id, row.id, {"growth_rate": Decimal("20")})
    assert invalidated == 4
    assert updated.growth_rate == Decimal("20")
    assert active_projection_count(db, sc.id) == 0
    # soft-deleted, not removed
    assert db.query(Projection).filter(Projection.scenario_id == sc.id).count() == 4


def test_update_without_changes_keeps_projections(db, seed, calculated):
    sc, row = calculated
    _, invalidated = AssumptionService(db, seed.org.id).update(sc.id, row.id, {"growth_rate": 10})
    assert invalidated == 0
    assert active_projection_count(db, sc.id) == 4


def test_delete_stales_every_projection(db, seed, calculated):
    sc, row = calculated
    invalidated = AssumptionService(db, seed.org.id).delete(sc.id, row.id)
    assert invalidated == 4
    assert active_projection_count(db, sc.id) == 0


def test_other_scenarios_untouched(db, seed, calculated):
    sc, row = calculated
    other = make_scenario(db, seed.org, name="Other")
    make_assumption(db, other)
    ProjectionService(db, seed.org.id).calculate_scenario(other.id)

    AssumptionService(db, seed.org.id).delete(sc.id, row.id)
    assert active_projection_count(db, other.id) == 2


def test_invalid_update_rolls_back(db, seed, calculated):
    sc, row = calculated
    with pytest.raises(ValueError):
        AssumptionService(db, seed.org.id).update(sc.id, row.id, {"adjustment_type": "fixed_amount"})
    assert active_projection_count(db, sc.id) == 4
    db.refresh(row)
    assert row.adjustment_type == "percentage"


def test_assumption_of_other_org_is_not_found(db, seed, calculated):
    sc, row = calculated
    with pytest.raises(NotFound):
        AssumptionService(db, seed.other_org.id).delete(sc.id, row.id)


def test_null_growth_rate_update_rolls_back(db, seed, calculated):
    sc, row = calculated
    with pytest.raises(ValueError):
        AssumptionService(db, seed.org.id).update(sc.id, row.id, {"growth_rate": None})
    assert active_projection_count(db, sc.id) == 4
    db.refresh(row)
    assert row.growth_rate == Decimal("10")
