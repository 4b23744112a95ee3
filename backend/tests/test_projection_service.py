# backend/tests/test_projection_service.py
from datetime import date
from decimal import Decimal

import pytest

from conftest import add_invoice, add_monthly_invoices, make_assumption, make_scenario
from revenue_projections.core.config import settings
from revenue_projections.core.errors import NoApplicableAssumption, NotFound, RecalculationInProgress, ValidationError
from revenue_projections.core.locks import RecalculationGuard
from revenue_projections.models import InflationRate, Projection
from revenue_projections.services.invalidation import active_projection_count
from revenue_projections.services.projection_service import ProjectionService


@pytest.fixture
def history(db, seed):
    # Alpha: 1160/month incl. 160 tax; Beta has no invoices
    add_monthly_invoices(db, seed.customers[0], 2024, 1160, tax=160)
    db.commit()
    return seed


def test_calculate_writes_projection_with_months(db, history):
    sc = make_scenario(db, history.org)
    make_assumption(db, sc, growth_rate=Decimal("10"))

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)

    assert len(report.succeeded) == 1
    assert report.succeeded[0].total_amount == Decimal("15312.00")
    p = db.get(Projection, report.succeeded[0].projection_id)
    assert p.customer_id == history.customers[0].id
    assert p.business_group_id == history.group.id
    assert p.base_amount == Decimal("13920.00")
    assert p.total_tax == Decimal("2112.00")
    assert p.total_subtotal == Decimal("13200.00")
    assert p.growth_applied == Decimal("10")
    assert p.calculation_method == "simple_average"
    assert [d.month for d in p.details] == list(range(1, 13))
    assert sum(d.amount for d in p.details) == p.total_amount


def test_partial_failure_is_reported_not_raised(db, history):
    sc = make_scenario(db, history.org)
    make_assumption(db, sc)

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)

    assert len(report.succeeded) == 1
    assert len(report.failed) == 1
    failure = report.failed[0]
    assert failure.reason == "insufficient_historical_data"
    assert failure.dimension.customer_id == history.customers[1].id
    assert report.to_dict()["failed"][0]["reason"] == "insufficient_historical_data"


def test_missing_assumption_for_one_year(db, history):
    sc = make_scenario(db, history.org, projection_years=2)
    make_assumption(db, sc, year=2025)

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)

    years_ok = [s.year for s in report.succeeded]
    reasons = {(f.year, f.reason) for f in report.failed}
    assert years_ok == [2025]
    assert (2026, "no_applicable_assumption") in reasons


def test_each_year_grows_from_the_historical_base(db, history):
    sc = make_scenario(db, history.org, projection_years=2)
    make_assumption(db, sc, year=2025, growth_rate=Decimal("10"))
    make_assumption(db, sc, year=2026, growth_rate=Decimal("10"))

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)
    totals = {s.year: s.total_amount for s in report.succeeded}
    assert totals == {2025: Decimal("15312.00"), 2026: Decimal("15312.00")}


def test_reference_inflation_used_when_enabled(db, history):
    db.add(InflationRate(year=2025, rate=Decimal("5"), source="central bank"))
    db.commit()
    sc = make_scenario(db, history.org, include_inflation=True)
    make_assumption(db, sc, growth_rate=Decimal("10"))

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)
    # 13920 * 1.10 * 1.05
    assert report.succeeded[0].total_amount == Decimal("16077.60")


def test_fixed_tax_split_mode(db, history, monkeypatch):
    monkeypatch.setattr(settings, "TAX_SPLIT_MODE", "fixed")
    monkeypatch.setattr(settings, "DEFAULT_TAX_RATE_PCT", Decimal("16"))
    sc = make_scenario(db, history.org)
    make_assumption(db, sc, growth_rate=Decimal("0"))

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)
    p = db.get(Projection, report.succeeded[0].projection_id)
    assert p.total_amount == Decimal("13920.00")
    assert p.total_tax == Decimal("1920.00")


def test_recalculation_replaces_previous_run(db, history):
    sc = make_scenario(db, history.org)
    make_assumption(db, sc)
    service = ProjectionService(db, history.org.id)

    service.calculate_scenario(sc.id)
    second = service.calculate_scenario(sc.id)

    assert second.invalidated == 1
    assert active_projection_count(db, sc.id) == 1
    assert db.query(Projection).filter(Projection.scenario_id == sc.id).count() == 2


def test_slice_limit(db, history, monkeypatch):
    add_monthly_invoices(db, history.customers[1], 2024, 100)
    db.commit()
    monkeypatch.setattr(settings, "RECALC_MAX_SLICES", 1)
    sc = make_scenario(db, history.org)
    make_assumption(db, sc)

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)
    assert len(report.succeeded) == 1
    assert [f.reason for f in report.failed] == ["slice_limit_exceeded"]


def test_inactive_customers_are_not_sliced(db, history):
    history.customers[1].is_active = False
    db.commit()
    sc = make_scenario(db, history.org)
    make_assumption(db, sc)

    report = ProjectionService(db, history.org.id).calculate_scenario(sc.id)
    assert report.failed == []
    assert len(report.succeeded) == 1


# -----------------------------
# Single projection
# -----------------------------
def test_recalculate_projection_picks_up_new_data(db, history):
    sc = make_scenario(db, history.org)
    make_assumption(db, sc, growth_rate=Decimal("0"))
    service = ProjectionService(db, history.org.id)
    old_id = service.calculate_scenario(sc.id).succeeded[0].projection_id

    add_invoice(db, history.customers[0], date(2024, 12, 20), 1200, tax=0)
    db.commit()

    new = service.recalculate_projection(old_id)
    assert new.id != old_id
    assert new.total_amount == Decimal("15120.00")
    assert db.get(Projection, old_id).deleted_at is not None
    assert active_projection_count(db, sc.id) == 1

    with pytest.raises(NotFound):
        service.get_projection(old_id)


def test_failed_recalculation_keeps_old_projection(db, history):
    sc = make_scenario(db, history.org)
    row = make_assumption(db, sc)
    service = ProjectionService(db, history.org.id)
    old_id = service.calculate_scenario(sc.id).succeeded[0].projection_id

    # drop the assumption without going through the service so the projection stays active
    db.delete(row)
    db.commit()

    with pytest.raises(NoApplicableAssumption):
        service.recalculate_projection(old_id)
    assert db.get(Projection, old_id).deleted_at is None


# -----------------------------
# Concurrency guard
# -----------------------------
def test_guard_rejects_overlapping_runs(db, history):
    sc = make_scenario(db, history.org)
    make_assumption(db, sc)
    guard = RecalculationGuard()
    service = ProjectionService(db, history.org.id, guard=guard)

    with guard.hold(sc.id):
        assert guard.is_running(sc.id)
        with pytest.raises(RecalculationInProgress):
            service.calculate_scenario(sc.id)
    assert not guard.is_running(sc.id)

    report = service.calculate_scenario(sc.id)
    assert len(report.succeeded) == 1


def test_guard_is_per_scenario():
    guard = RecalculationGuard()
    with guard.hold(1):
        with guard.hold(2):
            assert guard.is_running(1) and guard.is_running(2)


def test_foreign_organization_cannot_calculate(db, history):
    sc = make_scenario(db, history.org)
    with pytest.raises(NotFound):
        ProjectionService(db, history.other_org.id).calculate_scenario(sc.id)


def test_write_rechecks_totals_edited_after_construction(db, history):
    sc = make_scenario(db, history.org)
    make_assumption(db, sc)
    service = ProjectionService(db, history.org.id)
    history_base = service._analyze(sc, service.slices()[0])
    projection = service._build(sc, service.slices()[0], 2025, history_base)

    projection.total_amount = projection.total_amount + Decimal("5")
    with pytest.raises(ValidationError):
        service._write(projection)
    db.rollback()
    assert active_projection_count(db, sc.id) == 0
