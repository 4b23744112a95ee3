# backend/tests/test_comparison.py
from decimal import Decimal

import pytest

from conftest import add_monthly_invoices, make_assumption, make_scenario
from revenue_projections.core.errors import NotFound, ScenarioCountError
from revenue_projections.services.comparison import (
    ComparisonAggregator,
    ComparisonFilters,
    differences,
    summarize,
)
from revenue_projections.services.projection_service import ProjectionService


def test_summary_of_three_totals():
    data = {2025: [{"total_amount": 100}, {"total_amount": 150}, {"total_amount": 200}]}
    s = summarize(data)[2025]
    assert s["min"] == 100
    assert s["max"] == 200
    assert s["range"] == 100
    assert s["range_percentage"] == 100.0
    assert s["avg"] == 150


def test_summary_zero_min_gives_zero_percentage():
    s = summarize({2025: [{"total_amount": 0}, {"total_amount": 50}]})[2025]
    assert s["range_percentage"] == 0.0


def test_summary_empty():
    assert summarize({}) == {}


def test_pairwise_differences():
    data = {2025: [{"scenario_id": 1, "total_amount": 100}, {"scenario_id": 2, "total_amount": 125}]}
    pairs = differences(data)[2025]
    assert pairs == [
        {"scenario_1": 1, "scenario_2": 2, "absolute_difference": 25.0, "percentage_difference": 25.0}
    ]


@pytest.fixture
def three_scenarios(db, seed):
    for cust in seed.customers:
        add_monthly_invoices(db, cust, 2024, 100, tax=0)
    db.commit()

    out = []
    for name, growth in (("Low", 0), ("Mid", 50), ("High", 100)):
        sc = make_scenario(db, seed.org, name=name)
        make_assumption(db, sc, growth_rate=Decimal(growth))
        ProjectionService(db, seed.org.id).calculate_scenario(sc.id)
        out.append(sc)
    return out


def test_compare_aggregates_active_projections(db, seed, three_scenarios):
    ids = [sc.id for sc in three_scenarios]
    result = ComparisonAggregator(db, seed.org.id).compare(ids)

    assert [s["name"] for s in result["scenarios"]] == ["Low", "Mid", "High"]
    rows = result["comparison_data"][2025]
    # two customers at 1200/yr each
    assert [r["total_amount"] for r in rows] == [2400.0, 3600.0, 4800.0]
    assert rows[1]["projection_count"] == 2
    assert rows[1]["variance_percentage"] == 50.0

    s = result["summary"][2025]
    assert (s["min"], s["max"], s["range"], s["range_percentage"]) == (2400.0, 4800.0, 2400.0, 100.0)
    assert len(result["differences"][2025]) == 3


def test_compare_filters_by_customer(db, seed, three_scenarios):
    ids = [sc.id for sc in three_scenarios[:2]]
    filters = ComparisonFilters(customer_id=seed.customers[0].id)
    rows = ComparisonAggregator(db, seed.org.id).compare(ids, filters)["comparison_data"][2025]
    assert [r["total_amount"] for r in rows] == [1200.0, 1800.0]


def test_compare_empty_years_give_empty_summary(db, seed, three_scenarios):
    ids = [sc.id for sc in three_scenarios[:2]]
    result = ComparisonAggregator(db, seed.org.id).compare(ids, ComparisonFilters(year=2030))
    assert result["comparison_data"] == {}
    assert result["summary"] == {}


@pytest.mark.parametrize("count", [1, 5])
def test_compare_scenario_count_bounds(db, seed, count):
    with pytest.raises(ScenarioCountError):
        ComparisonAggregator(db, seed.org.id).compare(list(range(1, count + 1)))


def test_compare_counts_repeated_ids_but_fetches_once(db, seed, three_scenarios):
    sc = three_scenarios[0]
    result = ComparisonAggregator(db, seed.org.id).compare([sc.id, sc.id])
    assert [s["id"] for s in result["scenarios"]] == [sc.id]
    assert len(result["comparison_data"][2025]) == 1
    assert result["differences"] == {}


def test_compare_five_ids_with_a_repeat_is_rejected(db, seed, three_scenarios):
    a, b, c = (sc.id for sc in three_scenarios)
    with pytest.raises(ScenarioCountError):
        ComparisonAggregator(db, seed.org.id).compare([a, a, b, c, b])


def test_compare_foreign_scenario_not_found(db, seed, three_scenarios):
    ids = [sc.id for sc in three_scenarios[:2]]
    with pytest.raises(NotFound):
        ComparisonAggregator(db, seed.other_org.id).compare(ids)
