# revenue_projections/services/comparison.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import ScenarioCountError
from ..core.money import HUNDRED, ZERO, round_money, to_decimal
from ..models import Projection
from .scenarios import get_scenario


@dataclass
class ComparisonFilters:
    year: Optional[int] = None
    business_group_id: Optional[int] = None
    customer_type_id: Optional[int] = None
    customer_id: Optional[int] = None


def _pct(part: Decimal, whole: Decimal) -> float:
    return float(part / whole * HUNDRED) if whole > 0 else 0.0


def summarize(comparison_data: Dict[int, List[dict]]) -> Dict[int, dict]:
    """min / max / avg / range / range_percentage of total_amount per year."""
    summary: Dict[int, dict] = {}
    for year, rows in comparison_data.items():
        totals = [to_decimal(r["total_amount"]) for r in rows]
        if not totals:
            continue
        lo, hi = min(totals), max(totals)
        summary[year] = {
            "min": float(lo),
            "max": float(hi),
            "avg": float(round_money(sum(totals, ZERO) / len(totals))),
            "range": float(hi - lo),
            "range_percentage": _pct(hi - lo, lo),
        }
    return summary


def differences(comparison_data: Dict[int, List[dict]]) -> Dict[int, List[dict]]:
    """Pairwise differences between the scenarios of each year (second minus first)."""
    out: Dict[int, List[dict]] = {}
    for year, rows in comparison_data.items():
        if len(rows) < 2:
            continue
        pairs = []
        for i in range(len(rows) - 1):
            for j in range(i + 1, len(rows)):
                a, b = rows[i], rows[j]
                a_total, b_total = to_decimal(a["total_amount"]), to_decimal(b["total_amount"])
                pairs.append(
                    {
                        "scenario_1": a["scenario_id"],
                        "scenario_2": b["scenario_id"],
                        "absolute_difference": float(b_total - a_total),
                        "percentage_difference": _pct(b_total - a_total, a_total),
                    }
                )
        out[year] = pairs
    return out


class ComparisonAggregator:
    """Side-by-side totals of 2..4 scenarios from their active projections."""

    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id

    def _projections(self, scenario_id: int, filters: ComparisonFilters) -> List[Projection]:
        stmt = select(Projection).where(Projection.scenario_id == scenario_id, Projection.deleted_at.is_(None))
        if filters.year is not None:
            stmt = stmt.where(Projection.year == filters.year)
        if filters.business_group_id is not None:
            stmt = stmt.where(Projection.business_group_id == filters.business_group_id)
        if filters.customer_type_id is not None:
            stmt = stmt.where(Projection.customer_type_id == filters.customer_type_id)
        if filters.customer_id is not None:
            stmt = stmt.where(Projection.customer_id == filters.customer_id)
        return list(self.db.execute(stmt.order_by(Projection.year.asc(), Projection.id.asc())).scalars().all())

    def compare(self, scenario_ids: Sequence[int], filters: Optional[ComparisonFilters] = None) -> dict:
        lo, hi = settings.COMPARE_MIN_SCENARIOS, settings.COMPARE_MAX_SCENARIOS
        if not (lo <= len(scenario_ids) <= hi):
            raise ScenarioCountError(f"Compare needs between {lo} and {hi} scenario ids, got {len(scenario_ids)}")
        # a repeated id is counted but fetched once
        ids = list(dict.fromkeys(scenario_ids))
        filters = filters or ComparisonFilters()

        scenarios = [get_scenario(self.db, self.organization_id, sid) for sid in ids]

        comparison_data: Dict[int, List[dict]] = {}
        for sc in scenarios:
            per_year: Dict[int, Dict[str, Decimal]] = {}
            for p in self._projections(sc.id, filters):
                acc = per_year.setdefault(
                    p.year,
                    {"base_amount": ZERO, "total_subtotal": ZERO, "total_tax": ZERO, "total_amount": ZERO, "count": 0},
                )
                acc["base_amount"] += to_decimal(p.base_amount)
                acc["total_subtotal"] += to_decimal(p.total_subtotal)
                acc["total_tax"] += to_decimal(p.total_tax)
                acc["total_amount"] += to_decimal(p.total_amount)
                acc["count"] += 1

            for year, acc in per_year.items():
                variance = acc["total_amount"] - acc["base_amount"]
                comparison_data.setdefault(year, []).append(
                    {
                        "scenario_id": sc.id,
                        "scenario_name": sc.name,
                        "year": year,
                        "projection_count": acc["count"],
                        "base_amount": float(acc["base_amount"]),
                        "total_subtotal": float(acc["total_subtotal"]),
                        "total_tax": float(acc["total_tax"]),
                        "total_amount": float(acc["total_amount"]),
                        "variance_amount": float(variance),
                        "variance_percentage": _pct(variance, acc["base_amount"]),
                    }
                )

        comparison_data = dict(sorted(comparison_data.items()))
        return {
            "scenarios": [
                {
                    "id": sc.id,
                    "name": sc.name,
                    "base_year": sc.base_year,
                    "is_baseline": bool(sc.is_baseline),
                    "status": sc.status,
                }
                for sc in scenarios
            ],
            "comparison_data": comparison_data,
            "differences": differences(comparison_data),
            "summary": summarize(comparison_data),
        }
