# revenue_projections/services/projection_service.py
"""
Scenario-wide calculation and single-projection recalculation.

Wires analyzer -> resolver -> calculator together and persists the result.
Every write goes through `_write`, which checks the Projection totals and
the monthly details before anything reaches the database. Each slice is
written inside a SAVEPOINT so one failing slice never takes its siblings
down; the run as a whole commits once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import (
    InsufficientHistoricalData,
    NotFound,
    ProjectionError,
    RecalculationInProgress,
)
from ..core.locks import RecalculationGuard, recalculation_guard
from ..models import Customer, InflationRate, Projection, ProjectionDetail, Scenario
from .assumption_resolver import AssumptionResolver
from .dimensions import DimensionTuple
from .historical_analyzer import HistoricalBase, HistoricalDataAnalyzer
from .invalidation import soft_delete_projections
from .projection_calculator import ProjectionCalculator, ProjectionFigures, tax_ratio_from_rate
from .scenarios import get_scenario

logger = logging.getLogger(__name__)


# ----------------- Report -----------------
@dataclass
class SliceFailure:
    dimension: DimensionTuple
    year: Optional[int]
    reason: str
    message: str

    def to_dict(self) -> dict:
        return {"dimension": self.dimension.as_dict(), "year": self.year, "reason": self.reason, "message": self.message}


@dataclass
class SliceSuccess:
    dimension: DimensionTuple
    year: int
    projection_id: int
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "dimension": self.dimension.as_dict(),
            "year": self.year,
            "projection_id": self.projection_id,
            "total_amount": float(self.total_amount),
        }


@dataclass
class CalculationReport:
    scenario_id: int
    invalidated: int = 0
    succeeded: List[SliceSuccess] = field(default_factory=list)
    failed: List[SliceFailure] = field(default_factory=list)

    def fail(self, dimension: DimensionTuple, year: Optional[int], reason: str, message: str) -> None:
        self.failed.append(SliceFailure(dimension, year, reason, message))

    def to_dict(self) -> dict:
        return {
            "scenario_id": self.scenario_id,
            "invalidated": self.invalidated,
            "succeeded": [s.to_dict() for s in self.succeeded],
            "failed": [f.to_dict() for f in self.failed],
        }


# ----------------- Service -----------------
class ProjectionService:
    def __init__(
        self,
        db: Session,
        organization_id: int,
        guard: Optional[RecalculationGuard] = None,
        calculator: Optional[ProjectionCalculator] = None,
    ):
        self.db = db
        self.organization_id = organization_id
        self.guard = guard or recalculation_guard
        self.calculator = calculator or ProjectionCalculator()
        self.resolver = AssumptionResolver(db, organization_id)
        self.analyzer = HistoricalDataAnalyzer(db, organization_id)

    # ----------------- Reads -----------------
    def get_projection(self, projection_id: int) -> Projection:
        p = self.db.get(Projection, projection_id)
        if not p or p.deleted_at is not None:
            raise NotFound(f"Projection {projection_id} not found")
        get_scenario(self.db, self.organization_id, p.scenario_id)
        return p

    def list_projections(
        self,
        scenario_id: int,
        year: Optional[int] = None,
        customer_id: Optional[int] = None,
        include_stale: bool = False,
    ) -> List[Projection]:
        get_scenario(self.db, self.organization_id, scenario_id)
        stmt = select(Projection).where(Projection.scenario_id == scenario_id)
        if not include_stale:
            stmt = stmt.where(Projection.deleted_at.is_(None))
        if year is not None:
            stmt = stmt.where(Projection.year == year)
        if customer_id is not None:
            stmt = stmt.where(Projection.customer_id == customer_id)
        stmt = stmt.order_by(Projection.year.asc(), Projection.customer_id.asc(), Projection.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def slices(self) -> List[DimensionTuple]:
        """One customer-level slice per active customer of the organization."""
        stmt = (
            select(Customer)
            .where(
                Customer.organization_id == self.organization_id,
                Customer.is_active.is_(True),
                Customer.deleted_at.is_(None),
            )
            .order_by(Customer.id.asc())
        )
        return [DimensionTuple.for_customer(c) for c in self.db.execute(stmt).scalars().all()]

    # ----------------- Helpers -----------------
    def _tax_ratio(self, history: HistoricalBase) -> Decimal:
        if settings.TAX_SPLIT_MODE == "historical" and history.tax_ratio is not None:
            return history.tax_ratio
        return tax_ratio_from_rate(settings.DEFAULT_TAX_RATE_PCT)

    def _reference_inflation(self, year: int) -> Optional[Decimal]:
        row = self.db.execute(select(InflationRate).where(InflationRate.year == year)).scalars().first()
        return row.rate if row else None

    def _analyze(self, scenario: Scenario, dimensions: DimensionTuple) -> HistoricalBase:
        return self.analyzer.analyze(
            dimensions,
            scenario.base_year,
            scenario.historical_months,
            scenario.calculation_method,
        )

    def _figures(self, scenario: Scenario, dimensions: DimensionTuple, year: int, history: HistoricalBase) -> ProjectionFigures:
        assumption = self.resolver.resolve(scenario.id, year, dimensions)
        return self.calculator.calculate(
            history.annual_base,
            assumption,
            include_inflation=bool(scenario.include_inflation),
            tax_ratio=self._tax_ratio(history),
            fallback_inflation_rate=self._reference_inflation(year),
        )

    def _build(self, scenario: Scenario, dimensions: DimensionTuple, year: int, history: HistoricalBase) -> Projection:
        figures = self._figures(scenario, dimensions, year, history)
        projection = Projection(
            scenario_id=scenario.id,
            year=year,
            **dimensions.as_dict(),
            base_amount=figures.base_amount,
            total_subtotal=figures.total_subtotal,
            total_tax=figures.total_tax,
            total_amount=figures.total_amount,
            growth_applied=figures.growth_applied,
            inflation_applied=figures.inflation_applied,
            calculation_method=scenario.calculation_method,
            calculated_at=datetime.utcnow(),
        )
        projection.details = [
            ProjectionDetail(
                month=m.month,
                subtotal=m.subtotal,
                tax=m.tax,
                amount=m.amount,
                base_amount=m.base_amount,
                seasonality_factor=m.seasonality_factor,
            )
            for m in figures.months
        ]
        return projection

    def _write(self, projection: Projection) -> Projection:
        """Sole write path for projections: invariants first, then a SAVEPOINT flush."""
        projection.check_totals()
        projection.check_details()
        try:
            with self.db.begin_nested():
                self.db.add(projection)
                self.db.flush()
        except IntegrityError as e:
            # another writer already holds an active projection for this key
            raise RecalculationInProgress(
                projection.scenario_id,
                f"Active projection already exists for scenario {projection.scenario_id}, "
                f"year {projection.year}, dimensions {projection.dimension_key}",
            ) from e
        return projection

    # ----------------- Operations -----------------
    def calculate_scenario(self, scenario_id: int) -> CalculationReport:
        """(Re)compute every slice and year of the scenario; per-slice failures go to the report."""
        scenario = get_scenario(self.db, self.organization_id, scenario_id)
        report = CalculationReport(scenario_id=scenario.id)

        with self.guard.hold(scenario.id):
            try:
                report.invalidated = soft_delete_projections(self.db, scenario.id)
                slices = self.slices()
                logger.info(
                    "Calculating scenario %s: %d slice(s), years %s..%s",
                    scenario.id, len(slices), scenario.base_year + 1, scenario.base_year + scenario.projection_years,
                )
                for idx, dims in enumerate(slices):
                    if idx >= settings.RECALC_MAX_SLICES:
                        report.fail(dims, None, "slice_limit_exceeded", f"More than {settings.RECALC_MAX_SLICES} slices")
                        continue
                    self._calculate_slice(scenario, dims, report)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Scenario %s calculated: %d projection(s) written, %d failure(s)",
            scenario.id, len(report.succeeded), len(report.failed),
        )
        return report

    def _calculate_slice(self, scenario: Scenario, dims: DimensionTuple, report: CalculationReport) -> None:
        try:
            history = self._analyze(scenario, dims)
        except InsufficientHistoricalData as e:
            logger.warning("Scenario %s slice %s skipped: %s", scenario.id, dims.as_dict(), e)
            report.fail(dims, None, e.reason, str(e))
            return

        for year in scenario.projection_year_range:
            try:
                projection = self._write(self._build(scenario, dims, year, history))
            except RecalculationInProgress:
                raise
            except ProjectionError as e:
                logger.warning("Scenario %s slice %s year %s skipped: %s", scenario.id, dims.as_dict(), year, e)
                report.fail(dims, year, e.reason, str(e))
                continue
            report.succeeded.append(SliceSuccess(dims, year, projection.id, projection.total_amount))

    def recalculate_projection(self, projection_id: int) -> Projection:
        """
        Re-run the pipeline for one projection's dimension and year. The old
        row is soft-deleted only once the new figures are in hand; any failure
        leaves it active.
        """
        old = self.get_projection(projection_id)
        scenario = get_scenario(self.db, self.organization_id, old.scenario_id)
        dims = DimensionTuple.of(old)

        with self.guard.hold(scenario.id):
            try:
                history = self._analyze(scenario, dims)
                new = self._build(scenario, dims, old.year, history)
                old.deleted_at = datetime.utcnow()
                self.db.flush()
                self._write(new)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(new)
        logger.info("Projection %s recalculated as %s", projection_id, new.id)
        return new
