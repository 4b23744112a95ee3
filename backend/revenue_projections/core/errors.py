# revenue_projections/core/errors.py
"""
Exceptions raised by the projection engine.

Services raise these; the router layer turns them into HTTP errors and the
scenario-wide calculation collects the per-slice ones into its report.
"""
from typing import Optional


class ProjectionError(Exception):
    """Base class for every engine error."""

    reason = "projection_error"


class ValidationError(ProjectionError):
    """total_amount does not match subtotal + tax (or details do not add up)."""

    reason = "validation_error"

    def __init__(self, message: str, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InsufficientHistoricalData(ProjectionError):
    reason = "insufficient_historical_data"


class NoApplicableAssumption(ProjectionError):
    reason = "no_applicable_assumption"


class InvalidSeasonalityFactors(ProjectionError):
    reason = "invalid_seasonality_factors"


class RecalculationInProgress(ProjectionError):
    reason = "recalculation_in_progress"

    def __init__(self, scenario_id: int, message: Optional[str] = None):
        super().__init__(message or f"Recalculation already running for scenario {scenario_id}")
        self.scenario_id = scenario_id


class ScenarioCountError(ProjectionError):
    reason = "scenario_count"


class NotFound(ProjectionError):
    reason = "not_found"
