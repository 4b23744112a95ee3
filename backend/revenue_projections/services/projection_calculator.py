# revenue_projections/services/projection_calculator.py
"""
Pure projection arithmetic.

Everything here works on Decimal internally and performs no I/O: given a
historical base and the assumption that governs a slice it produces the
annual totals and the twelve monthly figures. Persisting them (and checking
the totals invariants on write) is the caller's job.

Rounding rules:
  - growth and inflation are compounded sequentially and rounded once,
    half-up, to cents;
  - monthly shares are whole cents that add up exactly to the annual total;
    cents left over after flooring go to the months with the largest
    remainders, ties to the later month.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from ..core.money import CENT, HUNDRED, ZERO, floor_cents, pct_factor, round_money, to_decimal
from .seasonality import MONTHS, SeasonalityFactors

Number = Union[int, float, Decimal]


# ----------------- Annual -----------------
def _grow(base: Number, growth_rate_pct: Number, inflation_rate_pct: Number, include_inflation: bool) -> Decimal:
    grown = to_decimal(base) * pct_factor(growth_rate_pct)
    if include_inflation:
        grown = grown * pct_factor(inflation_rate_pct)
    return round_money(grown)


def apply_growth_and_inflation(
    base: Number,
    growth_rate_pct: Number,
    inflation_rate_pct: Number = 0,
    include_inflation: bool = True,
) -> float:
    """base * (1 + g/100) [* (1 + i/100)], rounded once to cents."""
    return float(_grow(base, growth_rate_pct, inflation_rate_pct, include_inflation))


def apply_fixed_amount(base: Number, fixed_amount: Number) -> float:
    """Fixed adjustment mode: base + fixed_amount, no multipliers."""
    return float(round_money(to_decimal(base) + to_decimal(fixed_amount)))


# ----------------- Monthly -----------------
def apportion_cents(total: Decimal, weights: Sequence[Decimal]) -> List[Decimal]:
    """
    Split `total` (a cent amount) into len(weights) cent amounts proportional
    to `weights` that add up to exactly `total`.
    """
    total = round_money(total)
    weight_sum = sum(weights, ZERO)
    if weight_sum <= 0:
        weights = [Decimal("1")] * len(weights)
        weight_sum = Decimal(len(weights))

    sign = Decimal("-1") if total < 0 else Decimal("1")
    magnitude = abs(total)
    raw = [magnitude * w / weight_sum for w in weights]
    shares = [floor_cents(r) for r in raw]
    leftover = int(((magnitude - sum(shares, ZERO)) / CENT).to_integral_value())

    # largest remainder first; on equal remainders the later month wins
    order = sorted(range(len(raw)), key=lambda i: (raw[i] - shares[i], i), reverse=True)
    for i in order[:leftover]:
        shares[i] += CENT
    return [s * sign for s in shares]


def monthly_distribution(annual_amount: Number, factors: SeasonalityFactors) -> List[Decimal]:
    annual = round_money(annual_amount)
    normalized = factors.normalized()
    # raw share = annual / 12 * normalized factor
    raw = [annual / MONTHS * f for f in normalized]
    return apportion_cents(annual, raw)


def calculate_monthly_distribution(annual_amount: Number, seasonality_factors) -> List[float]:
    """Twelve monthly amounts; invalid factors fall back to a uniform split."""
    if not isinstance(seasonality_factors, SeasonalityFactors):
        seasonality_factors = SeasonalityFactors.from_raw(seasonality_factors)
    return [float(v) for v in monthly_distribution(annual_amount, seasonality_factors)]


# ----------------- Tax split -----------------
def tax_ratio_from_rate(rate_pct: Number) -> Decimal:
    """Share of a tax-inclusive total that is tax, for a rate charged on the subtotal (16 -> 16/116)."""
    rate = to_decimal(rate_pct)
    return rate / (HUNDRED + rate)


# ----------------- Full figures -----------------
@dataclass
class MonthFigures:
    month: int
    subtotal: Decimal
    tax: Decimal
    amount: Decimal
    base_amount: Decimal
    seasonality_factor: Decimal


@dataclass
class ProjectionFigures:
    base_amount: Decimal
    total_subtotal: Decimal
    total_tax: Decimal
    total_amount: Decimal
    growth_applied: Decimal
    inflation_applied: Decimal
    adjustment_type: str
    months: List[MonthFigures] = field(default_factory=list)
    seasonality_fallback: bool = False


class ProjectionCalculator:
    """Turns (annual base, assumption) into ProjectionFigures."""

    def calculate(
        self,
        annual_base: Number,
        assumption,
        include_inflation: bool,
        tax_ratio: Decimal,
        fallback_inflation_rate: Optional[Number] = None,
    ) -> ProjectionFigures:
        base = round_money(annual_base)
        adjustment_type = assumption.adjustment_type or "percentage"

        if adjustment_type == "fixed_amount":
            growth = ZERO
            inflation = ZERO
            total = round_money(base + to_decimal(assumption.fixed_amount))
        else:
            growth = to_decimal(assumption.growth_rate)
            inflation = ZERO
            if include_inflation:
                rate = assumption.inflation_rate
                if rate is None:
                    rate = fallback_inflation_rate
                inflation = to_decimal(rate)
            total = _grow(base, growth, inflation, include_inflation)

        factors = SeasonalityFactors.from_raw(assumption.seasonality_factors)
        amounts = monthly_distribution(total, factors)

        total_tax = round_money(total * to_decimal(tax_ratio))
        total_subtotal = total - total_tax
        taxes = apportion_cents(total_tax, amounts)

        monthly_base = round_money(base / MONTHS)
        months = [
            MonthFigures(
                month=i + 1,
                subtotal=amounts[i] - taxes[i],
                tax=taxes[i],
                amount=amounts[i],
                base_amount=monthly_base,
                seasonality_factor=factors.values[i],
            )
            for i in range(MONTHS)
        ]

        return ProjectionFigures(
            base_amount=base,
            total_subtotal=total_subtotal,
            total_tax=total_tax,
            total_amount=total,
            growth_applied=growth,
            inflation_applied=inflation,
            adjustment_type=adjustment_type,
            months=months,
            seasonality_fallback=factors.is_fallback,
        )
