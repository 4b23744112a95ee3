# revenue_projections/services/historical_analyzer.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import InsufficientHistoricalData
from ..core.money import ZERO, HUNDRED, round_money, to_decimal
from ..models import CALCULATION_METHODS, REVENUE_INVOICE_STATUSES, Customer, Invoice, InvoiceItem
from .dimensions import DimensionTuple

logger = logging.getLogger(__name__)


# ----------------- Time helpers -----------------
def _ym_add(y: int, m: int, k: int) -> Tuple[int, int]:
    base = (y * 12 + (m - 1)) + k
    return base // 12, base % 12 + 1


def window_months(base_year: int, historical_months: int) -> List[Tuple[int, int]]:
    """The trailing `historical_months` (year, month) pairs ending December of base_year, oldest first."""
    if historical_months < 1:
        raise ValueError("historical_months must be >= 1")
    return [_ym_add(base_year, 12, -(historical_months - 1 - i)) for i in range(historical_months)]


# ----------------- Base methods -----------------
def simple_average(series: List[Decimal]) -> Decimal:
    return sum(series, ZERO) / len(series)


def weighted_average(series: List[Decimal]) -> Decimal:
    # weights 1..n, newest month heaviest; dividing by their sum normalizes them to 1
    weights = range(1, len(series) + 1)
    return sum((Decimal(w) * v for w, v in zip(weights, series)), ZERO) / Decimal(sum(weights))


def linear_trend(series: List[Decimal]) -> Decimal:
    """Least-squares line through (0..n-1, series), read one period past the end."""
    n = len(series)
    if n == 1:
        return series[0]
    x_mean = Decimal(n - 1) / 2
    y_mean = sum(series, ZERO) / n
    sxy = sum(((Decimal(x) - x_mean) * (y - y_mean) for x, y in enumerate(series)), ZERO)
    sxx = sum(((Decimal(x) - x_mean) ** 2 for x in range(n)), ZERO)
    slope = sxy / sxx
    return y_mean + slope * (Decimal(n) - x_mean)


BASE_METHODS = {
    "simple_average": simple_average,
    "weighted_average": weighted_average,
    "trend": linear_trend,
}


@dataclass
class HistoricalBase:
    method: str
    window: List[Tuple[int, int]]
    series: List[Decimal]
    invoice_count: int
    monthly_base: Decimal
    history_total: Decimal = ZERO
    history_tax: Decimal = ZERO
    notes: List[str] = field(default_factory=list)

    @property
    def annual_base(self) -> Decimal:
        return round_money(self.monthly_base * 12)

    @property
    def tax_ratio(self) -> Optional[Decimal]:
        """Tax as a share of the gross total over the window; None without revenue."""
        if self.history_total <= 0:
            return None
        return self.history_tax / self.history_total


class HistoricalDataAnalyzer:
    """Monthly invoice series and base amounts for one organization's dimension slices."""

    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id

    # ----------------- Loaders -----------------
    def _rows(self, dimensions: DimensionTuple, start: date, end: date):
        """(invoice_id, invoice_date, total, tax) for issued/paid invoices of the slice."""
        if dimensions.product_id is not None:
            stmt = (
                select(Invoice.id, Invoice.invoice_date, InvoiceItem.total, InvoiceItem.tax)
                .join(InvoiceItem, InvoiceItem.invoice_id == Invoice.id)
                .where(InvoiceItem.product_id == dimensions.product_id)
            )
        else:
            stmt = select(Invoice.id, Invoice.invoice_date, Invoice.total, Invoice.tax)

        stmt = (
            stmt.join(Customer, Customer.id == Invoice.customer_id)
            .where(Customer.organization_id == self.organization_id)
            .where(Invoice.status.in_(REVENUE_INVOICE_STATUSES))
            .where(Invoice.invoice_date >= start, Invoice.invoice_date <= end)
        )
        if dimensions.customer_id is not None:
            stmt = stmt.where(Invoice.customer_id == dimensions.customer_id)
        if dimensions.business_group_id is not None:
            stmt = stmt.where(Customer.business_group_id == dimensions.business_group_id)
        if dimensions.customer_type_id is not None:
            stmt = stmt.where(Customer.customer_type_id == dimensions.customer_type_id)
        return self.db.execute(stmt).all()

    def monthly_series(self, dimensions: DimensionTuple, base_year: int, historical_months: int):
        """
        Zero-filled monthly totals over the window.
        Returns (window, series, invoice_count, total_sum, tax_sum).
        """
        window = window_months(base_year, historical_months)
        start = date(window[0][0], window[0][1], 1)
        end = date(base_year, 12, 31)

        buckets: Dict[Tuple[int, int], Decimal] = {ym: ZERO for ym in window}
        invoice_ids = set()
        total_sum = ZERO
        tax_sum = ZERO
        for invoice_id, invoice_date, total, tax in self._rows(dimensions, start, end):
            ym = (invoice_date.year, invoice_date.month)
            amount = to_decimal(total)
            buckets[ym] = buckets.get(ym, ZERO) + amount
            invoice_ids.add(invoice_id)
            total_sum += amount
            tax_sum += to_decimal(tax)

        series = [buckets[ym] for ym in window]
        return window, series, len(invoice_ids), total_sum, tax_sum

    # ----------------- Public API -----------------
    def analyze(
        self,
        dimensions: DimensionTuple,
        base_year: int,
        historical_months: int,
        method: str,
    ) -> HistoricalBase:
        if method not in BASE_METHODS:
            raise ValueError(f"calculation method must be one of {list(CALCULATION_METHODS)}")

        window, series, count, total_sum, tax_sum = self.monthly_series(dimensions, base_year, historical_months)
        if count == 0:
            raise InsufficientHistoricalData(
                f"No invoices for {dimensions.as_dict()} in "
                f"{window[0][0]}-{window[0][1]:02d}..{window[-1][0]}-{window[-1][1]:02d}"
            )

        raw = BASE_METHODS[method](series)
        notes: List[str] = []
        if raw < 0:
            # a falling trend can extrapolate below zero; revenue cannot
            notes.append(f"trend extrapolated to {raw:.2f}; floored at 0")
            logger.warning("Negative %s base for %s floored at 0", method, dimensions.as_dict())
            raw = ZERO

        return HistoricalBase(
            method=method,
            window=window,
            series=series,
            invoice_count=count,
            monthly_base=round_money(raw),
            history_total=total_sum,
            history_tax=tax_sum,
            notes=notes,
        )

    def base_amount(
        self,
        dimensions: DimensionTuple,
        base_year: int,
        historical_months: int,
        method: str,
    ) -> float:
        """Monthly base figure for the slice, rounded to cents."""
        return float(self.analyze(dimensions, base_year, historical_months, method).monthly_base)


def growth_rate(previous_amount, current_amount) -> float:
    """Percentage change between two periods; 0 when there is no previous amount."""
    prev = to_decimal(previous_amount)
    if prev == 0:
        return 0.0
    return float(round_money((to_decimal(current_amount) - prev) / prev * HUNDRED))
