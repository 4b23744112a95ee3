# revenue_projections/services/seasonality.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from ..core.errors import InvalidSeasonalityFactors
from ..core.money import to_decimal

logger = logging.getLogger(__name__)

MONTHS = 12


class SeasonalityFactors:
    """
    Twelve non-negative monthly weights with a positive sum.

    Built once where raw data enters (assumption rows, API payloads) and
    trusted downstream. `strict()` raises on bad input; `from_raw()` falls
    back to the uniform vector instead.
    """

    __slots__ = ("_values", "is_fallback")

    def __init__(self, values: Tuple[Decimal, ...], is_fallback: bool = False):
        self._values = values
        self.is_fallback = is_fallback

    @classmethod
    def uniform(cls, is_fallback: bool = False) -> "SeasonalityFactors":
        return cls(tuple(Decimal("1") for _ in range(MONTHS)), is_fallback=is_fallback)

    @classmethod
    def strict(cls, raw: Optional[Iterable]) -> "SeasonalityFactors":
        if raw is None or isinstance(raw, (str, bytes)):
            raise InvalidSeasonalityFactors("seasonality factors must be a list of 12 numbers")
        values = list(raw)
        if len(values) != MONTHS:
            raise InvalidSeasonalityFactors(f"expected {MONTHS} seasonality factors, got {len(values)}")
        try:
            parsed = tuple(to_decimal(v, default=None) for v in values)
        except ValueError as e:
            raise InvalidSeasonalityFactors(str(e))
        if any(v is None or not v.is_finite() for v in parsed):
            raise InvalidSeasonalityFactors("seasonality factors must be finite numbers")
        if any(v < 0 for v in parsed):
            raise InvalidSeasonalityFactors("seasonality factors must be non-negative")
        if sum(parsed) <= 0:
            raise InvalidSeasonalityFactors("seasonality factors must not all be zero")
        return cls(parsed)

    @classmethod
    def from_raw(cls, raw: Optional[Iterable]) -> "SeasonalityFactors":
        if raw is None:
            return cls.uniform()
        try:
            return cls.strict(raw)
        except InvalidSeasonalityFactors as e:
            logger.debug("Seasonality factors %r rejected (%s); using uniform distribution", raw, e)
            return cls.uniform(is_fallback=True)

    @property
    def values(self) -> Tuple[Decimal, ...]:
        return self._values

    def normalized(self) -> Tuple[Decimal, ...]:
        """Scaled so the twelve factors sum to 12 (mean 1.0)."""
        total = sum(self._values)
        return tuple(v * MONTHS / total for v in self._values)

    def as_floats(self):
        return [float(v) for v in self._values]

    def __len__(self) -> int:
        return MONTHS

    def __iter__(self):
        return iter(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SeasonalityFactors):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"SeasonalityFactors({self.as_floats()!r}, is_fallback={self.is_fallback})"
