# backend/tests/test_seasonality.py
from decimal import Decimal

import pytest

from revenue_projections.core.errors import InvalidSeasonalityFactors
from revenue_projections.services.seasonality import SeasonalityFactors


def test_strict_accepts_twelve_non_negative_numbers():
    f = SeasonalityFactors.strict([1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, "12"])
    assert len(f) == 12
    assert f.values[11] == Decimal("12")
    assert f.is_fallback is False


@pytest.mark.parametrize(
    "raw",
    [
        [1.0, 1.0],
        [0] * 12,
        [1] * 11 + [-1],
        [1] * 11 + ["x"],
        [1] * 11 + [None],
        [1] * 11 + [float("inf")],
        "111111111111",
        None,
    ],
)
def test_strict_rejects(raw):
    with pytest.raises(InvalidSeasonalityFactors):
        SeasonalityFactors.strict(raw)


def test_from_raw_falls_back_and_flags():
    f = SeasonalityFactors.from_raw([0] * 12)
    assert f == SeasonalityFactors.uniform()
    assert f.is_fallback is True


def test_from_raw_none_is_plain_uniform():
    f = SeasonalityFactors.from_raw(None)
    assert f.as_floats() == [1.0] * 12
    assert f.is_fallback is False


def test_normalized_sums_to_twelve():
    f = SeasonalityFactors.strict([2] * 6 + [4] * 6)
    normalized = f.normalized()
    assert normalized[0] == Decimal("12") * 2 / 36
    assert abs(sum(normalized) - 12) < Decimal("1e-20")
