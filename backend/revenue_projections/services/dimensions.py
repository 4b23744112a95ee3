# revenue_projections/services/dimensions.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional, Tuple

DIMENSION_FIELDS = ("business_group_id", "customer_type_id", "customer_id", "product_id")


@dataclass(frozen=True)
class DimensionTuple:
    """(business_group, customer_type, customer, product) scope; None = not set."""

    business_group_id: Optional[int] = None
    customer_type_id: Optional[int] = None
    customer_id: Optional[int] = None
    product_id: Optional[int] = None

    @classmethod
    def of(cls, obj) -> "DimensionTuple":
        """Build from anything carrying the four *_id attributes (Projection, ScenarioAssumption, Customer...)."""
        return cls(**{f: getattr(obj, f, None) for f in DIMENSION_FIELDS})

    @classmethod
    def for_customer(cls, customer, product_id: Optional[int] = None) -> "DimensionTuple":
        return cls(
            business_group_id=customer.business_group_id,
            customer_type_id=customer.customer_type_id,
            customer_id=customer.id,
            product_id=product_id,
        )

    def as_dict(self) -> Dict[str, Optional[int]]:
        return asdict(self)


# =========================
# Scope precedence
# =========================
# Highest first. Fixed business rule: customer > business_group > customer_type > product > global.
ScopePredicate = Callable[[object], bool]

SCOPE_PRECEDENCE: List[Tuple[str, ScopePredicate]] = [
    ("customer", lambda row: row.customer_id is not None),
    ("business_group", lambda row: row.business_group_id is not None),
    ("customer_type", lambda row: row.customer_type_id is not None),
    ("product", lambda row: row.product_id is not None),
]


def scope_rank(row) -> Tuple[bool, ...]:
    """
    Sort key for an assumption scope. Compared lexicographically, so any
    customer-scoped row outranks every row without a customer, and so on down
    the table. The global row is all False and ranks last.
    """
    return tuple(pred(row) for _, pred in SCOPE_PRECEDENCE)


def scope_level(row) -> str:
    for name, pred in SCOPE_PRECEDENCE:
        if pred(row):
            return name
    return "global"


def matches(row, target: DimensionTuple) -> bool:
    """Every non-null field on the row equals the target's field."""
    for f in DIMENSION_FIELDS:
        value = getattr(row, f, None)
        if value is not None and value != getattr(target, f):
            return False
    return True
