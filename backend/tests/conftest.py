# backend/tests/conftest.py
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from revenue_projections.api import deps as app_deps
from revenue_projections.main import app
from revenue_projections.models import (
    Base,
    BusinessGroup,
    Customer,
    CustomerType,
    Invoice,
    Organization,
    Scenario,
    ScenarioAssumption,
)


# -----------------------------
# Test DB: one in-memory SQLite per test
# -----------------------------
@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[app_deps.get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# -----------------------------
# Seed data
# -----------------------------
@dataclass
class Seed:
    org: Organization
    other_org: Organization
    group: BusinessGroup
    ctype: CustomerType
    customers: List[Customer]


_invoice_seq = {"n": 0}


def add_invoice(db, customer, on: date, total, tax=None, status="issued", items=None):
    """Invoice with total/tax; tax defaults to the 16% share of a tax-inclusive total."""
    total = Decimal(str(total))
    tax = Decimal(str(tax)) if tax is not None else (total * 16 / 116).quantize(Decimal("0.01"))
    _invoice_seq["n"] += 1
    inv = Invoice(
        customer_id=customer.id,
        invoice_number=f"INV-{_invoice_seq['n']:06d}",
        invoice_date=on,
        subtotal=total - tax,
        tax=tax,
        total=total,
        status=status,
    )
    for item in items or []:
        inv.items.append(item)
    db.add(inv)
    return inv


def add_monthly_invoices(db, customer, year: int, amount, tax=None, months=range(1, 13)):
    for m in months:
        add_invoice(db, customer, date(year, m, 15), amount, tax)


@pytest.fixture
def seed(db) -> Seed:
    org = Organization(slug="acme", name="Acme")
    other = Organization(slug="other", name="Other Org")
    db.add_all([org, other])
    db.flush()

    group = BusinessGroup(organization_id=org.id, name="Retail", code="RET")
    ctype = CustomerType(organization_id=org.id, name="Wholesale", code="WHS")
    db.add_all([group, ctype])
    db.flush()

    customers = [
        Customer(organization_id=org.id, business_group_id=group.id, customer_type_id=ctype.id, name="Alpha", code="C-A"),
        Customer(organization_id=org.id, business_group_id=group.id, customer_type_id=ctype.id, name="Beta", code="C-B"),
    ]
    db.add_all(customers)
    db.commit()
    return Seed(org=org, other_org=other, group=group, ctype=ctype, customers=customers)


def make_scenario(db, org, **fields) -> Scenario:
    values = dict(
        name="Base case",
        base_year=2024,
        historical_months=12,
        projection_years=1,
        calculation_method="simple_average",
        include_inflation=False,
    )
    values.update(fields)
    sc = Scenario(organization_id=org.id, **values)
    db.add(sc)
    db.commit()
    return sc


def make_assumption(db, scenario, **fields) -> ScenarioAssumption:
    values = dict(year=scenario.base_year + 1, adjustment_type="percentage", growth_rate=Decimal("10"))
    values.update(fields)
    row = ScenarioAssumption(scenario_id=scenario.id, **values)
    db.add(row)
    db.commit()
    return row


def org_headers(org) -> dict:
    return {"X-Organization-Id": str(org.id)}
