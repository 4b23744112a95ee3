# [BEGIN FILE] backend/revenue_projections/models/__init__.py
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Date,
    ForeignKey,
    UniqueConstraint,
    Index,
    CheckConstraint,
    func,
    Numeric,
    Boolean,
    JSON,
)
from sqlalchemy.orm import declarative_base, relationship

from ..core.config import engine, settings
from ..core.errors import ValidationError
from ..core.money import round_money, to_decimal

Base = declarative_base()

CALCULATION_METHODS = ("simple_average", "weighted_average", "trend")
SCENARIO_STATUSES = ("draft", "active", "archived")
ADJUSTMENT_TYPES = ("percentage", "fixed_amount")
INVOICE_STATUSES = ("draft", "issued", "paid", "cancelled")
# invoices that count as realised revenue
REVENUE_INVOICE_STATUSES = ("issued", "paid")


# =========================
# Tenant
# =========================
class Organization(Base):
    __tablename__ = "organizations"
    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)

    created_at = Column(DateTime, server_default=func.now())


# =========================
# Dimensions (business group / customer type / customer / product)
# =========================
class BusinessGroup(Base):
    __tablename__ = "business_groups"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    __table_args__ = (Index("ix_business_groups_org", "organization_id"),)


class CustomerType(Base):
    __tablename__ = "customer_types"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    __table_args__ = (Index("ix_customer_types_org", "organization_id"),)


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    business_group_id = Column(Integer, ForeignKey("business_groups.id", ondelete="SET NULL"), nullable=True)
    customer_type_id = Column(Integer, ForeignKey("customer_types.id", ondelete="RESTRICT"), nullable=False)

    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False)
    tax_id = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    created_at = Column(DateTime, server_default=func.now())
    deleted_at = Column(DateTime, nullable=True)

    business_group = relationship("BusinessGroup", lazy="selectin")
    customer_type = relationship("CustomerType", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uix_customer_org_code"),
        Index("ix_customers_bg", "business_group_id"),
        Index("ix_customers_type", "customer_type_id"),
        Index("ix_customers_active", "is_active"),
    )


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    __table_args__ = (UniqueConstraint("organization_id", "code", name="uix_product_org_code"),)


# =========================
# Invoices (output of the import pipeline, read-only here)
# =========================
class Invoice(Base):
    __tablename__ = "invoices"
    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False)

    invoice_number = Column(String(100), nullable=False, unique=True)
    invoice_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="MXN")
    status = Column(String(20), nullable=False, default="issued", server_default="issued")

    created_at = Column(DateTime, server_default=func.now())

    customer = relationship("Customer", lazy="selectin")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", lazy="selectin")

    __table_args__ = (
        CheckConstraint("status IN ('draft','issued','paid','cancelled')", name="ck_invoice_status"),
        Index("ix_invoices_customer_date", "customer_id", "invoice_date"),
        Index("ix_invoices_date", "invoice_date"),
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"
    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=True)

    quantity = Column(Numeric(15, 4), nullable=False, default=1)
    unit_price = Column(Numeric(15, 4), nullable=False, default=0)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items", lazy="selectin")

    __table_args__ = (
        Index("ix_invoice_items_invoice", "invoice_id"),
        Index("ix_invoice_items_product", "product_id"),
    )


# =========================
# Reference inflation (global)
# =========================
class InflationRate(Base):
    __tablename__ = "inflation_rates"
    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False, unique=True)
    rate = Column(Numeric(7, 2), nullable=False)
    source = Column(String(100), nullable=True)
    is_estimated = Column(Boolean, nullable=False, default=False, server_default="0")


# =========================
# Scenario / Assumptions
# =========================
class Scenario(Base):
    __tablename__ = "scenarios"
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    base_year = Column(Integer, nullable=False)
    historical_months = Column(Integer, nullable=False, default=12)
    projection_years = Column(Integer, nullable=False, default=1)
    calculation_method = Column(String(30), nullable=False, default="simple_average")
    include_inflation = Column(Boolean, nullable=False, default=True, server_default="1")
    is_baseline = Column(Boolean, nullable=False, default=False, server_default="0")
    status = Column(String(20), nullable=False, default="draft", server_default="draft")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True)

    assumptions = relationship("ScenarioAssumption", back_populates="scenario", cascade="all, delete-orphan", lazy="selectin")

    __table_args__ = (
        CheckConstraint("historical_months >= 1 AND historical_months <= 120", name="ck_scenario_hist_months"),
        CheckConstraint("projection_years >= 1 AND projection_years <= 10", name="ck_scenario_proj_years"),
        CheckConstraint("calculation_method IN ('simple_average','weighted_average','trend')", name="ck_scenario_method"),
        CheckConstraint("status IN ('draft','active','archived')", name="ck_scenario_status"),
        Index("ix_scenarios_org", "organization_id"),
    )

    @property
    def projection_year_range(self):
        return range(self.base_year + 1, self.base_year + self.projection_years + 1)


class ScenarioAssumption(Base):
    __tablename__ = "scenario_assumptions"
    id = Column(Integer, primary_key=True, index=True)
    scenario_id = Column(Integer, ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False)
    year = Column(Integer, nullable=False)

    # dimension scope; NULL = any
    business_group_id = Column(Integer, ForeignKey("business_groups.id", ondelete="CASCADE"), nullable=True)
    customer_type_id = Column(Integer, ForeignKey("customer_types.id", ondelete="CASCADE"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=True)

    adjustment_type = Column(String(20), nullable=False, default="percentage", server_default="percentage")
    growth_rate = Column(Numeric(7, 2), nullable=False, default=0)
    inflation_rate = Column(Numeric(7, 2), nullable=True)
    fixed_amount = Column(Numeric(15, 2), nullable=True)
    seasonality_factors = Column(JSON, nullable=True)  # 12 numbers or NULL
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    scenario = relationship("Scenario", back_populates="assumptions", lazy="selectin")

    __table_args__ = (
        CheckConstraint("adjustment_type IN ('percentage','fixed_amount')", name="ck_assumption_adjustment"),
        CheckConstraint(
            "(adjustment_type = 'percentage') OR (fixed_amount IS NOT NULL)",
            name="ck_assumption_fixed_amount",
        ),
        Index("ix_assumptions_scenario_year", "scenario_id", "year"),
        Index("ix_assumptions_customer", "customer_id"),
        Index("ix_assumptions_bg", "business_group_id"),
        Index("ix_assumptions_type", "customer_type_id"),
        Index("ix_assumptions_product", "product_id"),
    )


# =========================
# Projections
# =========================
class Projection(Base):
    """
    Yearly figures for one (scenario, year, dimension tuple).

    Totals are checked on construction; rows are written only through
    ProjectionService._write, which re-runs check_totals and check_details
    right before the flush. Code that edits figures on a loaded row must go
    through the same seam.
    """

    __tablename__ = "projections"
    id = Column(Integer, primary_key=True, index=True)
    scenario_id = Column(Integer, ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False)
    year = Column(Integer, nullable=False)

    business_group_id = Column(Integer, ForeignKey("business_groups.id", ondelete="CASCADE"), nullable=True)
    customer_type_id = Column(Integer, ForeignKey("customer_types.id", ondelete="CASCADE"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=True)

    base_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_subtotal = Column(Numeric(15, 2), nullable=False)
    total_tax = Column(Numeric(15, 2), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    growth_applied = Column(Numeric(7, 2), nullable=False, default=0)
    inflation_applied = Column(Numeric(7, 2), nullable=False, default=0)
    calculation_method = Column(String(30), nullable=False)
    calculated_at = Column(DateTime, nullable=False, server_default=func.now())

    created_at = Column(DateTime, server_default=func.now())
    deleted_at = Column(DateTime, nullable=True)  # set = stale

    scenario = relationship("Scenario", lazy="selectin")
    details = relationship(
        "ProjectionDetail",
        back_populates="projection",
        cascade="all, delete-orphan",
        order_by="ProjectionDetail.month",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_projections_scenario_year", "scenario_id", "year"),
        Index("ix_projections_customer", "customer_id"),
        Index("ix_projections_active", "deleted_at"),
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.check_totals()

    @property
    def is_stale(self) -> bool:
        return self.deleted_at is not None

    @property
    def dimension_key(self):
        return (self.business_group_id, self.customer_type_id, self.customer_id, self.product_id)

    def check_totals(self, tolerance: Optional[Decimal] = None) -> None:
        """total_amount must equal round(subtotal + tax, 2). Never corrected, only rejected."""
        if self.total_subtotal is None or self.total_tax is None or self.total_amount is None:
            return
        tol = to_decimal(tolerance if tolerance is not None else settings.TOTALS_TOLERANCE)
        expected = round_money(to_decimal(self.total_subtotal) + to_decimal(self.total_tax))
        actual = to_decimal(self.total_amount)
        if abs(expected - actual) > tol:
            raise ValidationError(
                f"Projection total_amount ({actual}) does not match subtotal + tax ({expected})",
                expected=expected,
                actual=actual,
            )

    def check_details(self, tolerance: Optional[Decimal] = None) -> None:
        """The 12 monthly amounts must add up to total_amount."""
        tol = to_decimal(tolerance if tolerance is not None else settings.TOTALS_TOLERANCE)
        months = sorted(d.month for d in self.details)
        if months != list(range(1, 13)):
            raise ValidationError(f"Projection needs one detail per month 1..12, got {months}")
        monthly_sum = sum((to_decimal(d.amount) for d in self.details), Decimal("0"))
        actual = to_decimal(self.total_amount)
        if abs(monthly_sum - actual) > tol:
            raise ValidationError(
                f"Monthly amounts ({monthly_sum}) do not add up to total_amount ({actual})",
                expected=actual,
                actual=monthly_sum,
            )


# one active projection per (scenario, year, dimension key); NULL dims coalesced so they collide
Index(
    "uix_projection_active_key",
    Projection.scenario_id,
    Projection.year,
    func.coalesce(Projection.business_group_id, 0),
    func.coalesce(Projection.customer_type_id, 0),
    func.coalesce(Projection.customer_id, 0),
    func.coalesce(Projection.product_id, 0),
    unique=True,
    sqlite_where=Projection.deleted_at.is_(None),
    postgresql_where=Projection.deleted_at.is_(None),
)


class ProjectionDetail(Base):
    __tablename__ = "projection_details"
    id = Column(Integer, primary_key=True, index=True)
    projection_id = Column(Integer, ForeignKey("projections.id", ondelete="CASCADE"), nullable=False)
    month = Column(Integer, nullable=False)  # 1..12

    subtotal = Column(Numeric(15, 2), nullable=False)
    tax = Column(Numeric(15, 2), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    base_amount = Column(Numeric(15, 2), nullable=False, default=0)
    seasonality_factor = Column(Numeric(9, 6), nullable=False, default=1)

    projection = relationship("Projection", back_populates="details", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("projection_id", "month", name="uix_projection_detail_month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_projection_detail_month"),
        Index("ix_projection_details_projection", "projection_id"),
    )


# =========================
# Create all (idempotent)
# =========================
def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
