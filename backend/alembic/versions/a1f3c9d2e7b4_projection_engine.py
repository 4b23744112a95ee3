"""projection engine schema

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-19 10:12:41.318204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "a1f3c9d2e7b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _dimension_columns(ondelete: str = "CASCADE"):
    return [
        sa.Column("business_group_id", sa.Integer, sa.ForeignKey("business_groups.id", ondelete=ondelete), nullable=True),
        sa.Column("customer_type_id", sa.Integer, sa.ForeignKey("customer_types.id", ondelete=ondelete), nullable=True),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id", ondelete=ondelete), nullable=True),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete=ondelete), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("slug", sa.String, nullable=False, unique=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    for table in ("business_groups", "customer_types"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("code", sa.String(50), nullable=True),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        )
        op.create_index(f"ix_{table}_org", table, ["organization_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("business_group_id", sa.Integer, sa.ForeignKey("business_groups.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_type_id", sa.Integer, sa.ForeignKey("customer_types.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("tax_id", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
        sa.UniqueConstraint("organization_id", "code", name="uix_customer_org_code"),
    )
    op.create_index("ix_customers_bg", "customers", ["business_group_id"])
    op.create_index("ix_customers_type", "customers", ["customer_type_id"])
    op.create_index("ix_customers_active", "customers", ["is_active"])

    op.create_table(
        "products",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="1"),
        sa.UniqueConstraint("organization_id", "code", name="uix_product_org_code"),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("invoice_number", sa.String(100), nullable=False, unique=True),
        sa.Column("invoice_date", sa.Date, nullable=False),
        sa.Column("subtotal", sa.Numeric(15, 2), nullable=False),
        sa.Column("tax", sa.Numeric(15, 2), nullable=False),
        sa.Column("total", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="MXN"),
        sa.Column("status", sa.String(20), nullable=False, server_default="issued"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('draft','issued','paid','cancelled')", name="ck_invoice_status"),
    )
    op.create_index("ix_invoices_customer_date", "invoices", ["customer_id", "invoice_date"])
    op.create_index("ix_invoices_date", "invoices", ["invoice_date"])

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("invoice_id", sa.Integer, sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("quantity", sa.Numeric(15, 4), nullable=False),
        sa.Column("unit_price", sa.Numeric(15, 4), nullable=False),
        sa.Column("subtotal", sa.Numeric(15, 2), nullable=False),
        sa.Column("tax", sa.Numeric(15, 2), nullable=False),
        sa.Column("total", sa.Numeric(15, 2), nullable=False),
    )
    op.create_index("ix_invoice_items_invoice", "invoice_items", ["invoice_id"])
    op.create_index("ix_invoice_items_product", "invoice_items", ["product_id"])

    op.create_table(
        "inflation_rates",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("year", sa.Integer, nullable=False, unique=True),
        sa.Column("rate", sa.Numeric(7, 2), nullable=False),
        sa.Column("source", sa.String(100), nullable=True),
        sa.Column("is_estimated", sa.Boolean, nullable=False, server_default="0"),
    )

    op.create_table(
        "scenarios",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("base_year", sa.Integer, nullable=False),
        sa.Column("historical_months", sa.Integer, nullable=False, server_default=sa.text("12")),
        sa.Column("projection_years", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("calculation_method", sa.String(30), nullable=False, server_default="simple_average"),
        sa.Column("include_inflation", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("is_baseline", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
        sa.CheckConstraint("historical_months >= 1 AND historical_months <= 120", name="ck_scenario_hist_months"),
        sa.CheckConstraint("projection_years >= 1 AND projection_years <= 10", name="ck_scenario_proj_years"),
        sa.CheckConstraint("calculation_method IN ('simple_average','weighted_average','trend')", name="ck_scenario_method"),
        sa.CheckConstraint("status IN ('draft','active','archived')", name="ck_scenario_status"),
    )
    op.create_index("ix_scenarios_org", "scenarios", ["organization_id"])

    op.create_table(
        "scenario_assumptions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("scenario_id", sa.Integer, sa.ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        *_dimension_columns(),
        sa.Column("adjustment_type", sa.String(20), nullable=False, server_default="percentage"),
        sa.Column("growth_rate", sa.Numeric(7, 2), nullable=False),
        sa.Column("inflation_rate", sa.Numeric(7, 2), nullable=True),
        sa.Column("fixed_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("seasonality_factors", sa.JSON, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("adjustment_type IN ('percentage','fixed_amount')", name="ck_assumption_adjustment"),
        sa.CheckConstraint("(adjustment_type = 'percentage') OR (fixed_amount IS NOT NULL)", name="ck_assumption_fixed_amount"),
    )
    op.create_index("ix_assumptions_scenario_year", "scenario_assumptions", ["scenario_id", "year"])
    op.create_index("ix_assumptions_customer", "scenario_assumptions", ["customer_id"])
    op.create_index("ix_assumptions_bg", "scenario_assumptions", ["business_group_id"])
    op.create_index("ix_assumptions_type", "scenario_assumptions", ["customer_type_id"])
    op.create_index("ix_assumptions_product", "scenario_assumptions", ["product_id"])

    op.create_table(
        "projections",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("scenario_id", sa.Integer, sa.ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        *_dimension_columns(),
        sa.Column("base_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_subtotal", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_tax", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("growth_applied", sa.Numeric(7, 2), nullable=False),
        sa.Column("inflation_applied", sa.Numeric(7, 2), nullable=False),
        sa.Column("calculation_method", sa.String(30), nullable=False),
        sa.Column("calculated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_projections_scenario_year", "projections", ["scenario_id", "year"])
    op.create_index("ix_projections_customer", "projections", ["customer_id"])
    op.create_index("ix_projections_active", "projections", ["deleted_at"])
    op.create_index(
        "uix_projection_active_key",
        "projections",
        [
            "scenario_id",
            "year",
            sa.text("coalesce(business_group_id, 0)"),
            sa.text("coalesce(customer_type_id, 0)"),
            sa.text("coalesce(customer_id, 0)"),
            sa.text("coalesce(product_id, 0)"),
        ],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "projection_details",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("projection_id", sa.Integer, sa.ForeignKey("projections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("month", sa.Integer, nullable=False),
        sa.Column("subtotal", sa.Numeric(15, 2), nullable=False),
        sa.Column("tax", sa.Numeric(15, 2), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("base_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("seasonality_factor", sa.Numeric(9, 6), nullable=False),
        sa.UniqueConstraint("projection_id", "month", name="uix_projection_detail_month"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_projection_detail_month"),
    )
    op.create_index("ix_projection_details_projection", "projection_details", ["projection_id"])


def downgrade() -> None:
    op.drop_table("projection_details")
    op.drop_index("uix_projection_active_key", table_name="projections")
    op.drop_table("projections")
    op.drop_table("scenario_assumptions")
    op.drop_table("scenarios")
    op.drop_table("inflation_rates")
    op.drop_table("invoice_items")
    op.drop_table("invoices")
    op.drop_table("products")
    op.drop_table("customers")
    op.drop_table("customer_types")
    op.drop_table("business_groups")
    op.drop_table("organizations")
