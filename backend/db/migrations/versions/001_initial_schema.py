"""
Initial schema - categories, items, consumption records, item correlations

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

VOLATILITY_VALUES = "('VERY_LOW', 'LOW', 'MEDIUM', 'HIGH', 'VERY_HIGH', 'NO_DATA', 'UNKNOWN')"


def upgrade() -> None:
    # 1. Categories
    op.create_table(
        "categories",
        sa.Column("category_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 2. Items (+ statistics snapshot columns)
    op.create_table(
        "items",
        sa.Column("item_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("item_code", sa.String(100), unique=True),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.category_id")),
        sa.Column("unit_of_measurement", sa.String(20), server_default="pcs"),
        sa.Column("unit_price", sa.Numeric(10, 2)),
        sa.Column("current_quantity", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("min_stock_level", sa.Numeric(10, 2)),
        sa.Column("max_stock_level", sa.Numeric(10, 2)),
        sa.Column("reorder_level", sa.Numeric(10, 2)),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("avg_daily_consumption", sa.Numeric(12, 4)),
        sa.Column("consumption_std_dev", sa.Numeric(12, 4)),
        sa.Column("coefficient_of_variation", sa.Numeric(10, 4)),
        sa.Column("volatility_classification", sa.String(20)),
        sa.Column("consumption_trend", sa.String(20)),
        sa.Column("consumption_pattern", sa.String(20)),
        sa.Column("forecast_next_period", sa.Numeric(12, 4)),
        sa.Column("coverage_days", sa.Integer),
        sa.Column("expected_stockout_date", sa.Date),
        sa.Column("statistics_updated_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="ck_item_status"),
        sa.CheckConstraint(
            f"volatility_classification IS NULL OR volatility_classification IN {VOLATILITY_VALUES}",
            name="ck_item_volatility",
        ),
    )
    op.create_index("ix_items_category", "items", ["category_id"])

    # 3. Consumption Records
    op.create_table(
        "consumption_records",
        sa.Column("record_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.Integer, sa.ForeignKey("items.item_id"), nullable=False),
        sa.Column("consumption_date", sa.Date, nullable=False),
        sa.Column("opening_stock", sa.Numeric(10, 2)),
        sa.Column("received_quantity", sa.Numeric(10, 2), server_default="0"),
        sa.Column("consumed_quantity", sa.Numeric(10, 2), server_default="0"),
        sa.Column("closing_stock", sa.Numeric(10, 2)),
        sa.Column("department", sa.String(100)),
        sa.Column("notes", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("item_id", "consumption_date", name="uq_consumption_item_date"),
        sa.CheckConstraint("consumed_quantity IS NULL OR consumed_quantity >= 0", name="ck_consumed_non_negative"),
    )
    op.create_index("ix_consumption_date", "consumption_records", ["consumption_date"])

    # 4. Item Correlations
    op.create_table(
        "item_correlations",
        sa.Column("correlation_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("item1_id", sa.Integer, sa.ForeignKey("items.item_id"), nullable=False),
        sa.Column("item2_id", sa.Integer, sa.ForeignKey("items.item_id"), nullable=False),
        sa.Column("correlation_coefficient", sa.Numeric(5, 4), nullable=False),
        sa.Column("correlation_type", sa.String(20), nullable=False),
        sa.Column("confidence_level", sa.Numeric(5, 2)),
        sa.Column("data_points", sa.Integer),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.category_id")),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_calculated", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("item1_id", "item2_id", name="uq_correlation_pair"),
        sa.CheckConstraint("item1_id <> item2_id", name="ck_correlation_distinct_items"),
        sa.CheckConstraint(
            "correlation_coefficient >= -1 AND correlation_coefficient <= 1",
            name="ck_correlation_range",
        ),
    )
    op.create_index("ix_correlation_item1", "item_correlations", ["item1_id", "correlation_coefficient"])
    op.create_index("ix_correlation_item2", "item_correlations", ["item2_id", "correlation_coefficient"])
    op.create_index("ix_correlation_type", "item_correlations", ["correlation_type"])


def downgrade() -> None:
    tables = [
        "item_correlations",
        "consumption_records",
        "items",
        "categories",
    ]
    for table in tables:
        op.drop_table(table)
