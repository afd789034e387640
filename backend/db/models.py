"""
StockPulse Database Models

4 tables for consumption analytics.

Tables:
  Reference data (written by the item/transaction services):
  1. categories            - Item groupings
  2. items                 - Inventory items (+ engine-owned statistics snapshot)
  3. consumption_records   - One row per item per day: opening, received, consumed, closing

  Derived (written only by the analytics engine):
  4. item_correlations     - Pairwise consumption correlation edges
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from db.session import Base

VOLATILITY_VALUES = "('VERY_LOW', 'LOW', 'MEDIUM', 'HIGH', 'VERY_HIGH', 'NO_DATA', 'UNKNOWN')"

# ─── 1. Categories ──────────────────────────────────────────────────────────


class Category(Base):
    __tablename__ = "categories"

    category_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("Item", back_populates="category")


# ─── 2. Items ───────────────────────────────────────────────────────────────


class Item(Base):
    __tablename__ = "items"

    item_id = Column(Integer, primary_key=True, autoincrement=True)
    item_code = Column(String(100), unique=True)
    item_name = Column(String(255), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=True)
    unit_of_measurement = Column(String(20), default="pcs")
    unit_price = Column(Numeric(10, 2))
    current_quantity = Column(Numeric(10, 2), nullable=False, default=0)
    min_stock_level = Column(Numeric(10, 2))
    max_stock_level = Column(Numeric(10, 2))
    reorder_level = Column(Numeric(10, 2))
    status = Column(String(20), nullable=False, default="active")

    # Statistics snapshot, written by analytics.batch and analytics.statistics
    avg_daily_consumption = Column(Numeric(12, 4))
    consumption_std_dev = Column(Numeric(12, 4))
    coefficient_of_variation = Column(Numeric(10, 4))
    volatility_classification = Column(String(20))
    consumption_trend = Column(String(20))
    consumption_pattern = Column(String(20))
    forecast_next_period = Column(Numeric(12, 4))
    coverage_days = Column(Integer)
    expected_stockout_date = Column(Date)
    statistics_updated_at = Column(DateTime)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_items_category", "category_id"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_item_status"),
        CheckConstraint(
            f"volatility_classification IS NULL OR volatility_classification IN {VOLATILITY_VALUES}",
            name="ck_item_volatility",
        ),
    )

    category = relationship("Category", back_populates="items")
    consumption_records = relationship("ConsumptionRecord", back_populates="item", cascade="all, delete-orphan")


# ─── 3. Consumption Records ─────────────────────────────────────────────────


class ConsumptionRecord(Base):
    __tablename__ = "consumption_records"

    record_id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("items.item_id"), nullable=False)
    consumption_date = Column(Date, nullable=False)
    opening_stock = Column(Numeric(10, 2))
    received_quantity = Column(Numeric(10, 2), default=0)
    consumed_quantity = Column(Numeric(10, 2), default=0)  # NULL is read as zero
    closing_stock = Column(Numeric(10, 2))
    department = Column(String(100))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("item_id", "consumption_date", name="uq_consumption_item_date"),
        Index("ix_consumption_date", "consumption_date"),
        CheckConstraint("consumed_quantity IS NULL OR consumed_quantity >= 0", name="ck_consumed_non_negative"),
    )

    item = relationship("Item", back_populates="consumption_records")


# ─── 4. Item Correlations ───────────────────────────────────────────────────


class ItemCorrelation(Base):
    __tablename__ = "item_correlations"

    correlation_id = Column(Integer, primary_key=True, autoincrement=True)
    item1_id = Column(Integer, ForeignKey("items.item_id"), nullable=False)
    item2_id = Column(Integer, ForeignKey("items.item_id"), nullable=False)
    correlation_coefficient = Column(Numeric(5, 4), nullable=False)
    correlation_type = Column(String(20), nullable=False)
    confidence_level = Column(Numeric(5, 2))
    data_points = Column(Integer)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_calculated = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("item1_id", "item2_id", name="uq_correlation_pair"),
        Index("ix_correlation_item1", "item1_id", "correlation_coefficient"),
        Index("ix_correlation_item2", "item2_id", "correlation_coefficient"),
        Index("ix_correlation_type", "correlation_type"),
        CheckConstraint("item1_id <> item2_id", name="ck_correlation_distinct_items"),
        CheckConstraint(
            "correlation_coefficient >= -1 AND correlation_coefficient <= 1",
            name="ck_correlation_range",
        ),
    )

    item1 = relationship("Item", foreign_keys=[item1_id])
    item2 = relationship("Item", foreign_keys=[item2_id])
