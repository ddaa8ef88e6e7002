"""
Database Models

Source tables are written by the ingestion jobs and only read here:
- orders / order_line_items: order ledger
- products: catalog with stock and cost fields
- search_performance: daily search console rows per query and page
- web_analytics: daily session rows per channel and landing page

Output table:
- indicator_snapshots: latest result per (tenant, indicator, period label)
"""

import datetime as dt
from datetime import datetime
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# JSONB on PostgreSQL, plain JSON elsewhere
PayloadType = JSON().with_variant(JSONB(), "postgresql")

Money = Numeric(12, 2, asdecimal=False)


# =============================================================================
# SOURCE TABLES
# =============================================================================

class OrderRecord(Base):
    """
    Order Ledger

    One row per order with its grand total.
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)

    total_amount: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    currency: Mapped[Optional[str]] = mapped_column(String(3))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Audit
    ingested_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    line_items: Mapped[List["OrderLineItemRecord"]] = relationship(
        back_populates="order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "order_id", name="uq_orders_tenant_order"),
        Index("ix_orders_tenant_created", "tenant_id", "created_at"),
    )


class OrderLineItemRecord(Base):
    """Line items of an order"""
    __tablename__ = "order_line_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_pk: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )

    product_ref: Mapped[Optional[str]] = mapped_column(String(100))
    product_name: Mapped[Optional[str]] = mapped_column(String(500))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[float] = mapped_column(Money, default=0)
    line_total: Mapped[Optional[float]] = mapped_column(Money)

    order: Mapped["OrderRecord"] = relationship(back_populates="line_items")

    __table_args__ = (
        Index("ix_order_line_items_order", "order_pk"),
        Index("ix_order_line_items_product", "product_ref"),
    )


class ProductRecord(Base):
    """Product catalog with inventory and cost"""
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[str] = mapped_column(String(100), nullable=False)
    product_ref: Mapped[Optional[str]] = mapped_column(String(100))
    sku: Mapped[Optional[str]] = mapped_column(String(100))

    name: Mapped[str] = mapped_column(String(500), default="")
    category: Mapped[Optional[str]] = mapped_column(String(200))
    url_slug: Mapped[Optional[str]] = mapped_column(String(500))

    # Inventory
    stock_level: Mapped[int] = mapped_column(Integer, default=0)
    min_stock_level: Mapped[Optional[int]] = mapped_column(Integer)

    # Pricing
    unit_price: Mapped[float] = mapped_column(Money, default=0)
    unit_cost: Mapped[Optional[float]] = mapped_column(Money)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", name="uq_products_tenant_product"),
        Index("ix_products_tenant", "tenant_id"),
    )


class SearchPerformanceRecord(Base):
    """Daily search performance per query and landing page"""
    __tablename__ = "search_performance"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    query: Mapped[str] = mapped_column(Text, default="")
    page: Mapped[str] = mapped_column(Text, default="")
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    position: Mapped[float] = mapped_column(Float, default=0)

    __table_args__ = (
        Index("ix_search_performance_tenant_date", "tenant_id", "date"),
    )


class WebAnalyticsRecord(Base):
    """Daily sessions per channel and landing page"""
    __tablename__ = "web_analytics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    channel: Mapped[str] = mapped_column(String(100), default="Direct")
    landing_page: Mapped[Optional[str]] = mapped_column(Text)
    sessions: Mapped[int] = mapped_column(Integer, default=0)
    engaged_sessions: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        Index("ix_web_analytics_tenant_date", "tenant_id", "date"),
    )


# =============================================================================
# OUTPUT
# =============================================================================

class IndicatorSnapshot(Base):
    """
    Latest Indicator Result

    The full result is stored as an opaque payload; the scalar columns are
    denormalized copies for filtering and sorting.
    """
    __tablename__ = "indicator_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    indicator_id: Mapped[str] = mapped_column(String(50), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    period_label: Mapped[str] = mapped_column(String(8), nullable=False)
    period_start: Mapped[dt.date] = mapped_column(Date, nullable=False)
    period_end: Mapped[dt.date] = mapped_column(Date, nullable=False)

    payload: Mapped[dict] = mapped_column(PayloadType, nullable=False)

    # Denormalized
    numeric_value: Mapped[Optional[float]] = mapped_column(Float)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    change_percent: Mapped[Optional[float]] = mapped_column(Float)
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    confidence: Mapped[str] = mapped_column(String(10), nullable=False)
    alert_triggered: Mapped[bool] = mapped_column(Boolean, default=False)

    calculated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "indicator_id", "period_label", name="uq_indicator_snapshots_key"
        ),
        Index("ix_indicator_snapshots_tenant_period", "tenant_id", "period_label"),
        Index("ix_indicator_snapshots_alerts", "tenant_id", "alert_triggered"),
    )
