"""SQLAlchemy models for the order store."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Orders
# =============================================================================


class OrderRecord(Base):
    """Order synchronized from the IdoSell shop.

    ``external_id`` carries a unique constraint: it is the authoritative guard
    against two processes creating the same order concurrently.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    external_serial_number: Mapped[Optional[str]] = mapped_column(String(100))
    currency: Mapped[Optional[str]] = mapped_column(String(10))
    status: Mapped[Optional[str]] = mapped_column(String(100))
    order_products_cost: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    # [{"product_id": ..., "product_quantity": ...}] in order-line order
    order_products: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Reported by IdoSell; None when the API did not say
    external_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    external_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Owned by this service
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_orders_external_serial_number", "external_serial_number"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_external_created_at", "external_created_at"),
    )
