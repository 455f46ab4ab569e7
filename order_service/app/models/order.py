from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DECIMAL,
    TEXT,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import OrderServiceBaseModel


class OrderStatus(str, Enum):
    PENDING = "pendiente"
    PROCESSING = "en_procesamiento"
    SHIPPED = "enviado"
    DELIVERED = "entregado"
    CANCELLED = "cancelado"


class Order(OrderServiceBaseModel):
    __tablename__ = "orders"

    client_id: Mapped[str] = mapped_column(
        String(36), nullable=False, index=True
    )  # Reference to user service (no FK in microservices)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    shipping_address: Mapped[str] = mapped_column(TEXT, nullable=False)

    # Assigned only through services.state_machine
    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False
    )
    total: Mapped[Decimal] = mapped_column(
        DECIMAL(10, 2), default=Decimal("0"), nullable=False
    )

    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    shipped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Optimistic concurrency: UPDATE ... WHERE version = <loaded version>
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
    )

    __table_args__ = (Index("ix_orders_created_at", "created_at"),)
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} total={self.total}>"


class OrderItem(OrderServiceBaseModel):
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    product_id: Mapped[str] = mapped_column(
        String(36), nullable=False
    )  # Reference to product service (no FK in microservices)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_image_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )
