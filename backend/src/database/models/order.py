"""
Order model.

One order is created per basket line at checkout. Everything except the
status fields is a snapshot taken at checkout time and never changes
afterwards: the item and price come from the basket line, contact details
from the authenticated customer and delivery details from the checkout
request.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel, Money
from src.database.models.catalog import ItemKind
from src.services.orders.enums import OrderStatus, OrderType


class Order(BaseModel):
    """
    A placed order for a single catalog item.

    Attributes:
        user_id: Customer who placed the order
        item_kind: Catalog the item belongs to
        item_id: Catalog item identifier
        item_name: Item name as shown in the basket
        unit_price: Price the customer saw in the basket
        quantity: Units ordered
        order_type: Full set or canvas only
        customer_name, customer_email, customer_phone: Copied from the user
        delivery_address: Where to deliver
        preferred_delivery_time: When the customer wants delivery
        comment, installation_notes, delivery_notes: Free text from checkout
        status: Lifecycle status
        status_changed_at: When status last changed
        created_at: Order date (from BaseModel)
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_orders_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_orders_price_non_negative"),
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    item_kind: Mapped[ItemKind] = mapped_column(
        SQLEnum(ItemKind, name="item_kind", native_enum=False),
        nullable=False,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order_type: Mapped[OrderType] = mapped_column(
        SQLEnum(OrderType, name="order_type", native_enum=False),
        nullable=False,
        default=OrderType.FULL_SET,
    )

    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    delivery_address: Mapped[str] = mapped_column(String(255), nullable=False)
    preferred_delivery_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    installation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivery_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status", native_enum=False),
        nullable=False,
        default=OrderStatus.PENDING,
        comment="Current order status",
    )
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity
