"""
Basket and basket line models.

Every user owns at most one basket, created on first access and emptied
(never deleted) by checkout. A line snapshots the item's price, name and
image when it is first added and carries a ``version`` counter used for
optimistic concurrency control: every update or delete of a line must name
the version it read.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import BaseModel, Money
from src.database.models.catalog import ItemKind


class Basket(BaseModel):
    """
    A user's basket.

    Attributes:
        id: Unique basket identifier (UUID)
        user_id: Owning user (unique, one basket per user)
        lines: Basket lines ordered by when they were first added
    """

    __tablename__ = "baskets"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="Owning user",
    )

    lines: Mapped[list["BasketLine"]] = relationship(
        "BasketLine",
        back_populates="basket",
        cascade="all, delete-orphan",
        order_by=lambda: [BasketLine.created_at, BasketLine.id],
        lazy="selectin",
    )

    @property
    def total_price(self) -> Decimal:
        """Sum of unit price times quantity, recomputed on every access."""
        return sum(
            (line.line_total for line in self.lines),
            Decimal("0.00"),
        )

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find_line(self, item_kind: ItemKind, item_id: uuid.UUID) -> Optional["BasketLine"]:
        """Return the line holding ``(item_kind, item_id)``, if any."""
        for line in self.lines:
            if line.item_kind == item_kind and line.item_id == item_id:
                return line
        return None


class BasketLine(BaseModel):
    """
    One catalog item in a basket.

    Attributes:
        basket_id: Owning basket
        item_kind: Which catalog ``item_id`` refers to
        item_id: Catalog item identifier
        quantity: Units wanted, always at least 1
        unit_price: Price captured when the line was created
        name: Item name captured when the line was created
        image_url: First item image captured when the line was created
        version: Optimistic-lock counter, incremented on every update
    """

    __tablename__ = "basket_lines"
    __table_args__ = (
        UniqueConstraint(
            "basket_id",
            "item_kind",
            "item_id",
            name="uq_basket_lines_basket_item",
        ),
        CheckConstraint("quantity >= 1", name="ck_basket_lines_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_basket_lines_price_non_negative"),
    )

    basket_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("baskets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_kind: Mapped[ItemKind] = mapped_column(
        SQLEnum(ItemKind, name="item_kind", native_enum=False),
        nullable=False,
    )

    item_id: Mapped[uuid.UUID] = mapped_column(nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Optimistic concurrency counter",
    )

    basket: Mapped[Basket] = relationship("Basket", back_populates="lines")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity
