"""
Catalog item models: doors, door accessories and mouldings.

The catalogs are maintained by seller/admin tooling outside this service;
baskets and checkout only read them. Each catalog is its own table and is
addressed from a basket line by an ``ItemKind`` plus the item id.
"""

import enum
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel, Money


class ItemKind(str, enum.Enum):
    """The closed set of catalogs a basket line can point at."""

    DOOR = "door"
    DOOR_ACCESSORY = "door_accessory"
    MOULDING = "moulding"

    @classmethod
    def from_string(cls, value: str) -> "ItemKind":
        """
        Accept either the enum name or its value, case-insensitively.

        Raises:
            ValueError: If value names no catalog
        """
        normalized = value.strip().lower()
        for kind in cls:
            if normalized in (kind.value, kind.name.lower()):
                return kind
        raise ValueError(f"Invalid item kind: {value}")


def first_image(image_urls: Optional[list[str]]) -> Optional[str]:
    return image_urls[0] if image_urls else None


class Door(BaseModel):
    """
    A door listed by a seller.

    ``final_price`` is the discounted price when a seller sets one; the
    price customers pay is ``final_price`` if present, else ``price``.
    """

    __tablename__ = "doors"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_doors_price_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    final_price: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    image_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    seller_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    @property
    def selling_price(self) -> Decimal:
        return self.final_price if self.final_price is not None else self.price


class DoorAccessory(BaseModel):
    """Hardware sold alongside doors (handles, hinges, locks)."""

    __tablename__ = "door_accessories"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_door_accessories_price_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    material: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class Moulding(BaseModel):
    """Frames and trims; ``title`` is the customer-facing name when set."""

    __tablename__ = "mouldings"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_mouldings_price_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    article: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    image_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    @property
    def display_name(self) -> str:
        return self.title or self.name
