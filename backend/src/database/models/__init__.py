"""
Database models package.

Importing this package registers every model with ``Base.metadata`` so
Alembic and ``create_all`` see the full schema.
"""

from src.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from src.database.models.basket import Basket, BasketLine
from src.database.models.catalog import Door, DoorAccessory, ItemKind, Moulding
from src.database.models.order import Order
from src.database.models.user import User, UserRole

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Basket",
    "BasketLine",
    "Door",
    "DoorAccessory",
    "ItemKind",
    "Moulding",
    "Order",
    "User",
    "UserRole",
]
