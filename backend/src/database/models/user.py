"""
User model.

Accounts are owned by the identity service; this table keeps the fields the
shop needs to attribute baskets and orders and to copy contact details onto
orders at checkout.
"""

import enum
from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import BaseModel


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""

    USER = "user"
    SELLER = "seller"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Invalid role: {value}")


class User(BaseModel):
    """
    Shop customer, seller or administrator.

    Attributes:
        id: Unique user identifier (UUID)
        name: Display name, copied onto orders as the customer name
        email: Contact email (unique)
        phone: Contact phone, copied onto orders
        role: Access role
        is_active: Inactive accounts are rejected by the API
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Display name",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Contact email address",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
        comment="Contact phone number",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.USER,
        comment="Access role",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the account may use the API",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
