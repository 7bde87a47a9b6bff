"""
Order Pydantic schemas for API request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.database.models.catalog import ItemKind
from src.services.orders.enums import OrderStatus, OrderType


class OrderResponse(BaseModel):
    """A placed order as returned to its owner or an administrator."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    item_kind: ItemKind
    item_id: UUID
    item_name: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal
    order_type: OrderType
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    delivery_address: str
    preferred_delivery_time: Optional[datetime] = None
    comment: Optional[str] = None
    installation_notes: Optional[str] = None
    delivery_notes: Optional[str] = None
    status: OrderStatus
    status_changed_at: Optional[datetime] = None
    created_at: datetime


class OrderListResponse(BaseModel):
    """Paginated order list."""

    items: list[OrderResponse]
    total: int = Field(..., ge=0)
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)


class OrderStatusUpdateRequest(BaseModel):
    """Schema for an administrator moving an order to a new status."""

    status: OrderStatus = Field(..., description="Target order status")

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        if isinstance(v, str):
            return OrderStatus.from_string(v)
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "confirmed",
            }
        }
    }
