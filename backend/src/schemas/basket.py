"""
Basket and checkout schemas for API requests and responses.

Quantity bounds are enforced by the basket service, not here, so that an
out-of-range quantity is reported as INVALID_QUANTITY rather than a generic
validation error.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.database.models.catalog import ItemKind
from src.schemas.orders import OrderResponse
from src.services.orders.enums import OrderType


class AddBasketLineRequest(BaseModel):
    """Schema for adding a catalog item to the basket."""

    item_kind: ItemKind = Field(
        ...,
        description="Catalog the item belongs to",
    )
    item_id: UUID = Field(
        ...,
        description="ID of the catalog item",
    )
    quantity: int = Field(
        default=1,
        description="Units to add; merged into an existing line for the same item",
    )

    @field_validator("item_kind", mode="before")
    @classmethod
    def parse_item_kind(cls, v):
        """Accept enum names (``DOOR``) as well as values (``door``)."""
        if isinstance(v, str):
            return ItemKind.from_string(v)
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "item_kind": "door",
                "item_id": "123e4567-e89b-12d3-a456-426614174000",
                "quantity": 2,
            }
        }
    }


class UpdateBasketLineRequest(BaseModel):
    """Schema for changing a line's quantity. Zero removes the line."""

    quantity: int = Field(
        ...,
        description="New quantity for the line",
    )
    version: Optional[int] = Field(
        None,
        description="Line version the client last saw; stale versions are rejected",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "quantity": 3,
                "version": 2,
            }
        }
    }


class BasketLineResponse(BaseModel):
    """Schema for a basket line."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_kind: ItemKind
    item_id: UUID
    name: str
    image_url: Optional[str] = None
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    version: int
    created_at: datetime


class BasketResponse(BaseModel):
    """Schema for a basket with freshly computed totals."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    lines: list[BasketLineResponse] = Field(default_factory=list)
    total_price: Decimal = Field(..., description="Sum of unit price times quantity")
    item_count: int
    line_count: int


class ClearBasketResponse(BaseModel):
    removed_lines: int


class CheckoutRequest(BaseModel):
    """
    Delivery details for checkout.

    Customer identity and prices never come from the request: identity is
    the authenticated user and prices are the basket snapshots. Unknown
    fields are ignored.
    """

    delivery_address: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Delivery address",
    )
    order_type: OrderType = Field(
        default=OrderType.FULL_SET,
        description="Full door set or canvas only",
    )
    preferred_delivery_time: datetime = Field(
        ...,
        description="Requested delivery time, with timezone",
    )
    comment: Optional[str] = Field(None, max_length=2000)
    installation_notes: Optional[str] = Field(None, max_length=2000)
    delivery_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("delivery_address")
    @classmethod
    def validate_delivery_address(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Delivery address cannot be empty or whitespace")
        return v.strip()

    @field_validator("order_type", mode="before")
    @classmethod
    def parse_order_type(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("preferred_delivery_time")
    @classmethod
    def validate_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.tzinfo.utcoffset(v) is None:
            raise ValueError("Preferred delivery time must include a timezone")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "delivery_address": "12 Amir Temur Ave, Tashkent",
                "order_type": "full_set",
                "preferred_delivery_time": "2026-11-02T10:00:00+05:00",
                "installation_notes": "Third floor, no lift",
            }
        }
    }


class CheckoutLinesRequest(CheckoutRequest):
    """Checkout restricted to selected basket lines."""

    line_ids: list[UUID] = Field(
        ...,
        min_length=1,
        description="Basket lines to order",
    )


class CheckoutResponse(BaseModel):
    """Schema for a checkout outcome."""

    status: str
    success: bool
    message: str
    total_amount: Decimal
    orders: list[OrderResponse] = Field(default_factory=list)
