"""
Order notifications.

Checkout calls the notifier only after the orders are committed. Delivery
channels (email, SMS) live outside this service; the default notifier
records a structured event that downstream log shippers can pick up.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from src.core.logging import get_logger
from src.database.models.order import Order
from src.database.models.user import User

logger = get_logger(__name__)


class NotificationServiceError(Exception):
    """Base exception for notification service errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class NotificationService:
    """
    Tells interested parties that orders were placed.

    Subclasses override ``orders_placed`` to deliver through a real channel
    and may raise ``NotificationServiceError``; callers treat any failure as
    non-fatal because the orders are already durable.
    """

    async def orders_placed(self, user: User, orders: Sequence[Order]) -> None:
        total = sum((order.total_price for order in orders), Decimal("0.00"))
        logger.info(
            "Orders placed",
            user_id=str(user.id),
            customer_email=user.email,
            order_ids=[str(order.id) for order in orders],
            order_count=len(orders),
            total_amount=str(total),
        )


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get the process-wide notification service."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
