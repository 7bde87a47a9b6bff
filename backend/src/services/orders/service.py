"""
Order service for order history and status changes.

Orders are created by checkout; this service reads them back for their
owners and moves them through the status lifecycle. Customers may only
cancel their own pending orders; every other transition is an admin action.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.connection import unit_of_work
from src.database.models.order import Order
from src.database.models.user import User
from src.services.orders.enums import OrderStatus
from src.services.orders.repository import OrderRepository, OrderRepositoryError
from src.services.orders.state_machine import OrderStateMachine, StateTransitionError

logger = get_logger(__name__)


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class OrderNotFoundError(OrderServiceError):
    """Raised when an order does not exist or is not visible to the caller."""

    pass


class OrderPermissionError(OrderServiceError):
    """Raised when a non-admin attempts an admin-only operation."""

    pass


class OrderProcessingError(OrderServiceError):
    """Raised when reading or writing orders fails."""

    pass


class OrderService:
    """
    Service for order queries and lifecycle transitions.

    Attributes:
        repository: Order repository for data access
        state_machine: Validates and applies status transitions
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = OrderRepository(session)
        self.state_machine = OrderStateMachine()

    async def list_orders(
        self,
        user: User,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        The caller's orders, newest first.

        Returns:
            Tuple of (orders, total_count)
        """
        try:
            return await self.repository.get_user_orders(user.id, skip=skip, limit=limit)
        except OrderRepositoryError as e:
            raise OrderProcessingError(
                "Failed to list orders",
                user_id=str(user.id),
                error=str(e),
            ) from e

    async def get_order(self, user: User, order_id: uuid.UUID) -> Order:
        """
        Get one of the caller's orders.

        Raises:
            OrderNotFoundError: If the order is missing or owned by someone else
        """
        order = await self._load(order_id)
        if order.user_id != user.id:
            logger.warning(
                "Order requested by non-owner",
                order_id=str(order_id),
                user_id=str(user.id),
            )
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    async def cancel_order(self, user: User, order_id: uuid.UUID) -> Order:
        """
        Cancel one of the caller's orders.

        Raises:
            OrderNotFoundError: If the order is missing or owned by someone else
            StateTransitionError: If the order is no longer pending
        """
        order = await self.get_order(user, order_id)
        return await self._transition(order, OrderStatus.CANCELLED, user)

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        actor: User,
    ) -> Order:
        """
        Move an order to ``new_status`` on behalf of an administrator.

        Raises:
            OrderPermissionError: If ``actor`` is not an admin
            OrderNotFoundError: If the order does not exist
            StateTransitionError: If the transition is not allowed
        """
        if not actor.is_admin:
            raise OrderPermissionError(
                "Only administrators can change order status",
                user_id=str(actor.id),
            )

        order = await self._load(order_id)
        return await self._transition(order, new_status, actor)

    async def list_orders_by_status(
        self,
        status: OrderStatus,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        try:
            return await self.repository.get_orders_by_status(
                status, skip=skip, limit=limit
            )
        except OrderRepositoryError as e:
            raise OrderProcessingError(
                "Failed to list orders by status",
                status=status.value,
                error=str(e),
            ) from e

    async def _load(self, order_id: uuid.UUID) -> Order:
        try:
            order = await self.repository.get_order_by_id(order_id)
        except OrderRepositoryError as e:
            raise OrderProcessingError(
                "Failed to retrieve order",
                order_id=str(order_id),
                error=str(e),
            ) from e

        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    async def _transition(
        self,
        order: Order,
        new_status: OrderStatus,
        actor: Optional[User],
    ) -> Order:
        order_id = order.id
        actor_id = actor.id if actor else None
        try:
            async with unit_of_work(self.session):
                self.state_machine.apply_transition(order, new_status, actor_id)
        except StateTransitionError as e:
            logger.warning(
                "Invalid state transition",
                order_id=str(order_id),
                current_status=e.current_state.value,
                target_status=e.target_state.value,
            )
            raise
        except SQLAlchemyError as e:
            logger.error(
                "Failed to update order status",
                order_id=str(order_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderProcessingError(
                "Failed to update order status",
                order_id=str(order_id),
                error=str(e),
            ) from e

        return order
