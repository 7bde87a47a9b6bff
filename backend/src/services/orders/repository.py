"""
Order data access repository.

Queries are read-mostly: orders are inserted in bulk by checkout and only
their status columns change afterwards. Database errors are logged and
re-raised as ``OrderRepositoryError``.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.order import Order
from src.services.orders.enums import OrderStatus

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderRepository:
    """
    Repository for order data access operations.

    Methods flush but never commit.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def add_orders(self, orders: Sequence[Order]) -> Sequence[Order]:
        """
        Stage new orders and flush them so ids and timestamps are assigned.

        Raises:
            OrderRepositoryError: If the insert fails
        """
        try:
            self.session.add_all(orders)
            await self.session.flush()

            logger.debug("Orders staged", count=len(orders))
            return orders

        except SQLAlchemyError as e:
            logger.error(
                "Failed to insert orders",
                count=len(orders),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderRepositoryError(
                "Failed to insert orders",
                count=len(orders),
                error=str(e),
            ) from e

    async def get_order_by_id(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID.

        Returns:
            Order if found, None otherwise

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            stmt = (
                select(Order)
                .where(Order.id == order_id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            order = result.scalar_one_or_none()

            if order is None:
                logger.debug("Order not found", order_id=str(order_id))
            return order

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def get_user_orders(
        self,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        Get a user's orders, newest first.

        Args:
            user_id: User identifier
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)

        Raises:
            OrderRepositoryError: If query fails
        """
        return await self._list(
            Order.user_id == user_id,
            skip=skip,
            limit=limit,
            log_context={"user_id": str(user_id)},
        )

    async def get_orders_by_status(
        self,
        status: OrderStatus,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[Order], int]:
        """
        Get all orders in a status, newest first.

        Raises:
            OrderRepositoryError: If query fails
        """
        return await self._list(
            Order.status == status,
            skip=skip,
            limit=limit,
            log_context={"status": status.value},
        )

    async def _list(
        self,
        condition,
        skip: int,
        limit: int,
        log_context: dict[str, Any],
    ) -> tuple[Sequence[Order], int]:
        try:
            stmt = (
                select(Order)
                .where(condition)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset(skip)
                .limit(limit)
            )
            count_stmt = select(func.count()).select_from(Order).where(condition)

            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)

            orders = result.scalars().all()
            total_count = count_result.scalar_one()

            logger.debug(
                "Orders fetched",
                count=len(orders),
                total=total_count,
                **log_context,
            )
            return orders, total_count

        except SQLAlchemyError as e:
            logger.error("Failed to fetch orders", error=str(e), **log_context)
            raise OrderRepositoryError(
                "Failed to fetch orders",
                error=str(e),
                **log_context,
            ) from e
