"""
Checkout: turn basket lines into orders.

Checkout validates every line against the catalog before writing anything.
If any item has disappeared the whole checkout is refused and the error
lists every unavailable line. Otherwise one order per line is inserted and
the converted lines are deleted in the same transaction. The delete returns
the ``(id, version)`` pairs it removed; if they differ from what was
validated, the basket changed underneath us and everything is rolled back.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger, log_performance
from src.database.connection import unit_of_work
from src.database.models.basket import Basket, BasketLine
from src.database.models.catalog import ItemKind
from src.database.models.order import Order
from src.database.models.user import User
from src.schemas.basket import CheckoutRequest
from src.services.basket.repository import BasketRepository
from src.services.basket.service import (
    BasketService,
    BasketServiceError,
    ConcurrentModificationError,
    LineNotFoundError,
    PersistenceFailureError,
)
from src.services.catalog.lookup import CatalogLookup
from src.services.notifications.service import NotificationService
from src.services.orders.enums import OrderStatus
from src.services.orders.repository import OrderRepository, OrderRepositoryError

logger = get_logger(__name__)


class CheckoutStatus(str, Enum):
    COMPLETED = "completed"
    EMPTY_BASKET = "empty_basket"


@dataclass(frozen=True)
class UnavailableLine:
    """A basket line whose catalog item no longer exists."""

    line_id: uuid.UUID
    item_kind: ItemKind
    item_id: uuid.UUID
    name: str

    @classmethod
    def from_line(cls, line: BasketLine) -> "UnavailableLine":
        return cls(
            line_id=line.id,
            item_kind=line.item_kind,
            item_id=line.item_id,
            name=line.name,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "line_id": str(self.line_id),
            "item_kind": self.item_kind.value,
            "item_id": str(self.item_id),
            "name": self.name,
        }


class ItemUnavailableError(BasketServiceError):
    """Raised when one or more basket items are gone from the catalog."""

    def __init__(self, lines: Sequence[UnavailableLine], **context):
        names = ", ".join(line.name for line in lines)
        super().__init__(
            f"Items no longer available: {names}",
            code="ITEM_UNAVAILABLE",
            lines=[line.to_dict() for line in lines],
            **context,
        )
        self.lines = list(lines)


@dataclass
class CheckoutResult:
    """
    Outcome of a checkout attempt.

    Attributes:
        status: COMPLETED, or EMPTY_BASKET when there was nothing to order
        orders: Orders created, in basket line order
        total_amount: Sum of the orders' totals
        message: Human-readable summary
    """

    status: CheckoutStatus
    orders: list[Order] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status == CheckoutStatus.COMPLETED


class CheckoutService:
    """
    Converts a user's basket into orders atomically.

    Nothing is retried here. A ``ConcurrentModificationError`` means the
    client should reload the basket and try again.
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: Optional[CatalogLookup] = None,
        notifier: Optional[NotificationService] = None,
    ):
        """
        Initialize checkout service.

        Args:
            session: Async database session
            catalog: Catalog lookup used for validation
            notifier: Told about orders once they are committed
        """
        self.session = session
        self.catalog = catalog or CatalogLookup(session)
        self.notifier = notifier
        self.basket_service = BasketService(session, catalog=self.catalog)
        self.basket_repository = BasketRepository(session)
        self.order_repository = OrderRepository(session)

    async def checkout(self, user: User, request: CheckoutRequest) -> CheckoutResult:
        """
        Order everything in the user's basket.

        Returns:
            A COMPLETED result with the new orders, or EMPTY_BASKET if the
            basket has no lines

        Raises:
            ItemUnavailableError: If any line's item left the catalog
            ConcurrentModificationError: If the basket changed mid-checkout
            PersistenceFailureError: If the transaction fails
        """
        basket = await self.basket_service.get_or_create_basket(user)
        if basket.is_empty:
            logger.info("Checkout of empty basket", user_id=str(user.id))
            return CheckoutResult(
                status=CheckoutStatus.EMPTY_BASKET,
                message="Basket is empty",
            )

        return await self._place_orders(user, basket, list(basket.lines), request)

    async def checkout_lines(
        self,
        user: User,
        line_ids: Iterable[uuid.UUID],
        request: CheckoutRequest,
    ) -> CheckoutResult:
        """
        Order only the given lines; the rest of the basket is left alone.

        Duplicate ids are ignored.

        Raises:
            LineNotFoundError: If any id is not a line in the user's basket
            ItemUnavailableError: If any selected line's item left the catalog
            ConcurrentModificationError: If a selected line changed mid-checkout
            PersistenceFailureError: If the transaction fails
        """
        wanted = list(dict.fromkeys(line_ids))
        if not wanted:
            return CheckoutResult(
                status=CheckoutStatus.EMPTY_BASKET,
                message="No basket lines selected",
            )

        basket = await self.basket_service.get_or_create_basket(user)
        by_id = {line.id: line for line in basket.lines}

        missing = [line_id for line_id in wanted if line_id not in by_id]
        if missing:
            raise LineNotFoundError(
                missing[0],
                missing_line_ids=[str(line_id) for line_id in missing],
            )

        # Keep basket order rather than request order.
        wanted_ids = set(wanted)
        selected = [line for line in basket.lines if line.id in wanted_ids]
        return await self._place_orders(
            user, basket, selected, request, restrict_to_selected=True
        )

    async def _place_orders(
        self,
        user: User,
        basket: Basket,
        lines: list[BasketLine],
        request: CheckoutRequest,
        restrict_to_selected: bool = False,
    ) -> CheckoutResult:
        user_id = user.id
        snapshot = {line.id: line.version for line in lines}
        await self._ensure_available(lines)

        orders = [self._build_order(user, line, request) for line in lines]
        total = sum((order.total_price for order in orders), Decimal("0.00"))

        with log_performance(
            logger,
            "checkout",
            user_id=str(user_id),
            line_count=len(lines),
        ):
            try:
                async with unit_of_work(self.session):
                    await self.order_repository.add_orders(orders)
                    taken = await self.basket_repository.take_lines(
                        basket.id,
                        snapshot.keys() if restrict_to_selected else None,
                    )
                    if taken != snapshot:
                        raise ConcurrentModificationError(
                            "Basket changed during checkout",
                            expected_lines=len(snapshot),
                            deleted_lines=len(taken),
                        )
            except ConcurrentModificationError:
                logger.warning(
                    "Checkout aborted by concurrent basket change",
                    user_id=str(user_id),
                )
                raise
            except (OrderRepositoryError, SQLAlchemyError) as e:
                logger.error(
                    "Checkout transaction failed",
                    user_id=str(user_id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise PersistenceFailureError(
                    "checkout", user_id=str(user_id), error=str(e)
                ) from e

        logger.info(
            "Checkout completed",
            user_id=str(user_id),
            order_count=len(orders),
            total_amount=str(total),
        )

        await self._notify(user, orders)

        return CheckoutResult(
            status=CheckoutStatus.COMPLETED,
            orders=orders,
            total_amount=total,
            message=f"{len(orders)} order(s) placed, total {total}",
        )

    async def _ensure_available(self, lines: Sequence[BasketLine]) -> None:
        unavailable: list[UnavailableLine] = []
        for line in lines:
            try:
                item = await self.catalog.resolve(line.item_kind, line.item_id)
            except SQLAlchemyError as e:
                raise PersistenceFailureError(
                    "checkout_validation", line_id=str(line.id), error=str(e)
                ) from e
            if item is None:
                unavailable.append(UnavailableLine.from_line(line))

        if unavailable:
            logger.warning(
                "Checkout refused, items unavailable",
                unavailable_lines=[str(line.line_id) for line in unavailable],
            )
            raise ItemUnavailableError(unavailable)

    @staticmethod
    def _build_order(user: User, line: BasketLine, request: CheckoutRequest) -> Order:
        return Order(
            id=uuid.uuid4(),
            user_id=user.id,
            item_kind=line.item_kind,
            item_id=line.item_id,
            item_name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            order_type=request.order_type,
            customer_name=user.name,
            customer_email=user.email,
            customer_phone=user.phone,
            delivery_address=request.delivery_address,
            preferred_delivery_time=request.preferred_delivery_time,
            comment=request.comment,
            installation_notes=request.installation_notes,
            delivery_notes=request.delivery_notes,
            status=OrderStatus.PENDING,
        )

    async def _notify(self, user: User, orders: Sequence[Order]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.orders_placed(user, orders)
        except Exception as e:
            logger.warning(
                "Order notification failed",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
