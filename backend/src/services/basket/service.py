"""
Basket service: the only code path that mutates a basket.

Every mutation runs inside its own unit of work and commits before the
refreshed basket is returned. Line writes are version-checked; a write that
lost a race surfaces as ``ConcurrentModificationError`` and is never retried
here.
"""

import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.connection import unit_of_work
from src.database.models.basket import Basket, BasketLine
from src.database.models.catalog import ItemKind
from src.database.models.user import User
from src.services.basket.repository import BasketRepository
from src.services.catalog.lookup import CatalogLookup

logger = get_logger(__name__)


class BasketServiceError(Exception):
    """Base exception for basket and checkout errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class ItemNotFoundError(BasketServiceError):
    """Raised when the catalog has no item with the given kind and id."""

    def __init__(self, item_kind: ItemKind, item_id: uuid.UUID, **context):
        super().__init__(
            f"{item_kind.value} not found: {item_id}",
            code="ITEM_NOT_FOUND",
            item_kind=item_kind.value,
            item_id=str(item_id),
            **context,
        )


class InvalidQuantityError(BasketServiceError):
    def __init__(self, quantity: int, reason: str, **context):
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            code="INVALID_QUANTITY",
            quantity=quantity,
            reason=reason,
            **context,
        )


class LineNotFoundError(BasketServiceError):
    """Raised when a line does not exist or belongs to another user's basket."""

    def __init__(self, line_id: uuid.UUID, **context):
        super().__init__(
            f"Basket line not found: {line_id}",
            code="LINE_NOT_FOUND",
            line_id=str(line_id),
            **context,
        )


class ConcurrentModificationError(BasketServiceError):
    """Raised when the basket changed between read and write. Safe to retry."""

    def __init__(self, message: str = "Basket was modified concurrently", **context):
        super().__init__(
            message,
            code="CONCURRENT_MODIFICATION",
            retryable=True,
            **context,
        )


class PersistenceFailureError(BasketServiceError):
    """Raised when the store rejects a write; the transaction is rolled back."""

    def __init__(self, operation: str, **context):
        super().__init__(
            f"Failed to persist basket changes during {operation}",
            code="PERSISTENCE_FAILURE",
            operation=operation,
            **context,
        )


class BasketService:
    """
    Service for basket operations.

    Every public method takes the authenticated ``User`` explicitly; a user
    can only ever see or touch lines in their own basket.
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: Optional[CatalogLookup] = None,
    ):
        """
        Initialize basket service.

        Args:
            session: Async database session
            catalog: Catalog lookup, defaults to one bound to ``session``
        """
        self.session = session
        self.repository = BasketRepository(session)
        self.catalog = catalog or CatalogLookup(session)

    async def get_or_create_basket(self, user: User) -> Basket:
        """
        Return the user's basket, creating an empty one on first access.

        Raises:
            PersistenceFailureError: If the basket cannot be read or created
        """
        user_id = user.id
        try:
            basket = await self.repository.get_basket_by_user_id(user_id)
            if basket is not None:
                return basket

            # SAVEPOINT: losing the race must not expire the caller's objects.
            try:
                async with self.session.begin_nested():
                    await self.repository.create_basket(user_id)
                await self.session.commit()
            except IntegrityError:
                # Another request created it first; the re-read below finds it.
                logger.info("Basket creation raced, re-reading", user_id=str(user_id))

            basket = await self.repository.get_basket_by_user_id(user_id)
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "get_or_create_basket", user_id=str(user_id), error=str(e)
            ) from e

        if basket is None:
            raise PersistenceFailureError("get_or_create_basket", user_id=str(user_id))
        return basket

    async def add_item(
        self,
        user: User,
        item_kind: ItemKind,
        item_id: uuid.UUID,
        quantity: int,
    ) -> Basket:
        """
        Add ``quantity`` units of a catalog item to the user's basket.

        If the basket already holds the item its quantity is increased and the
        snapshot taken when it was first added is kept. Otherwise a new line is
        created from the catalog's current name, price and image.

        Raises:
            InvalidQuantityError: If quantity is less than 1
            ItemNotFoundError: If the catalog has no such item
            ConcurrentModificationError: If the matching line changed meanwhile
            PersistenceFailureError: If the write fails
        """
        user_id = user.id
        if quantity < 1:
            raise InvalidQuantityError(quantity, "must be at least 1")

        try:
            item = await self.catalog.resolve(item_kind, item_id)
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "add_item", item_id=str(item_id), error=str(e)
            ) from e
        if item is None:
            raise ItemNotFoundError(item_kind, item_id)

        basket = await self.get_or_create_basket(user)
        existing = basket.find_line(item_kind, item_id)

        try:
            async with unit_of_work(self.session):
                if existing is not None:
                    applied = await self.repository.increment_line_quantity(
                        existing.id, existing.version, quantity
                    )
                    if not applied:
                        raise ConcurrentModificationError(line_id=str(existing.id))
                else:
                    await self.repository.add_line(basket.id, item, quantity)
        except IntegrityError as e:
            # Same item inserted by a concurrent request.
            raise ConcurrentModificationError(
                item_kind=item_kind.value, item_id=str(item_id)
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "add_item", user_id=str(user_id), error=str(e)
            ) from e

        if existing is not None:
            # Bulk UPDATE bypasses the identity map.
            self.session.expire(existing)

        logger.info(
            "Item added to basket",
            user_id=str(user_id),
            item_kind=item_kind.value,
            item_id=str(item_id),
            quantity=quantity,
            merged=existing is not None,
        )
        return await self._reload(user_id)

    async def update_line_quantity(
        self,
        user: User,
        line_id: uuid.UUID,
        quantity: int,
        expected_version: Optional[int] = None,
    ) -> Basket:
        """
        Set a line's quantity; a quantity of zero removes the line.

        Args:
            user: Authenticated basket owner
            line_id: Line to change
            quantity: New quantity, zero to delete
            expected_version: Version the caller last saw; defaults to the
                version read here

        Raises:
            InvalidQuantityError: If quantity is negative
            LineNotFoundError: If the line is not in the user's basket
            ConcurrentModificationError: If the line's version moved on
            PersistenceFailureError: If the write fails
        """
        user_id = user.id
        if quantity < 0:
            raise InvalidQuantityError(quantity, "must not be negative")

        line = await self._get_own_line(user_id, line_id)
        version = line.version if expected_version is None else expected_version

        try:
            async with unit_of_work(self.session):
                if quantity == 0:
                    applied = await self.repository.delete_line(line_id, version)
                else:
                    applied = await self.repository.set_line_quantity(
                        line_id, version, quantity
                    )
                if not applied:
                    raise ConcurrentModificationError(
                        line_id=str(line_id),
                        expected_version=version,
                    )
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "update_line_quantity", line_id=str(line_id), error=str(e)
            ) from e

        self.session.expire(line)

        logger.info(
            "Basket line updated" if quantity else "Basket line removed",
            user_id=str(user_id),
            line_id=str(line_id),
            quantity=quantity,
        )
        return await self._reload(user_id)

    async def remove_line(
        self,
        user: User,
        line_id: uuid.UUID,
        expected_version: Optional[int] = None,
    ) -> Basket:
        """Remove a line. Same rules as setting its quantity to zero."""
        return await self.update_line_quantity(user, line_id, 0, expected_version)

    async def clear_basket(self, user: User) -> int:
        """
        Remove every line from the user's basket in one statement.

        Returns:
            Number of lines removed
        """
        user_id = user.id
        basket = await self.get_or_create_basket(user)

        try:
            async with unit_of_work(self.session):
                removed = await self.repository.clear_lines(basket.id)
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "clear_basket", user_id=str(user_id), error=str(e)
            ) from e

        logger.info("Basket cleared", user_id=str(user_id), removed_lines=removed)
        return removed

    async def _get_own_line(self, user_id: uuid.UUID, line_id: uuid.UUID) -> BasketLine:
        try:
            line = await self.repository.get_line_for_user(line_id, user_id)
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "get_line", line_id=str(line_id), error=str(e)
            ) from e

        if line is None:
            logger.warning(
                "Basket line not found for user",
                user_id=str(user_id),
                line_id=str(line_id),
            )
            raise LineNotFoundError(line_id)
        return line

    async def _reload(self, user_id: uuid.UUID) -> Basket:
        try:
            basket = await self.repository.get_basket_by_user_id(user_id)
        except SQLAlchemyError as e:
            raise PersistenceFailureError(
                "reload_basket", user_id=str(user_id), error=str(e)
            ) from e
        if basket is None:
            raise PersistenceFailureError("reload_basket", user_id=str(user_id))
        return basket
