"""
Basket repository for data access operations.

Line updates and deletes are compare-and-swap statements on the line's
``version`` column: they only touch the row if the version still matches
what the caller read, and report through their return value whether a row
was affected. Deciding what a miss means is left to the service.
"""

import uuid
from typing import Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.logging import get_logger
from src.database.base import utcnow
from src.database.models.basket import Basket, BasketLine
from src.services.catalog.lookup import CatalogItem

logger = get_logger(__name__)


class BasketRepository:
    """
    Repository for basket and basket line persistence.

    Every method flushes but never commits; transaction boundaries belong to
    the calling service.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_basket_by_user_id(self, user_id: uuid.UUID) -> Optional[Basket]:
        """
        Load a user's basket with its lines, bypassing stale identity-map state.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            stmt = (
                select(Basket)
                .options(selectinload(Basket.lines))
                .where(Basket.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            basket = result.scalar_one_or_none()

            if basket:
                logger.debug(
                    "Basket retrieved for user",
                    user_id=str(user_id),
                    basket_id=str(basket.id),
                    line_count=len(basket.lines),
                )
            return basket
        except SQLAlchemyError as e:
            logger.error(
                "Failed to retrieve basket for user",
                user_id=str(user_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def create_basket(self, user_id: uuid.UUID) -> Basket:
        """
        Insert an empty basket for ``user_id``.

        Raises:
            IntegrityError: If the user already has a basket
            SQLAlchemyError: If database operation fails
        """
        try:
            basket = Basket(user_id=user_id, lines=[])
            self.session.add(basket)
            await self.session.flush()

            logger.info(
                "Basket created",
                basket_id=str(basket.id),
                user_id=str(user_id),
            )
            return basket
        except IntegrityError:
            logger.info("Basket already exists for user", user_id=str(user_id))
            raise
        except SQLAlchemyError as e:
            logger.error(
                "Basket creation failed",
                user_id=str(user_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def get_line_for_user(
        self, line_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[BasketLine]:
        """
        Load a line only if it sits in ``user_id``'s basket.

        Lines in other users' baskets are indistinguishable from missing ones.
        """
        try:
            stmt = (
                select(BasketLine)
                .join(Basket, BasketLine.basket_id == Basket.id)
                .where(BasketLine.id == line_id, Basket.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to retrieve basket line",
                line_id=str(line_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def add_line(
        self,
        basket_id: uuid.UUID,
        item: CatalogItem,
        quantity: int,
    ) -> BasketLine:
        """
        Insert a new line with a fresh snapshot of ``item``.

        Raises:
            IntegrityError: If the basket already holds this item
            SQLAlchemyError: If database operation fails
        """
        try:
            line = BasketLine(
                basket_id=basket_id,
                item_kind=item.item_kind,
                item_id=item.item_id,
                quantity=quantity,
                unit_price=item.unit_price,
                name=item.name,
                image_url=item.image_url,
                version=1,
            )
            self.session.add(line)
            await self.session.flush()

            logger.info(
                "Basket line added",
                line_id=str(line.id),
                basket_id=str(basket_id),
                item_kind=item.item_kind.value,
                item_id=str(item.item_id),
                quantity=quantity,
                unit_price=str(item.unit_price),
            )
            return line
        except IntegrityError as e:
            logger.warning(
                "Basket line insert conflicted",
                basket_id=str(basket_id),
                item_kind=item.item_kind.value,
                item_id=str(item.item_id),
                error=str(e),
            )
            raise
        except SQLAlchemyError as e:
            logger.error(
                "Basket line insert failed",
                basket_id=str(basket_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def increment_line_quantity(
        self, line_id: uuid.UUID, expected_version: int, delta: int
    ) -> bool:
        """
        Add ``delta`` to a line's quantity if its version is unchanged.

        Returns:
            True if the row was updated, False on a version mismatch
        """
        stmt = (
            update(BasketLine)
            .where(BasketLine.id == line_id, BasketLine.version == expected_version)
            .values(
                quantity=BasketLine.quantity + delta,
                version=BasketLine.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_versioned(stmt, "increment", line_id, expected_version)

    async def set_line_quantity(
        self, line_id: uuid.UUID, expected_version: int, quantity: int
    ) -> bool:
        """
        Overwrite a line's quantity if its version is unchanged.

        Returns:
            True if the row was updated, False on a version mismatch
        """
        stmt = (
            update(BasketLine)
            .where(BasketLine.id == line_id, BasketLine.version == expected_version)
            .values(
                quantity=quantity,
                version=BasketLine.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_versioned(stmt, "set_quantity", line_id, expected_version)

    async def delete_line(self, line_id: uuid.UUID, expected_version: int) -> bool:
        """
        Delete a line if its version is unchanged.

        Returns:
            True if the row was deleted, False on a version mismatch
        """
        stmt = (
            delete(BasketLine)
            .where(BasketLine.id == line_id, BasketLine.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_versioned(stmt, "delete", line_id, expected_version)

    async def _execute_versioned(
        self, stmt, operation: str, line_id: uuid.UUID, expected_version: int
    ) -> bool:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Versioned basket line write failed",
                operation=operation,
                line_id=str(line_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        applied = result.rowcount == 1
        if applied:
            logger.info(
                "Basket line written",
                operation=operation,
                line_id=str(line_id),
                from_version=expected_version,
            )
        else:
            logger.warning(
                "Basket line version mismatch",
                operation=operation,
                line_id=str(line_id),
                expected_version=expected_version,
            )
        return applied

    async def clear_lines(self, basket_id: uuid.UUID) -> int:
        """
        Delete every line of a basket in one statement.

        Returns:
            Number of lines deleted
        """
        try:
            stmt = (
                delete(BasketLine)
                .where(BasketLine.basket_id == basket_id)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            logger.info(
                "Basket cleared",
                basket_id=str(basket_id),
                deleted_lines=result.rowcount,
            )
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(
                "Failed to clear basket",
                basket_id=str(basket_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def take_lines(
        self,
        basket_id: uuid.UUID,
        line_ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> dict[uuid.UUID, int]:
        """
        Bulk-delete lines and report which rows were removed at which version.

        Args:
            basket_id: Basket to delete from
            line_ids: Restrict the delete to these lines; None means every line

        Returns:
            Mapping of deleted line id to the version it had when deleted
        """
        try:
            stmt = delete(BasketLine).where(BasketLine.basket_id == basket_id)
            if line_ids is not None:
                stmt = stmt.where(BasketLine.id.in_(list(line_ids)))
            stmt = stmt.returning(BasketLine.id, BasketLine.version).execution_options(
                synchronize_session=False
            )

            result = await self.session.execute(stmt)
            taken = {row.id: row.version for row in result}

            logger.debug(
                "Basket lines taken",
                basket_id=str(basket_id),
                taken_lines=len(taken),
            )
            return taken
        except SQLAlchemyError as e:
            logger.error(
                "Failed to take basket lines",
                basket_id=str(basket_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
