"""
Catalog lookup: resolve a basket item reference to its current details.

Each catalog (doors, door accessories, mouldings) has its own lookup class.
``CatalogLookup`` dispatches on ``ItemKind`` to the right one, so callers
never branch on the kind themselves.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.catalog import (
    Door,
    DoorAccessory,
    ItemKind,
    Moulding,
    first_image,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CatalogItem:
    """What a basket needs to know about an item at add-time."""

    item_kind: ItemKind
    item_id: uuid.UUID
    name: str
    unit_price: Decimal
    image_url: Optional[str]


class ItemResolver(Protocol):
    """Resolves ids within a single catalog."""

    async def resolve(self, item_id: uuid.UUID) -> Optional[CatalogItem]:
        ...


class DoorLookup:
    """Doors; inactive doors are treated as gone."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, item_id: uuid.UUID) -> Optional[CatalogItem]:
        door = await self.session.get(Door, item_id)
        if door is None or not door.is_active:
            return None
        return CatalogItem(
            item_kind=ItemKind.DOOR,
            item_id=door.id,
            name=door.name,
            unit_price=door.selling_price,
            image_url=first_image(door.image_urls),
        )


class DoorAccessoryLookup:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, item_id: uuid.UUID) -> Optional[CatalogItem]:
        accessory = await self.session.get(DoorAccessory, item_id)
        if accessory is None:
            return None
        return CatalogItem(
            item_kind=ItemKind.DOOR_ACCESSORY,
            item_id=accessory.id,
            name=accessory.name,
            unit_price=accessory.price,
            image_url=first_image(accessory.image_urls),
        )


class MouldingLookup:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, item_id: uuid.UUID) -> Optional[CatalogItem]:
        moulding = await self.session.get(Moulding, item_id)
        if moulding is None:
            return None
        return CatalogItem(
            item_kind=ItemKind.MOULDING,
            item_id=moulding.id,
            name=moulding.display_name,
            unit_price=moulding.price,
            image_url=first_image(moulding.image_urls),
        )


class CatalogLookup:
    """
    Resolve ``(item_kind, item_id)`` against the matching catalog.

    Attributes:
        resolvers: One resolver per ``ItemKind``
    """

    def __init__(
        self,
        session: AsyncSession,
        resolvers: Optional[dict[ItemKind, ItemResolver]] = None,
    ):
        self.resolvers: dict[ItemKind, ItemResolver] = resolvers or {
            ItemKind.DOOR: DoorLookup(session),
            ItemKind.DOOR_ACCESSORY: DoorAccessoryLookup(session),
            ItemKind.MOULDING: MouldingLookup(session),
        }

    async def resolve(
        self, item_kind: ItemKind, item_id: uuid.UUID
    ) -> Optional[CatalogItem]:
        """
        Look up an item's current name, price and image.

        Returns:
            The item, or None if the catalog has no such (available) item

        Raises:
            SQLAlchemyError: If the catalog query fails
        """
        resolver = self.resolvers[item_kind]
        try:
            item = await resolver.resolve(item_id)
        except SQLAlchemyError as e:
            logger.error(
                "Catalog lookup failed",
                item_kind=item_kind.value,
                item_id=str(item_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        if item is None:
            logger.debug(
                "Catalog item not found",
                item_kind=item_kind.value,
                item_id=str(item_id),
            )
        return item
