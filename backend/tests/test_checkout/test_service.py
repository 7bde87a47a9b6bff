"""
Tests for CheckoutService.

Covers the all-or-nothing guarantee: when checkout is refused or fails, no
order exists and the basket is exactly as it was.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select, update

from src.database.models.basket import BasketLine
from src.database.models.catalog import ItemKind
from src.database.models.order import Order
from src.schemas.basket import CheckoutRequest
from src.services.basket.service import (
    BasketService,
    ConcurrentModificationError,
    LineNotFoundError,
    PersistenceFailureError,
)
from src.services.checkout.service import (
    CheckoutService,
    CheckoutStatus,
    ItemUnavailableError,
)
from src.services.orders.enums import OrderStatus, OrderType
from src.services.orders.repository import OrderRepositoryError


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def checkout_request(delivery_time):
    return CheckoutRequest(
        delivery_address="12 Amir Temur Ave, Tashkent",
        order_type=OrderType.CANVAS_ONLY,
        preferred_delivery_time=delivery_time,
        comment="Call before arrival",
        installation_notes="Third floor, no lift",
        delivery_notes="Leave at reception",
    )


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.orders_placed = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def checkout_service(db_session, notifier):
    return CheckoutService(db_session, notifier=notifier)


@pytest.fixture
async def filled_basket(db_session, customer, door, accessory):
    """Customer basket holding 2 doors at 100.00 and 1 accessory at 20.00."""
    service = BasketService(db_session)
    await service.add_item(customer, ItemKind.DOOR, door.id, 2)
    return await service.add_item(customer, ItemKind.DOOR_ACCESSORY, accessory.id, 1)


async def count_orders(session) -> int:
    result = await session.execute(select(func.count()).select_from(Order))
    return result.scalar_one()


async def basket_snapshot(session, user) -> list[tuple]:
    basket = await BasketService(session).get_or_create_basket(user)
    return [
        (line.id, line.item_kind, line.quantity, line.unit_price, line.version)
        for line in basket.lines
    ]


# ============================================================================
# Successful Checkout
# ============================================================================


class TestCheckout:
    async def test_places_one_order_per_line(
        self, checkout_service, db_session, customer, filled_basket, checkout_request
    ):
        result = await checkout_service.checkout(customer, checkout_request)

        assert result.status == CheckoutStatus.COMPLETED
        assert result.success is True
        assert len(result.orders) == 2
        assert result.total_amount == Decimal("220.00")
        assert result.message == "2 order(s) placed, total 220.00"
        assert await count_orders(db_session) == 2

    async def test_orders_copy_line_and_request_details(
        self,
        checkout_service,
        customer,
        door,
        filled_basket,
        checkout_request,
        delivery_time,
    ):
        result = await checkout_service.checkout(customer, checkout_request)

        door_order = result.orders[0]
        assert door_order.item_kind == ItemKind.DOOR
        assert door_order.item_id == door.id
        assert door_order.item_name == "Oak Classic"
        assert door_order.unit_price == Decimal("100.00")
        assert door_order.quantity == 2
        assert door_order.total_price == Decimal("200.00")
        assert door_order.status == OrderStatus.PENDING
        assert door_order.order_type == OrderType.CANVAS_ONLY
        assert door_order.delivery_address == "12 Amir Temur Ave, Tashkent"
        assert door_order.preferred_delivery_time == delivery_time
        assert door_order.installation_notes == "Third floor, no lift"

    async def test_contact_details_come_from_user(
        self, checkout_service, customer, filled_basket, checkout_request
    ):
        result = await checkout_service.checkout(customer, checkout_request)

        for order in result.orders:
            assert order.user_id == customer.id
            assert order.customer_name == "Aziza Karimova"
            assert order.customer_email == "aziza@example.com"
            assert order.customer_phone == "+998901234567"

    async def test_basket_is_empty_afterwards(
        self, checkout_service, db_session, customer, filled_basket, checkout_request
    ):
        await checkout_service.checkout(customer, checkout_request)

        assert await basket_snapshot(db_session, customer) == []

    async def test_order_price_is_basket_price_not_current_price(
        self, checkout_service, db_session, customer, door, filled_basket, checkout_request
    ):
        door.price = Decimal("999.00")
        await db_session.commit()

        result = await checkout_service.checkout(customer, checkout_request)

        assert result.orders[0].unit_price == Decimal("100.00")

    async def test_empty_basket_is_not_an_error(
        self, checkout_service, db_session, customer, checkout_request, notifier
    ):
        result = await checkout_service.checkout(customer, checkout_request)

        assert result.status == CheckoutStatus.EMPTY_BASKET
        assert result.success is False
        assert result.orders == []
        assert result.total_amount == Decimal("0.00")
        assert await count_orders(db_session) == 0
        notifier.orders_placed.assert_not_awaited()

    async def test_notifier_told_after_commit(
        self, checkout_service, customer, filled_basket, checkout_request, notifier
    ):
        result = await checkout_service.checkout(customer, checkout_request)

        notifier.orders_placed.assert_awaited_once_with(customer, result.orders)

    async def test_notifier_failure_does_not_fail_checkout(
        self, checkout_service, db_session, customer, filled_basket, checkout_request, notifier
    ):
        notifier.orders_placed.side_effect = RuntimeError("smtp down")

        result = await checkout_service.checkout(customer, checkout_request)

        assert result.success is True
        assert await count_orders(db_session) == 2

    async def test_other_users_basket_untouched(
        self,
        checkout_service,
        db_session,
        customer,
        other_customer,
        door,
        filled_basket,
        checkout_request,
    ):
        await BasketService(db_session).add_item(other_customer, ItemKind.DOOR, door.id, 1)

        await checkout_service.checkout(customer, checkout_request)

        theirs = await basket_snapshot(db_session, other_customer)
        assert len(theirs) == 1


# ============================================================================
# Refused and Failed Checkout
# ============================================================================


class TestCheckoutAtomicity:
    async def test_unavailable_item_refuses_whole_checkout(
        self,
        checkout_service,
        db_session,
        customer,
        door,
        moulding,
        checkout_request,
        notifier,
    ):
        basket_service = BasketService(db_session)
        await basket_service.add_item(customer, ItemKind.DOOR, door.id, 1)
        basket = await basket_service.add_item(customer, ItemKind.MOULDING, moulding.id, 3)
        moulding_line_id = basket.lines[1].id
        before = await basket_snapshot(db_session, customer)

        await db_session.delete(moulding)
        await db_session.commit()

        with pytest.raises(ItemUnavailableError) as exc_info:
            await checkout_service.checkout(customer, checkout_request)

        error = exc_info.value
        assert error.code == "ITEM_UNAVAILABLE"
        assert [line.line_id for line in error.lines] == [moulding_line_id]
        assert error.context["lines"][0]["name"] == "Classic Frame 200"
        assert error.context["lines"][0]["item_kind"] == "moulding"

        assert await count_orders(db_session) == 0
        assert await basket_snapshot(db_session, customer) == before
        notifier.orders_placed.assert_not_awaited()

    async def test_every_unavailable_line_is_reported(
        self, checkout_service, db_session, customer, door, accessory, checkout_request
    ):
        basket_service = BasketService(db_session)
        await basket_service.add_item(customer, ItemKind.DOOR, door.id, 1)
        await basket_service.add_item(customer, ItemKind.DOOR_ACCESSORY, accessory.id, 1)

        door.is_active = False
        await db_session.delete(accessory)
        await db_session.commit()

        with pytest.raises(ItemUnavailableError) as exc_info:
            await checkout_service.checkout(customer, checkout_request)

        kinds = {line.item_kind for line in exc_info.value.lines}
        assert kinds == {ItemKind.DOOR, ItemKind.DOOR_ACCESSORY}

    async def test_concurrent_basket_change_rolls_back(
        self, db_session, customer, filled_basket, checkout_request
    ):
        before = await basket_snapshot(db_session, customer)
        service = CheckoutService(db_session)
        real_resolve = service.catalog.resolve
        bumped = False

        async def resolve_and_bump(item_kind, item_id):
            # Another request edits the basket while checkout validates it.
            nonlocal bumped
            if not bumped:
                bumped = True
                await db_session.execute(
                    update(BasketLine).values(version=BasketLine.version + 1)
                )
            return await real_resolve(item_kind, item_id)

        with patch.object(service.catalog, "resolve", side_effect=resolve_and_bump):
            with pytest.raises(ConcurrentModificationError) as exc_info:
                await service.checkout(customer, checkout_request)

        assert exc_info.value.context["retryable"] is True
        assert await count_orders(db_session) == 0

        await db_session.refresh(customer)
        assert await basket_snapshot(db_session, customer) == before

    async def test_basket_creation_race_still_places_orders(
        self, checkout_service, db_session, customer, filled_basket, checkout_request
    ):
        repository = checkout_service.basket_service.repository
        real_get = repository.get_basket_by_user_id
        calls = 0

        async def miss_first_read(user_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                return None
            return await real_get(user_id)

        with patch.object(
            repository, "get_basket_by_user_id", side_effect=miss_first_read
        ):
            result = await checkout_service.checkout(customer, checkout_request)

        assert result.success is True
        assert len(result.orders) == 2
        assert {order.customer_email for order in result.orders} == {"aziza@example.com"}
        assert await count_orders(db_session) == 2

    async def test_storage_failure_rolls_back(
        self, checkout_service, db_session, customer, filled_basket, checkout_request
    ):
        before = await basket_snapshot(db_session, customer)

        with patch.object(
            checkout_service.order_repository,
            "add_orders",
            AsyncMock(side_effect=OrderRepositoryError("Failed to add orders")),
        ):
            with pytest.raises(PersistenceFailureError) as exc_info:
                await checkout_service.checkout(customer, checkout_request)

        assert exc_info.value.code == "PERSISTENCE_FAILURE"
        assert exc_info.value.context["operation"] == "checkout"
        assert await count_orders(db_session) == 0

        await db_session.refresh(customer)
        assert await basket_snapshot(db_session, customer) == before


# ============================================================================
# Partial Checkout
# ============================================================================


class TestCheckoutLines:
    async def test_only_selected_lines_are_ordered(
        self, checkout_service, db_session, customer, filled_basket, checkout_request
    ):
        door_line, accessory_line = filled_basket.lines
        door_line_id = door_line.id
        accessory_line_id = accessory_line.id

        result = await checkout_service.checkout_lines(
            customer, [accessory_line_id], checkout_request
        )

        assert result.success is True
        assert len(result.orders) == 1
        assert result.orders[0].item_kind == ItemKind.DOOR_ACCESSORY
        assert result.total_amount == Decimal("20.00")

        remaining = await basket_snapshot(db_session, customer)
        assert [line[0] for line in remaining] == [door_line_id]

    async def test_duplicate_ids_order_once(
        self, checkout_service, customer, filled_basket, checkout_request
    ):
        line_id = filled_basket.lines[0].id

        result = await checkout_service.checkout_lines(
            customer, [line_id, line_id], checkout_request
        )

        assert len(result.orders) == 1

    async def test_orders_follow_basket_order(
        self, checkout_service, customer, filled_basket, checkout_request
    ):
        door_line, accessory_line = filled_basket.lines

        result = await checkout_service.checkout_lines(
            customer, [accessory_line.id, door_line.id], checkout_request
        )

        assert [o.item_kind for o in result.orders] == [
            ItemKind.DOOR,
            ItemKind.DOOR_ACCESSORY,
        ]

    async def test_no_lines_selected(self, checkout_service, customer, checkout_request):
        result = await checkout_service.checkout_lines(customer, [], checkout_request)

        assert result.status == CheckoutStatus.EMPTY_BASKET
        assert result.message == "No basket lines selected"

    async def test_unknown_line_id_rejected(
        self, checkout_service, db_session, customer, filled_basket, checkout_request
    ):
        missing = uuid.uuid4()

        with pytest.raises(LineNotFoundError) as exc_info:
            await checkout_service.checkout_lines(
                customer, [filled_basket.lines[0].id, missing], checkout_request
            )

        assert exc_info.value.context["missing_line_ids"] == [str(missing)]
        assert await count_orders(db_session) == 0

    async def test_other_users_line_rejected(
        self,
        checkout_service,
        db_session,
        customer,
        other_customer,
        door,
        checkout_request,
    ):
        theirs = await BasketService(db_session).add_item(
            other_customer, ItemKind.DOOR, door.id, 1
        )

        with pytest.raises(LineNotFoundError):
            await checkout_service.checkout_lines(
                customer, [theirs.lines[0].id], checkout_request
            )

        assert len(await basket_snapshot(db_session, other_customer)) == 1
