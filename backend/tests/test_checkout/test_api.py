"""
Tests for the checkout endpoints.
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from src.api.v1.basket import get_checkout_service
from src.main import app
from src.services.basket.service import (
    ConcurrentModificationError,
    PersistenceFailureError,
)
from src.services.checkout.service import (
    CheckoutResult,
    CheckoutService,
    CheckoutStatus,
)
from src.services.orders.enums import OrderType

BASKET_URL = "/api/v1/basket"
CHECKOUT_URL = f"{BASKET_URL}/checkout"


@pytest.fixture
async def customer_headers(async_client, auth_headers, customer, door, accessory):
    """Auth headers for a customer whose basket holds 2 doors and 1 accessory."""
    headers = auth_headers(customer)
    for body in (
        {"item_kind": "door", "item_id": str(door.id), "quantity": 2},
        {"item_kind": "door_accessory", "item_id": str(accessory.id), "quantity": 1},
    ):
        response = await async_client.post(f"{BASKET_URL}/lines", json=body, headers=headers)
        assert response.status_code == 201
    return headers


@pytest.fixture
def quiet_checkout(db_session):
    """Checkout without the notification side effect."""
    app.dependency_overrides[get_checkout_service] = lambda: CheckoutService(db_session)


class TestCheckoutEndpoint:
    async def test_checkout_places_orders(
        self, async_client, customer_headers, checkout_payload, customer
    ):
        response = await async_client.post(
            CHECKOUT_URL, json=checkout_payload, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["success"] is True
        assert data["total_amount"] == "220.00"
        assert len(data["orders"]) == 2
        for order in data["orders"]:
            assert order["status"] == "pending"
            assert order["customer_email"] == "aziza@example.com"
            assert order["delivery_address"] == "12 Amir Temur Ave, Tashkent"

        basket = await async_client.get(BASKET_URL, headers=customer_headers)
        assert basket.json()["lines"] == []

    async def test_spoofed_fields_are_ignored(
        self, async_client, customer_headers, checkout_payload, quiet_checkout
    ):
        payload = {
            **checkout_payload,
            "customer_email": "attacker@example.com",
            "customer_name": "Mallory",
            "total_amount": "1.00",
            "unit_price": "0.01",
        }

        response = await async_client.post(
            CHECKOUT_URL, json=payload, headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_amount"] == "220.00"
        assert {o["customer_email"] for o in data["orders"]} == {"aziza@example.com"}
        assert {o["customer_name"] for o in data["orders"]} == {"Aziza Karimova"}

    async def test_empty_basket_returns_unsuccessful_result(
        self, async_client, auth_headers, customer, checkout_payload
    ):
        response = await async_client.post(
            CHECKOUT_URL, json=checkout_payload, headers=auth_headers(customer)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["status"] == "empty_basket"
        assert data["orders"] == []

    async def test_unavailable_item_returns_409_with_lines(
        self,
        async_client,
        db_session,
        customer_headers,
        checkout_payload,
        accessory,
    ):
        await db_session.delete(accessory)
        await db_session.commit()

        response = await async_client.post(
            CHECKOUT_URL, json=checkout_payload, headers=customer_headers
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "ITEM_UNAVAILABLE"
        assert [line["name"] for line in detail["lines"]] == ["Brass Handle"]

        basket = await async_client.get(BASKET_URL, headers=customer_headers)
        assert basket.json()["line_count"] == 2

        orders = await async_client.get("/api/v1/orders", headers=customer_headers)
        assert orders.json()["total"] == 0

    @pytest.mark.parametrize(
        "field,value",
        [
            ("delivery_address", "   "),
            ("delivery_address", "x" * 256),
            ("preferred_delivery_time", "2026-11-02T10:00:00"),
            ("order_type", "wholesale"),
            ("comment", "x" * 2001),
        ],
    )
    async def test_invalid_request_is_rejected(
        self, async_client, customer_headers, checkout_payload, field, value
    ):
        payload = {**checkout_payload, field: value}

        response = await async_client.post(
            CHECKOUT_URL, json=payload, headers=customer_headers
        )

        assert response.status_code == 422

        basket = await async_client.get(BASKET_URL, headers=customer_headers)
        assert basket.json()["line_count"] == 2

    async def test_missing_delivery_time_is_rejected(
        self, async_client, customer_headers, checkout_payload
    ):
        payload = dict(checkout_payload)
        del payload["preferred_delivery_time"]

        response = await async_client.post(
            CHECKOUT_URL, json=payload, headers=customer_headers
        )

        assert response.status_code == 422

    async def test_order_type_defaults_to_full_set(
        self, async_client, customer_headers, checkout_payload, quiet_checkout
    ):
        payload = dict(checkout_payload)
        del payload["order_type"]

        response = await async_client.post(
            CHECKOUT_URL, json=payload, headers=customer_headers
        )

        assert response.status_code == 200
        assert {o["order_type"] for o in response.json()["orders"]} == {"full_set"}

    async def test_requires_authentication(self, async_client, checkout_payload):
        response = await async_client.post(CHECKOUT_URL, json=checkout_payload)

        assert response.status_code == 401


class TestCheckoutLinesEndpoint:
    async def test_checkout_selected_lines(
        self, async_client, customer_headers, checkout_payload
    ):
        basket = (await async_client.get(BASKET_URL, headers=customer_headers)).json()
        door_line, accessory_line = basket["lines"]

        response = await async_client.post(
            f"{CHECKOUT_URL}/lines",
            json={**checkout_payload, "line_ids": [door_line["id"]]},
            headers=customer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_amount"] == "200.00"
        assert [o["item_kind"] for o in data["orders"]] == ["door"]

        remaining = (await async_client.get(BASKET_URL, headers=customer_headers)).json()
        assert [line["id"] for line in remaining["lines"]] == [accessory_line["id"]]

    async def test_empty_selection_is_validation_error(
        self, async_client, customer_headers, checkout_payload
    ):
        response = await async_client.post(
            f"{CHECKOUT_URL}/lines",
            json={**checkout_payload, "line_ids": []},
            headers=customer_headers,
        )

        assert response.status_code == 422

    async def test_foreign_line_returns_404(
        self,
        async_client,
        auth_headers,
        customer_headers,
        other_customer,
        checkout_payload,
    ):
        basket = (await async_client.get(BASKET_URL, headers=customer_headers)).json()

        response = await async_client.post(
            f"{CHECKOUT_URL}/lines",
            json={**checkout_payload, "line_ids": [basket["lines"][0]["id"]]},
            headers=auth_headers(other_customer),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "LINE_NOT_FOUND"


class TestCheckoutErrorMapping:
    """Router behaviour with the checkout service replaced by a mock."""

    @pytest.fixture
    def failing_checkout(self):
        service = AsyncMock(spec=CheckoutService)
        app.dependency_overrides[get_checkout_service] = lambda: service
        return service

    async def test_persistence_failure_hides_internals(
        self, async_client, auth_headers, customer, checkout_payload, failing_checkout
    ):
        failing_checkout.checkout.side_effect = PersistenceFailureError(
            "checkout", error="connection reset by peer"
        )

        response = await async_client.post(
            CHECKOUT_URL, json=checkout_payload, headers=auth_headers(customer)
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail == {
            "code": "PERSISTENCE_FAILURE",
            "message": "Failed to complete checkout",
        }

    async def test_concurrent_modification_is_retryable_conflict(
        self, async_client, auth_headers, customer, checkout_payload, failing_checkout
    ):
        failing_checkout.checkout.side_effect = ConcurrentModificationError(
            "Basket changed during checkout"
        )

        response = await async_client.post(
            CHECKOUT_URL, json=checkout_payload, headers=auth_headers(customer)
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "CONCURRENT_MODIFICATION"
        assert detail["retryable"] is True

    async def test_request_reaches_service_parsed(
        self, async_client, auth_headers, customer, checkout_payload, failing_checkout
    ):
        failing_checkout.checkout_lines.return_value = CheckoutResult(
            status=CheckoutStatus.EMPTY_BASKET,
            message="No basket lines selected",
        )
        line_id = uuid.uuid4()

        response = await async_client.post(
            f"{CHECKOUT_URL}/lines",
            json={**checkout_payload, "line_ids": [str(line_id), str(line_id)]},
            headers=auth_headers(customer),
        )

        assert response.status_code == 200
        args = failing_checkout.checkout_lines.await_args.args
        assert args[1] == [line_id, line_id]
        assert args[2].order_type == OrderType.FULL_SET
