"""Integration tests for checkout and customer order endpoints."""

from decimal import Decimal

import pytest
from libs.common.config import get_settings
from services.commerce_service.app.main import app
from services.commerce_service.models import CustomerStatus, Product
from services.commerce_service.services import notifications
from sqlalchemy import select
from tests.conftest import make_customer_user, override_auth
from tests.factories import (
    add_address,
    add_cart_item,
    add_customer,
    placed_order,
    stock_product,
)

settings = get_settings()

PICKUP_ORDER = {"delivery_method": "pickup", "payment_method": "cash_on_delivery"}


async def _stock(session_factory, product_id) -> int:
    async with session_factory() as db:
        result = await db.execute(
            select(Product.stock_quantity).where(Product.id == product_id)
        )
        return result.scalar_one()


# ---------------------------------------------------------------------------
# Delivery quotes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_pickup_quote(client, customer):
    response = await client.post(
        "/api/checkout/delivery-fee", json={"delivery_method": "pickup"}
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert Decimal(data["delivery_fee"]) == Decimal("0")
    assert data["fee_pending"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_standard_quote_with_coordinates(client, customer, db_session):
    address = await add_address(db_session, customer.id, latitude=7.0, longitude=80.0)

    response = await client.post(
        "/api/checkout/delivery-fee",
        json={"delivery_method": "standard", "address_id": str(address.id)},
    )

    data = response.json()
    assert data["has_coordinates"] is True
    assert Decimal(data["delivery_fee"]) > 0
    assert data["delivery_distance_km"] is not None
    assert "subject to change" in data["fee_note"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_express_quote_is_contact_us(client, customer):
    response = await client.post(
        "/api/checkout/delivery-fee", json={"delivery_method": "express"}
    )

    assert response.json()["contact_us"] is True


# ---------------------------------------------------------------------------
# Place order
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order(client, customer, db_session, session_factory):
    """POST /api/checkout/place-order: creates the order and empties the cart."""
    product = await stock_product(db_session, stock=5)
    await add_cart_item(db_session, customer.id, product.id, 2)

    response = await client.post(
        "/api/checkout/place-order",
        json={**PICKUP_ORDER, "order_notes": "Please call on arrival"},
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["status"] == "new"
    assert data["payment_status"] == "pending"
    assert Decimal(data["total"]) == Decimal("200.00")
    assert data["items"][0]["quantity"] == 2
    assert data["order_notes"] == "Please call on arrival"
    assert await _stock(session_factory, product.id) == 3

    cart = (await client.get("/api/cart")).json()
    assert cart["items"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order_schedules_notifications(
    client, customer, db_session, monkeypatch
):
    calls = []

    async def record(order_id, session_factory):
        calls.append(order_id)

    monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", True)
    monkeypatch.setattr(notifications, "process_new_order", record)
    product = await stock_product(db_session, stock=5)
    await add_cart_item(db_session, customer.id, product.id, 1)

    response = await client.post("/api/checkout/place-order", json=PICKUP_ORDER)

    assert response.status_code == 201
    assert [str(c) for c in calls] == [response.json()["id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order_stock_conflict(client, customer, db_session):
    """409 with per-product stock issues; the cart is left for review."""
    product = await stock_product(db_session, stock=1)
    await add_cart_item(db_session, customer.id, product.id, 3)

    response = await client.post("/api/checkout/place-order", json=PICKUP_ORDER)

    assert response.status_code == 409
    data = response.json()
    assert data["kind"] == "stock_conflict"
    assert data["stock_issues"] == [
        {
            "product_id": str(product.id),
            "product_name": "Paracetamol (Panadol)",
            "requested": 3,
            "available": 1,
        }
    ]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order_skips_out_of_stock_lines(
    client, customer, db_session, session_factory
):
    """Out-of-stock lines never block placement; only in-stock lines are ordered."""
    product = await stock_product(db_session, stock=5)
    gone = await stock_product(db_session, stock=0, generic_name="Insulin")
    await add_cart_item(db_session, customer.id, product.id, 2)
    await add_cart_item(db_session, customer.id, gone.id, 1)

    response = await client.post("/api/checkout/place-order", json=PICKUP_ORDER)

    assert response.status_code == 201, response.text
    data = response.json()
    assert Decimal(data["total"]) == Decimal("200.00")
    assert [i["product_id"] for i in data["items"]] == [str(product.id)]
    assert await _stock(session_factory, product.id) == 3
    assert (await client.get("/api/cart")).json()["items"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order_empty_cart(client, customer):
    response = await client.post("/api/checkout/place-order", json=PICKUP_ORDER)

    assert response.status_code == 400
    assert response.json()["kind"] == "empty_cart"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order_requires_address_for_standard(client, customer, db_session):
    product = await stock_product(db_session, stock=5)
    await add_cart_item(db_session, customer.id, product.id, 1)

    response = await client.post(
        "/api/checkout/place-order",
        json={"delivery_method": "standard", "payment_method": "bank_transfer"},
    )

    assert response.status_code == 400
    assert response.json()["kind"] == "address_required"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_place_order_rejects_unknown_payment_method(client, customer):
    response = await client.post(
        "/api/checkout/place-order",
        json={"delivery_method": "pickup", "payment_method": "crypto"},
    )

    assert response.status_code == 422
    assert response.json()["kind"] == "validation"


# ---------------------------------------------------------------------------
# Order history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_and_get_my_orders(client, customer, db_session):
    product = await stock_product(db_session, stock=10)
    first = await placed_order(db_session, customer.id, [(product, 1)])
    second = await placed_order(db_session, customer.id, [(product, 2)])

    response = await client.get("/api/orders")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {o["id"] for o in data["orders"]} == {str(first.id), str(second.id)}

    detail = (await client.get(f"/api/orders/{first.id}")).json()
    assert detail["order_number"] == first.order_number
    assert [h["new_status"] for h in detail["status_history"]] == ["new"]
    assert "admin_notes" not in detail

    filtered = (await client.get("/api/orders", params={"status": "cancelled"})).json()
    assert filtered["total"] == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_customers_order_is_not_found(client, customer, db_session):
    other = await add_customer(db_session)
    product = await stock_product(db_session, stock=10)
    order = await placed_order(db_session, other.id, [(product, 1)])

    response = await client.get(f"/api/orders/{order.id}")

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reorder_endpoint(client, customer, db_session):
    product = await stock_product(db_session, stock=10)
    order = await placed_order(db_session, customer.id, [(product, 2)])

    response = await client.post(f"/api/orders/{order.id}/reorder")

    assert response.status_code == 200, response.text
    data = response.json()
    assert data == {"success": True, "items_added": 1, "warnings": []}
    assert (await client.get("/api/cart/count")).json() == {"count": 2}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_suspended_customer_cannot_place_orders(client, db_session):
    suspended = await add_customer(db_session, status=CustomerStatus.SUSPENDED)

    with override_auth(app, make_customer_user(suspended.id)):
        response = await client.post("/api/checkout/place-order", json=PICKUP_ORDER)

    assert response.status_code == 403
