"""Tests for the Clip payment webhook"""

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from orderflow.models import CashRegister, Order, Product, StockMovement
from orderflow.orders.store import OrderStore


async def reload(db, model, pk):
    result = await db.execute(
        select(model).where(model.id == pk).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def movement_count(db, order_id):
    result = await db.execute(
        select(func.count(StockMovement.id)).where(StockMovement.order_id == order_id)
    )
    return result.scalar()


SUCCESS_PAYLOAD = {
    "event": "payment.success",
    "data": {"id": "pay-1", "reference": "order-123"},
}


@pytest.mark.asyncio
async def test_payment_success_completes_sale(
    client: AsyncClient, test_db, test_order, test_products, test_register
):
    response = await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Payment processed"
    assert data["order_number"] == "order-123"

    order = await reload(test_db, Order, test_order.id)
    assert order.payment_status == "completed"
    assert order.paid_at is not None
    assert order.staff_notes == "Clip payment confirmed: pay-1"
    # Fulfillment status is untouched by payment
    assert order.status == "pending"

    assert (await reload(test_db, Product, test_products[0].id)).stock_quantity == 8
    assert (await reload(test_db, Product, test_products[1].id)).stock_quantity == 4

    register = await reload(test_db, CashRegister, test_register.id)
    assert register.total_terminal == Decimal("290.00")
    assert register.total_sales == Decimal("290.00")
    assert register.sale_count == 1


@pytest.mark.asyncio
async def test_replayed_webhook_changes_nothing(
    client: AsyncClient, test_db, test_order, test_products, test_register
):
    first = await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)
    second = await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["message"] == "No pending sale found"

    assert (await reload(test_db, Product, test_products[0].id)).stock_quantity == 8
    assert await movement_count(test_db, test_order.id) == 2

    register = await reload(test_db, CashRegister, test_register.id)
    assert register.total_terminal == Decimal("290.00")
    assert register.sale_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"event": "charge.succeeded", "data": {"payment_request_id": "pay-1"}},
        {"event": "payment.updated", "data": {"payment_id": "pay-1", "status": "APPROVED"}},
        {"event": "payment.updated", "data": {"id": "pay-1", "status": "completed"}},
    ],
    ids=["charge-succeeded", "approved-status", "completed-status"],
)
async def test_success_variants(client: AsyncClient, test_db, test_order, payload):
    response = await client.post("/webhooks/clip", json=payload)

    assert response.status_code == 200
    assert response.json()["message"] == "Payment processed"
    order = await reload(test_db, Order, test_order.id)
    assert order.payment_status == "completed"


@pytest.mark.asyncio
async def test_order_found_by_sale_id(client: AsyncClient, test_db, make_order):
    order = await make_order(payment_reference=None)

    response = await client.post(
        "/webhooks/clip",
        json={"event": "payment.success", "data": {"id": "unknown-id", "metadata": {"sale_id": str(order.id)}}},
    )

    assert response.json()["message"] == "Payment processed"
    assert (await reload(test_db, Order, order.id)).payment_status == "completed"


@pytest.mark.asyncio
async def test_order_found_by_order_number(client: AsyncClient, test_db, make_order):
    order = await make_order(order_number="CAF-000042", payment_reference=None)

    response = await client.post(
        "/webhooks/clip",
        json={"event": "payment.success", "data": {"id": "unknown-id", "reference": "CAF-000042"}},
    )

    assert response.json()["message"] == "Payment processed"
    assert (await reload(test_db, Order, order.id)).payment_status == "completed"


@pytest.mark.asyncio
async def test_malformed_sale_id_is_ignored(client: AsyncClient, test_order):
    response = await client.post(
        "/webhooks/clip",
        json={"event": "payment.success", "data": {"id": "unknown-id", "metadata": {"sale_id": "CAF-000042"}}},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "No pending sale found"


@pytest.mark.asyncio
async def test_non_success_event_is_acknowledged(client: AsyncClient, test_db, test_order):
    response = await client.post(
        "/webhooks/clip",
        json={"event": "payment.failed", "data": {"id": "pay-1", "status": "declined"}},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Event received"
    assert (await reload(test_db, Order, test_order.id)).payment_status == "pending_payment"


@pytest.mark.asyncio
async def test_unknown_payment_is_acknowledged(client: AsyncClient, test_order):
    response = await client.post(
        "/webhooks/clip",
        json={"event": "payment.success", "data": {"id": "pay-999"}},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "No pending sale found"


@pytest.mark.asyncio
async def test_non_clip_order_is_not_matched(client: AsyncClient, test_db, make_order):
    order = await make_order(payment_method="cash", payment_reference="pay-cash")

    response = await client.post(
        "/webhooks/clip",
        json={"event": "payment.success", "data": {"id": "pay-cash"}},
    )

    assert response.json()["message"] == "No pending sale found"
    assert (await reload(test_db, Order, order.id)).payment_status == "pending_payment"


@pytest.mark.asyncio
async def test_invalid_payload_is_acknowledged(client: AsyncClient):
    response = await client.post(
        "/webhooks/clip",
        content=b"not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True


@pytest.mark.asyncio
async def test_storage_failure_returns_500(client: AsyncClient, test_order, monkeypatch):
    async def broken_lookup(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database unavailable"))

    monkeypatch.setattr(OrderStore, "find_pending_payment_order", broken_lookup)

    response = await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)

    assert response.status_code == 500
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_existing_staff_notes_are_kept(client: AsyncClient, test_db, make_order):
    order = await make_order(payment_reference="pay-77", staff_notes="Extra salsa")

    await client.post("/webhooks/clip", json={"event": "payment.success", "data": {"id": "pay-77"}})

    order = await reload(test_db, Order, order.id)
    assert order.staff_notes == "Extra salsa | Clip payment confirmed: pay-77"


@pytest.mark.asyncio
async def test_payment_id_must_match_exactly(client: AsyncClient, test_db, make_order):
    longer = await make_order(payment_reference="pay-10", created_at=datetime(2020, 1, 1))

    response = await client.post("/webhooks/clip", json={"event": "payment.success", "data": {"id": "pay-1"}})

    assert response.json()["message"] == "No pending sale found"
    assert (await reload(test_db, Order, longer.id)).payment_status == "pending_payment"


@pytest.mark.asyncio
async def test_replay_leaves_other_orders_alone(
    client: AsyncClient, test_db, test_order, test_products, test_register, make_order
):
    await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)
    other = await make_order(order_number="order-999", payment_reference="pay-10")

    response = await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)

    assert response.json()["message"] == "No pending sale found"
    assert (await reload(test_db, Order, other.id)).payment_status == "pending_payment"
    assert await movement_count(test_db, other.id) == 0
    assert (await reload(test_db, Product, test_products[0].id)).stock_quantity == 8

    register = await reload(test_db, CashRegister, test_register.id)
    assert register.sale_count == 1
    assert register.total_terminal == Decimal("290.00")


@pytest.mark.asyncio
async def test_failed_reload_after_payment_is_a_warning(
    client: AsyncClient, test_db, test_order, test_products, test_register, monkeypatch
):
    get_order = OrderStore.get_order
    calls = {"n": 0}

    async def flaky_get_order(self, order_id):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return await get_order(self, order_id)

    monkeypatch.setattr(OrderStore, "get_order", flaky_get_order)

    response = await client.post("/webhooks/clip", json=SUCCESS_PAYLOAD)

    assert response.status_code == 200
    assert response.json()["message"] == "Payment processed"

    order = await reload(test_db, Order, test_order.id)
    assert order.payment_status == "completed"
    # Stock is skipped, the register is still credited
    assert (await reload(test_db, Product, test_products[0].id)).stock_quantity == 10
    register = await reload(test_db, CashRegister, test_register.id)
    assert register.sale_count == 1
