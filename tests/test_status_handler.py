"""Tests for order status changes"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from orderflow.config import settings
from orderflow.models import OrderStatusHistory
from orderflow.orders.status_handler import (
    CONFLICT,
    INVALID_TRANSITION,
    NOT_FOUND,
    StatusChangeHandler,
    StatusUpdateOptions,
    calculate_totals,
)
from orderflow.schemas.order import OrderCreate, OrderItemCreate
from orderflow.time_utils import utcnow


async def history_count(db, order_id):
    result = await db.execute(
        select(func.count(OrderStatusHistory.id)).where(OrderStatusHistory.order_id == order_id)
    )
    return result.scalar()


@pytest.fixture
def handler(test_db, fake_dispatcher):
    return StatusChangeHandler(test_db, dispatcher=fake_dispatcher)


@pytest.mark.asyncio
async def test_end_to_end_confirm_then_skip_rejected(handler, test_db, test_order):
    """Confirming works; jumping from confirmed straight to ready does not"""
    result = await handler.update_order_status(
        test_order.id, "confirmed", StatusUpdateOptions(changed_by="cashier@example.com")
    )

    assert result.success
    assert result.order.status == "confirmed"
    assert result.order.confirmed_at is not None
    assert result.history_entry.old_status == "pending"
    assert result.history_entry.new_status == "confirmed"
    assert result.history_entry.changed_by == "cashier@example.com"

    result = await handler.update_order_status(test_order.id, "ready")

    assert not result.success
    assert result.error_code == INVALID_TRANSITION
    assert "Invalid status transition" in result.error
    assert result.error == "Invalid status transition from confirmed to ready"


@pytest.mark.asyncio
async def test_rejected_transition_writes_nothing(handler, test_db, test_order):
    before = await history_count(test_db, test_order.id)

    result = await handler.update_order_status(test_order.id, "picked_up")

    assert not result.success
    assert result.error_code == INVALID_TRANSITION
    order = await handler.store.get_order(test_order.id)
    assert order.status == "pending"
    assert order.picked_up_at is None
    assert await history_count(test_db, test_order.id) == before


@pytest.mark.asyncio
async def test_unknown_status_is_rejected(handler, test_order):
    result = await handler.update_order_status(test_order.id, "shipped")

    assert not result.success
    assert result.error_code == INVALID_TRANSITION


@pytest.mark.asyncio
async def test_missing_order(handler):
    result = await handler.update_order_status(uuid4(), "confirmed")

    assert not result.success
    assert result.error_code == NOT_FOUND
    assert result.error == "Order not found"


@pytest.mark.asyncio
async def test_cancel_uses_default_reason(handler, test_order):
    result = await handler.update_order_status(test_order.id, "cancelled")

    assert result.success
    assert result.order.status == "cancelled"
    assert result.order.cancelled_at is not None
    assert result.order.cancellation_reason == settings.default_cancellation_reason


@pytest.mark.asyncio
async def test_cancel_with_reason_from_ready(handler, make_order):
    order = await make_order(status="ready")

    result = await handler.update_order_status(
        order.id,
        "cancelled",
        StatusUpdateOptions(cancellation_reason="Customer never arrived"),
    )

    assert result.success
    assert result.order.cancellation_reason == "Customer never arrived"


@pytest.mark.asyncio
async def test_cancelled_order_cannot_be_cancelled_again(handler, make_order):
    order = await make_order(status="cancelled")

    result = await handler.update_order_status(order.id, "cancelled")

    assert not result.success
    assert result.error_code == INVALID_TRANSITION


@pytest.mark.asyncio
async def test_existing_timestamp_is_not_overwritten(handler, make_order):
    first_ready = datetime(2026, 1, 1, 12, 0, 0)
    order = await make_order(status="preparing", ready_at=first_ready)

    result = await handler.update_order_status(order.id, "ready", StatusUpdateOptions(skip_notification=True))

    assert result.success
    assert result.order.ready_at == first_ready


@pytest.mark.asyncio
async def test_ready_sends_notification_once(handler, fake_dispatcher, make_order):
    order = await make_order(status="preparing")

    result = await handler.update_order_status(order.id, "ready")

    assert result.success
    assert result.notification_sent
    assert result.order.notification_sent is True
    assert result.order.ready_at is not None
    assert fake_dispatcher.sent == [order.id]

    # A second trigger finds the flag already set
    assert await handler.trigger_notification_if_ready(order.id, "ready") is False
    assert fake_dispatcher.sent == [order.id]


@pytest.mark.asyncio
async def test_skip_notification(handler, fake_dispatcher, make_order):
    order = await make_order(status="preparing")

    result = await handler.update_order_status(
        order.id, "ready", StatusUpdateOptions(skip_notification=True)
    )

    assert result.success
    assert not result.notification_sent
    assert result.order.notification_sent is False
    assert fake_dispatcher.sent == []


@pytest.mark.asyncio
async def test_non_ready_status_never_notifies(handler, fake_dispatcher, test_order):
    assert await handler.trigger_notification_if_ready(test_order.id, "confirmed") is False

    result = await handler.update_order_status(test_order.id, "confirmed")

    assert result.success
    assert not result.notification_sent
    assert fake_dispatcher.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "succeed,error",
    [(False, None), (True, RuntimeError("smtp down"))],
    ids=["delivery-failed", "dispatcher-raised"],
)
async def test_notification_failure_keeps_status(handler, fake_dispatcher, make_order, succeed, error):
    fake_dispatcher.succeed = succeed
    fake_dispatcher.error = error
    order = await make_order(status="preparing")

    result = await handler.update_order_status(order.id, "ready")

    assert result.success
    assert result.order.status == "ready"
    assert not result.notification_sent
    assert result.order.notification_sent is False
    assert any("Ready notification" in warning for warning in result.warnings)


@pytest.mark.asyncio
async def test_flag_write_failure_after_send(handler, make_order):
    order = await make_order(status="preparing")

    async def broken_flag(order_id):
        raise SQLAlchemyError("database is locked")

    handler.store.mark_notification_sent = broken_flag

    result = await handler.update_order_status(order.id, "ready")

    assert result.success
    assert result.notification_sent
    assert result.warnings


@pytest.mark.asyncio
async def test_history_failure_does_not_undo_status(handler, test_order):
    async def broken_history(record):
        raise SQLAlchemyError("disk full")

    handler.store.insert_history = broken_history

    result = await handler.update_order_status(test_order.id, "confirmed")

    assert result.success
    assert result.history_entry is None
    assert result.order.status == "confirmed"
    assert "Status history could not be recorded" in result.warnings


@pytest.mark.asyncio
async def test_status_write_failure_is_reported(handler, test_order):
    async def broken_update(order_id, expected_status, values):
        raise SQLAlchemyError("connection reset")

    handler.store.update_order_if_status = broken_update

    result = await handler.update_order_status(test_order.id, "confirmed")

    assert not result.success
    assert result.error_code == "storage_error"


@pytest.mark.asyncio
async def test_concurrent_change_is_revalidated(handler, test_order):
    real_update = handler.store.update_order_if_status
    calls = []

    async def racing_update(order_id, expected_status, values):
        calls.append(expected_status)
        if len(calls) == 1:
            # Another request cancels the order between our read and our write
            await real_update(order_id, expected_status, {"status": "cancelled"})
        return await real_update(order_id, expected_status, values)

    handler.store.update_order_if_status = racing_update

    result = await handler.update_order_status(test_order.id, "confirmed")

    assert not result.success
    assert result.error_code == INVALID_TRANSITION
    assert calls == ["pending"]
    order = await handler.store.get_order(test_order.id)
    assert order.status == "cancelled"


@pytest.mark.asyncio
async def test_conflict_after_retries(handler, test_order):
    calls = []

    async def always_loses(order_id, expected_status, values):
        calls.append(expected_status)
        return 0

    handler.store.update_order_if_status = always_loses

    result = await handler.update_order_status(test_order.id, "confirmed")

    assert not result.success
    assert result.error_code == CONFLICT
    assert len(calls) == settings.status_update_attempts


@pytest.mark.asyncio
async def test_full_lifecycle_history(handler, test_order):
    for status in ["confirmed", "preparing", "ready", "picked_up"]:
        result = await handler.update_order_status(test_order.id, status)
        assert result.success, result.error

    history = await handler.get_status_history(test_order.id)
    assert [(h.old_status, h.new_status) for h in history] == [
        ("pending", "confirmed"),
        ("confirmed", "preparing"),
        ("preparing", "ready"),
        ("ready", "picked_up"),
    ]
    assert result.order.picked_up_at is not None
    assert await handler.can_cancel_order(test_order.id) is False


@pytest.mark.asyncio
async def test_create_order(handler, test_tenant, test_products):
    data = OrderCreate(
        customer_name="Luis Perez",
        customer_email="luis@example.com",
        items=[
            OrderItemCreate(product_id=test_products[0].id, name="Chilaquiles", quantity=2, unit_price=Decimal("95")),
            OrderItemCreate(product_id=test_products[1].id, name="Cafe de olla", quantity=1, unit_price=Decimal("60")),
        ],
        tip=Decimal("10"),
        payment_method="cash",
    )

    order = await handler.create_order(test_tenant, data, changed_by="kiosk")

    assert order.order_number == "CAF-000001"
    assert order.status == "pending"
    assert order.payment_status == "pending_payment"
    assert order.subtotal == Decimal("250.00")
    assert order.tax == Decimal("40.00")
    assert order.total == Decimal("300.00")

    history = await handler.get_status_history(order.id)
    assert len(history) == 1
    assert history[0].old_status is None
    assert history[0].new_status == "pending"
    assert history[0].changed_by == "kiosk"

    second = await handler.create_order(test_tenant, data)
    assert second.order_number == "CAF-000002"


def test_calculate_totals_rounds_to_cents():
    items = [OrderItemCreate(name="Pan dulce", quantity=3, unit_price=Decimal("12.33"))]

    subtotal, tax, total = calculate_totals(items, Decimal("0.16"))

    assert subtotal == Decimal("36.99")
    assert tax == Decimal("5.92")
    assert total == Decimal("42.91")


@pytest.mark.asyncio
async def test_bulk_update(handler, make_order):
    pending = await make_order()
    preparing = await make_order(status="preparing")

    results = await handler.bulk_update_order_status([pending.id, preparing.id], "confirmed")

    assert results[0].success
    assert not results[1].success
    assert results[1].error_code == INVALID_TRANSITION


@pytest.mark.asyncio
async def test_stats_and_overdue(handler, test_tenant, make_order):
    now = utcnow()
    late = await make_order(status="ready", pickup_time=now - timedelta(hours=1))
    await make_order(status="ready", pickup_time=now + timedelta(hours=1))
    await make_order(status="preparing", pickup_time=now - timedelta(hours=1))
    await make_order()

    stats = await handler.get_order_stats(test_tenant.id)
    assert stats == {"ready": 2, "preparing": 1, "pending": 1}

    overdue = await handler.get_overdue_orders(test_tenant.id)
    assert [order.id for order in overdue] == [late.id]


@pytest.mark.asyncio
async def test_allowed_transitions_are_sorted(handler):
    assert handler.get_allowed_transitions("pending") == ["cancelled", "confirmed"]
    assert handler.get_allowed_transitions("picked_up") == []
