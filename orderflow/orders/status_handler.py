"""
Order status changes and their side effects.

A status change is fetch, validate, conditional write. Once the order row is
written the change is final: the history row and the ready notification are
best effort, and their failures are reported on the result instead of undoing
the status.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.config import Settings, settings as default_settings
from orderflow.models.order import Order, OrderStatus, OrderStatusHistory, PaymentStatus
from orderflow.models.tenant import Tenant
from orderflow.notifications.dispatcher import NotificationDispatcher
from orderflow.orders.store import OrderStore
from orderflow.orders.transitions import (
    allowed_transitions,
    is_terminal_status,
    is_transition_allowed,
    parse_status,
    timestamp_field_for,
)
from orderflow.schemas.order import OrderCreate, OrderItemCreate
from orderflow.time_utils import utcnow

logger = structlog.get_logger()


NOT_FOUND = "not_found"
INVALID_TRANSITION = "invalid_transition"
CONFLICT = "conflict"
STORAGE_ERROR = "storage_error"

CENTS = Decimal("0.01")


@dataclass
class StatusUpdateOptions:
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    skip_notification: bool = False


@dataclass
class StatusChangeResult:
    success: bool
    order: Optional[Order] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    history_entry: Optional[OrderStatusHistory] = None
    notification_sent: bool = False
    warnings: List[str] = field(default_factory=list)


def quantize_money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_totals(
    items: Iterable[OrderItemCreate],
    tax_rate,
    tip=Decimal("0"),
) -> Tuple[Decimal, Decimal, Decimal]:
    """Return (subtotal, tax, total) rounded to cents"""
    subtotal = quantize_money(
        sum((Decimal(item.unit_price) * item.quantity for item in items), Decimal("0"))
    )
    tax = quantize_money(subtotal * Decimal(tax_rate or 0))
    total = quantize_money(subtotal + tax + Decimal(tip or 0))
    return subtotal, tax, total


class StatusChangeHandler:
    """Validates, persists and audits order status changes"""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.store = OrderStore(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db)
        self.settings = settings or default_settings

    # Validation

    async def validate_status_transition(self, from_status, to_status) -> bool:
        return is_transition_allowed(from_status, to_status)

    def get_allowed_transitions(self, from_status) -> List[str]:
        return sorted(status.value for status in allowed_transitions(from_status))

    # Creation

    async def create_order(
        self,
        tenant: Tenant,
        data: OrderCreate,
        changed_by: Optional[str] = None,
    ) -> Order:
        """Create an order in ``pending`` and record the creation event"""
        subtotal, tax, total = calculate_totals(data.items, tenant.tax_rate, data.tip)
        items_json = [item.model_dump(mode="json") for item in data.items]

        order = None
        for attempt in range(3):
            order = Order(
                tenant_id=tenant.id,
                order_number=await self.store.next_order_number(tenant),
                customer_name=data.customer_name,
                customer_email=data.customer_email,
                customer_phone=data.customer_phone,
                customer_telegram_chat_id=data.customer_telegram_chat_id,
                notification_method=data.notification_method.value,
                items_json=items_json,
                subtotal=subtotal,
                tax=tax,
                tip=quantize_money(data.tip),
                total=total,
                status=OrderStatus.PENDING.value,
                pickup_time=data.pickup_time,
                payment_method=data.payment_method.value,
                payment_status=PaymentStatus.PENDING_PAYMENT.value,
                payment_reference=data.payment_reference,
                cash_register_id=data.cash_register_id,
                customer_notes=data.customer_notes,
            )
            try:
                order = await self.store.add_order(order)
                break
            except IntegrityError:
                # Another order took the same number
                await self.db.rollback()
                if attempt == 2:
                    raise

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=str(order.total),
        )

        order_id = order.id
        await self.log_status_change(
            order_id, None, OrderStatus.PENDING.value, changed_by, "Order created"
        )
        return await self.store.get_order(order_id)

    # Status updates

    async def update_order_status(
        self,
        order_id: UUID,
        new_status,
        options: Optional[StatusUpdateOptions] = None,
    ) -> StatusChangeResult:
        """
        Move an order to ``new_status``.

        The write only lands if the order still has the status that was
        validated. When another request got there first the order is fetched
        again and the transition is re-checked against the new status.
        """
        options = options or StatusUpdateOptions()
        target = parse_status(new_status)
        target_label = target.value if target else str(new_status)
        log = logger.bind(order_id=str(order_id), new_status=target_label)

        previous_status = None
        applied = False
        for attempt in range(max(1, self.settings.status_update_attempts)):
            try:
                order = await self.store.get_order(order_id)
            except SQLAlchemyError as e:
                await self.db.rollback()
                log.error("Failed to fetch order", error=str(e))
                return StatusChangeResult(success=False, error=str(e), error_code=STORAGE_ERROR)

            if order is None:
                return StatusChangeResult(
                    success=False, error="Order not found", error_code=NOT_FOUND
                )

            previous_status = order.status
            if target is None or not await self.validate_status_transition(previous_status, target):
                log.info("Rejected status transition", old_status=previous_status)
                return StatusChangeResult(
                    success=False,
                    order=order,
                    error=f"Invalid status transition from {previous_status} to {target_label}",
                    error_code=INVALID_TRANSITION,
                )

            values = self._build_update(order, target, options)
            try:
                updated = await self.store.update_order_if_status(order.id, previous_status, values)
            except SQLAlchemyError as e:
                await self.db.rollback()
                log.error("Failed to update order status", error=str(e))
                return StatusChangeResult(success=False, error=str(e), error_code=STORAGE_ERROR)

            if updated:
                applied = True
                break

            log.warning("Order changed concurrently, re-validating", attempt=attempt + 1)

        if not applied:
            return StatusChangeResult(
                success=False,
                error=f"Order status changed concurrently; transition to {target_label} not applied",
                error_code=CONFLICT,
            )

        log.info("Order status updated", old_status=previous_status)

        result = StatusChangeResult(success=True)

        history_entry = await self.log_status_change(
            order_id, previous_status, target.value, options.changed_by, options.notes
        )
        history_id = history_entry.id if history_entry is not None else None
        if history_id is None:
            result.warnings.append("Status history could not be recorded")

        if target == OrderStatus.READY and not options.skip_notification:
            sent, error = await self._dispatch_ready_notification(order_id)
            result.notification_sent = sent
            if error:
                result.warnings.append(f"Ready notification: {error}")

        # Reload last: a rollback in the steps above expires loaded instances
        try:
            result.order = await self.store.get_order(order_id)
            if history_id is not None:
                result.history_entry = await self.store.get_history_entry(history_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("Failed to reload order after status update", error=str(e))
            result.warnings.append("Updated order could not be reloaded")

        return result

    async def bulk_update_order_status(
        self,
        order_ids: Iterable[UUID],
        new_status,
        options: Optional[StatusUpdateOptions] = None,
    ) -> List[StatusChangeResult]:
        """Apply the same transition to several orders, one at a time"""
        results = []
        for order_id in order_ids:
            results.append(await self.update_order_status(order_id, new_status, options))
        return results

    def _build_update(
        self,
        order: Order,
        target: OrderStatus,
        options: StatusUpdateOptions,
    ) -> Dict[str, object]:
        now = utcnow()
        values = {"status": target.value, "updated_at": now}

        timestamp_field = timestamp_field_for(target)
        if timestamp_field and getattr(order, timestamp_field) is None:
            values[timestamp_field] = now

        if target == OrderStatus.CANCELLED:
            values["cancellation_reason"] = (
                options.cancellation_reason or self.settings.default_cancellation_reason
            )

        return values

    # History

    async def log_status_change(
        self,
        order_id: UUID,
        old_status: Optional[str],
        new_status: str,
        changed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[OrderStatusHistory]:
        """Append a history row. Returns None instead of raising on storage errors."""
        old_value = parse_status(old_status)
        new_value = parse_status(new_status)
        try:
            return await self.store.insert_history(
                {
                    "order_id": order_id,
                    "old_status": old_value.value if old_value else old_status,
                    "new_status": new_value.value if new_value else new_status,
                    "changed_by": changed_by or None,
                    "notes": notes or None,
                }
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to log status change",
                order_id=str(order_id),
                old_status=old_status,
                new_status=new_status,
                error=str(e),
            )
            return None

    async def get_status_history(self, order_id: UUID) -> List[OrderStatusHistory]:
        try:
            return await self.store.get_history(order_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to load status history", order_id=str(order_id), error=str(e))
            return []

    # Notifications

    async def trigger_notification_if_ready(self, order_id: UUID, status) -> bool:
        """
        Send the "order ready" notification at most once per order.

        Any status other than ``ready`` is a no-op with no I/O. The
        ``notification_sent`` flag is written after a successful dispatch, so a
        crash in between can repeat a notification but never lose one.
        """
        if parse_status(status) != OrderStatus.READY:
            return False

        sent, _ = await self._dispatch_ready_notification(order_id)
        return sent

    async def _dispatch_ready_notification(self, order_id: UUID) -> Tuple[bool, Optional[str]]:
        log = logger.bind(order_id=str(order_id))

        try:
            order = await self.store.get_order(order_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("Failed to fetch order for notification", error=str(e))
            return False, str(e)

        if order is None:
            return False, "Order not found"

        if order.notification_sent:
            log.info("Ready notification already sent")
            return False, None

        try:
            outcome = await self.dispatcher.send_order_ready(order)
        except Exception as e:
            await self.db.rollback()
            log.error("Ready notification dispatch failed", error=str(e))
            return False, str(e)

        if not outcome.success:
            return False, outcome.error or "Notification was not delivered"

        try:
            await self.store.mark_notification_sent(order_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("Notification sent but flag not persisted", error=str(e))
            return True, "notification_sent flag could not be saved"

        return True, None

    # Queries

    async def can_cancel_order(self, order_id: UUID) -> bool:
        order = await self.store.get_order(order_id)
        if order is None:
            return False
        return not is_terminal_status(order.status)

    async def get_order_stats(self, tenant_id: UUID) -> Dict[str, int]:
        try:
            return await self.store.count_by_status(tenant_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to compute order stats", tenant_id=str(tenant_id), error=str(e))
            return {}

    async def get_overdue_orders(self, tenant_id: UUID) -> List[Order]:
        try:
            return await self.store.list_overdue(tenant_id, utcnow())
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to load overdue orders", tenant_id=str(tenant_id), error=str(e))
            return []
