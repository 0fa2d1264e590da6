"""
Payment confirmation from the provider.

Webhooks and status polls both end in ``complete_payment``. Whichever request
flips the order's payment status from ``pending_payment`` to ``completed``
applies the stock and register effects; a replay finds the order already
completed and changes nothing.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.fulfillment.inventory import InventoryLedger
from orderflow.fulfillment.registers import CashRegisterLedger
from orderflow.models.inventory import StockMovement
from orderflow.models.order import Order, PaymentMethod, PaymentStatus
from orderflow.models.tenant import PaymentTerminalConfig
from orderflow.orders.store import OrderStore
from orderflow.payments.clip import ClipClient, extract_status, is_paid_status, is_success_event
from orderflow.schemas.payment import ClipWebhookData, ClipWebhookPayload

logger = structlog.get_logger()


class PaymentProviderNotConfigured(Exception):
    """The tenant has no active credentials for the payment provider"""
    pass


@dataclass
class PaymentCompletionResult:
    applied: bool
    order_id: UUID
    order_number: Optional[str] = None
    movements: List[StockMovement] = field(default_factory=list)
    register_updated: bool = False
    warnings: List[str] = field(default_factory=list)


@dataclass
class WebhookOutcome:
    message: str
    applied: bool = False
    order_id: Optional[UUID] = None
    order_number: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class PaymentStatusResult:
    status: str
    provider_status: Optional[str] = None
    order_id: Optional[UUID] = None


class PaymentConfirmationService:
    """Turns provider payment confirmations into completed sales"""

    def __init__(
        self,
        db: AsyncSession,
        client_factory: Optional[Callable[[PaymentTerminalConfig], ClipClient]] = None,
    ):
        self.db = db
        self.store = OrderStore(db)
        self.inventory = InventoryLedger(db)
        self.registers = CashRegisterLedger(db)
        self.client_factory = client_factory or ClipClient.from_config

    async def handle_webhook(self, payload: ClipWebhookPayload) -> WebhookOutcome:
        """
        Process a Clip webhook.

        Storage errors propagate so the endpoint can answer 500; everything
        else, including an unknown or already settled payment, is acknowledged.
        """
        data = payload.data or ClipWebhookData()

        if not is_success_event(payload.event, data.status):
            logger.info("Clip webhook ignored", clip_event=payload.event, clip_status=data.status)
            return WebhookOutcome(message="Event received")

        payment_id = data.resolved_payment_id
        reference = data.resolved_reference
        sale_id = data.resolved_sale_id
        log = logger.bind(payment_id=payment_id, reference=reference, sale_id=sale_id)
        log.info("Clip payment successful")

        order = await self.store.find_pending_payment_order(
            PaymentMethod.CLIP.value, payment_id, reference, sale_id
        )
        if order is None:
            log.info("No pending sale found for payment")
            return WebhookOutcome(message="No pending sale found")

        completion = await self.complete_payment(order, payment_id)
        if not completion.applied:
            return WebhookOutcome(
                message="Payment already processed",
                order_id=completion.order_id,
                order_number=completion.order_number,
            )

        return WebhookOutcome(
            message="Payment processed",
            applied=True,
            order_id=completion.order_id,
            order_number=completion.order_number,
            warnings=completion.warnings,
        )

    async def check_payment_status(self, tenant_id: UUID, payment_id: str) -> PaymentStatusResult:
        """
        Poll a Clip payment.

        A sale we already completed is answered from the database without
        calling Clip.
        """
        order = await self.store.find_by_payment_reference(PaymentMethod.CLIP.value, payment_id)
        if order is not None and order.tenant_id != tenant_id:
            order = None

        if order is not None and order.payment_status == PaymentStatus.COMPLETED.value:
            return PaymentStatusResult(status=PaymentStatus.COMPLETED.value, order_id=order.id)

        config = await self._get_terminal_config(tenant_id)
        if config is None or not config.api_key or not config.secret_key:
            raise PaymentProviderNotConfigured(
                "Clip is not configured. Add the API key and secret in settings."
            )

        client = self.client_factory(config)
        data = await client.get_checkout(payment_id)
        if data is None:
            return PaymentStatusResult(
                status="pending",
                order_id=order.id if order else None,
            )

        provider_status = extract_status(data)
        paid = is_paid_status(provider_status)

        order_id = order.id if order else None
        if paid and order is not None and order.payment_status == PaymentStatus.PENDING_PAYMENT.value:
            await self.complete_payment(order, payment_id)

        return PaymentStatusResult(
            status=PaymentStatus.COMPLETED.value if paid else "pending",
            provider_status=provider_status,
            order_id=order_id,
        )

    async def complete_payment(self, order: Order, payment_id: Optional[str]) -> PaymentCompletionResult:
        """
        Mark the order paid, then deduct stock and credit the register.

        Only the first caller gets ``applied=True``. The payment status write
        is the one failure that propagates; stock and register failures are
        logged and returned as warnings.
        """
        order_id = order.id
        order_number = order.order_number
        log = logger.bind(order_id=str(order_id), payment_id=payment_id)

        note = f"Clip payment confirmed: {payment_id}"
        staff_notes = f"{order.staff_notes} | {note}" if order.staff_notes else note

        updated = await self.store.mark_payment_completed(order_id, staff_notes)
        if not updated:
            log.info("Payment already completed, skipping side effects")
            return PaymentCompletionResult(applied=False, order_id=order_id, order_number=order_number)

        log.info("Order payment completed", order_number=order_number)
        result = PaymentCompletionResult(applied=True, order_id=order_id, order_number=order_number)

        try:
            order = await self.store.get_order(order_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("Failed to reload paid order, stock not deducted", error=str(e))
            result.warnings.append(f"Stock not updated: {e}")
        else:
            deduction = await self.inventory.deduct_for_order(order)
            result.movements = deduction.movements
            result.warnings.extend(deduction.warnings)

        try:
            order = await self.store.get_order(order_id)
            result.register_updated = await self.registers.apply_sale(order)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error("Failed to update cash register", error=str(e))
            result.warnings.append(f"Cash register not updated: {e}")

        return result

    async def _get_terminal_config(self, tenant_id: UUID) -> Optional[PaymentTerminalConfig]:
        result = await self.db.execute(
            select(PaymentTerminalConfig).where(
                PaymentTerminalConfig.tenant_id == tenant_id,
                PaymentTerminalConfig.provider == PaymentMethod.CLIP.value,
                PaymentTerminalConfig.is_active == True,
            )
        )
        return result.scalars().first()
