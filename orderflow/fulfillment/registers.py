"""Cash register reconciliation"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.models.order import Order, PaymentMethod
from orderflow.models.register import CashRegister

logger = structlog.get_logger()


# Payment method -> per-method total column
PAYMENT_METHOD_BUCKETS = {
    PaymentMethod.CASH.value: "total_cash",
    PaymentMethod.CARD.value: "total_card",
    PaymentMethod.TRANSFER.value: "total_transfer",
    PaymentMethod.CLIP.value: "total_terminal",
    PaymentMethod.CARD_TERMINAL.value: "total_terminal",
}


class CashRegisterLedger:
    """Running register totals, only ever moved by additive updates"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def bucket_for(payment_method: Optional[str]) -> Optional[str]:
        return PAYMENT_METHOD_BUCKETS.get(payment_method)

    async def get_register(self, register_id: UUID) -> Optional[CashRegister]:
        result = await self.db.execute(
            select(CashRegister)
            .where(CashRegister.id == register_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def increment_totals(
        self,
        register_id: UUID,
        sales: Decimal,
        method_bucket: Optional[str] = None,
        count: int = 1,
    ) -> bool:
        """
        Add a sale to the register in a single UPDATE.

        The increment is computed by the database, so concurrent sales closing
        against the same register accumulate instead of overwriting each other.
        """
        values = {
            "total_sales": CashRegister.total_sales + sales,
            "sale_count": CashRegister.sale_count + count,
        }
        if method_bucket:
            values[method_bucket] = getattr(CashRegister, method_bucket) + sales

        result = await self.db.execute(
            update(CashRegister)
            .where(CashRegister.id == register_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def apply_sale(self, order: Order) -> bool:
        """Credit a completed order to its register; False when there is nothing to credit"""
        if not order.cash_register_id:
            return False

        updated = await self.increment_totals(
            order.cash_register_id,
            sales=Decimal(order.total or 0),
            method_bucket=self.bucket_for(order.payment_method),
        )
        if not updated:
            logger.warning(
                "Cash register not found",
                order_id=str(order.id),
                cash_register_id=str(order.cash_register_id),
            )
            return False

        logger.info(
            "Cash register updated",
            order_id=str(order.id),
            cash_register_id=str(order.cash_register_id),
            amount=str(order.total),
        )
        return True
