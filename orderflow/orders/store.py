"""Order persistence"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.models.order import Order, OrderStatus, OrderStatusHistory, PaymentStatus
from orderflow.models.tenant import Tenant
from orderflow.time_utils import utcnow


def parse_uuid(value) -> Optional[UUID]:
    if not value:
        return None
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError:
        return None


class OrderStore:
    """
    Thin async repository over orders and their status history.

    Every write commits on its own. Status and payment writes are conditional
    on the value the caller read, so two requests racing on the same order
    cannot both succeed; the caller checks the returned row count.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order(self, order_id: UUID) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_order(self, order: Order) -> Order:
        self.db.add(order)
        await self.db.commit()
        await self.db.refresh(order)
        return order

    async def next_order_number(self, tenant: Tenant) -> str:
        """Per-tenant sequence formatted as ``ABC-000001``"""
        result = await self.db.execute(
            select(func.count(Order.id)).where(Order.tenant_id == tenant.id)
        )
        sequence = (result.scalar() or 0) + 1
        prefix = (tenant.slug or tenant.name or "ORD")[:3].upper()
        return f"{prefix}-{sequence:06d}"

    async def update_order_if_status(
        self,
        order_id: UUID,
        expected_status: str,
        values: Dict[str, Any],
    ) -> int:
        """Apply ``values`` only while the order still has ``expected_status``"""
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    async def mark_notification_sent(self, order_id: UUID) -> int:
        result = await self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.notification_sent == False)
            .values(notification_sent=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    async def mark_payment_completed(
        self,
        order_id: UUID,
        staff_notes: Optional[str] = None,
    ) -> int:
        """Flip ``pending_payment`` to ``completed``; zero rows means it already was"""
        now = utcnow()
        result = await self.db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.payment_status == PaymentStatus.PENDING_PAYMENT.value,
            )
            .values(
                payment_status=PaymentStatus.COMPLETED.value,
                paid_at=now,
                updated_at=now,
                staff_notes=staff_notes,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    async def insert_history(self, record: Dict[str, Any]) -> OrderStatusHistory:
        entry = OrderStatusHistory(**record)
        self.db.add(entry)
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    async def get_history_entry(self, entry_id: UUID) -> Optional[OrderStatusHistory]:
        result = await self.db.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_history(self, order_id: UUID) -> List[OrderStatusHistory]:
        result = await self.db.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.created_at.asc())
        )
        return list(result.scalars().all())

    async def find_pending_payment_order(
        self,
        payment_method: str,
        payment_id: Optional[str],
        reference: Optional[str] = None,
        sale_id: Optional[str] = None,
    ) -> Optional[Order]:
        """
        Locate the order awaiting confirmation of a provider payment.

        Matches, best first: the stored payment reference equal to the
        provider's payment id, the order id carried back as ``sale_id``, and
        the order number echoed back as the reference. Only exact values
        match; a payment id is never compared as a substring.
        """
        matchers = []
        ranking = []
        if payment_id:
            matchers.append(Order.payment_reference == payment_id)
            ranking.append((Order.payment_reference == payment_id, 0))
        order_id = parse_uuid(sale_id)
        if order_id is not None:
            matchers.append(Order.id == order_id)
            ranking.append((Order.id == order_id, 1))
        if reference:
            matchers.append(Order.order_number == reference)
            ranking.append((Order.order_number == reference, 2))
        if not matchers:
            return None

        result = await self.db.execute(
            select(Order)
            .where(
                Order.payment_status == PaymentStatus.PENDING_PAYMENT.value,
                Order.payment_method == payment_method,
                or_(*matchers),
            )
            .order_by(case(*ranking, else_=3), Order.created_at.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_payment_reference(
        self,
        payment_method: str,
        payment_id: str,
    ) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(
                Order.payment_reference == payment_id,
                Order.payment_method == payment_method,
            )
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def count_by_status(self, tenant_id: UUID) -> Dict[str, int]:
        result = await self.db.execute(
            select(Order.status, func.count(Order.id))
            .where(Order.tenant_id == tenant_id)
            .group_by(Order.status)
        )
        return {status: count for status, count in result.all()}

    async def list_overdue(self, tenant_id: UUID, now: datetime) -> List[Order]:
        result = await self.db.execute(
            select(Order)
            .where(
                Order.tenant_id == tenant_id,
                Order.status == OrderStatus.READY.value,
                Order.pickup_time < now,
            )
            .order_by(Order.pickup_time.asc())
        )
        return list(result.scalars().all())
