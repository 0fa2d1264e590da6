"""Stock deduction for paid orders"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.config import Settings, settings as default_settings
from orderflow.models.inventory import Product, StockMovement
from orderflow.models.order import Order

logger = structlog.get_logger()


@dataclass
class InventoryDeductionResult:
    movements: List[StockMovement] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class SaleRef:
    order_id: UUID
    tenant_id: UUID
    order_number: str


def quantities_by_product(items: List[Dict[str, Any]]) -> Dict[UUID, int]:
    """Sum line quantities per product, skipping lines without a product"""
    totals: Dict[UUID, int] = {}
    for item in items or []:
        raw_id = item.get("product_id")
        if not raw_id:
            continue
        try:
            product_id = raw_id if isinstance(raw_id, UUID) else UUID(str(raw_id))
        except ValueError:
            logger.warning("Ignoring order line with malformed product id", product_id=raw_id)
            continue
        totals[product_id] = totals.get(product_id, 0) + int(item.get("quantity") or 0)
    return totals


class InventoryLedger:
    """
    Per-product stock counters and their movement log.

    Each (order, product) pair is deducted at most once: an existing movement
    row short-circuits the deduction and the unique constraint on the movement
    table rejects a racing duplicate. The stock write is conditional on the
    quantity that was read and retried when another sale moved it first.
    """

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings

    async def get_product(self, product_id: UUID) -> Optional[Product]:
        result = await self.db.execute(
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_stock(self, product_id: UUID, expected: int, new_quantity: int) -> int:
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity == expected)
            .values(stock_quantity=new_quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def append_movement(self, record: Dict[str, Any]) -> StockMovement:
        movement = StockMovement(**record)
        self.db.add(movement)
        return movement

    async def has_movement(self, order_id: UUID, product_id: UUID) -> bool:
        result = await self.db.execute(
            select(StockMovement.id).where(
                StockMovement.order_id == order_id,
                StockMovement.product_id == product_id,
            )
        )
        return result.first() is not None

    async def deduct_for_order(self, order: Order) -> InventoryDeductionResult:
        """Deduct every tracked product on the order; failures become warnings"""
        outcome = InventoryDeductionResult()
        # Plain values; a rollback below expires the ORM instance
        sale = SaleRef(
            order_id=order.id,
            tenant_id=order.tenant_id,
            order_number=order.order_number,
        )

        for product_id, quantity in quantities_by_product(order.items_json).items():
            try:
                movement = await self._deduct(sale, product_id, quantity, outcome)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(
                    "Stock deduction failed",
                    order_id=str(sale.order_id),
                    product_id=str(product_id),
                    error=str(e),
                )
                outcome.warnings.append(f"Stock for product {product_id} not updated: {e}")
                continue

            if movement is not None:
                outcome.movements.append(movement)

        return outcome

    async def _deduct(
        self,
        sale: SaleRef,
        product_id: UUID,
        quantity: int,
        outcome: InventoryDeductionResult,
    ) -> Optional[StockMovement]:
        log = logger.bind(order_id=str(sale.order_id), product_id=str(product_id))

        if await self.has_movement(sale.order_id, product_id):
            log.info("Stock already deducted for order")
            return None

        for attempt in range(max(1, self.settings.stock_update_attempts)):
            product = await self.get_product(product_id)
            if product is None:
                log.warning("Product not found, stock not deducted")
                outcome.warnings.append(f"Product {product_id} not found")
                return None

            if not product.track_stock:
                return None

            previous_stock = product.stock_quantity or 0
            new_stock = previous_stock - quantity

            if not await self.update_stock(product_id, previous_stock, new_stock):
                log.warning("Stock changed concurrently, retrying", attempt=attempt + 1)
                continue

            movement = self.append_movement(
                {
                    "tenant_id": sale.tenant_id,
                    "product_id": product_id,
                    "order_id": sale.order_id,
                    "movement_type": "sale",
                    "quantity": -quantity,
                    "previous_stock": previous_stock,
                    "new_stock": new_stock,
                    "notes": f"Order {sale.order_number}",
                }
            )
            try:
                await self.db.commit()
            except IntegrityError:
                # A concurrent request recorded this (order, product) first
                await self.db.rollback()
                log.info("Stock deduction already recorded concurrently")
                return None

            if new_stock < 0:
                log.warning("Stock went negative", new_stock=new_stock)
                outcome.warnings.append(f"Product {product_id} oversold, stock is {new_stock}")

            return movement

        outcome.warnings.append(f"Stock for product {product_id} kept changing, not deducted")
        return None
