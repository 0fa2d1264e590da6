"""Database models"""

from orderflow.models.tenant import Tenant, PaymentTerminalConfig
from orderflow.models.order import (
    Order,
    OrderStatusHistory,
    OrderStatus,
    PaymentStatus,
    PaymentMethod,
    NotificationMethod,
)
from orderflow.models.inventory import Product, StockMovement
from orderflow.models.register import CashRegister
from orderflow.models.notification import NotificationLog

__all__ = [
    "Tenant",
    "PaymentTerminalConfig",
    "Order",
    "OrderStatusHistory",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
    "NotificationMethod",
    "Product",
    "StockMovement",
    "CashRegister",
    "NotificationLog",
]
