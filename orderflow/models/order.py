"""Order models"""

import enum
import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from orderflow.database import Base
from orderflow.time_utils import utcnow


class OrderStatus(str, enum.Enum):
    """Fulfillment status of an order"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Payment status of an order"""
    PENDING_PAYMENT = "pending_payment"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CLIP = "clip"
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CARD_TERMINAL = "card_terminal"
    ON_ARRIVAL = "on_arrival"


class NotificationMethod(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    TELEGRAM = "telegram"


class Order(Base):
    """Customer pickup orders"""
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_order_number"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False)
    order_number = Column(String(20), nullable=False)

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255))
    customer_phone = Column(String(50))
    customer_telegram_chat_id = Column(String(100))
    notification_method = Column(String(20), nullable=False, default=NotificationMethod.EMAIL.value)

    # Order details
    # [{"product_id": "...", "name": "...", "quantity": 2, "unit_price": "95.00", "notes": null}, ...]
    items_json = Column(JSON, nullable=False, default=list)

    # Pricing
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    tip = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)

    # Fulfillment
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    cancellation_reason = Column(Text)
    pickup_time = Column(DateTime)
    notification_sent = Column(Boolean, nullable=False, default=False)

    # Payment
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.ON_ARRIVAL.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING_PAYMENT.value)
    payment_reference = Column(String(255), index=True)  # Provider payment id used to correlate webhooks
    paid_at = Column(DateTime)
    cash_register_id = Column(Uuid, ForeignKey("cash_registers.id"))

    # Notes
    customer_notes = Column(Text)
    staff_notes = Column(Text)

    # Timestamps (each stamped once, by the matching transition)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    confirmed_at = Column(DateTime)
    started_preparing_at = Column(DateTime)
    ready_at = Column(DateTime)
    picked_up_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    # Relationships
    tenant = relationship("Tenant", back_populates="orders")
    cash_register = relationship("CashRegister")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        order_by="OrderStatusHistory.created_at",
    )


class OrderStatusHistory(Base):
    """Append-only audit log of status changes"""
    __tablename__ = "order_status_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    old_status = Column(String(20))  # Null only for the creation event
    new_status = Column(String(20), nullable=False)
    changed_by = Column(String(255))  # Null for system-driven changes
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    order = relationship("Order", back_populates="status_history")
