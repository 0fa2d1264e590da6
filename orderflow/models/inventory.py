"""Inventory models"""

import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from orderflow.database import Base
from orderflow.time_utils import utcnow


class Product(Base):
    """Sellable products with stock counters"""
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False)
    sku = Column(String(50))
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)  # May go negative when oversold
    track_stock = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="products")
    movements = relationship("StockMovement", back_populates="product")


class StockMovement(Base):
    """Append-only stock ledger"""
    __tablename__ = "stock_movements"
    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_stock_movements_order_product"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False)
    product_id = Column(Uuid, ForeignKey("products.id"), nullable=False)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False)
    movement_type = Column(String(20), nullable=False, default="sale")
    quantity = Column(Integer, nullable=False)  # Signed delta, negative for sales
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    product = relationship("Product", back_populates="movements")
