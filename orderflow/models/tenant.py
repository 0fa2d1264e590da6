"""Tenant-related models"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import relationship

from orderflow.database import Base
from orderflow.time_utils import utcnow


class Tenant(Base):
    """Business tenant"""
    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)  # Order number prefix comes from here
    timezone = Column(String(50), default="America/Mexico_City")
    tax_rate = Column(Numeric(5, 4), nullable=False, default=0)  # 0.1600 = 16%
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    orders = relationship("Order", back_populates="tenant")
    products = relationship("Product", back_populates="tenant")
    cash_registers = relationship("CashRegister", back_populates="tenant")
    terminal_configs = relationship("PaymentTerminalConfig", back_populates="tenant")


class PaymentTerminalConfig(Base):
    """Payment provider credentials per tenant"""
    __tablename__ = "terminal_configs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False)
    provider = Column(String(50), nullable=False, default="clip")
    api_key = Column(String(255))
    secret_key = Column(String(255))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="terminal_configs")
