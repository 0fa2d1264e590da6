"""Cash register model"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Numeric, Uuid
from sqlalchemy.orm import relationship

from orderflow.database import Base
from orderflow.time_utils import utcnow


class CashRegister(Base):
    """Register shift with running sale totals"""
    __tablename__ = "cash_registers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False)
    opened_by = Column(String(255))
    status = Column(String(20), nullable=False, default="open")  # open, closed
    opening_amount = Column(Numeric(10, 2), nullable=False, default=0)

    # Running totals, only ever incremented
    total_sales = Column(Numeric(12, 2), nullable=False, default=0)
    total_cash = Column(Numeric(12, 2), nullable=False, default=0)
    total_card = Column(Numeric(12, 2), nullable=False, default=0)
    total_transfer = Column(Numeric(12, 2), nullable=False, default=0)
    total_terminal = Column(Numeric(12, 2), nullable=False, default=0)
    sale_count = Column(Integer, nullable=False, default=0)

    opened_at = Column(DateTime, default=utcnow)
    closed_at = Column(DateTime)

    # Relationships
    tenant = relationship("Tenant", back_populates="cash_registers")
