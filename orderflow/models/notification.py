"""Notification log model"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, Uuid

from orderflow.database import Base
from orderflow.time_utils import utcnow


class NotificationLog(Base):
    """One row per notification dispatch attempt"""
    __tablename__ = "notification_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False)
    order_id = Column(Uuid, ForeignKey("orders.id"))

    channel = Column(String(20), nullable=False)  # email, sms, telegram
    type = Column(String(50), nullable=False)  # order_ready, ...
    recipient = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, sent, failed

    subject = Column(String(255))
    content = Column(Text)

    provider_message_id = Column(String(255))
    error_message = Column(Text)
    retry_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    sent_at = Column(DateTime)
