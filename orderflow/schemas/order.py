"""Order schemas"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from orderflow.models.order import NotificationMethod, OrderStatus, PaymentMethod


class OrderItemCreate(BaseModel):
    """Create order item"""
    product_id: Optional[UUID] = None
    name: str
    quantity: int = Field(1, ge=1)
    unit_price: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    """Create order request"""
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_telegram_chat_id: Optional[str] = None
    notification_method: NotificationMethod = NotificationMethod.EMAIL
    items: List[OrderItemCreate] = Field(..., min_length=1)
    tip: Decimal = Field(Decimal("0"), ge=0)
    pickup_time: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.ON_ARRIVAL
    payment_reference: Optional[str] = None
    cash_register_id: Optional[UUID] = None
    customer_notes: Optional[str] = None
    changed_by: Optional[str] = None


class OrderItemResponse(BaseModel):
    """Order item in response"""
    product_id: Optional[UUID] = None
    name: str
    quantity: int
    unit_price: Decimal
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    """Order response"""
    id: UUID
    tenant_id: UUID
    order_number: str
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    notification_method: str
    items: List[OrderItemResponse]
    subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total: Decimal
    status: str
    cancellation_reason: Optional[str]
    notification_sent: bool
    pickup_time: Optional[datetime]
    payment_method: str
    payment_status: str
    payment_reference: Optional[str]
    cash_register_id: Optional[UUID]
    customer_notes: Optional[str]
    staff_notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]
    confirmed_at: Optional[datetime]
    started_preparing_at: Optional[datetime]
    ready_at: Optional[datetime]
    picked_up_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    paid_at: Optional[datetime]


class OrderListResponse(BaseModel):
    """Paginated order list"""
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


class StatusUpdateRequest(BaseModel):
    """Move an order to a new status"""
    status: OrderStatus
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    skip_notification: bool = False


class BulkStatusUpdateRequest(StatusUpdateRequest):
    """Move several orders to the same status"""
    order_ids: List[UUID] = Field(..., min_length=1)


class StatusHistoryResponse(BaseModel):
    """Status history entry"""
    id: UUID
    order_id: UUID
    old_status: Optional[str]
    new_status: str
    changed_by: Optional[str]
    notes: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatusChangeResponse(BaseModel):
    """Result of an accepted status change"""
    success: bool
    order: Optional[OrderResponse] = None
    history_entry: Optional[StatusHistoryResponse] = None
    notification_sent: bool = False
    warnings: List[str] = []


class BulkStatusItemResult(BaseModel):
    order_id: UUID
    success: bool
    status: Optional[str] = None
    error: Optional[str] = None


class BulkStatusUpdateResponse(BaseModel):
    results: List[BulkStatusItemResult]
    succeeded: int
    failed: int


class AllowedTransitionsResponse(BaseModel):
    current_status: str
    allowed: List[str]
    next_status: Optional[str]
    can_cancel: bool
    is_terminal: bool


class OrderStatsResponse(BaseModel):
    counts: Dict[str, int]
    total: int
