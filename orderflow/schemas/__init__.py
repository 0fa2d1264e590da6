"""Pydantic schemas for request/response validation"""

from orderflow.schemas.order import (
    OrderCreate,
    OrderItemCreate,
    OrderResponse,
    OrderListResponse,
    StatusUpdateRequest,
    BulkStatusUpdateRequest,
    StatusHistoryResponse,
    StatusChangeResponse,
    BulkStatusUpdateResponse,
    AllowedTransitionsResponse,
    OrderStatsResponse,
)
from orderflow.schemas.payment import (
    ClipWebhookPayload,
    ClipWebhookData,
    WebhookAck,
    PaymentStatusResponse,
)

__all__ = [
    "OrderCreate",
    "OrderItemCreate",
    "OrderResponse",
    "OrderListResponse",
    "StatusUpdateRequest",
    "BulkStatusUpdateRequest",
    "StatusHistoryResponse",
    "StatusChangeResponse",
    "BulkStatusUpdateResponse",
    "AllowedTransitionsResponse",
    "OrderStatsResponse",
    "ClipWebhookPayload",
    "ClipWebhookData",
    "WebhookAck",
    "PaymentStatusResponse",
]
