"""Payment provider schemas"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ClipWebhookData(BaseModel):
    """``data`` block of a Clip webhook; field names vary by event"""
    id: Optional[str] = None
    payment_request_id: Optional[str] = None
    payment_id: Optional[str] = None
    reference: Optional[str] = None
    external_reference: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[str] = None

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    @property
    def resolved_payment_id(self) -> Optional[str]:
        return self.id or self.payment_request_id or self.payment_id

    @property
    def resolved_reference(self) -> Optional[str]:
        return self.reference or self.external_reference

    @property
    def resolved_sale_id(self) -> Optional[str]:
        """Order id we attached to the checkout as metadata"""
        value = (self.metadata or {}).get("sale_id")
        return str(value) if value else None


class ClipWebhookPayload(BaseModel):
    """Inbound Clip webhook"""
    event: Optional[str] = None
    data: Optional[ClipWebhookData] = None

    model_config = ConfigDict(extra="allow")


class WebhookAck(BaseModel):
    """Acknowledgement returned to the provider"""
    success: bool = True
    message: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    """Result of polling a provider payment"""
    status: str  # completed, pending
    provider_status: Optional[str] = None
    order_id: Optional[str] = None
