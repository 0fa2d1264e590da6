"""Payment status endpoints"""

from typing import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderflow.api.orders import get_tenant
from orderflow.database import get_db
from orderflow.models.tenant import PaymentTerminalConfig, Tenant
from orderflow.payments.clip import ClipClient
from orderflow.payments.confirmation import (
    PaymentConfirmationService,
    PaymentProviderNotConfigured,
)
from orderflow.schemas.payment import PaymentStatusResponse

router = APIRouter()
logger = structlog.get_logger()


def get_clip_client_factory() -> Callable[[PaymentTerminalConfig], ClipClient]:
    return ClipClient.from_config


@router.get("/clip/{payment_id}/status", response_model=PaymentStatusResponse)
async def clip_payment_status(
    tenant_id: UUID,
    payment_id: str,
    tenant: Tenant = Depends(get_tenant),
    db: AsyncSession = Depends(get_db),
    client_factory: Callable[[PaymentTerminalConfig], ClipClient] = Depends(get_clip_client_factory),
):
    """
    Check a Clip payment and complete the sale if Clip reports it paid.

    Used by the terminal screen while it waits for the customer to pay.
    """
    service = PaymentConfirmationService(db, client_factory=client_factory)
    try:
        result = await service.check_payment_status(tenant_id, payment_id)
    except PaymentProviderNotConfigured as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "Clip payment status checked",
        tenant_id=str(tenant_id),
        payment_id=payment_id,
        status=result.status,
    )
    return PaymentStatusResponse(
        status=result.status,
        provider_status=result.provider_status,
        order_id=str(result.order_id) if result.order_id else None,
    )
