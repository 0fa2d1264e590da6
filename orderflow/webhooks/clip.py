"""Clip payment webhook handler"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from orderflow.database import get_db
from orderflow.payments.confirmation import PaymentConfirmationService
from orderflow.schemas.payment import ClipWebhookPayload, WebhookAck

router = APIRouter()
logger = structlog.get_logger()


@router.post("", response_model=WebhookAck)
async def handle_clip_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Handle a payment event from Clip.

    Clip retries anything that is not a 2xx, so every payload we cannot act on
    is still acknowledged. Only a storage failure answers 500, which makes Clip
    deliver the event again.
    """
    try:
        body = await request.json()
        payload = ClipWebhookPayload.model_validate(body)
    except (ValueError, ValidationError) as e:
        logger.warning("Invalid Clip webhook payload", error=str(e))
        return WebhookAck(message="Invalid payload ignored")

    logger.info("Clip webhook received", clip_event=payload.event)

    service = PaymentConfirmationService(db)
    try:
        outcome = await service.handle_webhook(payload)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Clip webhook processing failed", clip_event=payload.event, error=str(e))
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"},
        )

    return WebhookAck(
        message=outcome.message,
        order_id=str(outcome.order_id) if outcome.order_id else None,
        order_number=outcome.order_number,
    )
