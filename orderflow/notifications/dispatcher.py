"""Customer notifications for order events"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.rest import Client as TwilioClient

from orderflow.config import Settings, settings as default_settings
from orderflow.models.notification import NotificationLog
from orderflow.models.order import NotificationMethod, Order
from orderflow.time_utils import utcnow

logger = structlog.get_logger()


ORDER_READY = "order_ready"


@dataclass
class NotificationResult:
    success: bool
    log_id: Optional[UUID] = None
    error: Optional[str] = None
    channels_sent: List[str] = field(default_factory=list)


class NotificationDispatcher:
    """
    Sends order notifications over the customer's preferred channel.

    SMS goes through Twilio and Telegram through the Bot API. Email has no
    provider wired in and is only recorded. A channel without credentials runs
    in stub mode: the attempt is logged as sent without an external call.
    Every attempt gets a NotificationLog row. Nothing is retried here.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        twilio_client: Optional[TwilioClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self._twilio_client = twilio_client
        self._http_client = http_client

    async def send_order_ready(self, order: Order) -> NotificationResult:
        """Tell the customer their order can be picked up"""
        message = f"Your order {order.order_number} is ready for pickup!"
        if order.pickup_time:
            message += f" Pickup time: {order.pickup_time.strftime('%I:%M %p')}."

        return await self.send(
            order,
            notification_type=ORDER_READY,
            subject=f"Order {order.order_number} is ready",
            message=message,
        )

    async def send(
        self,
        order: Order,
        notification_type: str,
        subject: str,
        message: str,
    ) -> NotificationResult:
        channel = order.notification_method or NotificationMethod.EMAIL.value
        recipient = self._recipient_for(order, channel)

        if not recipient:
            logger.warning(
                "No recipient for notification",
                order_id=str(order.id),
                channel=channel,
            )
            return NotificationResult(
                success=False,
                error=f"No recipient configured for channel '{channel}'",
            )

        log_entry = NotificationLog(
            tenant_id=order.tenant_id,
            order_id=order.id,
            channel=channel,
            type=notification_type,
            recipient=recipient,
            subject=subject,
            content=message,
            status="pending",
        )
        self.db.add(log_entry)
        await self.db.commit()

        try:
            if channel == NotificationMethod.SMS.value:
                provider_id = await self._send_sms(recipient, message)
            elif channel == NotificationMethod.TELEGRAM.value:
                provider_id = await self._send_telegram(recipient, message)
            else:
                provider_id = None
                logger.info("Email notification recorded", order_id=str(order.id))
        except Exception as e:
            log_entry.status = "failed"
            log_entry.error_message = str(e)
            log_entry.retry_count = (log_entry.retry_count or 0) + 1
            await self.db.commit()

            logger.error(
                "Failed to send notification",
                order_id=str(order.id),
                channel=channel,
                error=str(e),
            )
            return NotificationResult(success=False, log_id=log_entry.id, error=str(e))

        log_entry.status = "sent"
        log_entry.sent_at = utcnow()
        log_entry.provider_message_id = provider_id
        await self.db.commit()

        logger.info(
            "Notification sent",
            order_id=str(order.id),
            channel=channel,
            type=notification_type,
        )
        return NotificationResult(success=True, log_id=log_entry.id, channels_sent=[channel])

    @staticmethod
    def _recipient_for(order: Order, channel: str) -> Optional[str]:
        if channel == NotificationMethod.SMS.value:
            return order.customer_phone
        if channel == NotificationMethod.TELEGRAM.value:
            return order.customer_telegram_chat_id
        return order.customer_email

    async def _send_sms(self, to: str, message: str) -> Optional[str]:
        client = self._twilio_client
        if client is None:
            if not self.settings.twilio_configured:
                logger.info("Twilio not configured, SMS stubbed", to=to[-4:])
                return None
            client = TwilioClient(
                self.settings.twilio_account_sid,
                self.settings.twilio_auth_token,
            )

        # The Twilio client does blocking HTTP; keep it off the event loop
        sms = await asyncio.to_thread(
            client.messages.create,
            body=message,
            from_=self.settings.twilio_phone_number,
            to=to,
        )
        return sms.sid

    async def _send_telegram(self, chat_id: str, message: str) -> Optional[str]:
        token = self.settings.telegram_bot_token
        if not token:
            logger.info("Telegram not configured, message stubbed", chat_id=chat_id)
            return None

        url = f"{self.settings.telegram_api_url}/bot{token}/sendMessage"
        payload = {"chat_id": chat_id, "text": message, "parse_mode": "HTML"}

        if self._http_client is not None:
            response = await self._http_client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(url, json=payload)

        response.raise_for_status()
        data = response.json()
        if not data.get("ok"):
            raise RuntimeError(data.get("description") or "Telegram error")

        return str(data["result"]["message_id"])
