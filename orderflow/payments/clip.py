"""Clip payment provider API client"""

from typing import Any, Dict, Optional

import httpx
import structlog

from orderflow.config import settings
from orderflow.models.tenant import PaymentTerminalConfig

logger = structlog.get_logger()


# Webhook events / data statuses that mean the payment went through
SUCCESS_EVENTS = frozenset({"payment.success", "charge.succeeded"})
SUCCESS_DATA_STATUSES = frozenset({"approved", "completed"})

# Statuses reported by the checkout lookup endpoint
PAID_STATUSES = frozenset({"paid", "approved", "completed", "success"})


def is_success_event(event: Optional[str], status: Optional[str]) -> bool:
    if event in SUCCESS_EVENTS:
        return True
    return bool(status) and status.lower() in SUCCESS_DATA_STATUSES


def is_paid_status(status: Optional[str]) -> bool:
    return bool(status) and str(status).lower() in PAID_STATUSES


def extract_status(payload: Dict[str, Any]) -> Optional[str]:
    status = payload.get("status") or payload.get("payment_status")
    return str(status) if status is not None else None


class ClipClient:
    """Read-only access to Clip checkout payments"""

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.secret_key = secret_key
        self.base_url = base_url or settings.clip_api_base_url
        self.timeout = timeout or settings.clip_request_timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: PaymentTerminalConfig) -> "ClipClient":
        return cls(api_key=config.api_key, secret_key=config.secret_key)

    async def get_checkout(self, payment_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a checkout payment.

        Returns None when Clip cannot be reached or answers with an error; the
        caller treats that as "still pending".
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.api_key, self.secret_key),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(f"/v2/checkout/{payment_id}")
        except httpx.HTTPError as e:
            logger.warning("Clip status request failed", payment_id=payment_id, error=str(e))
            return None

        if response.is_error:
            logger.warning(
                "Clip status check failed",
                payment_id=payment_id,
                status_code=response.status_code,
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Clip returned a non-JSON body", payment_id=payment_id)
            return None

        logger.info("Clip status result", payment_id=payment_id, clip_status=extract_status(data))
        return data
