"""Payment provider integration"""

from orderflow.payments.clip import ClipClient
from orderflow.payments.confirmation import (
    PaymentConfirmationService,
    PaymentProviderNotConfigured,
)

__all__ = ["ClipClient", "PaymentConfirmationService", "PaymentProviderNotConfigured"]
