"""
Manual payment provider adapter - Implements PaymentProvider protocol.

Records the payment request and returns a reference derived from the
order id. Payment confirmation arrives separately through the payment
webhook endpoint, exactly as it would from a hosted gateway.
"""

import logging
from decimal import Decimal

from src.domain.models import PaymentSession

logger = logging.getLogger(__name__)


class ManualPaymentProvider:
    """
    Implements PaymentProvider protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    name = "manual"

    def create_payment(
        self, order_id: str, amount: Decimal, currency: str, buyer_email: str
    ) -> PaymentSession:
        reference = f"manual_{order_id}"
        logger.info(
            "[PAYMENT] Order: %s Amount: %s %s Email: %s Reference: %s",
            order_id,
            amount,
            currency,
            buyer_email,
            reference,
        )
        return PaymentSession(reference=reference)
