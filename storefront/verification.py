# storefront/verification.py
import logging
from typing import Optional

from storefront.api import ApiClient
from storefront.errors import CheckoutError, PaymentVerificationFailure, StorefrontError
from storefront.models import OrderCreationResult, PaymentVerificationResult

logger = logging.getLogger(__name__)


# Asks the backend to confirm the charge with Paystack; never retried
class PaymentVerifier:
    def __init__(self, api: ApiClient):
        self._api = api

    async def verify(self, order: Optional[OrderCreationResult], reference: Optional[str]) -> PaymentVerificationResult:
        if order is None:
            raise CheckoutError("There is no order to verify a payment for")
        reference = reference or order.payment_reference

        try:
            data = await self._api.post(
                "/checkout/paystack-verify", {"reference": reference, "orderId": order.order_id}
            )
        except StorefrontError as e:
            logger.warning("Verification of order %s (ref %s) failed: %s", order.order_id, reference, e.message)
            raise PaymentVerificationFailure(e.message, reference=reference, order_id=order.order_id) from e

        result = PaymentVerificationResult.model_validate(data)
        if not result.succeeded:
            raise PaymentVerificationFailure(
                result.message or "Payment could not be verified", reference=reference, order_id=order.order_id
            )
        logger.info("Payment %s verified for order %s", reference, order.order_id)
        return result
