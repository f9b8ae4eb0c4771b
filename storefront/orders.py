# storefront/orders.py
import logging
from typing import Callable, Optional, TYPE_CHECKING

from storefront.addresses import validate_address
from storefront.api import ApiClient
from storefront.errors import CheckoutError, ValidationError
from storefront.models import SHIPPING_OPTIONS, OrderCreationResult, SecureTotals

if TYPE_CHECKING:
    from storefront.checkout import CheckoutDraft

logger = logging.getLogger(__name__)


class OrderCreation:
    """Opens a pending order on the backend (POST /checkout/order).

    Only the address, shipping option and discount code are sent; the backend
    prices the order itself. The draft's attempt key travels as the
    Idempotency-Key header, and a second call while one is pending is refused.
    Never retried automatically.
    """

    def __init__(self, api: ApiClient, is_cart_empty: Callable[[], bool]):
        self._api = api
        self._is_cart_empty = is_cart_empty
        self.in_flight = False

    def check_ready(self, draft: "CheckoutDraft", totals: Optional[SecureTotals]):
        if self._is_cart_empty():
            raise ValidationError("Your cart is empty", {"cart": "empty"})
        if draft.address is None:
            raise ValidationError("Please choose a shipping address", {"address": "required"})
        validate_address(draft.address)
        if draft.shipping_option not in SHIPPING_OPTIONS:
            raise ValidationError("Please choose a shipping option", {"shipping_option": "required"})
        if totals is None:
            raise ValidationError("Order totals are still being calculated")
        if totals.grand_total <= 0:
            raise ValidationError("Order total must be greater than zero")

    async def create(self, draft: "CheckoutDraft", totals: Optional[SecureTotals]) -> OrderCreationResult:
        if self.in_flight:
            raise CheckoutError("Your order is already being placed")
        self.check_ready(draft, totals)

        payload = {
            "shippingAddress": draft.address.shipping_payload(),
            "shippingOption": draft.shipping_option,
            "discountCode": draft.discount_code,
        }
        self.in_flight = True
        try:
            data = await self._api.post("/checkout/order", payload, headers={"Idempotency-Key": draft.attempt_key})
        finally:
            self.in_flight = False

        result = OrderCreationResult.model_validate(data)
        logger.info("Order %s opened for %s (%s minor units, ref %s)",
                    result.order_id, result.user_email, result.order_total_cents, result.payment_reference)
        return result

    async def fetch(self, order_id: int) -> OrderCreationResult:
        data = await self._api.get(f"/checkout/orders/{order_id}")
        return OrderCreationResult.model_validate(data)
