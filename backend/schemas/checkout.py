# backend/schemas/checkout.py
from typing import Optional
from pydantic import field_validator
from schemas.address import ShippingAddress
from schemas.cart import ShippingOption
from schemas.common import CamelModel, Money


# Input schema for opening a pending order; client-side amounts are never accepted
class OrderCreatePayload(CamelModel):
    shipping_address: ShippingAddress
    shipping_option: ShippingOption
    discount_code: Optional[str] = None

    @field_validator("discount_code", mode="before")
    @classmethod
    def _blank_code_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OrderCreationResponse(CamelModel):
    order_id: int
    order_total: Money
    order_total_cents: int
    user_email: str
    payment_reference: str
    status: str = "pending_payment"
    message: Optional[str] = None


class PaymentVerifyPayload(CamelModel):
    reference: str
    order_id: int


class PaymentVerificationResponse(CamelModel):
    status: str
    order_id: int
    reference: str
    message: Optional[str] = None
