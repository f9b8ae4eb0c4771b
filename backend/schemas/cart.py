# backend/schemas/cart.py
from typing import List, Literal, Optional
from pydantic import field_validator
from schemas.common import CamelModel, Money
from schemas.product import ProductOut

ShippingOption = Literal["standard", "express"]


# Request schema for setting the absolute quantity of a cart line
class CartSetItem(CamelModel):
    product_id: int
    quantity: int


# Response schema for a single cart line item
class CartItemOut(CamelModel):
    product_id: int
    quantity: int
    product: Optional[ProductOut] = None
    subtotal: Money


# Non-authoritative estimate returned alongside the cart contents
class CartTotalsOut(CamelModel):
    subtotal: Money
    shipping: Money
    tax: Money
    grand_total: Money


# Response schema for the entire cart
class CartOut(CamelModel):
    items: List[CartItemOut]
    totals: CartTotalsOut


# Request schema for the authoritative totals calculation
class CalculateRequest(CamelModel):
    shipping_option: ShippingOption = "standard"
    discount_code: Optional[str] = None

    @field_validator("discount_code", mode="before")
    @classmethod
    def _blank_code_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


# Authoritative breakdown; discount_error explains a rejected code
class SecureTotalsOut(CamelModel):
    shipping_option: ShippingOption
    subtotal: Money
    shipping: Money
    tax: Money
    discount_amount: Money
    grand_total: Money
    discount_code: Optional[str] = None
    discount_error: Optional[str] = None
