# storefront/models.py
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from storefront.errors import DiscountRejected

ShippingOption = Literal["standard", "express"]
SHIPPING_OPTIONS = ("standard", "express")
ADDRESS_FIELDS = ("first_name", "last_name", "street", "city", "zip", "country")

TWO_PLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# Same wire convention as the backend: camelCase keys, snake_case attributes
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


class ProductSnapshot(CamelModel):
    id: int
    name: str
    price: Decimal
    stock_quantity: int = 0
    image_url: Optional[str] = None


class CartLine(CamelModel):
    product_id: int
    quantity: int = Field(ge=1)


class CartDetail(CamelModel):
    product_id: int
    quantity: int
    product: ProductSnapshot

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.product.price * self.quantity)

    @property
    def in_stock(self) -> bool:
        return self.quantity <= self.product.stock_quantity


class Address(CamelModel):
    id: Optional[int] = None
    name: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    street: str = ""
    city: str = ""
    zip: str = ""
    country: str = ""
    is_default: bool = False

    @field_validator(*ADDRESS_FIELDS, mode="before")
    @classmethod
    def _strip(cls, value):
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    def missing_fields(self) -> List[str]:
        return [name for name in ADDRESS_FIELDS if not getattr(self, name)]

    # Only the fields an order ships to
    def shipping_payload(self) -> dict:
        return self.to_wire(include=set(ADDRESS_FIELDS))


class SecureTotals(CamelModel):
    """Totals as computed by the pricing authority.

    ``discount_error`` is set when the requested code was rejected; the other
    figures are still valid and ``discount_amount`` is zero in that case.
    """

    shipping_option: ShippingOption = "standard"
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount_amount: Decimal = Decimal("0.00")
    grand_total: Decimal
    discount_code: Optional[str] = None
    discount_error: Optional[str] = None
    requested_code: Optional[str] = Field(default=None, exclude=True)

    @property
    def rejection(self) -> Optional[DiscountRejected]:
        if not self.discount_error:
            return None
        return DiscountRejected(self.discount_error, code=self.requested_code)

    @property
    def grand_total_cents(self) -> int:
        return int((to_money(self.grand_total) * 100).to_integral_value(rounding=ROUND_HALF_UP))


class OrderCreationResult(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    order_id: int
    order_total: Decimal
    order_total_cents: int
    user_email: str
    payment_reference: str
    status: str = "pending_payment"
    message: Optional[str] = None


class PaymentVerificationResult(CamelModel):
    status: str
    order_id: int
    reference: str
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


# What the gateway adapter needs to open the widget for one order
@dataclass
class PaymentRequest:
    email: str
    amount: int
    reference: str
    on_success: Callable[[str], Any]
    on_close: Callable[[], Any]
    currency: Optional[str] = None
    public_key: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
