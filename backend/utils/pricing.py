# backend/utils/pricing.py
"""Authoritative pricing rules for carts and orders.

Every figure the storefront shows as final (shipping, discount, tax, grand
total) is produced here. Clients only ever send the shipping option and the
discount code they would like; amounts are recomputed on every request
because discount windows, usage caps and stock change between requests.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from models.cart import CartItem
from models.discount import Discount, DiscountType

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
SHIPPING_OPTIONS = ("standard", "express")


class DiscountRejection(Exception):
    """A discount code failed validation; the message is shown to the customer."""


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they are stored as UTC
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def shipping_fee(option: str, subtotal: Decimal) -> Decimal:
    if option == "express":
        return to_money(settings.EXPRESS_SHIPPING_FEE)
    if option == "standard":
        if subtotal > settings.FREE_SHIPPING_THRESHOLD:
            return ZERO
        return to_money(settings.STANDARD_SHIPPING_FEE)
    raise ValueError(f"Unknown shipping option: {option}")


def cart_subtotal(items: Iterable[CartItem]) -> Decimal:
    subtotal = ZERO
    for item in items:
        # Lines pointing at deleted products are not priced
        if item.product is None:
            continue
        subtotal += to_money(item.product.price) * item.qty
    return to_money(subtotal)


def validate_discount(db: Session, code: str, subtotal: Decimal, now: Optional[datetime] = None) -> Discount:
    now = now or datetime.now(timezone.utc)
    discount = db.query(Discount).filter(func.upper(Discount.code) == code.strip().upper()).first()

    if discount is None:
        raise DiscountRejection("Discount code not found")
    if not discount.is_active:
        raise DiscountRejection("Discount code is no longer active")
    if discount.starts_at is not None and _aware(discount.starts_at) > now:
        raise DiscountRejection("Discount code is not active yet")
    if discount.expires_at is not None and _aware(discount.expires_at) <= now:
        raise DiscountRejection("Discount code has expired")
    if discount.usage_limit is not None and discount.used_count >= discount.usage_limit:
        raise DiscountRejection("Discount code usage limit has been reached")
    min_purchase = to_money(discount.min_purchase or 0)
    if subtotal < min_purchase:
        raise DiscountRejection(f"A minimum purchase of {min_purchase} is required for this code")
    return discount


def discount_value(discount: Discount, subtotal: Decimal) -> Decimal:
    if discount.type == DiscountType.PERCENTAGE:
        amount = subtotal * to_money(discount.value) / Decimal(100)
    else:
        amount = to_money(discount.value)
    # A discount never takes the merchandise below zero
    return to_money(min(amount, subtotal))


@dataclass
class Totals:
    shipping_option: str
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    discount_amount: Decimal
    grand_total: Decimal
    discount_code: Optional[str] = None
    discount_error: Optional[str] = None
    discount: Optional[Discount] = None

    @property
    def grand_total_cents(self) -> int:
        return to_minor_units(self.grand_total)

    def as_dict(self) -> dict:
        return {
            "shipping_option": self.shipping_option,
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "discount_amount": self.discount_amount,
            "grand_total": self.grand_total,
            "discount_code": self.discount_code,
            "discount_error": self.discount_error,
        }


def calculate_totals(db: Session, items: Iterable[CartItem], shipping_option: str, discount_code: Optional[str] = None) -> Totals:
    """Price a cart for the given shipping option and requested discount code.

    A rejected discount does not fail the calculation: the breakdown is
    returned with a zero discount, no code, and the rejection reason in
    ``discount_error``. Tax is charged on the discounted amount
    (subtotal + shipping - discount).
    """
    items = list(items)
    subtotal = cart_subtotal(items)
    shipping = shipping_fee(shipping_option, subtotal)

    discount = None
    discount_amount = ZERO
    discount_error = None
    if discount_code:
        try:
            discount = validate_discount(db, discount_code, subtotal)
            discount_amount = discount_value(discount, subtotal)
        except DiscountRejection as e:
            logger.info("Discount code %r rejected: %s", discount_code, e)
            discount_error = str(e)

    taxable = max(subtotal + shipping - discount_amount, ZERO)
    tax = to_money(taxable * Decimal(str(settings.TAX_RATE)))
    grand_total = to_money(subtotal + shipping - discount_amount + tax)

    return Totals(
        shipping_option=shipping_option,
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        discount_amount=discount_amount,
        grand_total=grand_total,
        discount_code=discount.code if discount else None,
        discount_error=discount_error,
        discount=discount,
    )
