# storefront/checkout.py
import enum
import logging
import uuid
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Optional, TYPE_CHECKING, Union

from storefront.addresses import validate_address
from storefront.errors import (
    ApiError, CheckoutError, EmptyCartError, NetworkError,
    PaymentCancelled, PaymentVerificationFailure, StorefrontError, ValidationError,
)
from storefront.models import SHIPPING_OPTIONS, Address, OrderCreationResult, PaymentRequest, PaymentVerificationResult, SecureTotals
from storefront.totals import normalize_code

if TYPE_CHECKING:
    from storefront.session import StorefrontSession

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Draft fields that change what an order would contain
ORDER_FIELDS = ("address", "shipping_option", "discount_code")


class CheckoutStep(enum.IntEnum):
    ADDRESS = 1
    SHIPPING = 2
    PAYMENT = 3
    CONFIRMED = 4


def new_attempt_key() -> str:
    return uuid.uuid4().hex


@dataclass
class CheckoutDraft:
    address: Optional[Address] = None
    shipping_option: str = "standard"
    # Code the shopper asked for; discount_code is only set once the backend accepted it
    requested_code: Optional[str] = None
    discount_code: Optional[str] = None
    discount_amount: Decimal = ZERO
    attempt_key: str = field(default_factory=new_attempt_key)

    def merge(self, **changes) -> bool:
        """Apply a partial update; returns True if an order-relevant field changed."""
        known = {f.name for f in fields(self)} - {"attempt_key"}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"Unknown draft fields: {', '.join(sorted(unknown))}")

        changed = False
        for name, value in changes.items():
            if getattr(self, name) != value:
                changed = changed or name in ORDER_FIELDS
                setattr(self, name, value)
        return changed

    def rotate_attempt_key(self):
        self.attempt_key = new_attempt_key()


class CheckoutStepController:
    """Drives one checkout: Address -> Shipping -> Payment -> Confirmed.

    Totals shown as final always come from the reconciliation exchange. The
    order slot (``order_info``) belongs to the current draft: changing the
    address, shipping option or discount afterwards drops it and a new order
    has to be placed (the old one stays pending on the server). The session
    reports cart changes through ``cart_changed``, which does the same and
    reprices the new lines.
    """

    def __init__(self, session: "StorefrontSession"):
        self.session = session
        self.notifier = session.notifier
        self.step = CheckoutStep.ADDRESS
        self.draft = CheckoutDraft()
        self.order_info: Optional[OrderCreationResult] = None
        # Order the open payment widget is charging
        self.payment_order: Optional[OrderCreationResult] = None
        self.confirmation: Optional[PaymentVerificationResult] = None
        self.address_mode = "new"
        self.selected_address_id: Optional[int] = None
        self.payment_in_progress = False
        self.last_error: Optional[str] = None
        self.started = False

    @property
    def totals(self) -> Optional[SecureTotals]:
        return self.session.totals.current

    @property
    def grand_total(self) -> Optional[Decimal]:
        totals = self.totals
        return totals.grand_total if totals is not None else None

    # Start (or restart) the flow; the Address step is never entered with an empty cart
    async def begin(self):
        if self.session.cart.is_empty:
            raise EmptyCartError()

        self.step = CheckoutStep.ADDRESS
        self.draft = CheckoutDraft()
        self.order_info = None
        self.payment_order = None
        self.confirmation = None
        self.payment_in_progress = False
        self.last_error = None
        self.started = True

        addresses = await self.session.addresses.refresh()
        self.address_mode = "select" if addresses else "new"
        # Preselect the account default here only; later address book refreshes leave the choice alone
        default = self.session.addresses.default
        self.selected_address_id = default.id if default else None
        if default is not None:
            self.draft.merge(address=default)

        await self._refresh_totals()
        return self.step

    def next_step(self) -> CheckoutStep:
        self._ensure_open()
        if self.step == CheckoutStep.ADDRESS and self.draft.address is None:
            raise ValidationError("Please select or enter a shipping address", {"address": "required"})
        self.step = CheckoutStep(min(self.step + 1, CheckoutStep.PAYMENT))
        return self.step

    def prev_step(self) -> CheckoutStep:
        self._ensure_open()
        self.step = CheckoutStep(max(self.step - 1, CheckoutStep.ADDRESS))
        return self.step

    # Address step

    def select_address(self, address_id: int) -> Address:
        self._ensure_open()
        address = self.session.addresses.get(address_id)
        if address is None:
            raise ValidationError("Please select one of your saved addresses", {"address": "unknown"})
        self.address_mode = "select"
        self.selected_address_id = address_id
        self._change(address=address)
        return address

    def use_new_address(self):
        self._ensure_open()
        self.address_mode = "new"
        self.selected_address_id = None
        self._change(address=None)

    async def submit_new_address(self, fields: Union[Address, dict], save: bool = True) -> Address:
        self._ensure_open()
        address = fields if isinstance(fields, Address) else Address.model_validate(fields)
        validate_address(address)
        if save:
            address = await self.session.addresses.create(address)
            self.selected_address_id = address.id
            self.notifier.success("Address saved")
        self._change(address=address)
        return address

    # Shipping and discount

    async def set_shipping_option(self, option: str) -> Optional[SecureTotals]:
        self._ensure_open()
        if option not in SHIPPING_OPTIONS:
            raise ValidationError(f"Unknown shipping option: {option}", {"shipping_option": "invalid"})
        self._change(shipping_option=option)
        return await self._refresh_totals()

    async def apply_discount(self, code: str) -> Optional[SecureTotals]:
        self._ensure_open()
        code = normalize_code(code)
        if code is None:
            raise ValidationError("Please enter a discount code", {"discount_code": "required"})
        # Later totals requests carry the code too, even while this one is in flight
        self.draft.merge(requested_code=code)
        return await self._refresh_totals()

    async def remove_discount(self) -> Optional[SecureTotals]:
        self._ensure_open()
        self._change(requested_code=None, discount_code=None, discount_amount=ZERO)
        return await self._refresh_totals()

    async def cart_changed(self):
        if not self.started or self.step == CheckoutStep.CONFIRMED:
            return
        if self.order_info is not None:
            logger.info("Cart changed after order %s was opened; a new order is required", self.order_info.order_id)
            self.order_info = None
        self.draft.rotate_attempt_key()
        # Totals priced for the old lines must not be used while the new ones load
        self.session.totals.invalidate()
        try:
            await self._refresh_totals()
        except StorefrontError as e:
            logger.warning("Could not reprice the changed cart: %s", e)
            self._fail(e.message)

    # Payment step

    async def create_order(self) -> OrderCreationResult:
        self._ensure_open()
        if self.step != CheckoutStep.PAYMENT:
            raise CheckoutError("Complete the address and shipping steps first")
        if self.order_info is not None:
            return self.order_info

        try:
            result = await self.session.orders.create(self.draft, self.totals)
        except (ApiError, NetworkError) as e:
            self._fail(e.message)
            raise
        self.order_info = result
        self.last_error = None
        return result

    @property
    def can_pay(self) -> bool:
        return (
            self.step == CheckoutStep.PAYMENT
            and self.order_info is not None
            and self.session.gateway.ready
            and not self.payment_in_progress
        )

    def start_payment(self) -> bool:
        self._ensure_open()
        if self.order_info is None:
            raise CheckoutError("Place your order before paying")
        if self.payment_in_progress:
            raise CheckoutError("A payment is already in progress")

        order = self.order_info
        started = self.session.gateway.initialize_payment(PaymentRequest(
            email=order.user_email,
            amount=order.order_total_cents,
            reference=order.payment_reference,
            currency=self.session.settings.CURRENCY,
            metadata={"orderId": order.order_id},
            on_success=self.handle_payment_success,
            on_close=self.handle_payment_closed,
        ))
        if started:
            self.payment_in_progress = True
            self.payment_order = order
        else:
            self._fail("Payment is not available right now. Please try again in a moment.")
        return started

    async def handle_payment_success(self, reference: str) -> PaymentVerificationResult:
        self.payment_in_progress = False
        # The charge belongs to the order the widget was opened for, even if the cart changed since
        order = self.payment_order or self.order_info
        try:
            result = await self.session.verifier.verify(order, reference)
        except PaymentVerificationFailure as e:
            self._fail(e.message)
            raise

        self.confirmation = result
        self.step = CheckoutStep.CONFIRMED
        await self._complete_purchase()
        self.notifier.success("Payment successful! Your order has been placed.")
        return result

    def handle_payment_closed(self) -> PaymentCancelled:
        self.payment_in_progress = False
        self.payment_order = None
        order_id = self.order_info.order_id if self.order_info else None
        self.notifier.info("Payment cancelled. Your order is saved and you can pay for it later.")
        logger.info("Payment widget closed for order %s", order_id)
        return PaymentCancelled(order_id=order_id)

    async def resume_order(self, order_id: int) -> OrderCreationResult:
        """Reload a still-pending order so it can be paid after the widget was closed."""
        self._ensure_open()
        order = await self.session.orders.fetch(order_id)
        if order.status != "pending_payment":
            raise CheckoutError(f"Order {order_id} can no longer be paid ({order.status})")
        self.order_info = order
        self.step = CheckoutStep.PAYMENT
        return order

    # Internals

    async def _refresh_totals(self) -> Optional[SecureTotals]:
        totals = await self.session.totals.calculate(self.draft.shipping_option, self.draft.requested_code)
        if totals is None:
            return None

        rejection = totals.rejection
        if rejection is not None:
            self._change(requested_code=None, discount_code=None, discount_amount=ZERO)
            self._fail(rejection.message)
        else:
            if totals.discount_code and totals.discount_code != self.draft.discount_code:
                self.notifier.success(f"Discount code {totals.discount_code} applied")
            self._change(discount_code=totals.discount_code, discount_amount=totals.discount_amount)
        return totals

    def _change(self, **changes):
        if self.draft.merge(**changes) and self.order_info is not None:
            logger.info("Checkout draft changed after order %s was opened; a new order is required",
                        self.order_info.order_id)
            self.order_info = None
            self.draft.rotate_attempt_key()

    async def _complete_purchase(self):
        session = self.session
        session.totals.invalidate()
        session.addresses.invalidate()
        session.catalog.invalidate()
        # The backend took the paid lines out of the durable cart; anything added since is still there
        try:
            await session.cart.load()
        except StorefrontError as e:
            logger.warning("Could not reload the cart after payment, clearing it locally: %s", e)
            await session.cart.clear(remote=False)
        self.draft = CheckoutDraft()
        self.order_info = None
        self.payment_order = None
        self.last_error = None

    def _fail(self, message: str):
        self.last_error = message
        self.notifier.error(message)

    def _ensure_open(self):
        if not self.started:
            raise CheckoutError("Checkout has not been started")
        if self.step == CheckoutStep.CONFIRMED:
            raise CheckoutError("This checkout is already complete")
