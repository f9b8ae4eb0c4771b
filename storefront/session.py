# storefront/session.py
import logging
from typing import Callable, Optional

import httpx

from storefront.addresses import AddressBook
from storefront.api import ApiClient
from storefront.cart import SessionCart
from storefront.catalog import ProductCatalog
from storefront.checkout import CheckoutStepController
from storefront.config import StorefrontSettings
from storefront.gateway import PaystackGateway, WidgetLoader
from storefront.notify import Notifier
from storefront.orders import OrderCreation
from storefront.totals import PriceReconciliationExchange
from storefront.verification import PaymentVerifier

logger = logging.getLogger(__name__)


class StorefrontSession:
    """Everything one signed-in shopper's checkout needs, wired together.

    Passed explicitly to the checkout controller instead of living in
    module-level globals.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        settings: Optional[StorefrontSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        widget_loader: Optional[WidgetLoader] = None,
        notifier: Optional[Notifier] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.settings = settings or StorefrontSettings()
        self.notifier = notifier or Notifier()
        self._on_unauthorized = on_unauthorized

        self.api = ApiClient(
            self.settings.API_BASE_URL,
            token,
            timeout=self.settings.REQUEST_TIMEOUT,
            read_retries=self.settings.READ_RETRIES,
            retry_backoff=self.settings.RETRY_BACKOFF_SECONDS,
            transport=transport,
            on_unauthorized=self._unauthorized,
        )
        self.catalog = ProductCatalog(self.api)
        self.cart = SessionCart(self.api, self.catalog, on_change=self._cart_changed)
        self.addresses = AddressBook(self.api)
        self.totals = PriceReconciliationExchange(self.api, lambda: self.cart.is_empty)
        self.orders = OrderCreation(self.api, lambda: self.cart.is_empty)
        self.verifier = PaymentVerifier(self.api)
        self.gateway = PaystackGateway(
            self.settings.PAYSTACK_PUBLIC_KEY, currency=self.settings.CURRENCY, loader=widget_loader
        )
        self.active_checkout: Optional[CheckoutStepController] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self.api.aclose()

    @property
    def authenticated(self) -> bool:
        return bool(self.api.token)

    def sign_in(self, token: str):
        self.api.token = token

    # Drops every cached per-user view along with the token
    def sign_out(self):
        self.api.clear_token()
        self.cart.cart.clear_cart()
        self.addresses.invalidate()
        self.totals.invalidate()
        self.active_checkout = None

    def _unauthorized(self):
        self.notifier.warning("Your session has expired. Please sign in again.")
        if self._on_unauthorized is not None:
            self._on_unauthorized()

    async def _cart_changed(self):
        if self.active_checkout is not None:
            await self.active_checkout.cart_changed()

    # The newest checkout is the one cart changes are reported to
    def checkout(self) -> CheckoutStepController:
        self.active_checkout = CheckoutStepController(self)
        return self.active_checkout
