# storefront/totals.py
import logging
from typing import Callable, Optional, Tuple

from storefront.api import ApiClient
from storefront.models import SHIPPING_OPTIONS, SecureTotals

logger = logging.getLogger(__name__)

TotalsKey = Tuple[str, Optional[str]]


def normalize_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


class PriceReconciliationExchange:
    """Fetches authoritative totals from POST /cart/calculate.

    Requests are keyed by ``(shipping_option, discount_code)`` and numbered.
    A response is accepted only if its key is still the latest one requested
    and it is newer than the last accepted response; anything else is
    dropped and ``calculate`` returns None. ``invalidate`` also drops every
    request sent before it, which is how a cart change retires totals that
    were priced for the old lines.
    """

    def __init__(self, api: ApiClient, is_cart_empty: Callable[[], bool]):
        self._api = api
        self._is_cart_empty = is_cart_empty
        self._seq = 0
        self._latest_key: Optional[TotalsKey] = None
        self._accepted_seq = 0
        self.current: Optional[SecureTotals] = None
        self.requests_sent = 0

    @property
    def loaded(self) -> bool:
        return self.current is not None

    async def calculate(self, shipping_option: str = "standard", discount_code: Optional[str] = None) -> Optional[SecureTotals]:
        if shipping_option not in SHIPPING_OPTIONS:
            raise ValueError(f"Unknown shipping option: {shipping_option}")
        code = normalize_code(discount_code)

        if self._is_cart_empty():
            # Nothing to price; also supersede anything still in flight
            self.invalidate()
            return None

        self._seq += 1
        seq = self._seq
        key = (shipping_option, code)
        self._latest_key = key
        self.requests_sent += 1

        data = await self._api.post(
            "/cart/calculate", {"shippingOption": shipping_option, "discountCode": code}, retry=True
        )

        if key != self._latest_key or seq <= self._accepted_seq:
            logger.debug("Discarding stale totals for %s (request %s, latest %s)", key, seq, self._seq)
            return None

        totals = SecureTotals.model_validate(data).model_copy(update={"requested_code": code})
        self._accepted_seq = seq
        self.current = totals
        if totals.discount_error:
            logger.info("Discount code %r rejected: %s", code, totals.discount_error)
        return totals

    # Requests already sent can no longer be accepted, even under the same key
    def invalidate(self):
        self._seq += 1
        self._accepted_seq = self._seq
        self._latest_key = None
        self.current = None
