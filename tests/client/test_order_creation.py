import asyncio
import json
from decimal import Decimal

import httpx
import pytest
from pydantic import ValidationError as PydanticValidationError

from storefront.api import ApiClient
from storefront.checkout import CheckoutDraft
from storefront.errors import ApiError, CheckoutError, ValidationError
from storefront.models import Address, SecureTotals
from storefront.orders import OrderCreation

ADDRESS = Address(first_name="Kofi", last_name="Boateng", street="4 Oxford St", city="Accra", zip="00233", country="Ghana")
TOTALS = SecureTotals(subtotal=Decimal("100"), shipping=Decimal("15"), tax=Decimal("8.40"),
                      discount_amount=Decimal("10"), grand_total=Decimal("113.40"), discount_code="SAVE10")
ORDER = {"orderId": 7, "orderTotal": 113.4, "orderTotalCents": 11340, "userEmail": "shopper@example.com",
         "paymentReference": "SCN-ABC", "status": "pending_payment", "message": "Order created. Proceed to payment."}


def run_orders(handler, scenario, cart_empty=False):
    async def main():
        api = ApiClient("http://testserver", "tok", transport=httpx.MockTransport(handler), retry_backoff=0)
        try:
            return await scenario(OrderCreation(api, lambda: cart_empty))
        finally:
            await api.aclose()
    return asyncio.run(main())


def no_network(request):
    raise AssertionError(f"unexpected request {request.method} {request.url}")


class TestOrderCreation:
    def test_sends_choices_and_attempt_key(self):
        seen = []

        def handler(request):
            seen.append((request.headers["Idempotency-Key"], json.loads(request.content)))
            return httpx.Response(200, json=ORDER)

        draft = CheckoutDraft(address=ADDRESS, discount_code="SAVE10")

        async def scenario(orders):
            return await orders.create(draft, TOTALS)

        result = run_orders(handler, scenario)

        key, body = seen[0]
        assert key == draft.attempt_key
        assert body == {
            "shippingAddress": {"firstName": "Kofi", "lastName": "Boateng", "street": "4 Oxford St",
                                "city": "Accra", "zip": "00233", "country": "Ghana"},
            "shippingOption": "standard",
            "discountCode": "SAVE10",
        }
        assert result.order_total_cents == 11340
        assert result.payment_reference == "SCN-ABC"

    def test_result_is_immutable(self):
        async def scenario(orders):
            return await orders.create(CheckoutDraft(address=ADDRESS), TOTALS)

        result = run_orders(lambda request: httpx.Response(200, json=ORDER), scenario)
        with pytest.raises(PydanticValidationError):
            result.order_total_cents = 1

    @pytest.mark.parametrize("draft, totals", [
        (CheckoutDraft(), TOTALS),
        (CheckoutDraft(address=ADDRESS.model_copy(update={"city": ""})), TOTALS),
        (CheckoutDraft(address=ADDRESS, shipping_option="drone"), TOTALS),
        (CheckoutDraft(address=ADDRESS), None),
        (CheckoutDraft(address=ADDRESS), TOTALS.model_copy(update={"grand_total": Decimal("0")})),
    ])
    def test_preconditions_fail_without_network(self, draft, totals):
        async def scenario(orders):
            await orders.create(draft, totals)

        with pytest.raises(ValidationError):
            run_orders(no_network, scenario)

    def test_emptied_cart_fails_despite_loaded_totals(self):
        async def scenario(orders):
            await orders.create(CheckoutDraft(address=ADDRESS), TOTALS)

        with pytest.raises(ValidationError) as exc:
            run_orders(no_network, scenario, cart_empty=True)
        assert exc.value.field_errors == {"cart": "empty"}

    def test_second_call_while_pending_is_refused(self):
        gate = {}

        async def handler(request):
            await gate["release"].wait()
            return httpx.Response(200, json=ORDER)

        async def scenario(orders):
            release = gate["release"] = asyncio.Event()
            first = asyncio.create_task(orders.create(CheckoutDraft(address=ADDRESS), TOTALS))
            await asyncio.sleep(0)
            with pytest.raises(CheckoutError):
                await orders.create(CheckoutDraft(address=ADDRESS), TOTALS)
            release.set()
            return await first

        assert run_orders(handler, scenario).order_id == 7

    def test_server_rejection_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(400, json={"detail": "Insufficient stock for Backpack"})

        async def scenario(orders):
            with pytest.raises(ApiError, match="Insufficient stock"):
                await orders.create(CheckoutDraft(address=ADDRESS), TOTALS)
            return orders.in_flight

        assert run_orders(handler, scenario) is False
        assert calls == [1]
