import httpx
import pytest

from models.cart import Cart
from models.discount import Discount
from models.log import Log
from models.order import Order
from models.product import Product


@pytest.fixture
def filled_cart(client, auth_headers, seed):
    client.post("/cart", json={"productId": seed.notebook, "quantity": 4}, headers=auth_headers)
    return seed


def place_order(client, headers, address, key="attempt-1", **extra):
    payload = {"shippingAddress": address, "shippingOption": "standard", **extra}
    return client.post("/checkout/order", json=payload, headers={**headers, "Idempotency-Key": key})


class TestCreateOrder:
    def test_opens_pending_order_from_server_totals(self, client, auth_headers, filled_cart, shipping_address, db):
        response = place_order(client, auth_headers, shipping_address, discountCode="SAVE10")

        assert response.status_code == 200
        body = response.json()
        assert body["orderTotal"] == 113.4
        assert body["orderTotalCents"] == 11340
        assert body["userEmail"] == "shopper@example.com"
        assert body["paymentReference"].startswith("SCN-")
        assert body["status"] == "pending_payment"

        db.expire_all()
        order = db.query(Order).one()
        assert order.discount_code == "SAVE10"
        assert order.shipping_city == "Accra"
        assert [(i.product_id, i.qty) for i in order.items] == [(filled_cart.notebook, 4)]
        # The cart survives until payment is confirmed
        assert client.get("/cart", headers=auth_headers).json()["items"]

    def test_repeated_attempt_key_returns_same_order(self, client, auth_headers, filled_cart, shipping_address, db):
        first = place_order(client, auth_headers, shipping_address).json()
        again = place_order(client, auth_headers, shipping_address).json()
        other = place_order(client, auth_headers, shipping_address, key="attempt-2").json()

        assert again["orderId"] == first["orderId"]
        assert again["paymentReference"] == first["paymentReference"]
        assert other["orderId"] != first["orderId"]
        assert db.query(Order).count() == 2

    def test_repeated_attempt_key_after_cart_change_is_refused(self, client, auth_headers, filled_cart, shipping_address, db):
        first = place_order(client, auth_headers, shipping_address)
        client.post("/cart", json={"productId": filled_cart.notebook, "quantity": 5}, headers=auth_headers)

        again = place_order(client, auth_headers, shipping_address)

        assert first.status_code == 200
        assert again.status_code == 409
        assert again.json()["detail"].startswith("Your cart has changed")
        assert db.query(Order).count() == 1

    def test_empty_cart(self, client, auth_headers, seed, shipping_address):
        response = place_order(client, auth_headers, shipping_address)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty"

    def test_rejected_discount_fails_the_order(self, client, auth_headers, filled_cart, shipping_address, db):
        response = place_order(client, auth_headers, shipping_address, discountCode="ONCE")

        assert response.status_code == 400
        assert response.json()["detail"] == "Discount code usage limit has been reached"
        assert db.query(Order).count() == 0

    def test_incomplete_address(self, client, auth_headers, filled_cart, shipping_address):
        response = place_order(client, auth_headers, {**shipping_address, "city": "  "})
        assert response.status_code == 422

    def test_stock_is_rechecked(self, client, auth_headers, seed, shipping_address, db):
        client.post("/cart", json={"productId": seed.backpack, "quantity": 3}, headers=auth_headers)
        db.query(Product).filter(Product.id == seed.backpack).update({Product.stock_quantity: 2})
        db.commit()

        response = place_order(client, auth_headers, shipping_address)

        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient stock for Backpack"

    def test_order_lookup_is_scoped_to_owner(self, client, auth_headers, other_headers, filled_cart, shipping_address):
        order_id = place_order(client, auth_headers, shipping_address).json()["orderId"]

        assert client.get(f"/checkout/orders/{order_id}", headers=auth_headers).json()["orderId"] == order_id
        assert client.get(f"/checkout/orders/{order_id}", headers=other_headers).status_code == 404


class TestPaystackVerify:
    @pytest.fixture
    def order(self, client, auth_headers, filled_cart, shipping_address):
        return place_order(client, auth_headers, shipping_address, discountCode="SAVE10").json()

    def verify(self, client, headers, order, reference=None):
        return client.post(
            "/checkout/paystack-verify",
            json={"reference": reference or order["paymentReference"], "orderId": order["orderId"]},
            headers=headers,
        )

    def test_successful_payment_finalizes_order(self, client, auth_headers, order, paystack, filled_cart, db):
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"])

        response = self.verify(client, auth_headers, order)

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        db.expire_all()
        paid = db.get(Order, order["orderId"])
        assert paid.status == "paid"
        assert paid.gateway_transaction_id == "4099260516"
        assert paid.paid_at is not None
        assert db.get(Product, filled_cart.notebook).stock_quantity == 6
        assert db.query(Discount).filter(Discount.code == "SAVE10").one().used_count == 1
        assert db.query(Cart).filter(Cart.user_id == filled_cart.shopper_id).one().items == []
        assert db.query(Log).filter(Log.action == "PAYMENT_VERIFY", Log.status == "SUCCESS").count() == 1

    def test_lines_added_after_the_order_stay_in_the_cart(self, client, auth_headers, order, paystack, filled_cart):
        client.post("/cart", json={"productId": filled_cart.notebook, "quantity": 5}, headers=auth_headers)
        client.post("/cart", json={"productId": filled_cart.backpack, "quantity": 1}, headers=auth_headers)
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"])

        assert self.verify(client, auth_headers, order).status_code == 200

        items = client.get("/cart", headers=auth_headers).json()["items"]
        assert sorted((i["productId"], i["quantity"]) for i in items) == sorted(
            [(filled_cart.notebook, 1), (filled_cart.backpack, 1)]
        )

    def test_repeat_verification_is_answered_without_side_effects(self, client, auth_headers, order, paystack, filled_cart, db):
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"])
        self.verify(client, auth_headers, order)

        response = self.verify(client, auth_headers, order)

        assert response.status_code == 200
        assert response.json()["message"] == "Order already paid"
        db.expire_all()
        assert db.get(Product, filled_cart.notebook).stock_quantity == 6
        assert len(paystack.calls) == 1

    def test_amount_mismatch_leaves_order_pending(self, client, auth_headers, order, paystack, db):
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"] - 100)

        response = self.verify(client, auth_headers, order)

        assert response.status_code == 400
        assert response.json()["detail"] == "Paid amount does not match the order total"
        db.expire_all()
        assert db.get(Order, order["orderId"]).status == "pending_payment"
        assert client.get("/cart", headers=auth_headers).json()["items"]

    def test_currency_mismatch(self, client, auth_headers, order, paystack):
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"], currency="NGN")
        response = self.verify(client, auth_headers, order)
        assert response.json()["detail"] == "Payment currency does not match the order"

    def test_unknown_transaction(self, client, auth_headers, order, paystack):
        response = self.verify(client, auth_headers, order)
        assert response.status_code == 400
        assert response.json()["detail"] == "Payment was not successful"

    def test_reference_mismatch(self, client, auth_headers, order, paystack, db):
        response = self.verify(client, auth_headers, order, reference="SCN-SOMETHINGELSE")

        assert response.status_code == 400
        assert paystack.calls == []
        assert db.query(Log).filter(Log.action == "PAYMENT_VERIFY", Log.status == "FAIL").count() == 1

    def test_someone_elses_order(self, client, other_headers, order, paystack):
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"])
        assert self.verify(client, other_headers, order).status_code == 404

    def test_gateway_outage(self, client, auth_headers, order, paystack):
        paystack.error = httpx.ConnectError("connection refused")
        response = self.verify(client, auth_headers, order)
        assert response.status_code == 502

    def test_completed_attempt_key_cannot_open_another_order(self, client, auth_headers, order, paystack, shipping_address):
        paystack.record_charge(order["paymentReference"], order["orderTotalCents"])
        self.verify(client, auth_headers, order)

        response = place_order(client, auth_headers, shipping_address, discountCode="SAVE10")

        assert response.status_code == 409
