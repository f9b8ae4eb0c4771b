from models.log import Log


class TestCartApi:
    def test_requires_token(self, client, seed):
        response = client.get("/cart")
        assert response.status_code == 401

    def test_empty_cart(self, client, auth_headers):
        body = client.get("/cart", headers=auth_headers).json()
        assert body["items"] == []
        assert body["totals"]["grandTotal"] == 16.2

    def test_set_quantity_is_absolute(self, client, auth_headers, seed):
        client.post("/cart", json={"productId": seed.notebook, "quantity": 2}, headers=auth_headers)
        response = client.post("/cart", json={"productId": seed.notebook, "quantity": 3}, headers=auth_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["productId"] == seed.notebook
        assert items[0]["quantity"] == 3
        assert items[0]["subtotal"] == 75.0
        assert items[0]["product"]["name"] == "Notebook"

    def test_zero_quantity_removes_line(self, client, auth_headers, seed):
        client.post("/cart", json={"productId": seed.notebook, "quantity": 2}, headers=auth_headers)
        response = client.post("/cart", json={"productId": seed.notebook, "quantity": 0}, headers=auth_headers)
        assert response.json()["items"] == []

    def test_stock_is_enforced(self, client, auth_headers, seed):
        response = client.post("/cart", json={"productId": seed.backpack, "quantity": 4}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Only 3 of Backpack in stock"

    def test_unknown_product(self, client, auth_headers, seed):
        response = client.post("/cart", json={"productId": 999, "quantity": 1}, headers=auth_headers)
        assert response.status_code == 404

    def test_delete_line_and_clear(self, client, auth_headers, seed):
        client.post("/cart", json={"productId": seed.notebook, "quantity": 1}, headers=auth_headers)
        client.post("/cart", json={"productId": seed.lamp, "quantity": 1}, headers=auth_headers)

        response = client.delete(f"/cart/{seed.notebook}", headers=auth_headers)
        assert [i["productId"] for i in response.json()["items"]] == [seed.lamp]
        assert client.delete(f"/cart/{seed.notebook}", headers=auth_headers).status_code == 404

        response = client.delete("/cart", headers=auth_headers)
        assert response.json()["items"] == []

    def test_cart_writes_are_audited(self, client, auth_headers, seed, db):
        client.post("/cart", json={"productId": seed.notebook, "quantity": 1}, headers=auth_headers)
        db.expire_all()
        entry = db.query(Log).filter(Log.action == "CART_SET").one()
        assert entry.user_id == seed.shopper_id
        assert entry.meta["product_id"] == seed.notebook


class TestCalculate:
    def test_empty_cart_is_rejected(self, client, auth_headers):
        response = client.post("/cart/calculate", json={"shippingOption": "standard"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty"

    def test_worked_example(self, client, auth_headers, seed):
        client.post("/cart", json={"productId": seed.notebook, "quantity": 4}, headers=auth_headers)

        response = client.post(
            "/cart/calculate", json={"shippingOption": "standard", "discountCode": "save10"}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json() == {
            "shippingOption": "standard",
            "subtotal": 100.0,
            "shipping": 15.0,
            "tax": 8.4,
            "discountAmount": 10.0,
            "grandTotal": 113.4,
            "discountCode": "SAVE10",
            "discountError": None,
        }

    def test_rejected_code_still_prices_the_cart(self, client, auth_headers, seed):
        client.post("/cart", json={"productId": seed.lamp, "quantity": 1}, headers=auth_headers)

        body = client.post(
            "/cart/calculate", json={"shippingOption": "express", "discountCode": "OLDNEWS"}, headers=auth_headers
        ).json()

        assert body["discountError"] == "Discount code has expired"
        assert body["discountCode"] is None
        assert body["discountAmount"] == 0.0
        assert body["grandTotal"] == 156.6

    def test_invalid_shipping_option(self, client, auth_headers, seed):
        client.post("/cart", json={"productId": seed.lamp, "quantity": 1}, headers=auth_headers)
        response = client.post("/cart/calculate", json={"shippingOption": "drone"}, headers=auth_headers)
        assert response.status_code == 422
