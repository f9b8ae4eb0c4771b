from decimal import Decimal

import pytest

from models.cart import CartItem
from models.product import Product
from utils.pricing import (
    DiscountRejection, calculate_totals, cart_subtotal, shipping_fee, to_minor_units, validate_discount,
)


def line(price, qty):
    return CartItem(product=Product(name="Item", code=f"X-{price}-{qty}", price=Decimal(price), stock_quantity=100), qty=qty)


class TestShippingFee:
    def test_express_is_flat(self):
        assert shipping_fee("express", Decimal("10.00")) == Decimal("25.00")
        assert shipping_fee("express", Decimal("500.00")) == Decimal("25.00")

    def test_standard_is_free_only_above_threshold(self):
        assert shipping_fee("standard", Decimal("100.00")) == Decimal("15.00")
        assert shipping_fee("standard", Decimal("100.01")) == Decimal("0.00")

    def test_unknown_option(self):
        with pytest.raises(ValueError):
            shipping_fee("drone", Decimal("10.00"))


class TestSubtotal:
    def test_sums_price_times_quantity(self):
        assert cart_subtotal([line("25.00", 2), line("12.50", 3)]) == Decimal("87.50")

    def test_skips_lines_without_product(self):
        orphan = CartItem(qty=4)
        assert cart_subtotal([line("10.00", 1), orphan]) == Decimal("10.00")


class TestCalculateTotals:
    def test_worked_example(self, db, seed):
        totals = calculate_totals(db, [line("25.00", 4)], "standard", "SAVE10")

        assert totals.subtotal == Decimal("100.00")
        assert totals.shipping == Decimal("15.00")
        assert totals.discount_amount == Decimal("10.00")
        assert totals.tax == Decimal("8.40")
        assert totals.grand_total == Decimal("113.40")
        assert totals.grand_total_cents == 11340
        assert totals.discount_code == "SAVE10"
        assert totals.discount_error is None

    def test_codes_are_case_insensitive(self, db, seed):
        totals = calculate_totals(db, [line("25.00", 4)], "express", "  save10 ")
        assert totals.discount_code == "SAVE10"
        assert totals.grand_total == Decimal("124.20")

    def test_percentage_discount(self, db, seed):
        totals = calculate_totals(db, [line("60.00", 1)], "express", "WELCOME15")
        # 60 + 25 - 9 = 76, tax 6.08
        assert totals.discount_amount == Decimal("9.00")
        assert totals.tax == Decimal("6.08")
        assert totals.grand_total == Decimal("82.08")

    def test_discount_capped_at_subtotal(self, db, seed):
        totals = calculate_totals(db, [line("20.00", 1)], "express", "BIGSPEND")
        assert totals.discount_amount == Decimal("20.00")
        assert totals.tax == Decimal("2.00")
        assert totals.grand_total == Decimal("27.00")

    @pytest.mark.parametrize("code, message", [
        ("NOPE", "Discount code not found"),
        ("OLDNEWS", "Discount code has expired"),
        ("SOON", "Discount code is not active yet"),
        ("ONCE", "Discount code usage limit has been reached"),
        ("RETIRED", "Discount code is no longer active"),
    ])
    def test_rejected_code_keeps_the_rest_of_the_breakdown(self, db, seed, code, message):
        totals = calculate_totals(db, [line("25.00", 2)], "standard", code)

        assert totals.discount_error == message
        assert totals.discount_code is None
        assert totals.discount_amount == Decimal("0.00")
        assert totals.subtotal == Decimal("50.00")
        assert totals.shipping == Decimal("15.00")
        assert totals.tax == Decimal("5.20")
        assert totals.grand_total == Decimal("70.20")

    def test_minimum_purchase(self, db, seed):
        with pytest.raises(DiscountRejection, match="minimum purchase of 50.00"):
            validate_discount(db, "WELCOME15", Decimal("49.99"))


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("113.40")) == 11340
    assert to_minor_units("0.005") == 1
