# backend/routes/checkout.py
import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.users import User
from models.product import Product
from models.order import Order, OrderItem
from models.cart import Cart, CART_OPEN
from models.discount import Discount
from routes.cart import get_open_cart
from schemas.checkout import (
    OrderCreatePayload, OrderCreationResponse,
    PaymentVerifyPayload, PaymentVerificationResponse,
)
from utils.audit import write_log, client_ip
from utils.tokenJWT import get_current_user
from utils.paystack_client import PaystackClient, get_paystack_client
from utils.pricing import calculate_totals, to_money

router = APIRouter(prefix="/checkout", tags=["Checkout"])
logger = logging.getLogger(__name__)

def _new_payment_reference() -> str:
    return f"SCN-{uuid.uuid4().hex[:20].upper()}"

def cart_fingerprint(items) -> str:
    lines = sorted((item.product_id, item.qty) for item in items)
    return hashlib.sha256(",".join(f"{pid}:{qty}" for pid, qty in lines).encode()).hexdigest()

# Map Order model to the payload the storefront hands to the payment widget
def _order_to_out(order: Order, user: User, message: Optional[str] = None) -> OrderCreationResponse:
    return OrderCreationResponse(
        order_id=order.id,
        order_total=to_money(order.total_amount),
        order_total_cents=order.total_cents,
        user_email=user.email,
        payment_reference=order.payment_reference,
        status=order.status,
        message=message,
    )

def _get_owned_order(db: Session, user: User, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order

def _finalize_paid_order(db: Session, order: Order, transaction: dict, request: Request):
    """
    Marks the order paid and applies its side effects in the caller's transaction:
    stock deduction, discount usage and taking the paid lines out of the customer's cart.
    """
    order.status = "paid"
    order.payment_status = "paid"
    order.paid_at = datetime.now(timezone.utc)
    order.gateway_transaction_id = str(transaction.get("id") or "") or None

    # 1. Deduct stock quantity
    for item in order.items:
        product = db.query(Product).filter(Product.id == item.product_id).with_for_update().first()
        if not product:
            continue
        if product.stock_quantity < item.qty:
            logger.warning("Stock for product %s fell below paid quantity on order %s (%s < %s)",
                           product.id, order.id, product.stock_quantity, item.qty)
        product.stock_quantity = max(product.stock_quantity - item.qty, 0)

    # 2. Count the discount usage only once payment is confirmed
    if order.discount_code:
        discount = db.query(Discount).filter(Discount.code == order.discount_code).with_for_update().first()
        if discount:
            discount.used_count = (discount.used_count or 0) + 1

    # 3. Remove what was paid for; lines added after the order was opened stay in the cart
    cart = db.query(Cart).filter(Cart.user_id == order.user_id, Cart.status == CART_OPEN).first()
    if cart:
        paid = {item.product_id: item.qty for item in order.items}
        for line in list(cart.items):
            left = line.qty - paid.get(line.product_id, 0)
            if left > 0:
                line.qty = left
            else:
                db.delete(line)
                cart.items.remove(line)

    write_log(
        db, user_id=order.user_id, order_id=order.id, action="PAYMENT_VERIFY", resource="checkout",
        ip=client_ip(request), meta={"reference": order.payment_reference, "total_cents": order.total_cents},
        commit=False,
    )

# Open a pending order from the current cart and reserve a payment reference
@router.post("/order", response_model=OrderCreationResponse)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = get_open_cart(db, current_user.id)
    fingerprint = cart_fingerprint(cart.items)

    # A repeated attempt key returns the order it already opened, as long as the cart is unchanged
    if idempotency_key:
        existing = db.query(Order).filter(
            Order.user_id == current_user.id, Order.idempotency_key == idempotency_key
        ).first()
        if existing:
            if existing.status != "pending_payment":
                raise HTTPException(status_code=409, detail="This checkout attempt has already been completed")
            if existing.cart_fingerprint != fingerprint:
                logger.warning("Cart changed since order %s was opened for idempotency key %s",
                               existing.id, idempotency_key)
                raise HTTPException(status_code=409, detail="Your cart has changed since this order was created. Please review your order.")
            logger.info("Returning existing order %s for idempotency key %s", existing.id, idempotency_key)
            return _order_to_out(existing, current_user, message="Order already created")

    if not cart.items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    # Validate stock against the live catalog
    for ci in cart.items:
        product = ci.product
        if product is None:
            raise HTTPException(status_code=400, detail="A product in your cart is no longer available")
        if product.stock_quantity < ci.qty:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product.name}")

    # Totals are recomputed here; the discount is re-validated, never trusted
    totals = calculate_totals(db, cart.items, payload.shipping_option, payload.discount_code)
    if payload.discount_code and totals.discount_error:
        raise HTTPException(status_code=400, detail=totals.discount_error)
    if totals.grand_total <= 0:
        raise HTTPException(status_code=400, detail="Order total must be greater than zero")

    address = payload.shipping_address
    order = Order(
        user_id=current_user.id,
        status="pending_payment",
        shipping_option=totals.shipping_option,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        tax=totals.tax,
        discount_code=totals.discount_code,
        discount_amount=totals.discount_amount,
        total_amount=totals.grand_total,
        total_cents=totals.grand_total_cents,
        currency=settings.CURRENCY,
        payment_reference=_new_payment_reference(),
        idempotency_key=idempotency_key,
        cart_fingerprint=fingerprint,
        shipping_first_name=address.first_name,
        shipping_last_name=address.last_name,
        shipping_street=address.street,
        shipping_city=address.city,
        shipping_zip=address.zip,
        shipping_country=address.country,
    )
    db.add(order)

    # Snapshot cart lines at the price they were charged
    db.add_all([OrderItem(
        order=order, product_id=ci.product_id, qty=ci.qty, unit_price=to_money(ci.product.price)
    ) for ci in cart.items])
    db.flush()

    write_log(
        db, user_id=current_user.id, order_id=order.id, action="ORDER_CREATE", resource="checkout",
        ip=client_ip(request),
        meta={"total": str(order.total_amount), "shipping_option": order.shipping_option, "discount_code": order.discount_code},
        commit=False,
    )
    db.commit()
    db.refresh(order)

    # The cart is kept until the payment is verified
    return _order_to_out(order, current_user, message="Order created. Proceed to payment.")

# Look up a pending order, e.g. to retry payment after the widget was closed
@router.get("/orders/{order_id}", response_model=OrderCreationResponse)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = _get_owned_order(db, current_user, order_id)
    return _order_to_out(order, current_user)

# Confirm the charge with Paystack and finalize the order
@router.post("/paystack-verify", response_model=PaymentVerificationResponse)
async def verify_payment(
    payload: PaymentVerifyPayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    order = _get_owned_order(db, current_user, payload.order_id)

    if payload.reference != order.payment_reference:
        write_log(db, user_id=current_user.id, order_id=order.id, action="PAYMENT_VERIFY", resource="checkout",
                  status="FAIL", ip=client_ip(request), meta={"reason": "reference mismatch", "reference": payload.reference})
        raise HTTPException(status_code=400, detail="Payment reference does not match this order")

    if order.status == "paid":
        return PaymentVerificationResponse(status="success", order_id=order.id, reference=order.payment_reference,
                                           message="Order already paid")
    if order.status != "pending_payment":
        raise HTTPException(status_code=400, detail=f"Order cannot be paid in status {order.status}")

    try:
        result = await paystack.verify_transaction(payload.reference)
    except httpx.HTTPError as e:
        logger.exception("Paystack verification failed for order %s: %s", order.id, e)
        raise HTTPException(status_code=502, detail="Could not confirm the payment with the payment provider")

    transaction = result.get("data") or {}
    failure = None
    if not result.get("status") or transaction.get("status") != "success":
        failure = "Payment was not successful"
    elif int(transaction.get("amount") or 0) != order.total_cents:
        failure = "Paid amount does not match the order total"
    elif (transaction.get("currency") or order.currency).upper() != order.currency.upper():
        failure = "Payment currency does not match the order"

    if failure:
        write_log(db, user_id=current_user.id, order_id=order.id, action="PAYMENT_VERIFY", resource="checkout",
                  status="FAIL", ip=client_ip(request),
                  meta={"reason": failure, "gateway_status": transaction.get("status"), "amount": transaction.get("amount")})
        raise HTTPException(status_code=400, detail=failure)

    try:
        _finalize_paid_order(db, order, transaction, request)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("CRITICAL: Failed to finalize order %s after payment. Error: %s", order.id, e)
        raise HTTPException(status_code=500, detail="Failed to finalize order after payment")

    return PaymentVerificationResponse(status="success", order_id=order.id, reference=order.payment_reference,
                                       message="Payment verified")
