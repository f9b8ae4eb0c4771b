# backend/routes/cart.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from utils.pricing import calculate_totals, to_money
from models.users import User
from models.product import Product
from models.cart import Cart, CartItem, CART_OPEN
from schemas.product import ProductOut
from schemas.cart import CartSetItem, CartOut, CartItemOut, CalculateRequest, SecureTotalsOut

router = APIRouter(prefix="/cart", tags=["Cart"])

def get_open_cart(db: Session, user_id: int) -> Cart:
    # Retrieve active cart or create a new one
    cart = db.query(Cart).filter(Cart.user_id == user_id, Cart.status == CART_OPEN).first()
    if not cart:
        cart = Cart(user_id=user_id, status=CART_OPEN)
        db.add(cart)
        db.commit()
        db.refresh(cart)
    return cart

def clear_cart(db: Session, cart: Cart):
    for item in list(cart.items):
        db.delete(item)
    cart.items.clear()

def _cart_to_out(db: Session, cart: Cart) -> CartOut:
    items_out = []
    for it in cart.items:
        price = to_money(it.product.price) if it.product else to_money(it.unit_price_snapshot)
        items_out.append(CartItemOut(
            product_id=it.product_id,
            quantity=it.qty,
            product=ProductOut.model_validate(it.product) if it.product else None,
            subtotal=to_money(price * it.qty),
        ))

    # Estimate with the default shipping option and no discount
    estimate = calculate_totals(db, cart.items, "standard")
    return CartOut(items=items_out, totals={
        "subtotal": estimate.subtotal,
        "shipping": estimate.shipping,
        "tax": estimate.tax,
        "grand_total": estimate.grand_total,
    })

@router.get("", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = get_open_cart(db, current_user.id)
    return _cart_to_out(db, cart)

# Set the absolute quantity of a product; zero or less removes the line
@router.post("", response_model=CartOut, status_code=status.HTTP_200_OK)
def set_cart_item(
    payload: CartSetItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = get_open_cart(db, current_user.id)
    item = db.query(CartItem).filter(
        CartItem.cart_id == cart.id, CartItem.product_id == payload.product_id
    ).first()

    if payload.quantity <= 0:
        if item:
            db.delete(item)
            db.commit()
        db.refresh(cart)
        return _cart_to_out(db, cart)

    product = db.query(Product).filter(Product.id == payload.product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    # Validate stock availability
    if payload.quantity > product.stock_quantity:
        raise HTTPException(status_code=400, detail=f"Only {product.stock_quantity} of {product.name} in stock")

    if item:
        item.qty = payload.quantity
    else:
        item = CartItem(
            cart_id=cart.id,
            product_id=product.id,
            qty=payload.quantity,
            unit_price_snapshot=product.price,
        )
        db.add(item)

    db.commit()
    db.refresh(cart)

    out = _cart_to_out(db, cart)
    write_log(
        db,
        user_id=current_user.id,
        action="CART_SET",
        resource="cart",
        ip=client_ip(request),
        meta={"product_id": product.id, "qty": payload.quantity, "cart_items": len(out.items)},
    )
    return out

@router.delete("/{product_id}", response_model=CartOut)
def delete_cart_item(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = get_open_cart(db, current_user.id)

    item = db.query(CartItem).filter(CartItem.cart_id == cart.id, CartItem.product_id == product_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Cart item not found")

    db.delete(item)
    db.commit()
    db.refresh(cart)

    out = _cart_to_out(db, cart)
    write_log(
        db,
        user_id=current_user.id,
        action="CART_DELETE",
        resource="cart",
        ip=client_ip(request),
        meta={"product_id": product_id, "cart_items": len(out.items)},
    )
    return out

@router.delete("", response_model=CartOut)
def clear_cart_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = get_open_cart(db, current_user.id)
    clear_cart(db, cart)
    db.commit()
    db.refresh(cart)
    write_log(db, user_id=current_user.id, action="CART_CLEAR", resource="cart", ip=client_ip(request))
    return _cart_to_out(db, cart)

# Authoritative totals for the requested shipping option and discount code
@router.post("/calculate", response_model=SecureTotalsOut)
def calculate_cart(
    payload: CalculateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    cart = get_open_cart(db, current_user.id)
    if not cart.items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    totals = calculate_totals(db, cart.items, payload.shipping_option, payload.discount_code)
    return totals.as_dict()
