# backend/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base

CART_OPEN = "open"

# Durable server-side cart; a user has at most one open cart
class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    status = Column(String, default=CART_OPEN, index=True)
    created_at = Column(DateTime, server_default=func.now())

    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan", order_by="CartItem.id")


# A cart line: one product with an absolute quantity
class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cartitem_cart_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    qty = Column(Integer, nullable=False, default=1)

    # Price seen when the line was added; display only, orders are priced from the catalog
    unit_price_snapshot = Column(Numeric(10, 2), nullable=False)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")
