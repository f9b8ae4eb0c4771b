# backend/models/order.py
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, default="pending_payment", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Authoritative price breakdown captured at creation time
    shipping_option = Column(String, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    discount_code = Column(String, nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    total_cents = Column(Integer, nullable=False)
    currency = Column(String, nullable=False)

    # Payment integration details
    payment_reference = Column(String, unique=True, nullable=False, index=True)
    payment_status = Column(String, default="pending")
    gateway_transaction_id = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Client-supplied key that makes order creation safe to repeat
    idempotency_key = Column(String, nullable=True)
    # Hash of the (product_id, qty) cart lines the order was priced from
    cart_fingerprint = Column(String(64), nullable=True)

    # Shipping address details
    shipping_first_name = Column(String, nullable=False)
    shipping_last_name = Column(String, nullable=False)
    shipping_street = Column(String, nullable=False)
    shipping_city = Column(String, nullable=False)
    shipping_zip = Column(String, nullable=False)
    shipping_country = Column(String, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_order_user_idempotency_key"),
    )

class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    
    order = relationship("Order", back_populates="items")
    product = relationship("Product")
