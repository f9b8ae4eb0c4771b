# backend/models/product.py
from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint
from database import Base

# Catalog entry read by cart line resolution and priced by the checkout.
# Price is stored gross, in major currency units.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    code = Column(String, unique=True, nullable=False, index=True)

    description = Column(String)
    category = Column(String)

    price = Column(Numeric(10, 2), CheckConstraint("price >= 0"), nullable=False)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)

    # Optional product image URL
    image_url = Column(String, nullable=True)
