# backend/schemas/product.py
from typing import Optional, List
from schemas.common import CamelModel, Money


# Product representation used by catalog reads and cart line resolution
class ProductOut(CamelModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: Money
    stock_quantity: int
    image_url: Optional[str] = None


# Paginated response for product listings
class ProductListPage(CamelModel):
    items: List[ProductOut]
    total: int
    page: int
    page_size: int
