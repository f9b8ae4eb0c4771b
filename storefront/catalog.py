# storefront/catalog.py
import logging
from typing import Dict, Iterable, Optional

from storefront.api import ApiClient
from storefront.errors import ApiError
from storefront.models import ProductSnapshot

logger = logging.getLogger(__name__)


# Read-through cache over GET /products/{id}
class ProductCatalog:
    def __init__(self, api: ApiClient):
        self._api = api
        self._products: Dict[int, ProductSnapshot] = {}

    def remember(self, snapshot: ProductSnapshot):
        self._products[snapshot.id] = snapshot

    # A product that no longer exists resolves to None instead of failing the cart
    async def get(self, product_id: int, refresh: bool = False) -> Optional[ProductSnapshot]:
        if not refresh and product_id in self._products:
            return self._products[product_id]
        try:
            data = await self._api.get(f"/products/{product_id}")
        except ApiError as e:
            if e.status_code == 404:
                logger.info("Product %s is no longer in the catalog", product_id)
                self._products.pop(product_id, None)
                return None
            raise
        snapshot = ProductSnapshot.model_validate(data)
        self._products[snapshot.id] = snapshot
        return snapshot

    async def resolve(self, product_ids: Iterable[int]) -> Dict[int, ProductSnapshot]:
        found = {}
        for product_id in product_ids:
            snapshot = await self.get(product_id)
            if snapshot is not None:
                found[product_id] = snapshot
        return found

    def invalidate(self, product_id: Optional[int] = None):
        if product_id is None:
            self._products.clear()
        else:
            self._products.pop(product_id, None)
