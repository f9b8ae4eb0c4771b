# storefront/cart.py
import logging
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional

from storefront.api import ApiClient
from storefront.catalog import ProductCatalog
from storefront.errors import ApiError, StorefrontError, ValidationError
from storefront.models import CartDetail, CartLine, ProductSnapshot, to_money

logger = logging.getLogger(__name__)


class CartAggregator:
    """In-memory cart lines keyed by product id.

    Lines are kept even when their product snapshot is unknown; such lines
    are left out of ``cart_details``, ``total_items`` and ``cart_total``.
    ``cart_total`` is a display estimate, never the amount charged.
    """

    def __init__(self):
        self._lines: Dict[int, int] = {}
        self._products: Dict[int, ProductSnapshot] = {}

    def add_to_cart(self, product_id: int, qty: int = 1):
        if qty < 1:
            raise ValueError("Quantity to add must be at least 1")
        self._lines[product_id] = self._lines.get(product_id, 0) + qty

    def update_quantity(self, product_id: int, qty: int):
        if qty <= 0:
            self.remove_from_cart(product_id)
            return
        self._lines[product_id] = qty

    def remove_from_cart(self, product_id: int):
        self._lines.pop(product_id, None)

    def clear_cart(self):
        self._lines.clear()

    def quantity_of(self, product_id: int) -> int:
        return self._lines.get(product_id, 0)

    def remember_product(self, snapshot: ProductSnapshot):
        self._products[snapshot.id] = snapshot

    def forget_product(self, product_id: int):
        self._products.pop(product_id, None)

    @property
    def lines(self) -> List[CartLine]:
        return [CartLine(product_id=pid, quantity=qty) for pid, qty in self._lines.items()]

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def cart_details(self) -> List[CartDetail]:
        details = []
        for product_id, qty in self._lines.items():
            product = self._products.get(product_id)
            if product is None:
                continue
            details.append(CartDetail(product_id=product_id, quantity=qty, product=product))
        return details

    @property
    def unresolved_product_ids(self) -> List[int]:
        return [pid for pid in self._lines if pid not in self._products]

    @property
    def total_items(self) -> int:
        return sum(detail.quantity for detail in self.cart_details)

    @property
    def cart_total(self) -> Decimal:
        return to_money(sum((detail.subtotal for detail in self.cart_details), Decimal("0")))


# Keeps the aggregator in sync with the durable cart behind /cart
class SessionCart:
    """``on_change`` is awaited after every change that reached the server
    (or, for ``clear(remote=False)`` and ``load``, the local view); ``version``
    counts those changes."""

    def __init__(
        self,
        api: ApiClient,
        catalog: ProductCatalog,
        aggregator: Optional[CartAggregator] = None,
        on_change: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._api = api
        self._catalog = catalog
        self._on_change = on_change
        self.cart = aggregator or CartAggregator()
        self.version = 0

    @property
    def is_empty(self) -> bool:
        return self.cart.is_empty

    async def load(self):
        data = await self._api.get("/cart")
        self.cart.clear_cart()
        self._apply_remote(data)
        # Lines the backend could not join get one catalog lookup each
        found = await self._catalog.resolve(self.cart.unresolved_product_ids)
        for snapshot in found.values():
            self.cart.remember_product(snapshot)
        await self._changed()
        return self.cart

    def _apply_remote(self, data):
        for item in (data or {}).get("items", []):
            product_id = item["productId"]
            self.cart.update_quantity(product_id, item["quantity"])
            if item.get("product"):
                snapshot = ProductSnapshot.model_validate(item["product"])
                self.cart.remember_product(snapshot)
                self._catalog.remember(snapshot)

    async def add(self, product_id: int, qty: int = 1):
        snapshot = await self._catalog.get(product_id)
        if snapshot is None:
            raise ValidationError("This product is no longer available", {"product_id": "not found"})
        self.cart.remember_product(snapshot)

        previous = self.cart.quantity_of(product_id)
        self.cart.add_to_cart(product_id, qty)
        await self._push(product_id, previous)
        await self._changed()

    async def update(self, product_id: int, qty: int):
        previous = self.cart.quantity_of(product_id)
        self.cart.update_quantity(product_id, qty)
        await self._push(product_id, previous)
        await self._changed()

    async def remove(self, product_id: int):
        previous = self.cart.quantity_of(product_id)
        self.cart.remove_from_cart(product_id)
        try:
            await self._api.delete(f"/cart/{product_id}")
        except ApiError as e:
            if e.status_code != 404:
                self._restore(product_id, previous)
                raise
            logger.info("Cart line %s was already gone on the server", product_id)
        except StorefrontError:
            self._restore(product_id, previous)
            raise
        await self._changed()

    async def clear(self, remote: bool = True):
        previous = dict((line.product_id, line.quantity) for line in self.cart.lines)
        self.cart.clear_cart()
        if remote:
            try:
                await self._api.delete("/cart")
            except StorefrontError:
                for product_id, qty in previous.items():
                    self.cart.update_quantity(product_id, qty)
                raise
        await self._changed()

    async def _changed(self):
        self.version += 1
        if self._on_change is not None:
            await self._on_change()

    # Send the absolute quantity; roll the local line back if the write fails
    async def _push(self, product_id: int, previous: int):
        try:
            await self._api.post("/cart", {"productId": product_id, "quantity": self.cart.quantity_of(product_id)})
        except StorefrontError as e:
            logger.info("Cart write for product %s failed, restoring quantity %s: %s", product_id, previous, e)
            self._restore(product_id, previous)
            raise

    def _restore(self, product_id: int, previous: int):
        self.cart.update_quantity(product_id, previous)
