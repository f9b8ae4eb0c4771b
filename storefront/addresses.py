# storefront/addresses.py
import logging
from typing import List, Optional

from storefront.api import ApiClient
from storefront.errors import StorefrontError, ValidationError
from storefront.models import Address

logger = logging.getLogger(__name__)


def validate_address(address: Address):
    missing = address.missing_fields()
    if missing:
        raise ValidationError(
            "Please fill in all required address fields",
            {name: "This field is required" for name in missing},
        )


# Saved addresses of the signed-in customer (/account/addresses)
class AddressBook:
    def __init__(self, api: ApiClient):
        self._api = api
        self._addresses: Optional[List[Address]] = None

    @property
    def loaded(self) -> bool:
        return self._addresses is not None

    @property
    def addresses(self) -> List[Address]:
        return list(self._addresses or [])

    @property
    def default(self) -> Optional[Address]:
        return next((a for a in self.addresses if a.is_default), None)

    def get(self, address_id: int) -> Optional[Address]:
        return next((a for a in self.addresses if a.id == address_id), None)

    async def refresh(self) -> List[Address]:
        data = await self._api.get("/account/addresses")
        self._addresses = [Address.model_validate(a) for a in (data or {}).get("addresses", [])]
        return self.addresses

    async def ensure_loaded(self) -> List[Address]:
        if self._addresses is None:
            await self.refresh()
        return self.addresses

    async def create(self, address: Address) -> Address:
        validate_address(address)
        data = await self._api.post("/account/addresses", address.to_wire(exclude={"id"}))
        saved = Address.model_validate(data)
        # The server may have moved the default flag
        if saved.is_default or self._addresses is None:
            await self.refresh()
        else:
            self._addresses.append(saved)
        return saved

    async def update(self, address_id: int, **changes) -> Address:
        payload = Address(**{**self._require(address_id).model_dump(), **changes})
        validate_address(payload)
        data = await self._api.put(f"/account/addresses/{address_id}", payload.to_wire(exclude={"id"}))
        saved = Address.model_validate(data)
        self._addresses = [saved if a.id == address_id else a for a in self._addresses]
        return saved

    async def delete(self, address_id: int):
        await self._api.delete(f"/account/addresses/{address_id}")
        if self._addresses is not None:
            self._addresses = [a for a in self._addresses if a.id != address_id]

    async def set_default(self, address_id: int):
        """Flip the default flag locally first, roll back if the server refuses."""
        self._require(address_id)
        snapshot = self.addresses
        self._addresses = [a.model_copy(update={"is_default": a.id == address_id}) for a in snapshot]
        try:
            await self._api.put(f"/account/addresses/{address_id}", {"isDefault": True})
        except StorefrontError as e:
            logger.info("Setting default address %s failed, rolling back: %s", address_id, e)
            self._addresses = snapshot
            raise

    def invalidate(self):
        self._addresses = None

    def _require(self, address_id: int) -> Address:
        address = self.get(address_id)
        if address is None:
            raise ValidationError("Address not found", {"address_id": "unknown"})
        return address
