# backend/schemas/address.py
from typing import Optional, List
from pydantic import Field, field_validator
from schemas.common import CamelModel

REQUIRED_ADDRESS_FIELDS = ("first_name", "last_name", "street", "city", "zip", "country")


# Shipping address fields shared by the address book and order creation
class ShippingAddress(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    country: str = Field(min_length=1)

    @field_validator(*REQUIRED_ADDRESS_FIELDS, mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


# Request schema for saving a new address
class AddressCreate(ShippingAddress):
    name: Optional[str] = None
    is_default: bool = False


# Request schema for partial address updates
class AddressUpdate(CamelModel):
    name: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    street: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    zip: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = Field(None, min_length=1)
    is_default: Optional[bool] = None


class AddressOut(AddressCreate):
    id: int


class AddressList(CamelModel):
    addresses: List[AddressOut]
