# tests/conftest.py
import os

# Settings are read at import time, so the test database must be chosen first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_local"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from database import Base, engine, SessionLocal
from main import app
from models.users import User
from models.product import Product
from models.address import Address
from models.discount import Discount, DiscountType
from utils.paystack_client import get_paystack_client
from utils.tokenJWT import create_access_token

from fakes import FakePaystack

SHOPPER_EMAIL = "shopper@example.com"
OTHER_EMAIL = "other@example.com"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    now = datetime.now(timezone.utc)
    shopper = User(email=SHOPPER_EMAIL, first_name="Kofi", last_name="Boateng")
    other = User(email=OTHER_EMAIL, first_name="Efua", last_name="Owusu")
    notebook = Product(name="Notebook", code="NB-1", price=Decimal("25.00"), stock_quantity=10)
    backpack = Product(name="Backpack", code="BP-1", price=Decimal("50.00"), stock_quantity=3)
    lamp = Product(name="Desk Lamp", code="LMP-1", price=Decimal("120.00"), stock_quantity=5)
    db.add_all([shopper, other, notebook, backpack, lamp])
    db.add_all([
        Discount(code="SAVE10", type=DiscountType.FIXED, value=Decimal("10.00"), min_purchase=Decimal("0"), used_count=0, is_active=True),
        Discount(code="WELCOME15", type=DiscountType.PERCENTAGE, value=Decimal("15.00"), min_purchase=Decimal("50.00"), used_count=0, is_active=True),
        Discount(code="BIGSPEND", type=DiscountType.FIXED, value=Decimal("500.00"), min_purchase=Decimal("0"), used_count=0, is_active=True),
        Discount(code="OLDNEWS", type=DiscountType.FIXED, value=Decimal("5.00"), min_purchase=Decimal("0"), used_count=0, is_active=True,
                 expires_at=now - timedelta(days=1)),
        Discount(code="SOON", type=DiscountType.FIXED, value=Decimal("5.00"), min_purchase=Decimal("0"), used_count=0, is_active=True,
                 starts_at=now + timedelta(days=1)),
        Discount(code="ONCE", type=DiscountType.FIXED, value=Decimal("5.00"), min_purchase=Decimal("0"), used_count=1, usage_limit=1, is_active=True),
        Discount(code="RETIRED", type=DiscountType.FIXED, value=Decimal("5.00"), min_purchase=Decimal("0"), used_count=0, is_active=False),
    ])
    db.commit()
    return SimpleNamespace(
        shopper_id=shopper.id,
        other_id=other.id,
        notebook=notebook.id,
        backpack=backpack.id,
        lamp=lamp.id,
    )


@pytest.fixture
def home_address(db, seed):
    address = Address(
        user_id=seed.shopper_id, name="Home", first_name="Kofi", last_name="Boateng",
        street="4 Oxford St", city="Accra", zip="00233", country="Ghana", is_default=True,
    )
    db.add(address)
    db.commit()
    return address.id


@pytest.fixture
def token(seed):
    return create_access_token({"sub": SHOPPER_EMAIL})


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(seed):
    return {"Authorization": f"Bearer {create_access_token({'sub': OTHER_EMAIL})}"}


@pytest.fixture
def paystack():
    fake = FakePaystack()
    app.dependency_overrides[get_paystack_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_paystack_client, None)


@pytest.fixture
def client(paystack):
    return TestClient(app)


@pytest.fixture
def shipping_address():
    return {
        "firstName": "Kofi",
        "lastName": "Boateng",
        "street": "4 Oxford St",
        "city": "Accra",
        "zip": "00233",
        "country": "Ghana",
    }
