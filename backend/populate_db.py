import os
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from database import SessionLocal, init_db
from models.users import User
from models.product import Product
from models.address import Address
from models.discount import Discount, DiscountType
from utils.tokenJWT import create_access_token

# Configuration
DEMO_EMAIL = os.getenv("DEMO_EMAIL", "demo@storefront.local")
DEMO_PRODUCTS = [
    # name, code, category, price, stock
    ("Canvas Tote Bag", "TOTE-01", "bags", "25.00", 40),
    ("Ceramic Mug", "MUG-01", "kitchen", "12.50", 120),
    ("Linen Shirt", "SHIRT-01", "clothing", "50.00", 25),
    ("Leather Wallet", "WALLET-01", "accessories", "75.00", 15),
    ("Wool Throw Blanket", "THROW-01", "home", "120.00", 8),
]
DEMO_DISCOUNTS = [
    # code, type, value, min purchase, usage limit, expires in days
    ("SAVE10", DiscountType.FIXED, "10.00", "0.00", None, None),
    ("WELCOME15", DiscountType.PERCENTAGE, "15.00", "50.00", 500, 90),
    ("BIGSPEND", DiscountType.FIXED, "30.00", "200.00", None, 30),
]
# End Configuration

def seed_products(session):
    """Insert demo products, updating price and stock of existing codes."""
    for name, code, category, price, stock in DEMO_PRODUCTS:
        product = session.query(Product).filter(Product.code == code).first()
        if product is None:
            product = Product(code=code)
            session.add(product)
        product.name = name
        product.category = category
        product.description = f"Category: {category.title()}."
        product.price = Decimal(price)
        product.stock_quantity = stock
        product.image_url = f"https://picsum.photos/seed/{code.lower()}/300/300"
    print(f"Seeded {len(DEMO_PRODUCTS)} products.")

def seed_discounts(session):
    now = datetime.now(timezone.utc)
    for code, kind, value, min_purchase, usage_limit, expires_in in DEMO_DISCOUNTS:
        if session.query(Discount).filter(Discount.code == code).first():
            continue
        session.add(Discount(
            code=code,
            type=kind,
            value=Decimal(value),
            min_purchase=Decimal(min_purchase),
            usage_limit=usage_limit,
            used_count=0,
            starts_at=now,
            expires_at=now + timedelta(days=expires_in) if expires_in else None,
            is_active=True,
        ))
    print(f"Seeded {len(DEMO_DISCOUNTS)} discount codes.")

def seed_demo_user(session) -> User:
    user = session.query(User).filter(User.email == DEMO_EMAIL).first()
    if user is None:
        user = User(email=DEMO_EMAIL, first_name="Ama", last_name="Mensah")
        session.add(user)
        session.flush()
        session.add(Address(
            user_id=user.id, name="Home", first_name="Ama", last_name="Mensah",
            street="12 Independence Ave", city="Accra", zip="00233", country="Ghana", is_default=True,
        ))
    return user

def populate_database():
    """Main execution function to populate database."""
    init_db()
    session = SessionLocal()
    try:
        seed_products(session)
        seed_discounts(session)
        user = seed_demo_user(session)
        session.commit()
        # Tokens are normally issued by the auth service; print one for local testing
        print(f"Demo user: {user.email}")
        print(f"Access token: {create_access_token({'sub': user.email}, expires_delta=timedelta(days=7))}")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

if __name__ == "__main__":
    populate_database()
