# backend/config.py
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./storefront.db"
    LOG_LEVEL: str = "INFO"

    PAYSTACK_API_URL: str = "https://api.paystack.co"
    PAYSTACK_SECRET_KEY: str = ""
    CURRENCY: str = "GHS"
    FRONTEND_URL: str = "http://localhost:3000"

    # Pricing rules applied by /cart/calculate and /checkout/order
    TAX_RATE: Decimal = Decimal("0.08")
    STANDARD_SHIPPING_FEE: Decimal = Decimal("15.00")
    EXPRESS_SHIPPING_FEE: Decimal = Decimal("25.00")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("100.00")

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
