# storefront/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

env_path = Path(__file__).parent.parent / ".env"

# Client settings, read from STOREFRONT_* environment variables
class StorefrontSettings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000"
    PAYSTACK_PUBLIC_KEY: str = ""
    CURRENCY: str = "GHS"

    # Bounded retry for reads (catalog, totals, addresses); mutations never retry
    READ_RETRIES: int = 3
    RETRY_BACKOFF_SECONDS: float = 0.25
    REQUEST_TIMEOUT: float = 15.0

    class Config:
        env_prefix: ClassVar[str] = "STOREFRONT_"
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"
