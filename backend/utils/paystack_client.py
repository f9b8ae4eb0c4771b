# backend/utils/paystack_client.py
import httpx
import logging
from config import settings

logger = logging.getLogger(__name__)

class PaystackClient:
    def __init__(self, api_url: str = None, secret_key: str = None, timeout: float = 15.0):
        # The secret key never leaves the backend; browsers only see the public key
        self.api_url = (api_url or settings.PAYSTACK_API_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self.timeout = timeout

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def verify_transaction(self, reference: str) -> dict:
        # Ask Paystack for the final state of a transaction by its reference
        url = f"{self.api_url}/transaction/verify/{reference}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(url, headers=self._headers())
                response.raise_for_status()
                return response.json()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                # Log detailed error information before re-raising
                resp_text = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
                logger.error("Paystack verify error for %s: %s", reference, resp_text)
                raise

paystack_client = PaystackClient()

# FastAPI dependency so tests can swap in a fake gateway
def get_paystack_client() -> PaystackClient:
    return paystack_client
