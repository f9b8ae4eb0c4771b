# storefront/api.py
import asyncio
import logging
from typing import Callable, Optional

import httpx

from storefront.errors import ApiError, NetworkError

logger = logging.getLogger(__name__)

# Server-side hiccups worth another attempt on reads
RETRYABLE_STATUSES = (502, 503, 504)


def error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        # FastAPI request validation errors come back as a list
        if isinstance(message, list):
            return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in message)
        if message:
            return str(message)
    return response.reason_phrase or f"Request failed with status {response.status_code}"


class ApiClient:
    """Bearer-authenticated JSON client for the storefront backend.

    Reads may retry transient failures with exponential backoff. Mutations
    (anything sent with ``retry=False``) are attempted exactly once.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 15.0,
        read_retries: int = 3,
        retry_backoff: float = 0.25,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.token = token
        self.read_retries = max(read_retries, 0)
        self.retry_backoff = retry_backoff
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def clear_token(self):
        self.token = None

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    async def request(self, method: str, path: str, *, json=None, params=None, headers=None, retry: bool = False):
        attempts = 1 + (self.read_retries if retry else 0)
        for attempt in range(attempts):
            last_try = attempt == attempts - 1
            try:
                response = await self._client.request(
                    method, path, json=json, params=params, headers=self._headers(headers)
                )
            except httpx.TransportError as e:
                if last_try:
                    logger.warning("%s %s failed after %s attempt(s): %s", method, path, attempt + 1, e)
                    raise NetworkError(f"Could not reach the store: {e}") from e
                await self._backoff(method, path, attempt, e)
                continue

            if response.status_code in RETRYABLE_STATUSES and not last_try:
                await self._backoff(method, path, attempt, f"HTTP {response.status_code}")
                continue
            return self._handle(method, path, response)

    async def _backoff(self, method, path, attempt, reason):
        delay = self.retry_backoff * (2 ** attempt)
        logger.info("Retrying %s %s in %.2fs (attempt %s): %s", method, path, delay, attempt + 1, reason)
        await asyncio.sleep(delay)

    def _handle(self, method, path, response: httpx.Response):
        if response.status_code in (401, 403):
            # A rejected token is dropped so the UI can send the user to sign in
            logger.warning("%s %s rejected with %s, clearing session token", method, path, response.status_code)
            self.clear_token()
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            raise ApiError(response.status_code, error_message(response))

        if response.is_error:
            message = error_message(response)
            logger.info("%s %s -> %s %s", method, path, response.status_code, message)
            raise ApiError(response.status_code, message, payload=_json_or_none(response))

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params=None):
        return await self.request("GET", path, params=params, retry=True)

    async def post(self, path: str, json=None, *, headers=None, retry: bool = False):
        return await self.request("POST", path, json=json, headers=headers, retry=retry)

    async def put(self, path: str, json=None):
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str):
        return await self.request("DELETE", path)


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None
