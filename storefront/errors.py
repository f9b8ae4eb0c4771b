# storefront/errors.py
from typing import Dict, Optional


class StorefrontError(Exception):
    """Base class for everything the checkout core raises."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Client-side precondition or field check failed; nothing was sent
class ValidationError(StorefrontError):
    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


# The request never got an HTTP response (connection error, timeout)
class NetworkError(StorefrontError):
    pass


# The backend answered with an error status; message is shown as-is
class ApiError(StorefrontError):
    def __init__(self, status_code: int, message: str, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code in (401, 403)

    def __str__(self):
        return f"{self.status_code}: {self.message}"


class DiscountRejected(StorefrontError):
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


# User closed the payment widget; the order stays pending
class PaymentCancelled(StorefrontError):
    def __init__(self, order_id: Optional[int] = None, message: str = "Payment was cancelled"):
        super().__init__(message)
        self.order_id = order_id


class PaymentVerificationFailure(StorefrontError):
    def __init__(self, message: str, reference: Optional[str] = None, order_id: Optional[int] = None):
        super().__init__(message)
        self.reference = reference
        self.order_id = order_id


# Checkout flow used out of order (no order yet, double submit, ...)
class CheckoutError(StorefrontError):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self, message: str = "Your cart is empty"):
        super().__init__(message)
