"""
Exceptions - Typed errors raised by the payment services.
Each error carries the HTTP status the API layer responds with.
"""
from typing import Any, Optional


class PaymentError(Exception):
    """Base class for all payment errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# ─── Local errors ───────────────────────────────────────────────────

class PaymentValidationError(PaymentError):
    status_code = 400
    default_message = "Invalid payment request"


class PaymentNotFoundError(PaymentError):
    status_code = 404
    default_message = "Payment not found"


class InvalidTransitionError(PaymentError):
    status_code = 400
    default_message = "Payment cannot be cancelled"


class DuplicatePaymentError(PaymentError):
    status_code = 409
    default_message = "Payment already exists"


# ─── Provider errors ────────────────────────────────────────────────

class ProviderError(PaymentError):
    """Failure while talking to the Swish API."""

    status_code = 502
    default_message = "Failed to create Swish payment"


class ProviderUnavailableError(ProviderError):
    status_code = 503
    default_message = "Swish API is not available"


class ProviderRejectedError(ProviderError):
    """The provider answered with a 4xx and (usually) a list of error objects."""

    default_message = "Swish rejected the payment request"

    def __init__(self, status_code: int, message: Optional[str] = None, details: Any = None):
        super().__init__(message, details)
        self.status_code = status_code


class ProviderServerError(ProviderError):
    default_message = "Swish API returned a server error"


class ProviderConnectionError(ProviderError):
    default_message = "Could not connect to Swish API"


class ProviderTimeoutError(ProviderError):
    status_code = 504
    default_message = "Swish API request timed out"
