"""
Domain Exceptions

Every failure a caller can act on is one of these. Store backends convert
transport and database errors into StoreError; the HTTP layer maps each
class to a status code.
"""

from typing import Optional


class PlattrError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(PlattrError):
    """Malformed phone, OTP or username. Correct the input and retry."""

    code = "validation_error"
    status_code = 400


class AuthRequired(PlattrError):
    """No actor in the session."""

    code = "auth_required"
    status_code = 401


class NotFound(PlattrError):
    code = "not_found"
    status_code = 404


class Expired(PlattrError):
    code = "expired"
    status_code = 410


class EmptyCart(PlattrError):
    code = "empty_cart"
    status_code = 400


class PaymentError(PlattrError):
    """The gateway declined or could not confirm the payment."""

    code = "payment_failed"
    status_code = 402


class StoreError(PlattrError):
    """Any failure talking to the record store."""

    code = "store_error"
    status_code = 502


class ConfigurationError(PlattrError):
    code = "configuration_error"
    status_code = 503
