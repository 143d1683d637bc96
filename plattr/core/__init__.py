"""
Core module initialization.
Exports configuration, logging utilities and the domain error taxonomy.
"""

from plattr.core.config import get_settings, Settings, EnvironmentMode
from plattr.core.exceptions import (
    PlattrError,
    ValidationError,
    AuthRequired,
    NotFound,
    Expired,
    EmptyCart,
    PaymentError,
    StoreError,
    ConfigurationError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "PlattrError",
    "ValidationError",
    "AuthRequired",
    "NotFound",
    "Expired",
    "EmptyCart",
    "PaymentError",
    "StoreError",
    "ConfigurationError",
]
