"""
Payment Service Factory

Provides a single entry point for obtaining a payment gateway instance.
The factory pattern allows the rest of the application to remain agnostic
about which implementation is being used.

Usage:
    from plattr.services.payment import get_payment_service

    # Returns MockPaymentService or StripePaymentService based on ENV_MODE
    payment_service = get_payment_service()

    result = await payment_service.confirm_card_payment(secret, "pm_card_visa")

Environment Switching:
    - ENV_MODE=development → MockPaymentService (no API calls)
    - ENV_MODE=staging → StripePaymentService (test keys)
    - ENV_MODE=production → StripePaymentService (live keys)
"""

import logging
from functools import lru_cache

from plattr.core.config import get_settings
from plattr.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    intent_id_from_secret,
)
from plattr.services.payment.mock import MockPaymentService
from plattr.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance.

    The instance is cached (singleton pattern) to avoid creating
    multiple instances and to maintain consistent state.

    Returns:
        BasePaymentService: Configured payment service instance
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        return MockPaymentService(
            failure_rate=0.10,  # 10% simulated declines
            min_latency=0.2,
            max_latency=0.8,
        )

    logger.info(
        f"Payment Service: Using StripePaymentService "
        f"({settings.env_mode.value} mode)"
    )
    return StripePaymentService()


def reset_payment_service() -> None:
    """
    Clear the cached payment service instance.

    Useful for testing or when configuration changes at runtime.
    The next call to get_payment_service() will create a new instance.
    """
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "PaymentResult",
    "intent_id_from_secret",
    "MockPaymentService",
    "StripePaymentService",
]
