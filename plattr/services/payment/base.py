"""
Payment Service Abstract Base Class

Defines the interface contract for the payment gateway. The storefront
only confirms card payments against a client secret issued elsewhere;
creating that secret needs the gateway's secret key and belongs to a
trusted backend.

Design Pattern: Strategy Pattern
    - MockPaymentService in development
    - StripePaymentService in staging / production
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class PaymentResult:
    """
    Standardized result from payment confirmation.

    Attributes:
        success: Whether the payment was confirmed
        payment_intent_id: Identifier of the confirmed intent (pi_xxx)
        status: Gateway status string (e.g. "succeeded")
        error_message: Gateway-supplied error description if it failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the gateway call
    """
    success: bool
    payment_intent_id: Optional[str] = None
    status: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0


def intent_id_from_secret(client_secret: str) -> Optional[str]:
    """
    Extract the payment intent id from a client secret.

    Client secrets have the form `pi_<id>_secret_<token>`.
    """
    intent_id, sep, token = client_secret.partition("_secret_")
    if not sep or not token or not intent_id.startswith("pi_"):
        return None
    return intent_id


class BasePaymentService(ABC):
    """
    Abstract base class for payment gateways.

    Example:
        >>> service = get_payment_service()
        >>> result = await service.confirm_card_payment(
        ...     client_secret="pi_123_secret_abc",
        ...     payment_method="pm_card_visa",
        ... )
        >>> if not result.success:
        ...     print(result.error_message)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the payment provider.

        Returns:
            str: Provider name (e.g., "mock", "stripe")
        """
        pass

    @property
    def is_configured(self) -> bool:
        """Whether the gateway has the credentials it needs."""
        return True

    @abstractmethod
    async def confirm_card_payment(
        self,
        client_secret: str,
        payment_method: str,
    ) -> PaymentResult:
        """
        Confirm a card payment.

        Args:
            client_secret: Secret of a previously-created payment intent
            payment_method: Tokenized payment method reference (pm_xxx)

        Returns:
            PaymentResult: success, or the gateway's error message
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the payment service.

        Returns:
            bool: True if service is reachable and operational
        """
        pass
