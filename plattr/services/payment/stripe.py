"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment; without it the
      service reports itself as not configured and checkout refuses
      to call it

Security Notes:
    - Never log full card numbers, client secrets or CVCs
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import stripe

from plattr.core.config import get_settings
from plattr.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    intent_id_from_secret,
)

logger = logging.getLogger(__name__)

# Intent states in which the card has been accepted
CONFIRMED_STATUSES = ("succeeded", "processing", "requires_capture")


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Confirms PaymentIntents server-side with a tokenized payment method.
    Intent creation is not done here.
    """

    def __init__(self, api_key: Optional[str] = None):
        settings = get_settings()

        self._api_key = api_key or settings.stripe_secret_key
        if self._api_key:
            stripe.api_key = self._api_key
            stripe.api_version = "2023-10-16"  # Pin API version for stability
            logger.info(
                f"StripePaymentService initialized "
                f"(api_version={stripe.api_version})"
            )
        else:
            logger.warning("StripePaymentService: STRIPE_SECRET_KEY not configured")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "stripe"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def confirm_card_payment(
        self,
        client_secret: str,
        payment_method: str,
    ) -> PaymentResult:
        start_time = datetime.now()

        intent_id = intent_id_from_secret(client_secret)
        if intent_id is None:
            return PaymentResult(
                success=False,
                error_message="Invalid client secret",
                error_code="invalid_client_secret",
            )

        logger.info(f"Stripe: Confirming {intent_id}")

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.confirm,
                intent_id,
                payment_method=payment_method,
            )
        except stripe.CardError as e:
            # Card was declined
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.warning(f"Stripe: Card declined - {e.code}: {e.user_message}")

            return PaymentResult(
                success=False,
                payment_intent_id=intent_id,
                error_message=e.user_message,
                error_code=e.code,
                response_time_ms=elapsed_ms,
            )

        except stripe.AuthenticationError as e:
            # API key issues
            logger.critical(f"Stripe: Authentication failed - {e}")

            return PaymentResult(
                success=False,
                payment_intent_id=intent_id,
                error_message="Payment service configuration error",
                error_code="authentication_error",
            )

        except stripe.APIConnectionError as e:
            # Network issues
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Connection error - {e}")

            return PaymentResult(
                success=False,
                payment_intent_id=intent_id,
                error_message="Payment service temporarily unavailable",
                error_code="connection_error",
                response_time_ms=elapsed_ms,
            )

        except stripe.StripeError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Error - {e}")

            return PaymentResult(
                success=False,
                payment_intent_id=intent_id,
                error_message=e.user_message or "Payment processing error",
                error_code="stripe_error",
                response_time_ms=elapsed_ms,
            )

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        if intent.status in CONFIRMED_STATUSES:
            logger.info(f"Stripe: {intent.id} confirmed - status={intent.status}")
            return PaymentResult(
                success=True,
                payment_intent_id=intent.id,
                status=intent.status,
                response_time_ms=elapsed_ms,
            )

        logger.warning(f"Stripe: {intent.id} not confirmed - status={intent.status}")
        return PaymentResult(
            success=False,
            payment_intent_id=intent.id,
            status=intent.status,
            error_message=(
                "Payment requires additional authentication"
                if intent.status == "requires_action"
                else f"Payment not completed (status: {intent.status})"
            ),
            error_code=intent.status,
            response_time_ms=elapsed_ms,
        )

    async def health_check(self) -> bool:
        """
        Verify Stripe API connectivity.

        Makes a lightweight API call to verify credentials and connectivity.
        """
        if not self.is_configured:
            return False

        try:
            await asyncio.to_thread(stripe.Account.retrieve)
            logger.debug("Stripe: Health check passed")
            return True

        except stripe.StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False
