"""
Mock Payment Service Implementation

Simulates Stripe-like card confirmation without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Test the complete checkout flow locally
    - Develop without internet connectivity

Behavior:
    - Rejects client secrets that are not shaped like pi_xxx_secret_yyy
    - Rejects payment methods that are not shaped like pm_xxx
    - Randomly declines a configurable share of payments
"""

import asyncio
import random
import logging

from plattr.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    intent_id_from_secret,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment gateway.

    Attributes:
        failure_rate: Probability of simulated decline (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
    """

    # Simulated failure reasons (mimics real Stripe decline codes)
    DECLINE_REASONS = [
        ("card_declined", "Your card was declined."),
        ("insufficient_funds", "Your card has insufficient funds."),
        ("expired_card", "Your card has expired."),
        ("incorrect_cvc", "Your card's security code is incorrect."),
        ("processing_error", "An error occurred while processing your card."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.10,
        min_latency: float = 0.2,
        max_latency: float = 0.8,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def _simulate_latency(self) -> float:
        """
        Simulate network latency.

        Returns:
            float: Actual latency in milliseconds
        """
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000  # Convert to milliseconds

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a failure."""
        return random.random() < self.failure_rate

    async def confirm_card_payment(
        self,
        client_secret: str,
        payment_method: str,
    ) -> PaymentResult:
        intent_id = intent_id_from_secret(client_secret)
        if intent_id is None:
            return PaymentResult(
                success=False,
                error_message="Invalid client secret",
                error_code="invalid_client_secret",
            )

        if not payment_method.startswith("pm_"):
            return PaymentResult(
                success=False,
                payment_intent_id=intent_id,
                error_message="Invalid payment method",
                error_code="invalid_payment_method",
            )

        latency_ms = await self._simulate_latency()

        if self._should_fail():
            error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: Payment declined - {error_code}")
            return PaymentResult(
                success=False,
                payment_intent_id=intent_id,
                status="requires_payment_method",
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        logger.info(f"Mock: Payment confirmed - {intent_id}")

        return PaymentResult(
            success=True,
            payment_intent_id=intent_id,
            status="succeeded",
            response_time_ms=latency_ms,
        )

    async def health_check(self) -> bool:
        """
        Mock health check always returns True.

        In development, we assume the mock service is always available.
        """
        logger.debug("Mock: Health check passed")
        return True
