"""
Checkout Service

Payment steps around an order. Confirming a card payment goes through
the gateway; creating payment intents or checkout sessions needs the
gateway's secret key and is left to a trusted backend, so those calls
fail with ConfigurationError.
"""

import logging
from typing import Optional

from plattr.core.config import Settings, get_settings
from plattr.core.exceptions import AuthRequired, ConfigurationError, EmptyCart
from plattr.services.cart import CartService
from plattr.services.orders import calculate_order_totals
from plattr.services.payment import BasePaymentService, PaymentResult, get_payment_service
from plattr.services.session import SessionStore

logger = logging.getLogger(__name__)


class CheckoutService:

    def __init__(
        self,
        session: SessionStore,
        cart: CartService,
        gateway: Optional[BasePaymentService] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.cart = cart
        self.gateway = gateway or get_payment_service()
        self.settings = settings or get_settings()

    async def create_payment_intent(self) -> None:
        """
        Validate that a payment could be taken for the current cart.

        Always ends in ConfigurationError once the cart checks pass.
        """
        actor = await self.session.current_actor()
        if actor is None:
            raise AuthRequired("You must be logged in to create a payment")

        lines = await self.cart.get_cart(strict=True)
        if not lines:
            raise EmptyCart("Cart is empty")

        totals = calculate_order_totals(lines, self.settings)
        logger.warning(
            f"Payment intent requested by {actor.id} for {totals.total}; "
            f"intent creation is not available here"
        )
        raise ConfigurationError(
            "Payment intent creation requires a trusted backend",
            details={"amount": totals.total, "currency": self.settings.stripe_currency},
        )

    async def create_checkout_session(self, order_id: str, amount: float) -> str:
        logger.warning(f"Checkout session requested for order {order_id} ({amount})")
        raise ConfigurationError("Checkout session creation requires a trusted backend")

    async def process_payment(
        self,
        client_secret: str,
        payment_method: str,
    ) -> PaymentResult:
        """
        Confirm a card payment against a previously-issued client secret.

        Raises:
            ConfigurationError: gateway not configured, or no client secret
        """
        if not self.gateway.is_configured:
            raise ConfigurationError("Stripe is not configured")
        if not client_secret:
            raise ConfigurationError(
                "A client secret issued by the payment backend is required"
            )

        result = await self.gateway.confirm_card_payment(client_secret, payment_method)

        if result.success:
            logger.info(f"Payment {result.payment_intent_id} confirmed")
        else:
            logger.warning(
                f"Payment {result.payment_intent_id} failed: {result.error_message}"
            )
        return result
