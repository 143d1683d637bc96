"""Checkout: payment confirmation through the gateway."""

from unittest.mock import PropertyMock, patch

import pytest

from plattr.core.exceptions import AuthRequired, ConfigurationError, EmptyCart
from plattr.services.checkout import CheckoutService
from plattr.services.payment import MockPaymentService

SECRET = "pi_3Nabc_secret_xyz"


class TestPaymentIntent:
    async def test_requires_actor(self, checkout):
        with pytest.raises(AuthRequired):
            await checkout.create_payment_intent()

    async def test_requires_cart(self, checkout, signed_in):
        with pytest.raises(EmptyCart):
            await checkout.create_payment_intent()

    async def test_reports_amount_then_refuses(self, checkout, filled_cart):
        with pytest.raises(ConfigurationError) as exc_info:
            await checkout.create_payment_intent()

        assert exc_info.value.details == {"amount": 303, "currency": "inr"}

    async def test_checkout_session_always_refused(self, checkout):
        with pytest.raises(ConfigurationError):
            await checkout.create_checkout_session("order-1", 303)


class TestProcessPayment:
    async def test_confirms_through_gateway(self, checkout):
        result = await checkout.process_payment(SECRET, "pm_card_visa")

        assert result.success is True
        assert result.payment_intent_id == "pi_3Nabc"
        assert result.status == "succeeded"

    async def test_decline_is_returned_not_raised(self, session, cart, settings):
        gateway = MockPaymentService(failure_rate=1.0, min_latency=0.0, max_latency=0.0)
        checkout = CheckoutService(session, cart, gateway=gateway, settings=settings)

        result = await checkout.process_payment(SECRET, "pm_card_visa")

        assert result.success is False
        assert result.error_message

    async def test_missing_client_secret(self, checkout):
        with pytest.raises(ConfigurationError):
            await checkout.process_payment("", "pm_card_visa")

    async def test_unconfigured_gateway(self, checkout):
        with patch.object(
            MockPaymentService, "is_configured", new_callable=PropertyMock, return_value=False
        ):
            with pytest.raises(ConfigurationError, match="not configured"):
                await checkout.process_payment(SECRET, "pm_card_visa")
