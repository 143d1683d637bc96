"""Payment gateways: mock and Stripe confirmation."""

from unittest.mock import MagicMock, patch

import pytest
import stripe

from plattr.services.payment import (
    MockPaymentService,
    StripePaymentService,
    intent_id_from_secret,
)

SECRET = "pi_3Nabc_secret_xyz"


@pytest.mark.parametrize(
    "secret, expected",
    [
        (SECRET, "pi_3Nabc"),
        ("pi_3Nabc_secret_", None),
        ("seti_123_secret_abc", None),
        ("garbage", None),
        ("", None),
    ],
)
def test_intent_id_from_secret(secret, expected):
    assert intent_id_from_secret(secret) == expected


class TestMockGateway:
    @pytest.fixture()
    def gateway(self):
        return MockPaymentService(failure_rate=0.0, min_latency=0.0, max_latency=0.0)

    async def test_rejects_malformed_secret(self, gateway):
        result = await gateway.confirm_card_payment("nope", "pm_card_visa")

        assert result.success is False
        assert result.error_code == "invalid_client_secret"

    async def test_rejects_malformed_payment_method(self, gateway):
        result = await gateway.confirm_card_payment(SECRET, "card_4242")

        assert result.success is False
        assert result.error_code == "invalid_payment_method"

    async def test_always_declines_at_full_failure_rate(self):
        gateway = MockPaymentService(failure_rate=1.0, min_latency=0.0, max_latency=0.0)

        result = await gateway.confirm_card_payment(SECRET, "pm_card_visa")

        assert result.success is False
        assert result.error_code in {code for code, _ in MockPaymentService.DECLINE_REASONS}


class TestStripeGateway:
    @pytest.fixture()
    def gateway(self):
        return StripePaymentService(api_key="sk_test_dummy")

    def test_unconfigured_without_key(self, settings):
        with patch("plattr.services.payment.stripe.get_settings", return_value=settings):
            gateway = StripePaymentService()

        assert gateway.is_configured is False

    async def test_unconfigured_health_check(self, settings):
        with patch("plattr.services.payment.stripe.get_settings", return_value=settings):
            gateway = StripePaymentService()

        assert await gateway.health_check() is False

    async def test_confirms_intent(self, gateway):
        intent = MagicMock(id="pi_3Nabc", status="succeeded")

        with patch("stripe.PaymentIntent.confirm", return_value=intent) as confirm:
            result = await gateway.confirm_card_payment(SECRET, "pm_card_visa")

        confirm.assert_called_once_with("pi_3Nabc", payment_method="pm_card_visa")
        assert result.success is True
        assert result.status == "succeeded"

    async def test_requires_action_is_not_success(self, gateway):
        intent = MagicMock(id="pi_3Nabc", status="requires_action")

        with patch("stripe.PaymentIntent.confirm", return_value=intent):
            result = await gateway.confirm_card_payment(SECRET, "pm_card_visa")

        assert result.success is False
        assert result.error_message == "Payment requires additional authentication"

    async def test_card_error(self, gateway):
        error = stripe.CardError("Your card was declined.", None, "card_declined")

        with patch("stripe.PaymentIntent.confirm", side_effect=error):
            result = await gateway.confirm_card_payment(SECRET, "pm_card_visa")

        assert result.success is False
        assert result.error_code == "card_declined"

    async def test_connection_error(self, gateway):
        with patch("stripe.PaymentIntent.confirm", side_effect=stripe.APIConnectionError("down")):
            result = await gateway.confirm_card_payment(SECRET, "pm_card_visa")

        assert result.success is False
        assert result.error_code == "connection_error"

    async def test_malformed_secret_skips_api(self, gateway):
        with patch("stripe.PaymentIntent.confirm") as confirm:
            result = await gateway.confirm_card_payment("nope", "pm_card_visa")

        confirm.assert_not_called()
        assert result.error_code == "invalid_client_secret"
