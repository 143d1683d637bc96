"""OTP authenticator: issuing, verifying and consuming one-time codes."""

import asyncio
import logging
from datetime import timedelta

import pytest

from plattr.core.exceptions import Expired, NotFound, StoreError, ValidationError
from plattr.services.auth import (
    OtpAuthenticator,
    as_datetime,
    generate_otp,
    validate_phone,
)
from plattr.services.session import SessionStore
from plattr.services.store import MemoryRecordStore
from tests.conftest import OTHER_PHONE, PHONE


class TestHelpers:
    def test_generated_codes_are_six_digits(self):
        for _ in range(200):
            code = generate_otp()
            assert len(code) == 6
            assert 100000 <= int(code) <= 999999

    @pytest.mark.parametrize("phone", ["", "12345", "98765432101", "98765abcde", None, 9876543210])
    def test_validate_phone_rejects(self, phone):
        with pytest.raises(ValidationError):
            validate_phone(phone)

    def test_as_datetime_treats_naive_as_utc(self):
        parsed = as_datetime("2026-10-19T12:10:00")
        assert parsed.utcoffset() == timedelta(0)

    def test_as_datetime_parses_zulu_suffix(self):
        assert as_datetime("2026-10-19T12:10:00Z") == as_datetime("2026-10-19T12:10:00+00:00")


class TestRequestCode:
    async def test_persists_challenge_with_ten_minute_expiry(self, auth, store, clock):
        result = await auth.request_code(PHONE)

        [row] = store.rows("otp_verifications")
        assert row["phone"] == PHONE
        assert row["otp"] == result.otp
        assert row["is_used"] is False
        assert row["expires_at"] == clock.now + timedelta(minutes=10)
        assert result.expires_at == clock.now + timedelta(minutes=10)

    async def test_hands_code_to_notifier(self, auth, notifier):
        result = await auth.request_code(PHONE)

        [(to_phone, message)] = notifier.sent_messages
        assert to_phone == PHONE
        assert result.otp in message

    async def test_code_withheld_outside_trusted_context(self, store, session, notifier, settings, clock):
        settings.otp_expose_code = False
        auth = OtpAuthenticator(store, session, notifier=notifier, settings=settings, clock=clock)

        result = await auth.request_code(PHONE)

        assert result.otp is None
        assert len(store.rows("otp_verifications")) == 1

    async def test_malformed_phone_writes_nothing(self, auth, store, notifier):
        with pytest.raises(ValidationError):
            await auth.request_code("12345")

        assert store.rows("otp_verifications") == []
        assert notifier.sent_messages == []

    async def test_store_failure(self, auth, store):
        store.fail_tables.add("otp_verifications")

        with pytest.raises(StoreError, match="Failed to send OTP"):
            await auth.request_code(PHONE)

    async def test_earlier_codes_stay_valid(self, auth, store):
        first = await auth.request_code(PHONE)
        await auth.request_code(PHONE)

        result = await auth.verify_code(PHONE, first.otp, "asha")

        assert result.success


class TestVerifyCode:
    async def test_new_user_is_created_and_signed_in(self, auth, store, session):
        issued = await auth.request_code(PHONE)

        result = await auth.verify_code(PHONE, issued.otp, "  Asha  ")

        assert result.user.username == "Asha"
        assert result.user.is_verified is True
        [user] = store.rows("users")
        assert user["phone"] == PHONE
        actor = await session.current_actor()
        assert actor.id == result.user.id
        assert actor.phone == PHONE

    async def test_challenge_is_consumed(self, auth, store):
        issued = await auth.request_code(PHONE)

        await auth.verify_code(PHONE, issued.otp, "asha")

        [challenge] = store.rows("otp_verifications")
        assert challenge["is_used"] is True

    async def test_existing_user_is_flagged_verified(self, auth, store):
        await store.insert(
            "users", {"id": "user-7", "username": "ravi", "phone": PHONE, "is_verified": False}
        )
        issued = await auth.request_code(PHONE)

        result = await auth.verify_code(PHONE, issued.otp)

        assert result.user.id == "user-7"
        assert result.user.is_verified is True
        [user] = store.rows("users")
        assert user["is_verified"] is True

    async def test_existing_user_ignores_username(self, auth, store, user):
        issued = await auth.request_code(PHONE)

        result = await auth.verify_code(PHONE, issued.otp, "someone-else")

        assert result.user.username == "asha"
        assert len(store.rows("users")) == 1

    @pytest.mark.parametrize("username", [None, "", " ", "a", " b "])
    async def test_new_user_needs_username_and_keeps_challenge(self, auth, store, session, username):
        issued = await auth.request_code(PHONE)

        with pytest.raises(ValidationError):
            await auth.verify_code(PHONE, issued.otp, username)

        [challenge] = store.rows("otp_verifications")
        assert challenge["is_used"] is False
        assert store.rows("users") == []
        assert await session.current_actor() is None

    async def test_retry_with_username_after_missing_one(self, auth):
        issued = await auth.request_code(PHONE)
        with pytest.raises(ValidationError):
            await auth.verify_code(PHONE, issued.otp)

        result = await auth.verify_code(PHONE, issued.otp, "asha")

        assert result.success

    @pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", ""])
    async def test_malformed_code(self, auth, code):
        with pytest.raises(ValidationError):
            await auth.verify_code(PHONE, code, "asha")

    async def test_wrong_code(self, auth):
        issued = await auth.request_code(PHONE)
        wrong = "100000" if issued.otp != "100000" else "100001"

        with pytest.raises(NotFound):
            await auth.verify_code(PHONE, wrong, "asha")

    async def test_code_bound_to_phone(self, auth):
        issued = await auth.request_code(PHONE)

        with pytest.raises(NotFound):
            await auth.verify_code(OTHER_PHONE, issued.otp, "asha")

    async def test_code_cannot_be_replayed(self, auth):
        issued = await auth.request_code(PHONE)
        await auth.verify_code(PHONE, issued.otp, "asha")

        with pytest.raises(NotFound):
            await auth.verify_code(PHONE, issued.otp, "asha")

    async def test_expired_code(self, auth, clock, store, session):
        issued = await auth.request_code(PHONE)
        clock.advance(minutes=10, seconds=1)

        with pytest.raises(Expired):
            await auth.verify_code(PHONE, issued.otp, "asha")

        assert store.rows("users") == []
        assert await session.current_actor() is None

    async def test_code_valid_at_exact_expiry(self, auth, clock):
        issued = await auth.request_code(PHONE)
        clock.advance(minutes=10)

        result = await auth.verify_code(PHONE, issued.otp, "asha")

        assert result.success

    async def test_expiry_stored_as_text(self, auth, store, clock):
        await store.insert(
            "otp_verifications",
            {
                "phone": PHONE,
                "otp": "424242",
                "expires_at": (clock.now - timedelta(minutes=1)).isoformat(),
                "is_used": False,
            },
        )

        with pytest.raises(Expired):
            await auth.verify_code(PHONE, "424242", "asha")

    async def test_concurrent_verifications_consume_once(self, session_backend, notifier, settings, clock):
        store = MemoryRecordStore(latency=0.01)
        await store.insert(
            "users", {"id": "user-1", "username": "asha", "phone": PHONE, "is_verified": True}
        )
        first = OtpAuthenticator(
            store, SessionStore(session_backend, "device-1"),
            notifier=notifier, settings=settings, clock=clock,
        )
        second = OtpAuthenticator(
            store, SessionStore(session_backend, "device-2"),
            notifier=notifier, settings=settings, clock=clock,
        )
        issued = await first.request_code(PHONE)

        results = await asyncio.gather(
            first.verify_code(PHONE, issued.otp),
            second.verify_code(PHONE, issued.otp),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], NotFound)

    async def test_store_failure_during_lookup(self, auth, store):
        issued = await auth.request_code(PHONE)
        store.fail_tables.add("users")

        with pytest.raises(StoreError, match="Failed to verify OTP"):
            await auth.verify_code(PHONE, issued.otp, "asha")


class TestLookups:
    async def test_check_phone_known(self, auth, user):
        result = await auth.check_phone(PHONE)

        assert result.exists is True
        assert result.username == "asha"

    async def test_check_phone_unknown(self, auth):
        result = await auth.check_phone(OTHER_PHONE)

        assert result.exists is False
        assert result.username is None

    async def test_check_phone_validates(self, auth):
        with pytest.raises(ValidationError):
            await auth.check_phone("98765")

    async def test_check_phone_logs_rejection(self, auth, caplog):
        with caplog.at_level(logging.INFO, logger="plattr.services.auth"):
            with pytest.raises(ValidationError):
                await auth.check_phone("98765")

        assert "Phone check rejected" in caplog.text

    async def test_check_phone_logs_lookup(self, auth, user, caplog):
        with caplog.at_level(logging.INFO, logger="plattr.services.auth"):
            await auth.check_phone(PHONE)

        assert "found" in caplog.text
        assert PHONE not in caplog.text

    async def test_logout_clears_session(self, auth, signed_in):
        assert await auth.current_user() == signed_in

        await auth.logout()

        assert await auth.current_user() is None
