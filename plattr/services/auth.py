"""
OTP Authenticator

Phone + one-time-code authentication. Per phone number a challenge moves
through NoChallenge → Pending → {Consumed, Expired}:

    request_code(phone)            issue a 6-digit code valid for 10 minutes
    verify_code(phone, code, name) consume it, find or create the user,
                                   establish the session
    check_phone(phone)             does a user with this phone exist
    logout()                       clear the session

A challenge is consumed with a conditional update (`is_used = false` in the
filter), so two concurrent verifications of the same code cannot both win.
Earlier unconsumed challenges for the same phone are left valid.
"""

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from plattr.core.config import Settings, get_settings
from plattr.core.exceptions import (
    Expired,
    NotFound,
    StoreError,
    ValidationError,
)
from plattr.schemas import Identity, OtpRequestResult, PhoneCheck, VerifyResult
from plattr.services.notifications import BaseNotificationService, get_notification_service
from plattr.services.session import Actor, SessionStore
from plattr.services.store import BaseRecordStore

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"[0-9]{10}")
OTP_PATTERN = re.compile(r"[0-9]{6}")
MIN_USERNAME_LENGTH = 2

OTP_TABLE = "otp_verifications"
USERS_TABLE = "users"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp() -> str:
    """Uniformly random 6-digit code in [100000, 999999]."""
    return str(100000 + secrets.randbelow(900000))


def validate_phone(phone: Any) -> str:
    if not isinstance(phone, str) or not PHONE_PATTERN.fullmatch(phone):
        raise ValidationError("Phone must be 10 digits")
    return phone


def validate_otp(code: Any) -> str:
    if not isinstance(code, str) or not OTP_PATTERN.fullmatch(code):
        raise ValidationError("OTP must be 6 digits")
    return code


def mask_phone(phone: str) -> str:
    return f"******{phone[-4:]}"


def as_datetime(value: Any) -> datetime:
    """Normalize a stored timestamp (ISO string or datetime) to aware UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        # SQLite drops the offset; everything is written in UTC
        value = value.replace(tzinfo=timezone.utc)
    return value


class OtpAuthenticator:
    """
    Issues and validates one-time codes and is the only writer of the
    session store.

    Args:
        store: Record store holding users and challenges
        session: Session context of the calling device
        notifier: Delivery hook for issued codes
        settings: Application settings
        clock: Returns the current time; injectable for expiry tests
    """

    def __init__(
        self,
        store: BaseRecordStore,
        session: SessionStore,
        notifier: Optional[BaseNotificationService] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.session = session
        self.notifier = notifier or get_notification_service()
        self.settings = settings or get_settings()
        self.clock = clock

    # =========================================================================
    # REQUEST
    # =========================================================================

    async def request_code(self, phone: str) -> OtpRequestResult:
        """
        Issue a new code for a phone number.

        The code is handed to the notifier. It is also returned to the
        caller only in a trusted context (development, or OTP_EXPOSE_CODE).

        Raises:
            ValidationError: phone is not exactly 10 digits
            StoreError: the challenge could not be persisted
        """
        try:
            validate_phone(phone)
        except ValidationError:
            logger.warning("OTP request rejected: malformed phone")
            raise

        code = generate_otp()
        expires_at = self.clock() + timedelta(minutes=self.settings.otp_expiry_minutes)

        try:
            await self.store.insert(
                OTP_TABLE,
                {
                    "phone": phone,
                    "otp": code,
                    "expires_at": expires_at,
                    "is_used": False,
                },
            )
        except StoreError as e:
            logger.error(f"OTP request for {mask_phone(phone)} failed: {e}")
            raise StoreError("Failed to send OTP") from e

        delivery = await self.notifier.send_otp(
            phone, code, self.settings.otp_expiry_minutes
        )
        if not delivery.success:
            logger.warning(
                f"OTP delivery to {mask_phone(phone)} failed: {delivery.error_message}"
            )

        logger.info(f"OTP issued for {mask_phone(phone)} (expires {expires_at.isoformat()})")
        logger.debug(f"OTP for {phone}: {code}")

        return OtpRequestResult(
            success=True,
            otp=code if self.settings.expose_otp_code else None,
            expires_at=expires_at,
        )

    # =========================================================================
    # VERIFY
    # =========================================================================

    async def verify_code(
        self,
        phone: str,
        code: str,
        username: Optional[str] = None,
    ) -> VerifyResult:
        """
        Consume a code and sign the user in.

        Existing users are flagged verified; new users need a username of
        at least two characters. Input errors are raised before the
        challenge is consumed.

        Raises:
            ValidationError: malformed phone / code, or missing username
            NotFound: no unconsumed challenge matches phone + code
            Expired: the matching challenge is past its expiry
            StoreError: the record store failed
        """
        try:
            validate_phone(phone)
            validate_otp(code)
        except ValidationError as e:
            logger.warning(f"OTP verification rejected: {e.message}")
            raise

        try:
            challenges = await self.store.select(
                OTP_TABLE,
                filters={"phone": phone, "otp": code, "is_used": False},
                order="created_at.desc",
                limit=1,
            )
        except StoreError as e:
            logger.error(f"OTP lookup for {mask_phone(phone)} failed: {e}")
            raise StoreError("Failed to verify OTP") from e

        if not challenges:
            logger.warning(f"OTP verification failed for {mask_phone(phone)}: no match")
            raise NotFound("Invalid or expired OTP")

        challenge = challenges[0]
        if self.clock() > as_datetime(challenge["expires_at"]):
            logger.warning(f"OTP verification failed for {mask_phone(phone)}: expired")
            raise Expired("OTP has expired")

        try:
            users = await self.store.select(USERS_TABLE, filters={"phone": phone}, limit=1)
        except StoreError as e:
            logger.error(f"User lookup for {mask_phone(phone)} failed: {e}")
            raise StoreError("Failed to verify OTP") from e

        if not users:
            username = (username or "").strip()
            if len(username) < MIN_USERNAME_LENGTH:
                logger.warning(f"OTP verification for {mask_phone(phone)}: username missing")
                raise ValidationError(
                    "Username is required for new users (minimum 2 characters)"
                )

        await self._consume(challenge, phone)

        try:
            if users:
                identity = Identity.model_validate(users[0])
                if not identity.is_verified:
                    await self.store.update(
                        USERS_TABLE, {"id": identity.id}, {"is_verified": True}
                    )
                    identity.is_verified = True
                logger.info(f"User {identity.id} signed in")
            else:
                row = await self.store.insert(
                    USERS_TABLE,
                    {"username": username, "phone": phone, "is_verified": True},
                )
                identity = Identity.model_validate(row)
                logger.info(f"User {identity.id} created for {mask_phone(phone)}")
        except StoreError as e:
            logger.error(f"Sign-in for {mask_phone(phone)} failed: {e}")
            raise StoreError("Failed to verify OTP") from e

        await self.session.establish(identity)

        return VerifyResult(success=True, user=identity)

    async def _consume(self, challenge: dict, phone: str) -> None:
        try:
            consumed = await self.store.update(
                OTP_TABLE,
                {"id": challenge["id"], "is_used": False},
                {"is_used": True},
            )
        except StoreError as e:
            logger.error(f"Consuming OTP for {mask_phone(phone)} failed: {e}")
            raise StoreError("Failed to verify OTP") from e

        if not consumed:
            # Another verification consumed it between our read and write
            logger.warning(f"OTP for {mask_phone(phone)} already consumed")
            raise NotFound("Invalid or expired OTP")

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def check_phone(self, phone: str) -> PhoneCheck:
        try:
            validate_phone(phone)
        except ValidationError:
            logger.warning("Phone check rejected: malformed phone")
            raise

        try:
            users = await self.store.select(USERS_TABLE, filters={"phone": phone}, limit=1)
        except StoreError as e:
            logger.error(f"Phone check for {mask_phone(phone)} failed: {e}")
            raise StoreError("Failed to check phone") from e

        logger.info(f"Phone check for {mask_phone(phone)}: {'found' if users else 'not found'}")
        if not users:
            return PhoneCheck(exists=False, username=None)
        return PhoneCheck(exists=True, username=users[0].get("username"))

    async def current_user(self) -> Optional[Actor]:
        return await self.session.current_actor()

    async def logout(self) -> None:
        await self.session.clear()
        logger.info(f"Session cleared for device {self.session.device_id}")
