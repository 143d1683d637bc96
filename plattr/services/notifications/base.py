"""
Notification Service Abstract Base Class

Defines the delivery hook the OTP authenticator hands codes to. The
storefront specifies only this hook; the SMS transport behind it is
pluggable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_sms(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send an SMS message."""
        pass

    async def send_otp(self, to_phone: str, code: str, expiry_minutes: int) -> NotificationResult:
        """Deliver a one-time code."""
        message = (
            f"{code} is your Plattr verification code. "
            f"It expires in {expiry_minutes} minutes."
        )
        return await self.send_sms(to_phone, message)

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
