"""
Notification Service Factory

Returns the notification service used as the OTP delivery hook.
Only the logging transport ships with the storefront.
"""

import logging
from functools import lru_cache

from plattr.core.config import get_settings
from plattr.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)
from plattr.services.notifications.mock import MockNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    """Get the configured notification service."""
    settings = get_settings()
    logger.info(
        f"Notification Service: Using MockNotificationService "
        f"({settings.env_mode.value} mode)"
    )
    return MockNotificationService()


def reset_notification_service() -> None:
    """Clear the cached service instance."""
    get_notification_service.cache_clear()


__all__ = [
    "get_notification_service",
    "reset_notification_service",
    "BaseNotificationService",
    "NotificationResult",
    "MockNotificationService",
]
