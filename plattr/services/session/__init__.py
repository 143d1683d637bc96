"""
Session Backend Factory

Returns the in-memory or Redis session backend based on SESSION_BACKEND.
A SessionStore is then built per device on top of the shared backend:

    backend = get_session_backend()
    session = SessionStore(backend, device_id)
    actor = await session.current_actor()
"""

import logging
from functools import lru_cache

from plattr.core.config import SessionBackendKind, get_settings
from plattr.services.session.base import (
    Actor,
    BaseSessionBackend,
    SessionStore,
    SLOTS,
)
from plattr.services.session.memory import MemorySessionBackend
from plattr.services.session.redis import RedisSessionBackend

logger = logging.getLogger(__name__)


@lru_cache()
def get_session_backend() -> BaseSessionBackend:
    """Get the configured session backend."""
    settings = get_settings()

    if settings.session_backend == SessionBackendKind.REDIS:
        logger.info("Session Backend: Using RedisSessionBackend")
        return RedisSessionBackend()

    logger.info(f"Session Backend: Using MemorySessionBackend ({settings.env_mode.value} mode)")
    return MemorySessionBackend()


def reset_session_backend() -> None:
    """Clear the cached backend instance."""
    get_session_backend.cache_clear()


__all__ = [
    "get_session_backend",
    "reset_session_backend",
    "Actor",
    "BaseSessionBackend",
    "SessionStore",
    "SLOTS",
    "MemorySessionBackend",
    "RedisSessionBackend",
]
