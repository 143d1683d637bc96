"""
Session Store

Resolves "who is the current actor" from identity persisted on the
device. No network calls to the record store, no expiry: a session lives
until it is cleared or its backing storage is wiped.

The identity is kept in three string slots under well-known keys and is
always read and written as a group. Backends only need to provide
get / set / clear of that group for one device.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

SLOT_USER_ID = "userId"
SLOT_USERNAME = "username"
SLOT_PHONE = "phone"
SLOTS = (SLOT_USER_ID, SLOT_USERNAME, SLOT_PHONE)


class Actor(BaseModel):
    """Identity-lite: what the session knows about the signed-in user."""
    id: str
    username: str
    phone: str = ""


class BaseSessionBackend(ABC):
    """Durable key-value storage scoped to one device."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def get(self, device_id: str) -> dict[str, str]:
        """Return the stored slots for a device (empty dict if none)."""
        pass

    @abstractmethod
    async def set(self, device_id: str, slots: dict[str, str]) -> None:
        """Replace every slot for a device in one write."""
        pass

    @abstractmethod
    async def clear(self, device_id: str) -> None:
        pass

    async def health_check(self) -> bool:
        return True


class SessionStore:
    """
    Session context for one device.

    Created per request and handed to every service that needs to know
    the actor. The OTP authenticator is the only caller of `establish`.
    """

    def __init__(self, backend: BaseSessionBackend, device_id: str):
        self.backend = backend
        self.device_id = device_id

    async def current_actor(self) -> Optional[Actor]:
        slots = await self.backend.get(self.device_id)
        user_id = slots.get(SLOT_USER_ID)
        username = slots.get(SLOT_USERNAME)

        if not user_id or not username:
            return None

        return Actor(id=user_id, username=username, phone=slots.get(SLOT_PHONE) or "")

    async def establish(self, identity) -> Actor:
        """
        Persist an identity as the current actor.

        Args:
            identity: Anything with `id`, `username` and `phone` attributes
        """
        actor = Actor(
            id=str(identity.id),
            username=identity.username,
            phone=identity.phone or "",
        )
        await self.backend.set(
            self.device_id,
            {
                SLOT_USER_ID: actor.id,
                SLOT_USERNAME: actor.username,
                SLOT_PHONE: actor.phone,
            },
        )
        return actor

    async def clear(self) -> None:
        await self.backend.clear(self.device_id)
