"""
In-memory session backend, for development and tests.
"""

import logging

from plattr.services.session.base import BaseSessionBackend

logger = logging.getLogger(__name__)


class MemorySessionBackend(BaseSessionBackend):

    def __init__(self):
        self._devices: dict[str, dict[str, str]] = {}

    @property
    def provider_name(self) -> str:
        return "memory"

    async def get(self, device_id: str) -> dict[str, str]:
        return dict(self._devices.get(device_id, {}))

    async def set(self, device_id: str, slots: dict[str, str]) -> None:
        self._devices[device_id] = dict(slots)
        logger.debug(f"Memory session set for device {device_id}")

    async def clear(self, device_id: str) -> None:
        self._devices.pop(device_id, None)
