"""Shared fixtures: in-memory backends, a controllable clock and the services."""

from datetime import datetime, timedelta, timezone

import pytest

from plattr.core.config import Settings
from plattr.core.locks import KeyedLocks
from plattr.schemas import Identity
from plattr.services.auth import OtpAuthenticator
from plattr.services.cart import CartService
from plattr.services.checkout import CheckoutService
from plattr.services.notifications import MockNotificationService
from plattr.services.orders import OrderService
from plattr.services.payment import MockPaymentService
from plattr.services.session import MemorySessionBackend, SessionStore
from plattr.services.store import MemoryRecordStore

PHONE = "9876543210"
OTHER_PHONE = "9123456780"

DISHES = [
    {"id": "dish-paneer", "name": "Paneer Tikka", "price": "100"},
    {"id": "dish-naan", "name": "Butter Naan", "price": "50"},
    {"id": "dish-lassi", "name": "Mango Lassi", "price": 80.5},
]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
@pytest.fixture()
def settings():
    return Settings(
        _env_file=None,
        env_mode="development",
        otp_expose_code=True,
        store_backend="memory",
        session_backend="memory",
    )


@pytest.fixture()
def store():
    return MemoryRecordStore()


@pytest.fixture()
def session_backend():
    return MemorySessionBackend()


@pytest.fixture()
def session(session_backend):
    return SessionStore(session_backend, "device-1")


@pytest.fixture()
def notifier():
    return MockNotificationService()


@pytest.fixture()
def gateway():
    return MockPaymentService(failure_rate=0.0, min_latency=0.0, max_latency=0.0)


@pytest.fixture()
def locks():
    return KeyedLocks()


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
@pytest.fixture()
def auth(store, session, notifier, settings, clock):
    return OtpAuthenticator(store, session, notifier=notifier, settings=settings, clock=clock)


@pytest.fixture()
def cart(store, session, settings, locks):
    return CartService(store, session, settings=settings, locks=locks)


@pytest.fixture()
def orders(store, session, cart, settings, locks):
    return OrderService(store, session, cart=cart, settings=settings, locks=locks)


@pytest.fixture()
def checkout(session, cart, gateway, settings):
    return CheckoutService(session, cart, gateway=gateway, settings=settings)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------
@pytest.fixture()
async def dishes(store):
    for dish in DISHES:
        await store.insert("dishes", dish)
    return DISHES


@pytest.fixture()
async def user(store):
    return await store.insert(
        "users",
        {"id": "user-1", "username": "asha", "phone": PHONE, "is_verified": True},
    )


@pytest.fixture()
async def signed_in(session, user):
    """The device session holds `user`."""
    return await session.establish(Identity.model_validate(user))


@pytest.fixture()
async def address(store, user):
    return await store.insert(
        "addresses",
        {
            "id": "addr-1",
            "user_id": user["id"],
            "label": "Home",
            "address": "12 MG Road",
            "city": "Bengaluru",
            "pincode": "560001",
        },
    )


@pytest.fixture()
async def filled_cart(cart, dishes, signed_in):
    """Two paneer + one naan: subtotal 250."""
    await cart.add_to_cart("dish-paneer", 2)
    await cart.add_to_cart("dish-naan", 1)
    return cart
