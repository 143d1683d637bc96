"""SQL record store against SQLite (aiosqlite) on a temporary file."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from plattr.core.exceptions import Expired, NotFound, StoreError
from plattr.database import init_db, make_session_maker
from plattr.schemas import Identity
from plattr.services.auth import OtpAuthenticator
from plattr.services.cart import CartService
from plattr.services.orders import OrderService
from plattr.services.session import SessionStore
from plattr.services.store import SqlRecordStore
from tests.conftest import PHONE


@pytest.fixture()
async def sql_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'plattr.db'}")
    await init_db(engine)
    yield SqlRecordStore(make_session_maker(engine))
    await engine.dispose()


class TestSqlRecordStore:
    async def test_insert_returns_stored_row(self, sql_store):
        row = await sql_store.insert("users", {"username": "asha", "phone": PHONE})

        assert len(row["id"]) == 36
        assert row["is_verified"] is False
        assert row["created_at"] is not None

    async def test_select_filter_order_limit(self, sql_store):
        for number in (10000002, 10000009, 10000005):
            await sql_store.insert(
                "orders",
                {"user_id": "u1", "order_number": number, "subtotal": 0, "tax": 0, "total": 40},
            )

        rows = await sql_store.select("orders", {"user_id": "u1"}, order="order_number.desc", limit=2)

        assert [row["order_number"] for row in rows] == [10000009, 10000005]

    async def test_conditional_update(self, sql_store):
        challenge = await sql_store.insert(
            "otp_verifications",
            {
                "phone": PHONE,
                "otp": "123456",
                "expires_at": datetime(2026, 10, 19, 12, 10, tzinfo=timezone.utc),
                "is_used": False,
            },
        )
        filters = {"id": challenge["id"], "is_used": False}

        first = await sql_store.update("otp_verifications", filters, {"is_used": True})
        second = await sql_store.update("otp_verifications", filters, {"is_used": True})

        assert [row["is_used"] for row in first] == [True]
        assert second == []

    async def test_delete(self, sql_store):
        line = await sql_store.insert("cart_items", {"user_id": "u1", "dish_id": "d1", "quantity": 1})

        await sql_store.delete("cart_items", {"id": line["id"]})

        assert await sql_store.select("cart_items") == []

    async def test_one_cart_line_per_user_and_dish(self, sql_store):
        await sql_store.insert("cart_items", {"user_id": "u1", "dish_id": "d1", "quantity": 1})

        with pytest.raises(StoreError):
            await sql_store.insert("cart_items", {"user_id": "u1", "dish_id": "d1", "quantity": 2})

    async def test_order_numbers_are_unique(self, sql_store):
        values = {"user_id": "u1", "order_number": 10000001, "subtotal": 0, "tax": 0, "total": 40}
        await sql_store.insert("orders", values)

        with pytest.raises(StoreError):
            await sql_store.insert("orders", dict(values, user_id="u2"))

    async def test_unknown_table_and_column(self, sql_store):
        with pytest.raises(StoreError):
            await sql_store.select("menus")
        with pytest.raises(StoreError):
            await sql_store.select("users", {"email": "x"})
        with pytest.raises(StoreError):
            await sql_store.select("users", order="email.asc")

    async def test_unfiltered_update_refused(self, sql_store):
        with pytest.raises(StoreError):
            await sql_store.update("cart_items", {}, {"quantity": 0})

    async def test_health_check(self, sql_store):
        assert await sql_store.health_check() is True


class TestFlowsOverSql:
    async def test_sign_in_and_place_order(self, sql_store, session, notifier, settings, clock, locks):
        await sql_store.insert("dishes", {"id": "dish-paneer", "name": "Paneer Tikka", "price": 100})
        await sql_store.insert("dishes", {"id": "dish-naan", "name": "Butter Naan", "price": 50})

        auth = OtpAuthenticator(sql_store, session, notifier=notifier, settings=settings, clock=clock)
        issued = await auth.request_code(PHONE)
        verified = await auth.verify_code(PHONE, issued.otp, "asha")

        cart = CartService(sql_store, session, settings=settings, locks=locks)
        await cart.add_to_cart("dish-paneer", 1)
        await cart.add_to_cart("dish-paneer", 1)
        await cart.add_to_cart("dish-naan", 1)

        orders = OrderService(sql_store, session, cart=cart, settings=settings, locks=locks)
        order = await orders.create_order("addr-1", "2026-10-20", "12:00 PM - 1:00 PM")

        assert order.user_id == verified.user.id
        assert order.order_number == 10000001
        assert order.total == 303
        assert await cart.get_cart() == []
        details = await orders.get_order_details(order.id)
        assert len(details.items) == 2

    async def test_expired_code_over_sql(self, sql_store, session, notifier, settings, clock):
        auth = OtpAuthenticator(sql_store, session, notifier=notifier, settings=settings, clock=clock)
        issued = await auth.request_code(PHONE)
        clock.advance(minutes=11)

        with pytest.raises(Expired):
            await auth.verify_code(PHONE, issued.otp, "asha")

    async def test_concurrent_orders_over_sql(self, sql_store, session_backend, settings, locks):
        await sql_store.insert("dishes", {"id": "dish-naan", "name": "Butter Naan", "price": 50})
        services = []
        for n in range(3):
            session = SessionStore(session_backend, f"device-{n}")
            await session.establish(Identity(id=f"user-{n}", username=f"user{n}"))
            cart = CartService(sql_store, session, settings=settings, locks=locks)
            await cart.add_to_cart("dish-naan")
            services.append(OrderService(sql_store, session, cart=cart, settings=settings, locks=locks))

        placed = await asyncio.gather(
            *(svc.create_order("addr-1", "2026-10-20", "12:00 PM - 1:00 PM") for svc in services)
        )

        assert sorted(order.order_number for order in placed) == [10000001, 10000002, 10000003]

    async def test_foreign_order_not_found(self, sql_store, session, settings, locks):
        await session.establish(Identity(id="user-1", username="asha"))
        other = await sql_store.insert(
            "orders",
            {"user_id": "user-2", "order_number": 10000001, "subtotal": 0, "tax": 0, "total": 40},
        )
        orders = OrderService(sql_store, session, settings=settings, locks=locks)

        with pytest.raises(NotFound):
            await orders.get_order_details(other["id"])
