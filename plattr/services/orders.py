"""
Order Composer

Turns an authenticated session plus a cart into a durable, uniquely
numbered order:

    1. require an actor
    2. snapshot the cart once; every later step uses this snapshot
    3-4. compute subtotal, delivery fee, tax and total
    5. allocate the next order number (highest + 1, or the first number)
    6. insert the order with status "pending"
    7. insert one order line per snapshot line, concurrently
    8. take the snapshot lines out of the cart; a failure here is logged,
       the order stands

Steps 1-7 abort on the first failure. Rows already written are not
rolled back, so a failed create_order may leave an orphaned order row.
"""

import asyncio
import logging
import math
from typing import Iterable, Optional

from plattr.core.config import Settings, get_settings
from plattr.core.exceptions import AuthRequired, EmptyCart, NotFound, StoreError
from plattr.core.locks import KeyedLocks, get_keyed_locks
from plattr.models import OrderStatus
from plattr.schemas import CartLine, Order, OrderDetails, OrderLine, OrderTotals
from plattr.services.cart import CartService
from plattr.services.session import SessionStore
from plattr.services.store import BaseRecordStore

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
ORDER_ITEMS_TABLE = "order_items"
ADDRESSES_TABLE = "addresses"
ORDER_NUMBER_LOCK = "order-number"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward."""
    return math.floor(value + 0.5)


def calculate_order_totals(
    lines: Iterable[CartLine],
    settings: Optional[Settings] = None,
) -> OrderTotals:
    """
    Calculate order subtotal, delivery fee, tax, and total.

    Tax is rounded to a whole unit before it is added; subtotal and
    total are not rounded. A line without a dish price counts as 0.
    """
    settings = settings or get_settings()

    subtotal = sum(line.unit_price * line.quantity for line in lines)
    delivery_fee = settings.delivery_fee
    tax = round_half_up(subtotal * settings.tax_rate)
    total = subtotal + delivery_fee + tax

    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        tax=tax,
        total=total,
    )


class OrderService:
    """
    Order placement and history for the current actor.

    Args:
        store: Record store holding orders and order lines
        session: Session context of the calling device
        cart: Cart aggregator bound to the same session
        settings: Application settings
        locks: Lock registry used to serialize order numbering
    """

    def __init__(
        self,
        store: BaseRecordStore,
        session: SessionStore,
        cart: Optional[CartService] = None,
        settings: Optional[Settings] = None,
        locks: Optional[KeyedLocks] = None,
    ):
        self.store = store
        self.session = session
        self.settings = settings or get_settings()
        self.locks = locks or get_keyed_locks()
        self.cart = cart or CartService(store, session, self.settings, self.locks)

    async def create_order(
        self,
        address_id: str,
        delivery_date: str,
        delivery_time: str,
    ) -> Order:
        """
        Place an order from the actor's cart.

        Raises:
            AuthRequired: no actor in the session
            EmptyCart: the cart snapshot has no lines (nothing is written)
            StoreError: any store failure while reading or persisting
        """
        actor = await self.session.current_actor()
        if actor is None:
            raise AuthRequired("You must be logged in to place an order")

        snapshot = await self.cart.get_cart(strict=True)
        if not snapshot:
            logger.warning(f"Order rejected for {actor.id}: cart is empty")
            raise EmptyCart("Cart is empty")

        totals = calculate_order_totals(snapshot, self.settings)

        try:
            async with self.locks.hold(ORDER_NUMBER_LOCK):
                order_number = await self._next_order_number()
                row = await self.store.insert(
                    ORDERS_TABLE,
                    {
                        "user_id": actor.id,
                        "address_id": address_id,
                        "order_number": order_number,
                        "subtotal": totals.subtotal,
                        "delivery_fee": totals.delivery_fee,
                        "tax": totals.tax,
                        "total": totals.total,
                        "delivery_date": delivery_date,
                        "delivery_time": delivery_time,
                        "status": OrderStatus.PENDING.value,
                    },
                )
            order = Order.model_validate(row)

            await asyncio.gather(
                *(
                    self.store.insert(
                        ORDER_ITEMS_TABLE,
                        {
                            "order_id": order.id,
                            "dish_id": line.dish_id,
                            "quantity": line.quantity,
                            "price": line.unit_price,
                        },
                    )
                    for line in snapshot
                )
            )
        except StoreError as e:
            logger.error(f"Error creating order for {actor.id}: {e}")
            raise StoreError("Failed to create order") from e

        logger.info(
            f"Order #{order.order_number} placed by {actor.id} "
            f"({len(snapshot)} lines, total {order.total})"
        )

        try:
            await self.cart.remove_ordered(snapshot)
        except StoreError as e:
            # The order is placed; a leftover cart is the lesser failure
            logger.warning(
                f"Order #{order.order_number} placed but cart clear failed: {e}"
            )

        return order

    async def _next_order_number(self) -> int:
        latest = await self.store.select(
            ORDERS_TABLE,
            order="order_number.desc",
            limit=1,
        )
        if latest and latest[0].get("order_number") is not None:
            return int(latest[0]["order_number"]) + 1
        return self.settings.first_order_number

    async def get_orders(self, strict: Optional[bool] = None) -> list[Order]:
        """The actor's orders, newest first. Empty without an actor."""
        actor = await self.session.current_actor()
        if actor is None:
            return []

        if strict is None:
            strict = not self.settings.lenient_reads

        try:
            rows = await self.store.select(
                ORDERS_TABLE,
                filters={"user_id": actor.id},
                order="created_at.desc",
            )
        except StoreError as e:
            if strict:
                raise StoreError("Failed to fetch orders") from e
            logger.error(f"Error fetching orders for {actor.id}: {e}")
            return []

        return [Order.model_validate(row) for row in rows]

    async def get_order_details(self, order_id: str) -> OrderDetails:
        """
        One of the actor's orders with its lines and delivery address.

        The order is looked up by id AND user, so another actor's order
        is reported as not found.
        """
        actor = await self.session.current_actor()
        if actor is None:
            raise AuthRequired("You must be logged in to view order details")

        try:
            orders = await self.store.select(
                ORDERS_TABLE,
                filters={"id": order_id, "user_id": actor.id},
                limit=1,
            )
            if not orders:
                raise NotFound("Order not found")
            order = orders[0]

            items = await self.store.select(
                ORDER_ITEMS_TABLE, filters={"order_id": order_id}
            )

            address = None
            if order.get("address_id"):
                addresses = await self.store.select(
                    ADDRESSES_TABLE, filters={"id": order["address_id"]}, limit=1
                )
                address = addresses[0] if addresses else None
        except StoreError as e:
            logger.error(f"Error fetching order {order_id}: {e}")
            raise StoreError("Failed to fetch order details") from e

        return OrderDetails(
            **Order.model_validate(order).model_dump(),
            items=[OrderLine.model_validate(item) for item in items],
            address=address,
        )
