"""
Cart Aggregator

Maintains one cart line per (user, dish) and joins lines with catalog
data for display.

Write paths require an actor and never swallow store errors. The read
path (`get_cart`) returns an empty cart without an actor and, under the
lenient read policy, when the store fails.
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from plattr.core.config import Settings, get_settings
from plattr.core.exceptions import AuthRequired, StoreError, ValidationError
from plattr.core.locks import KeyedLocks, get_keyed_locks
from plattr.schemas import CartLine, Dish
from plattr.services.session import Actor, SessionStore
from plattr.services.store import BaseRecordStore, Record

logger = logging.getLogger(__name__)

CART_TABLE = "cart_items"
DISHES_TABLE = "dishes"


class CartService:
    """
    Per-user shopping cart.

    Args:
        store: Record store holding cart lines and dishes
        session: Session context of the calling device
        settings: Application settings (read error policy)
        locks: Lock registry used to serialize merges per actor
    """

    def __init__(
        self,
        store: BaseRecordStore,
        session: SessionStore,
        settings: Optional[Settings] = None,
        locks: Optional[KeyedLocks] = None,
    ):
        self.store = store
        self.session = session
        self.settings = settings or get_settings()
        self.locks = locks or get_keyed_locks()

    async def _require_actor(self, action: str) -> Actor:
        actor = await self.session.current_actor()
        if actor is None:
            raise AuthRequired(f"You must be logged in to {action}")
        return actor

    # =========================================================================
    # READ
    # =========================================================================

    async def get_cart(self, strict: Optional[bool] = None) -> list[CartLine]:
        """
        Fetch the actor's cart lines joined with their dishes.

        Args:
            strict: Override the configured read policy; True raises
                StoreError instead of returning an empty cart

        Returns:
            Cart lines; a line whose dish lookup failed has `dish=None`
        """
        actor = await self.session.current_actor()
        if actor is None:
            return []

        if strict is None:
            strict = not self.settings.lenient_reads

        try:
            rows = await self.store.select(
                CART_TABLE,
                filters={"user_id": actor.id},
                order="created_at.asc",
            )
        except StoreError as e:
            if strict:
                raise StoreError("Failed to fetch cart") from e
            logger.error(f"Error fetching cart for {actor.id}: {e}")
            return []

        return list(await asyncio.gather(*(self._join(row) for row in rows)))

    async def _join(self, row: Record) -> CartLine:
        dish = None
        try:
            dishes = await self.store.select(
                DISHES_TABLE, filters={"id": row["dish_id"]}, limit=1
            )
            if dishes:
                dish = Dish.model_validate(dishes[0])
        except (StoreError, PydanticValidationError) as e:
            logger.warning(f"Dish lookup failed for cart line {row['id']}: {e}")

        return CartLine(
            id=str(row["id"]),
            dish_id=str(row["dish_id"]),
            quantity=row["quantity"],
            dish=dish,
        )

    # =========================================================================
    # WRITE
    # =========================================================================

    async def add_to_cart(self, dish_id: str, quantity: int = 1) -> CartLine:
        """
        Add a dish, merging into an existing line by adding quantities.

        The look-up-then-branch runs under a per-actor lock.
        """
        actor = await self._require_actor("add items to cart")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        async with self.locks.hold(f"cart:{actor.id}"):
            try:
                existing = await self.store.select(
                    CART_TABLE,
                    filters={"user_id": actor.id, "dish_id": dish_id},
                    limit=1,
                )

                if existing:
                    line = existing[0]
                    merged = line["quantity"] + quantity
                    await self.store.update(
                        CART_TABLE, {"id": line["id"]}, {"quantity": merged}
                    )
                    logger.info(f"Cart line {line['id']} merged to quantity {merged}")
                    return CartLine(id=str(line["id"]), dish_id=dish_id, quantity=merged)

                row = await self.store.insert(
                    CART_TABLE,
                    {"user_id": actor.id, "dish_id": dish_id, "quantity": quantity},
                )
            except StoreError as e:
                logger.error(f"Error adding {dish_id} to cart for {actor.id}: {e}")
                raise StoreError("Failed to add item to cart") from e

        logger.info(f"Cart line {row['id']} added ({dish_id} x{quantity})")
        return CartLine(id=str(row["id"]), dish_id=dish_id, quantity=quantity)

    async def update_cart_item(self, line_id: str, quantity: int) -> None:
        """Replace a line's quantity; zero or less removes the line."""
        actor = await self._require_actor("update cart")

        try:
            if quantity <= 0:
                await self.store.delete(CART_TABLE, {"id": line_id, "user_id": actor.id})
                logger.info(f"Cart line {line_id} removed (quantity {quantity})")
            else:
                await self.store.update(
                    CART_TABLE,
                    {"id": line_id, "user_id": actor.id},
                    {"quantity": quantity},
                )
                logger.info(f"Cart line {line_id} set to quantity {quantity}")
        except StoreError as e:
            logger.error(f"Error updating cart line {line_id}: {e}")
            raise StoreError("Failed to update cart") from e

    async def remove_from_cart(self, line_id: str) -> None:
        actor = await self._require_actor("remove items from cart")

        try:
            await self.store.delete(CART_TABLE, {"id": line_id, "user_id": actor.id})
        except StoreError as e:
            logger.error(f"Error removing cart line {line_id}: {e}")
            raise StoreError("Failed to remove item from cart") from e

        logger.info(f"Cart line {line_id} removed")

    async def clear_cart(self) -> None:
        """Delete every line of the actor's cart, one delete per line."""
        actor = await self._require_actor("clear cart")

        try:
            rows = await self.store.select(CART_TABLE, filters={"user_id": actor.id})
            await asyncio.gather(
                *(self.store.delete(CART_TABLE, {"id": row["id"]}) for row in rows)
            )
        except StoreError as e:
            logger.error(f"Error clearing cart for {actor.id}: {e}")
            raise StoreError("Failed to clear cart") from e

        logger.info(f"Cart cleared for {actor.id} ({len(rows)} lines)")

    async def remove_ordered(self, lines: list[CartLine]) -> None:
        """
        Take ordered lines out of the cart, leaving later additions.

        A line whose quantity grew since it was ordered keeps the
        difference; lines added since are untouched. Runs under the same
        per-actor lock as add_to_cart.
        """
        actor = await self._require_actor("clear cart")

        async with self.locks.hold(f"cart:{actor.id}"):
            try:
                for line in lines:
                    current = await self.store.select(
                        CART_TABLE,
                        filters={"id": line.id, "user_id": actor.id},
                        limit=1,
                    )
                    if not current:
                        continue
                    remaining = current[0]["quantity"] - line.quantity
                    if remaining > 0:
                        await self.store.update(
                            CART_TABLE,
                            {"id": line.id, "user_id": actor.id},
                            {"quantity": remaining},
                        )
                    else:
                        await self.store.delete(
                            CART_TABLE, {"id": line.id, "user_id": actor.id}
                        )
            except StoreError as e:
                logger.error(f"Error removing ordered lines for {actor.id}: {e}")
                raise StoreError("Failed to clear cart") from e

        logger.info(f"Removed {len(lines)} ordered lines from cart of {actor.id}")
