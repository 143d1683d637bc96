"""
SQLAlchemy Database Models

Table layout used by the SQL record store. Mirrors the hosted data
service's schema so both backends accept the same records:

- users / otp_verifications: phone + one-time-code authentication
- dishes / addresses: catalog and delivery addresses (read-only here)
- cart_items: one line per (user, dish)
- orders / order_items: placed orders with price snapshots

Identifiers are UUID strings assigned on insert.
"""

import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from plattr.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class OrderStatus(str, enum.Enum):
    """Order status workflow. Only PENDING is assigned by the storefront."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(Base):
    """Identity, keyed naturally by phone."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True, unique=True, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User {self.id} - {self.username}>"


class OtpVerification(Base):
    """One issued code. Consumed at most once."""
    __tablename__ = "otp_verifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    phone = Column(String(20), nullable=False, index=True)
    otp = Column(String(6), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Dish(Base):
    __tablename__ = "dishes"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Address(Base):
    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    label = Column(String(50), nullable=True)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=True)
    pincode = Column(String(10), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CartItem(Base):
    """
    One cart line per (user, dish).

    The unique constraint turns a cross-process merge race into a
    rejected insert instead of a duplicate line.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("user_id", "dish_id", name="uq_cart_items_user_dish"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    dish_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    """
    Placed order.

    `order_number` is the human-facing sequence, distinct from `id`.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_number = Column(Integer, nullable=False, unique=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    address_id = Column(String(36), nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False)
    total = Column(Float, nullable=False)

    # =========================================================================
    # DELIVERY SLOT
    # =========================================================================
    delivery_date = Column(String(20), nullable=True)
    delivery_time = Column(String(40), nullable=True)

    status = Column(String(30), default=OrderStatus.PENDING.value, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Order #{self.order_number} - {self.user_id} - {self.status}>"


class OrderItem(Base):
    """Order line. `price` is copied from the catalog at order time."""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), nullable=False, index=True)
    dish_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
