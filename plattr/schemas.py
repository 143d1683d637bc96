"""
Pydantic Schemas

Domain records returned by the services, plus request/response bodies
for the HTTP API. Records from the store use snake_case column names;
unknown columns are ignored.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# DOMAIN RECORDS
# =============================================================================

class Identity(BaseModel):
    """A user, keyed naturally by phone."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    phone: Optional[str] = None
    is_verified: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)


class Dish(BaseModel):
    """Catalog entry joined into cart lines."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = ""
    description: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> Optional[float]:
        # The hosted catalog stores prices as text; unparseable means "no price"
        if v is None or v == "":
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @property
    def unit_price(self) -> float:
        return self.price if self.price is not None else 0.0


class CartLine(BaseModel):
    """One cart line per (user, dish). `dish` is unset when the lookup failed."""
    id: str
    dish_id: str
    quantity: int
    dish: Optional[Dish] = None

    @property
    def unit_price(self) -> float:
        return self.dish.unit_price if self.dish else 0.0


class OrderTotals(BaseModel):
    subtotal: float
    delivery_fee: float
    tax: float
    total: float


class Order(BaseModel):
    """Placed order. `order_number` is the human-facing sequence."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: int
    user_id: str
    address_id: Optional[str] = None
    subtotal: float
    delivery_fee: float
    tax: float
    total: float
    delivery_date: Optional[str] = None
    delivery_time: Optional[str] = None
    status: str = "pending"
    created_at: Optional[datetime] = None


class OrderLine(BaseModel):
    """Order line with the catalog price copied at order time."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    dish_id: str
    quantity: int
    price: float


class OrderDetails(Order):
    items: List[OrderLine] = Field(default_factory=list)
    address: Optional[dict[str, Any]] = None


class OtpRequestResult(BaseModel):
    """`otp` is only populated in a trusted (development) context."""
    success: bool = True
    otp: Optional[str] = None
    expires_at: datetime


class VerifyResult(BaseModel):
    success: bool = True
    user: Identity


class PhoneCheck(BaseModel):
    exists: bool
    username: Optional[str] = None


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================
# Format checks live in the services so every caller gets the same errors.

class SendOtpRequest(BaseModel):
    phone: str = Field(..., examples=["9876543210"])


class VerifyOtpRequest(BaseModel):
    phone: str = Field(..., examples=["9876543210"])
    otp: str = Field(..., examples=["123456"])
    username: Optional[str] = Field(None, examples=["Asha"])


class AddToCartRequest(BaseModel):
    dish_id: str
    quantity: int = Field(default=1, ge=1, le=99)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., le=99, examples=[2])


class CreateOrderRequest(BaseModel):
    address_id: str
    delivery_date: str = Field(..., examples=["2026-10-20"])
    delivery_time: str = Field(..., examples=["12:00 PM - 1:00 PM"])


class ConfirmPaymentRequest(BaseModel):
    client_secret: str = ""
    payment_method: str = Field(..., examples=["pm_card_visa"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class PaymentResponse(BaseModel):
    success: bool
    payment_intent_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    store: str
    session: str
    payment_service: str
    timestamp: datetime
