"""
FastAPI Application Entry Point

Plattr Storefront - customer-side ordering API.
Supports both in-memory services (development) and real backends
(Supabase / PostgreSQL, Redis, Stripe) in production.

Every request is scoped to a device through the X-Device-Id header;
the signed-in actor is whatever that device's session holds.

Endpoints:
    - POST /api/auth/send-otp: Issue a one-time code
    - POST /api/auth/verify-otp: Sign in with a code
    - GET  /api/cart: Current cart
    - POST /api/orders: Place an order from the cart
    - POST /api/payments/confirm: Confirm a card payment
    - GET  /health: System health check

Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plattr.core.config import Settings, StoreBackend, get_settings, setup_logging
from plattr.core.exceptions import AuthRequired, PaymentError, PlattrError
from plattr.core.locks import KeyedLocks, get_keyed_locks
from plattr.schemas import (
    AddToCartRequest,
    CartLine,
    ConfirmPaymentRequest,
    CreateOrderRequest,
    ErrorResponse,
    HealthResponse,
    Order,
    OrderDetails,
    OtpRequestResult,
    PaymentResponse,
    PhoneCheck,
    SendOtpRequest,
    UpdateCartItemRequest,
    VerifyOtpRequest,
    VerifyResult,
)
from plattr.services.auth import OtpAuthenticator
from plattr.services.cart import CartService
from plattr.services.checkout import CheckoutService
from plattr.services.notifications import BaseNotificationService, get_notification_service
from plattr.services.orders import OrderService
from plattr.services.payment import BasePaymentService, get_payment_service
from plattr.services.session import (
    Actor,
    BaseSessionBackend,
    SessionStore,
    get_session_backend,
)
from plattr.services.store import BaseRecordStore, get_record_store

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.store_backend == StoreBackend.SQL:
        from plattr.database import init_db

        await init_db()
        logger.info("Database initialized")

    store = get_record_store()
    payment_service = get_payment_service()
    logger.info(f"Record Store: {store.provider_name}")
    logger.info(f"Session Backend: {get_session_backend().provider_name}")
    logger.info(f"Payment Service: {payment_service.provider_name}")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await store.close()
    if settings.store_backend == StoreBackend.SQL:
        from plattr.database import get_engine

        await get_engine().dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Customer-side storefront API: phone + OTP sign-in, a per-user cart "
        "and order placement over a pluggable record store."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================
# Each backend is reached through its own provider so tests can swap it
# with app.dependency_overrides.

def provide_settings() -> Settings:
    return get_settings()


def provide_store() -> BaseRecordStore:
    return get_record_store()


def provide_session_backend() -> BaseSessionBackend:
    return get_session_backend()


def provide_notifier() -> BaseNotificationService:
    return get_notification_service()


def provide_gateway() -> BasePaymentService:
    return get_payment_service()


def provide_locks() -> KeyedLocks:
    return get_keyed_locks()


def provide_session(
    x_device_id: str = Header(..., alias="X-Device-Id", min_length=1),
    backend: BaseSessionBackend = Depends(provide_session_backend),
) -> SessionStore:
    """Session context for the calling device."""
    return SessionStore(backend, x_device_id)


def provide_auth(
    store: BaseRecordStore = Depends(provide_store),
    session: SessionStore = Depends(provide_session),
    notifier: BaseNotificationService = Depends(provide_notifier),
    settings: Settings = Depends(provide_settings),
) -> OtpAuthenticator:
    return OtpAuthenticator(store, session, notifier=notifier, settings=settings)


def provide_cart(
    store: BaseRecordStore = Depends(provide_store),
    session: SessionStore = Depends(provide_session),
    settings: Settings = Depends(provide_settings),
    locks: KeyedLocks = Depends(provide_locks),
) -> CartService:
    return CartService(store, session, settings=settings, locks=locks)


def provide_orders(
    store: BaseRecordStore = Depends(provide_store),
    session: SessionStore = Depends(provide_session),
    cart: CartService = Depends(provide_cart),
    settings: Settings = Depends(provide_settings),
    locks: KeyedLocks = Depends(provide_locks),
) -> OrderService:
    return OrderService(store, session, cart=cart, settings=settings, locks=locks)


def provide_checkout(
    session: SessionStore = Depends(provide_session),
    cart: CartService = Depends(provide_cart),
    gateway: BasePaymentService = Depends(provide_gateway),
    settings: Settings = Depends(provide_settings),
) -> CheckoutService:
    return CheckoutService(session, cart, gateway=gateway, settings=settings)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


async def _check_health(name: str, check) -> str:
    try:
        return "healthy" if await check() else "unhealthy"
    except PlattrError as e:
        logger.error(f"{name} health check failed: {e}")
        return f"unhealthy: {e.message}"


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    store: BaseRecordStore = Depends(provide_store),
    backend: BaseSessionBackend = Depends(provide_session_backend),
    gateway: BasePaymentService = Depends(provide_gateway),
) -> HealthResponse:
    """Verify all system components are operational."""
    store_status = await _check_health("Record store", store.health_check)
    session_status = await _check_health("Session backend", backend.health_check)
    payment_status = await _check_health("Payment service", gateway.health_check)

    overall = "operational" if all(
        s == "healthy" for s in [store_status, session_status, payment_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        store=store_status,
        session=session_status,
        payment_service=payment_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post(
    "/api/auth/send-otp",
    response_model=OtpRequestResult,
    responses=ERROR_RESPONSES,
    tags=["Auth"],
    summary="Request a one-time code",
)
async def send_otp(
    body: SendOtpRequest,
    auth: OtpAuthenticator = Depends(provide_auth),
) -> OtpRequestResult:
    return await auth.request_code(body.phone)


@app.post(
    "/api/auth/verify-otp",
    response_model=VerifyResult,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}, 410: {"model": ErrorResponse}},
    tags=["Auth"],
    summary="Sign in with a one-time code",
)
async def verify_otp(
    body: VerifyOtpRequest,
    auth: OtpAuthenticator = Depends(provide_auth),
) -> VerifyResult:
    """
    Consume a code and establish the device session.

    New users must send a username (at least two characters).
    """
    return await auth.verify_code(body.phone, body.otp, body.username)


@app.get(
    "/api/auth/check-phone/{phone}",
    response_model=PhoneCheck,
    tags=["Auth"],
)
async def check_phone(
    phone: str,
    auth: OtpAuthenticator = Depends(provide_auth),
) -> PhoneCheck:
    return await auth.check_phone(phone)


@app.get(
    "/api/auth/me",
    response_model=Actor,
    responses={401: {"model": ErrorResponse}},
    tags=["Auth"],
)
async def me(auth: OtpAuthenticator = Depends(provide_auth)) -> Actor:
    actor = await auth.current_user()
    if actor is None:
        raise AuthRequired("Not signed in")
    return actor


@app.post("/api/auth/logout", tags=["Auth"])
async def logout(auth: OtpAuthenticator = Depends(provide_auth)) -> dict[str, bool]:
    await auth.logout()
    return {"success": True}


# =============================================================================
# CART ENDPOINTS
# =============================================================================

@app.get("/api/cart", response_model=list[CartLine], tags=["Cart"])
async def get_cart(cart: CartService = Depends(provide_cart)) -> list[CartLine]:
    return await cart.get_cart()


@app.post(
    "/api/cart",
    response_model=CartLine,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Cart"],
)
async def add_to_cart(
    body: AddToCartRequest,
    cart: CartService = Depends(provide_cart),
) -> CartLine:
    return await cart.add_to_cart(body.dish_id, body.quantity)


@app.delete("/api/cart", responses=ERROR_RESPONSES, tags=["Cart"])
async def clear_cart(cart: CartService = Depends(provide_cart)) -> dict[str, bool]:
    await cart.clear_cart()
    return {"success": True}


@app.patch("/api/cart/{line_id}", responses=ERROR_RESPONSES, tags=["Cart"])
async def update_cart_item(
    line_id: str,
    body: UpdateCartItemRequest,
    cart: CartService = Depends(provide_cart),
) -> dict[str, bool]:
    """Set a line's quantity. Zero or less removes the line."""
    await cart.update_cart_item(line_id, body.quantity)
    return {"success": True}


@app.delete("/api/cart/{line_id}", responses=ERROR_RESPONSES, tags=["Cart"])
async def remove_from_cart(
    line_id: str,
    cart: CartService = Depends(provide_cart),
) -> dict[str, bool]:
    await cart.remove_from_cart(line_id)
    return {"success": True}


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.get("/api/orders", response_model=list[Order], tags=["Orders"])
async def list_orders(orders: OrderService = Depends(provide_orders)) -> list[Order]:
    """The signed-in actor's orders, newest first."""
    return await orders.get_orders()


@app.post(
    "/api/orders",
    response_model=Order,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place an order from the cart",
)
async def create_order(
    body: CreateOrderRequest,
    orders: OrderService = Depends(provide_orders),
) -> Order:
    return await orders.create_order(
        body.address_id,
        body.delivery_date,
        body.delivery_time,
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderDetails,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    orders: OrderService = Depends(provide_orders),
) -> OrderDetails:
    return await orders.get_order_details(order_id)


# =============================================================================
# PAYMENT ENDPOINTS
# =============================================================================

@app.post(
    "/api/payments/intent",
    responses={**ERROR_RESPONSES, 503: {"model": ErrorResponse}},
    tags=["Payments"],
)
async def create_payment_intent(
    checkout: CheckoutService = Depends(provide_checkout),
) -> None:
    """Validates the cart for payment; intent creation itself answers 503."""
    await checkout.create_payment_intent()


@app.post(
    "/api/payments/confirm",
    response_model=PaymentResponse,
    responses={402: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Payments"],
)
async def confirm_payment(
    body: ConfirmPaymentRequest,
    checkout: CheckoutService = Depends(provide_checkout),
) -> PaymentResponse:
    result = await checkout.process_payment(body.client_secret, body.payment_method)
    if not result.success:
        raise PaymentError(
            result.error_message or "Payment failed",
            details={"payment_intent_id": result.payment_intent_id},
        )

    return PaymentResponse(
        success=True,
        payment_intent_id=result.payment_intent_id,
        status=result.status,
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _error_body(code: str, detail: Optional[str]) -> dict[str, Any]:
    return ErrorResponse(error=code, detail=detail).model_dump()


@app.exception_handler(PlattrError)
async def plattr_exception_handler(request: Request, exc: PlattrError) -> JSONResponse:
    """Map domain errors to their status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in errors
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("validation_error", detail),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_error",
            str(exc) if settings.debug else "An unexpected error occurred",
        ),
    )


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "plattr.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
