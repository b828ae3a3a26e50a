"""
FastAPI Application Entry Point

Canteen Order Service

Endpoints:
    - POST  /api/check-srn: Is an SRN free for signup
    - POST  /api/signup: Register an account
    - POST  /api/login: Verify SRN and password
    - POST  /api/orders: Place an order
    - GET   /api/orders/{orderNumber}: Look up one order
    - GET   /api/orders/user/{srn}: Orders of one SRN, newest first
    - PATCH /api/orders/{orderNumber}/received: Mark pickup
    - GET   /health: System health check

Run with:
    uvicorn canteen.main:app --port 5000
or:
    canteen-server   (honours PORT)
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

import redis
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from canteen.core.config import get_settings, setup_logging
from canteen.errors import ServiceError, UnexpectedError
from canteen.schemas import (
    AuthResponse,
    AvailabilityResponse,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    OrderCreate,
    OrderCreateResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderUpdateResponse,
    ReceivedUpdate,
    SignupRequest,
    SrnCheckRequest,
    UserResponse,
)
from canteen.services import OrderService, get_order_service
from canteen.services.storage import OrderRecord, get_storage
from canteen.tasks import export_order_to_ledger

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    current = get_settings()

    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {current.app_name}")
    logger.info(f"   Version: {current.app_version}")
    logger.info(f"   Environment: {current.env_mode.value}")
    logger.info(f"   Debug: {current.debug}")
    logger.info("=" * 60)

    storage = get_storage()
    await storage.init()
    logger.info(f"Storage ready: {storage.provider_name}")
    logger.info(f"Ledger export: {'enabled' if current.ledger_export_enabled else 'disabled'}")

    problems = current.validate_production_config()
    if problems:
        logger.warning(f"Unsafe settings for {current.env_mode.value}: {problems}")

    logger.info("Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await storage.close()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Order management for the canteen: accounts, orders and pickup tracking.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def queue_ledger_export(order: OrderRecord, event: str) -> None:
    """
    Queue an order event for the Excel ledger.

    Best effort: the order is already stored, so a broker outage is
    logged and the request still succeeds.
    """
    if not get_settings().ledger_export_enabled:
        return

    try:
        export_order_to_ledger.delay(order.to_dict(), event)
    except Exception as e:
        logger.error(f"Could not queue ledger export for order {order.order_number}: {e}")


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    current = get_settings()
    return {
        "message": f"Welcome to {current.app_name}",
        "version": current.app_version,
        "environment": current.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check() -> HealthResponse:
    """Verify storage (and Redis, when the ledger is enabled) is operational."""
    current = get_settings()

    storage = get_storage()
    storage_status = "healthy" if await storage.health_check() else "unhealthy"

    redis_status = "disabled"
    if current.ledger_export_enabled:
        try:
            r = redis.Redis.from_url(current.redis_url, socket_timeout=2)
            r.ping()
            r.close()
            redis_status = "healthy"
        except Exception as e:
            redis_status = f"unhealthy: {str(e)}"
            logger.error(f"Redis health check failed: {e}")

    overall = "operational" if all(
        s in ("healthy", "disabled") for s in [storage_status, redis_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        storage=storage_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ACCOUNT ENDPOINTS
# =============================================================================

@app.post(
    "/api/check-srn",
    response_model=AvailabilityResponse,
    responses=ERROR_RESPONSES,
    tags=["Accounts"],
    summary="Check SRN Availability",
)
async def check_srn(
    body: SrnCheckRequest,
    service: OrderService = Depends(get_order_service),
) -> AvailabilityResponse:
    """Tell the signup form whether an SRN is already registered."""
    try:
        availability = await service.check_identifier_availability(body.srn)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error checking SRN {body.srn}: {e}")
        raise UnexpectedError.wrap("Server error", e) from e

    return AvailabilityResponse(exists=availability.exists, message=availability.message)


@app.post(
    "/api/signup",
    response_model=AuthResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Accounts"],
    summary="Sign Up",
)
async def signup(
    body: SignupRequest,
    service: OrderService = Depends(get_order_service),
) -> AuthResponse:
    """Register an account. The password is stored only as a bcrypt hash."""
    try:
        summary = await service.signup(body.name, body.srn, body.password)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error signing up SRN {body.srn}: {e}")
        raise UnexpectedError.wrap("Signup failed", e) from e

    return AuthResponse(
        success=True,
        message="Signup successful! Please login.",
        user=UserResponse.from_summary(summary),
    )


@app.post(
    "/api/login",
    response_model=AuthResponse,
    responses=ERROR_RESPONSES,
    tags=["Accounts"],
    summary="Log In",
)
async def login(
    body: LoginRequest,
    service: OrderService = Depends(get_order_service),
) -> AuthResponse:
    """Verify SRN and password."""
    try:
        summary = await service.login(body.srn, body.password)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error logging in SRN {body.srn}: {e}")
        raise UnexpectedError.wrap("Login failed", e) from e

    return AuthResponse(
        success=True,
        message="Login successful!",
        user=UserResponse.from_summary(summary),
    )


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    body: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderCreateResponse:
    """
    Place an order for an existing account.

    The OTP is chosen by the client and shown at the counter on pickup.
    """
    try:
        order = await service.place_order(
            account_name=body.user_name,
            identifier=body.srn,
            order_number=body.order_number,
            otp=body.otp,
            items=body.items,
            total_amount=body.total_amount,
        )
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error creating order {body.order_number}: {e}")
        raise UnexpectedError.wrap("Order creation failed", e) from e

    queue_ledger_export(order, "placed")

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully!",
        order=OrderResponse.from_record(order),
    )


@app.get(
    "/api/orders/user/{srn}",
    response_model=OrderListResponse,
    responses={500: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="List Orders of an SRN",
)
async def list_user_orders(
    srn: str,
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """All orders placed with ``srn``, newest first."""
    try:
        orders = await service.get_orders_by_identifier(srn)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error fetching orders of SRN {srn}: {e}")
        raise UnexpectedError.wrap("Failed to fetch orders", e) from e

    return OrderListResponse(
        success=True,
        orders=[OrderResponse.from_record(o) for o in orders],
    )


@app.get(
    "/api/orders/{order_number}",
    response_model=OrderDetailResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Get Order",
)
async def get_order(
    order_number: str,
    service: OrderService = Depends(get_order_service),
) -> OrderDetailResponse:
    """Look up one order by its number."""
    try:
        order = await service.get_order_by_number(order_number)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error fetching order {order_number}: {e}")
        raise UnexpectedError.wrap("Failed to fetch order", e) from e

    return OrderDetailResponse(success=True, order=OrderResponse.from_record(order))


@app.patch(
    "/api/orders/{order_number}/received",
    response_model=OrderUpdateResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Set Received Flag",
)
async def set_order_received(
    order_number: str,
    body: ReceivedUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderUpdateResponse:
    """Mark an order as collected at the counter (or clear the mark)."""
    try:
        order = await service.set_order_received(order_number, body.received)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception(f"Error updating order {order_number}: {e}")
        raise UnexpectedError.wrap("Failed to update order", e) from e

    queue_ledger_export(order, "received" if order.received else "unreceived")

    return OrderUpdateResponse(
        success=True,
        message="Order status updated",
        order=OrderResponse.from_record(order),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render service errors as {error, message?, details?}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error} ({exc.details})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or mistyped body fields."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": problems},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "details": str(exc) if get_settings().debug else "An unexpected error occurred",
        },
    )


# =============================================================================
# SERVER
# =============================================================================

def run() -> None:
    """Serve the application with Uvicorn on API_HOST:PORT."""
    import uvicorn

    uvicorn.run(
        "canteen.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
