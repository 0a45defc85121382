"""
FastAPI application factory.

* Registers routes for rides, location suggestions and admin.
* Wires the pricing engine, lock provider and payment client onto
  ``app.state``; the lifespan closes them on shutdown.
* Maps domain errors to HTTP responses.
* Applies rate limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rideshare.api.middleware import limiter
from rideshare.api.routes import admin, locations, rides
from rideshare.config import settings
from rideshare.domain.errors import PaymentError, RideError
from rideshare.domain.pricing import PricingEngine
from rideshare.infrastructure.locations import LocationSuggestionService
from rideshare.infrastructure.locks import LocalLockProvider, RedisLockProvider
from rideshare.infrastructure.payments import StripePaymentClient
from rideshare.infrastructure.redis_client import close_redis, get_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "validation-failed": 422,
    "rating-out-of-range": 422,
    "not-found": 404,
    "forbidden": 403,
    "already-assigned": 403,
    "invalid-transition": 409,
    "already-rated": 409,
    "ride-full": 409,
    "price-changed": 409,
    "busy": 503,
}


def build_pricing() -> PricingEngine:
    return PricingEngine(
        base_fare=settings.base_fare,
        seat_rate=settings.seat_rate,
        rate_per_km=settings.rate_per_km,
        default_distance_cost=settings.default_distance_cost,
        shared_discount=settings.shared_ride_discount,
        average_speed_kmh=settings.average_speed_kmh,
    )


def build_locks():
    if settings.use_redis_locks:
        return RedisLockProvider(
            get_redis(),
            ttl_seconds=settings.lock_ttl_seconds,
            wait_seconds=settings.lock_wait_seconds,
        )
    return LocalLockProvider()


def build_payments():
    if not settings.stripe_api_key:
        logger.warning("STRIPE_API_KEY not set; payment endpoint disabled")
        return None
    return StripePaymentClient(
        settings.stripe_api_key,
        currency=settings.payment_currency,
        base_url=settings.stripe_api_base,
        timeout=settings.payment_timeout_seconds,
    )


async def ride_error_handler(request: Request, exc: RideError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.code, 400),
        content={"detail": str(exc), "code": exc.code},
    )


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    logger.error("Payment provider failure: %s", exc)
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "code": "payment-failed"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the payment client and Redis pool on shutdown."""
    yield
    if app.state.payments is not None:
        await app.state.payments.aclose()
    if settings.use_redis_locks:
        await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Sharing API",
        description=(
            "Books immediate and scheduled rides, lets drivers accept and "
            "run them, pools passengers into shared rides and collects "
            "two-way ratings.  Concurrent accepts and joins are serialised "
            "per ride."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Collaborators shared by every request
    app.state.pricing = build_pricing()
    app.state.locks = build_locks()
    app.state.payments = build_payments()
    app.state.locations = LocationSuggestionService()

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(RideError, ride_error_handler)
    app.add_exception_handler(PaymentError, payment_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(locations.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
