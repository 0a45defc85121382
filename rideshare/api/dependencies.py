"""FastAPI dependency injection helpers."""

from datetime import timedelta

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.config import settings
from rideshare.domain.entities import Actor
from rideshare.domain.enums import UserRole
from rideshare.infrastructure.database import async_session_factory
from rideshare.infrastructure.locations import LocationSuggestionService
from rideshare.infrastructure.repositories import RideRepository, UserRepository
from rideshare.services.ride_service import RideService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_actor(
    x_user_id: int = Header(..., description="Authenticated user id"),
    x_user_role: UserRole = Header(..., description="DRIVER or PASSENGER"),
) -> Actor:
    """Caller identity as forwarded by the authenticating gateway."""
    return Actor(user_id=x_user_id, role=x_user_role)


def get_ride_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> RideService:
    state = request.app.state
    return RideService(
        RideRepository(db),
        UserRepository(db),
        pricing=state.pricing,
        locks=state.locks,
        payments=state.payments,
        request_lead=timedelta(minutes=settings.min_request_lead_minutes),
        schedule_lead=timedelta(minutes=settings.min_schedule_lead_minutes),
        shared_match_radius_km=settings.shared_match_radius_km,
    )


def get_location_service(request: Request) -> LocationSuggestionService:
    return request.app.state.locations
