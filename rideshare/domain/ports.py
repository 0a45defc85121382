"""
Collaborator contracts the ride core depends on.

Concrete implementations live in ``rideshare.infrastructure``; tests supply
in-memory doubles.  The core never assumes a specific storage engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import AsyncContextManager, Iterable, Optional

from .entities import Ride, User
from .enums import RideStatus


class RideStore(ABC):
    @abstractmethod
    async def get(self, ride_id: int) -> Optional[Ride]: ...

    @abstractmethod
    async def get_for_update(self, ride_id: int) -> Optional[Ride]:
        """Load a ride that the caller is about to mutate.

        Implementations must keep a concurrent ``get_for_update`` of the same
        ride from observing state older than this caller's ``save``.
        """

    @abstractmethod
    async def save(self, ride: Ride) -> Ride:
        """Insert (``id is None``) or update a ride and return it."""

    @abstractmethod
    async def find_by_driver(self, driver_id: int) -> list[Ride]: ...

    @abstractmethod
    async def find_by_passenger(self, passenger_id: int) -> list[Ride]: ...

    @abstractmethod
    async def find_by_status(self, status: RideStatus) -> list[Ride]: ...

    @abstractmethod
    async def find_shared_by_status(
        self, statuses: Iterable[RideStatus]
    ) -> list[Ride]: ...

    @abstractmethod
    async def find_by_driver_and_status(
        self, driver_id: int, statuses: Iterable[RideStatus]
    ) -> list[Ride]: ...

    @abstractmethod
    async def find_by_passenger_and_status(
        self, passenger_id: int, statuses: Iterable[RideStatus]
    ) -> list[Ride]: ...


class UserStore(ABC):
    @abstractmethod
    async def get(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_for_update(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def save(self, user: User) -> User: ...


class LockProvider(ABC):
    """Mutual exclusion for read-check-write sequences."""

    @abstractmethod
    def ride(self, ride_id: int) -> AsyncContextManager: ...

    @abstractmethod
    def user(self, user_id: int) -> AsyncContextManager: ...


class PaymentGateway(ABC):
    @abstractmethod
    async def create_payment_intent(
        self, amount: Decimal, customer_id: Optional[str]
    ) -> str:
        """Return an opaque payment-intent reference or raise ``PaymentError``."""
