"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    SCHEDULED = "SCHEDULED"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.SCHEDULED: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

# A second passenger may only join while the ride has not started.
JOINABLE_STATUSES = (RideStatus.REQUESTED, RideStatus.ACCEPTED)

DRIVER_ACTIVE_STATUSES = (RideStatus.ACCEPTED, RideStatus.IN_PROGRESS)
PASSENGER_ACTIVE_STATUSES = (
    RideStatus.REQUESTED,
    RideStatus.SCHEDULED,
    RideStatus.ACCEPTED,
    RideStatus.IN_PROGRESS,
)


class UserRole(str, enum.Enum):
    DRIVER = "DRIVER"
    PASSENGER = "PASSENGER"
