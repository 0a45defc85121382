"""
Domain errors.

Every guard violation in the ride lifecycle raises one of the ``RideError``
subclasses below.  Each carries a stable ``code`` so that an outer layer
(the HTTP API) can pick a status without inspecting messages.
"""


class RideError(Exception):
    """Base class for all ride domain errors."""

    code = "ride-error"


class RideValidationError(RideError):
    """Missing / invalid request fields, or a ride time that is too soon."""

    code = "validation-failed"


class NotFoundError(RideError):
    """Unknown ride or user id."""

    code = "not-found"


class ForbiddenError(RideError):
    """The acting user lacks the role or ownership for the action."""

    code = "forbidden"


class AlreadyAssignedError(ForbiddenError):
    """The ride is bound to a different driver."""

    code = "already-assigned"


class InvalidStateTransition(RideError):
    """Raised when a ride status change violates the state machine."""

    code = "invalid-transition"


class AlreadyRatedError(RideError):
    code = "already-rated"


class RatingOutOfRangeError(RideError):
    code = "rating-out-of-range"


class RideFullError(RideError):
    """A shared ride already holds its second passenger."""

    code = "ride-full"


class PriceChangedError(RideError):
    """The ride price moved while a payment for it was being created."""

    code = "price-changed"


class BusyError(RideError):
    """A ride or user lock could not be taken in time; retry later."""

    code = "busy"


class PaymentError(Exception):
    """The payment provider rejected or failed a request."""
