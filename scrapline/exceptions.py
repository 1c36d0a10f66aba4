class PickupError(Exception):
    """Base for every error the pickup core reports to its callers."""

    def __init__(self, message: str, original_error: Exception | None = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class ValidationError(PickupError):
    """Malformed input: bad enum, non-positive number, bad coordinate."""


class AuthorizationError(PickupError):
    """Caller lacks the role required for the transition, or is anonymous."""


class InvalidStateError(PickupError):
    """Transition is not legal from the listing's current status."""


class ConflictError(InvalidStateError):
    """Another caller changed the listing first; re-fetch before retrying."""


class NotFoundError(PickupError):
    """Listing or user does not exist."""


class StoreUnavailableError(PickupError):
    """The listing store could not be reached or rejected the operation."""
