"""
Error taxonomy for circulation operations.

Every failure the engine reports is one of these types, so callers can
decide what to tell the patron without parsing messages:

- NotFoundError: an asset, hold or patron reference does not exist
- InvalidTransitionError: the asset's current state forbids the request
- ConcurrencyConflictError: another request held the asset for too long
- RepositoryException: the database itself failed

None of them is retried by the engine.
"""


class CirculationError(Exception):
    """Base exception for circulation operations."""


class RepositoryException(CirculationError):
    """Raised when a database operation fails."""


class NotFoundError(CirculationError):
    """Raised when an asset, hold or patron is not found."""


class InvalidTransitionError(CirculationError):
    """Raised when a transition is not allowed from the current state."""


class AlreadyCheckedOutError(InvalidTransitionError):
    """Raised when checking out an asset that already has an open checkout."""


class NotCheckedOutError(InvalidTransitionError):
    """Raised when checking in an asset that is not checked out."""


class NotLostError(InvalidTransitionError):
    """Raised when marking found an asset that is not lost."""


class DuplicateHoldError(InvalidTransitionError):
    """Raised when a patron already has a pending hold on the asset."""


class NotPendingError(InvalidTransitionError):
    """Raised when cancelling or fulfilling a hold that is no longer pending."""


class ConcurrencyConflictError(CirculationError):
    """Raised when the per-asset lock could not be acquired in time.

    The caller may retry once.
    """


class StatusMismatchError(CirculationError):
    """Raised when stored asset status disagrees with its replayed history."""
