"""
Domain errors raised by the lending models.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, so blueprints can translate them without a lookup table.
"""


class LendingError(Exception):
    """Base error for lending-domain failures."""

    code = 'ERROR'
    status_code = 400

    def __init__(self, message: str = None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.details = details


class ValidationError(LendingError):
    """Invalid input: bad duration, weekday, amount or malformed dates."""

    code = 'VALIDATION_ERROR'
    status_code = 400


class PriceHiddenError(ValidationError):
    """Product price is hidden; it cannot be booked."""

    code = 'PRICE_HIDDEN'


class InvalidAmountError(ValidationError):
    """Refund amount is outside 0..credits_charged."""

    code = 'INVALID_AMOUNT'


class NotFoundError(LendingError):
    """Entity not found."""

    code = 'NOT_FOUND'
    status_code = 404


class PermissionDeniedError(LendingError):
    """Not allowed to act on this entity."""

    code = 'FORBIDDEN'
    status_code = 403


class ConflictError(LendingError):
    """Interval overlaps an existing reservation or maintenance."""

    code = 'CONFLICT'
    status_code = 409


class MaintenanceOverlapError(ConflictError):
    """A maintenance already exists for this period."""

    code = 'MAINTENANCE_OVERLAP'


class InsufficientCreditsError(LendingError):
    """Credit balance is lower than the amount to debit."""

    code = 'INSUFFICIENT_CREDITS'
    status_code = 400


class InvalidTransitionError(LendingError):
    """Illegal reservation lifecycle move."""

    code = 'INVALID_TRANSITION'
    status_code = 409


class AlreadyRefundedError(LendingError):
    """Reservation has already been refunded."""

    code = 'ALREADY_REFUNDED'
    status_code = 400
