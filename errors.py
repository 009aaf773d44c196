"""Error taxonomy shared by the registry, store and reservation service.

Every error carries the HTTP status it maps to, so the API boundary can turn
any of them into the error envelope without a lookup table.
"""

from typing import Any, Optional

CONFLICT_MESSAGE = "The selected time slot is already booked."


class BookingError(Exception):
    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: Optional[str] = None, data: Any = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(BookingError):
    """Malformed or missing input. ``data`` maps field names to messages."""

    status_code = 422
    default_message = "The given data was invalid."


class NotFoundError(BookingError):
    status_code = 404
    default_message = "Not found."


class AuthenticationError(BookingError):
    status_code = 401
    default_message = "Unauthorized."


class AuthorizationError(BookingError):
    status_code = 403
    default_message = "Forbidden."


class ConflictError(BookingError):
    status_code = 422
    default_message = CONFLICT_MESSAGE


class UnexpectedError(BookingError):
    status_code = 500
