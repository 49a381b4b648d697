"""Domain errors raised by the service layer and mapped to HTTP responses."""

from __future__ import annotations

from fastapi import status


class ClinicError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class Unauthorized(ClinicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class Forbidden(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Conflict(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class DuplicateBooking(Conflict):
    """The same patient already holds this doctor/date/time slot."""

    code = "duplicate_booking"


class SlotUnavailable(Conflict):
    """Another patient already holds this doctor/date/time slot."""

    code = "slot_unavailable"


__all__ = [
    "ClinicError",
    "Conflict",
    "DuplicateBooking",
    "Forbidden",
    "NotFound",
    "SlotUnavailable",
    "Unauthorized",
    "ValidationFailed",
]
