"""SQLAlchemy models for the Clinic API."""

from clinic_api.models.booking import Booking, BookingStatus
from clinic_api.models.identity import Identity, IdentityRole
from clinic_api.models.prescription import PaymentStatus, Prescription

__all__ = [
    "Booking",
    "BookingStatus",
    "Identity",
    "IdentityRole",
    "PaymentStatus",
    "Prescription",
]
