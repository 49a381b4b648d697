"""Service layer utilities for the Clinic API."""

from clinic_api.services.identity import IdentityDescriptor, resolve_identity
from clinic_api.services.prescriptions import issue_prescription
from clinic_api.services.scheduling import create_booking, is_slot_available

__all__ = [
    "IdentityDescriptor",
    "create_booking",
    "is_slot_available",
    "issue_prescription",
    "resolve_identity",
]
