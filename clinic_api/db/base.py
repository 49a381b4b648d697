"""Import SQLAlchemy models for Alembic's autogenerate feature."""

from clinic_api.models.base import Base
from clinic_api.models import (  # noqa: F401
    Booking,
    Identity,
    Prescription,
)

__all__ = [
    "Base",
    "Booking",
    "Identity",
    "Prescription",
]
