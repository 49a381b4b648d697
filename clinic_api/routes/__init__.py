"""HTTP routers for the Clinic API."""

from clinic_api.routes.auth import router as auth_router
from clinic_api.routes.bookings import router as bookings_router
from clinic_api.routes.prescriptions import router as prescriptions_router
from clinic_api.routes.roles import router as roles_router

__all__ = [
    "auth_router",
    "bookings_router",
    "prescriptions_router",
    "roles_router",
]
