"""Clinic API: identities, bookings and prescriptions over HTTP."""
