"""Booking creation, slot checks and booking queries."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_api.errors import (
    DuplicateBooking,
    NotFound,
    SlotUnavailable,
    ValidationFailed,
)
from clinic_api.models import Booking, BookingStatus, Identity, IdentityRole
from clinic_api.services.identity import (
    IdentityDescriptor,
    append_reference,
    get_identity,
    resolve_identity,
    serialize_contact,
)

logger = logging.getLogger(__name__)


def find_booking_at(
    db: Session,
    *,
    doctor_id: UUID,
    booking_date: date,
    time: str,
    patient_id: UUID | None = None,
) -> Booking | None:
    """Exact-match lookup of a booking on a doctor's slot."""

    stmt = select(Booking).where(
        Booking.doctor_id == doctor_id,
        Booking.date == booking_date,
        Booking.time == time,
    )
    if patient_id is not None:
        stmt = stmt.where(Booking.patient_id == patient_id)
    return db.execute(stmt).scalars().first()


def is_slot_available(db: Session, *, doctor_id: UUID, booking_date: date, time: str) -> bool:
    """Return whether no booking exists on (doctor, date, time), for any patient."""

    return find_booking_at(db, doctor_id=doctor_id, booking_date=booking_date, time=time) is None


def get_doctor(db: Session, doctor_id: UUID) -> Identity:
    doctor = get_identity(db, doctor_id, label="Doctor")
    if doctor.role != IdentityRole.DOCTOR:
        raise ValidationFailed("Selected user is not a doctor")
    return doctor


def create_booking(
    db: Session,
    *,
    doctor_id: UUID,
    booking_date: date,
    time: str,
    descriptor: IdentityDescriptor,
    patient_id: UUID | None = None,
    issue: str | None = None,
) -> Booking:
    """Resolve the patient, reject duplicates and taken slots, then persist.

    ``patient_id`` is used for callers that already know their identity;
    otherwise the contact details in ``descriptor`` are resolved.
    """

    time = time.strip()
    if not time:
        raise ValidationFailed("Time is required")

    doctor = get_doctor(db, doctor_id)

    if patient_id is not None:
        patient = get_identity(db, patient_id, label="Patient")
    else:
        patient, created = resolve_identity(db, descriptor)
        if created:
            logger.info("created patient from booking request", extra={"patient": str(patient.id)})

    duplicate = find_booking_at(
        db,
        doctor_id=doctor.id,
        booking_date=booking_date,
        time=time,
        patient_id=patient.id,
    )
    if duplicate is not None:
        raise DuplicateBooking(
            "You already have a booking with this doctor on this date and time"
        )

    if not is_slot_available(db, doctor_id=doctor.id, booking_date=booking_date, time=time):
        raise SlotUnavailable("Slot is not available")

    booking = Booking(
        patient_id=patient.id,
        doctor_id=doctor.id,
        date=booking_date,
        time=time,
        status=BookingStatus.PENDING,
        issue=issue or "",
        patient_name=descriptor.full_name,
        patient_email=descriptor.normalized_email,
        patient_phone=descriptor.normalized_phone,
        patient_age=descriptor.age,
        patient_address=descriptor.address,
    )
    db.add(booking)
    db.commit()

    logger.info(
        "booking created",
        extra={"booking": str(booking.id), "doctor": str(doctor.id), "patient": str(patient.id)},
    )
    append_reference(db, patient, "booking_ids", booking.id)
    return booking


def get_booking(db: Session, booking_id: UUID) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("No booking found")
    return booking


def update_booking(db: Session, booking_id: UUID, changes: dict[str, Any]) -> Booking:
    """Apply an explicit partial update to a booking.

    Moving the booking to another date or time runs the same duplicate and
    slot checks as creation.
    """

    booking = get_booking(db, booking_id)
    target_date = changes.get("date", booking.date)
    target_time = changes.get("time", booking.time)
    if (target_date, target_time) != (booking.date, booking.time):
        taken = find_booking_at(
            db, doctor_id=booking.doctor_id, booking_date=target_date, time=target_time
        )
        if taken is not None and taken.id != booking.id:
            if taken.patient_id == booking.patient_id:
                raise DuplicateBooking(
                    "You already have a booking with this doctor on this date and time"
                )
            raise SlotUnavailable("Slot is not available")

    for field, value in changes.items():
        setattr(booking, field, value)
    db.commit()
    logger.info(
        "booking updated",
        extra={"booking": str(booking.id), "fields": sorted(changes)},
    )
    return booking


def delete_booking(db: Session, booking_id: UUID) -> None:
    booking = get_booking(db, booking_id)
    db.delete(booking)
    db.commit()
    logger.info("booking deleted", extra={"booking": str(booking_id)})


def _ordered(stmt):
    return stmt.order_by(Booking.date.desc(), Booking.time.desc())


def list_doctor_bookings(db: Session, doctor_id: UUID) -> list[Booking]:
    stmt = _ordered(select(Booking).where(Booking.doctor_id == doctor_id))
    return list(db.execute(stmt).scalars().all())


def list_patient_bookings(db: Session, patient_id: UUID) -> list[Booking]:
    stmt = _ordered(select(Booking).where(Booking.patient_id == patient_id))
    return list(db.execute(stmt).scalars().all())


def list_all_bookings(db: Session) -> list[Booking]:
    return list(db.execute(_ordered(select(Booking))).scalars().all())


def find_booking_for_pair(db: Session, *, patient_id: UUID, doctor_id: UUID) -> Booking:
    stmt = select(Booking).where(
        Booking.patient_id == patient_id,
        Booking.doctor_id == doctor_id,
    )
    booking = db.execute(stmt).scalars().first()
    if booking is None:
        raise NotFound("No booking found")
    return booking


def serialize_booking(
    booking: Booking,
    *,
    patient: Identity | None = None,
    doctor: Identity | None = None,
) -> dict[str, Any]:
    """Return a JSON-friendly representation of a booking.

    ``patient`` and ``doctor`` are embedded when given, otherwise only ids.
    """

    return {
        "id": str(booking.id),
        "user": serialize_contact(patient) if patient else str(booking.patient_id),
        "doctor": serialize_contact(doctor) if doctor else str(booking.doctor_id),
        "date": booking.date.isoformat(),
        "time": booking.time,
        "status": booking.status.value,
        "issue": booking.issue,
        "patientName": booking.patient_name,
        "patientEmail": booking.patient_email,
        "patientPhone": booking.patient_phone,
        "patientAge": booking.patient_age,
        "patientAddress": booking.patient_address,
        "createdAt": booking.created_at.isoformat() if booking.created_at else None,
        "updatedAt": booking.updated_at.isoformat() if booking.updated_at else None,
    }
