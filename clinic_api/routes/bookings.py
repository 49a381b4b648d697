from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clinic_api.access import Caller, require_authenticated, require_doctor
from clinic_api.db.session import get_db
from clinic_api.errors import NotFound, SlotUnavailable, ValidationFailed
from clinic_api.models import Booking
from clinic_api.schemas import BookingCreate, BookingUpdate, SlotCheck
from clinic_api.services.identity import identity_map
from clinic_api.services.scheduling import (
    create_booking,
    delete_booking,
    find_booking_for_pair,
    get_booking,
    is_slot_available,
    list_all_bookings,
    list_doctor_bookings,
    list_patient_bookings,
    serialize_booking,
    update_booking,
)

router = APIRouter(prefix="/booking", tags=["bookings"])


def serialize_bookings(
    db: Session,
    bookings: list[Booking],
    *,
    with_patient: bool = False,
    with_doctor: bool = False,
) -> list[dict[str, Any]]:
    ids = set()
    if with_patient:
        ids.update(booking.patient_id for booking in bookings)
    if with_doctor:
        ids.update(booking.doctor_id for booking in bookings)
    people = identity_map(db, ids)
    return [
        serialize_booking(
            booking,
            patient=people.get(booking.patient_id) if with_patient else None,
            doctor=people.get(booking.doctor_id) if with_doctor else None,
        )
        for booking in bookings
    ]


@router.post("/time-slot")
def slot_availability(payload: SlotCheck, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Report whether a doctor's (date, time) slot is still free."""

    if payload.doctor_id is None:
        raise ValidationFailed("Doctor ID is required")

    time = payload.time.strip()
    if not time:
        raise ValidationFailed("Time is required")

    available = is_slot_available(
        db,
        doctor_id=payload.doctor_id,
        booking_date=payload.date,
        time=time,
    )
    if not available:
        raise SlotUnavailable("Slot is not available")
    return {"message": "Slot is available", "available": True}


@router.post("/create", status_code=status.HTTP_201_CREATED)
def create(payload: BookingCreate, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Book a slot for a signed-in user or an anonymous visitor."""

    booking = create_booking(
        db,
        doctor_id=payload.doctor,
        booking_date=payload.date,
        time=payload.time,
        descriptor=payload.descriptor(),
        patient_id=payload.user,
        issue=payload.issue,
    )
    return {"message": "Booking created successfully", "booking": serialize_booking(booking)}


@router.get("/all")
def all_bookings(
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return serialize_bookings(db, list_all_bookings(db), with_patient=True, with_doctor=True)


@router.get("/single/{booking_id}")
def single_booking(
    booking_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return serialize_bookings(db, [get_booking(db, booking_id)], with_patient=True)[0]


@router.get("/user/{user_id}")
def user_bookings(
    user_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return serialize_bookings(db, list_patient_bookings(db, user_id), with_doctor=True)


@router.post("/update/{booking_id}")
def update(
    booking_id: UUID,
    payload: BookingUpdate,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "time" in changes:
        changes["time"] = changes["time"].strip()
        if not changes["time"]:
            raise ValidationFailed("Time is required")
    booking = update_booking(db, booking_id, changes)
    return serialize_bookings(db, [booking], with_patient=True)[0]


@router.delete("/delete/{booking_id}")
def delete(
    booking_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    delete_booking(db, booking_id)
    return {"message": "Booking deleted successfully."}


@router.post("/{doctor_id}/details/{user_id}")
def booking_id_for_pair(
    doctor_id: UUID,
    user_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    booking = find_booking_for_pair(db, patient_id=user_id, doctor_id=doctor_id)
    return {"bookingId": str(booking.id)}


@router.get("/{doctor_id}")
def doctor_bookings(
    doctor_id: UUID,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    bookings = list_doctor_bookings(db, doctor_id)
    if not bookings:
        raise NotFound("No bookings found")
    return serialize_bookings(db, bookings, with_patient=True)
