"""Prescription issuance, editing, sharing and payment tracking."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_api.errors import Forbidden, NotFound, ValidationFailed
from clinic_api.models import (
    Booking,
    Identity,
    IdentityRole,
    PaymentStatus,
    Prescription,
)
from clinic_api.services.identity import (
    IdentityDescriptor,
    append_reference,
    get_identity,
    identity_map,
    resolve_identity,
    serialize_contact,
)

logger = logging.getLogger(__name__)

SHAREABLE_TOKEN_BYTES = 16
SHARE_PATH = "/prescription/share/{shareable_id}"
MEDICATION_FIELDS = ("name", "dosage", "frequency", "duration", "instructions")

# Free-text clinical fields stored as empty strings when omitted.
TEXT_FIELDS = (
    "diagnosis",
    "notes",
    "vitals",
    "complaints",
    "tests",
    "investigation",
    "patient_history",
    "treatment_plan",
)


def generate_shareable_id() -> str:
    return secrets.token_hex(SHAREABLE_TOKEN_BYTES)


def shareable_url(prescription: Prescription) -> str:
    return SHARE_PATH.format(shareable_id=prescription.shareable_id)


def filter_medications(medications: Iterable[Mapping[str, Any] | None] | None) -> list[dict[str, Any]]:
    """Keep only medication rows that carry a non-blank name."""

    kept: list[dict[str, Any]] = []
    for medication in medications or []:
        if not medication:
            continue
        name = medication.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        row = {field: medication.get(field) for field in MEDICATION_FIELDS}
        row["name"] = name.strip()
        kept.append(row)
    return kept


def require_doctor(db: Session, doctor_id: UUID) -> Identity:
    """Re-read the identity and insist on the doctor role."""

    doctor = get_identity(db, doctor_id)
    if doctor.role != IdentityRole.DOCTOR:
        logger.warning(
            "doctor access denied",
            extra={"identity": str(doctor.id), "role": doctor.role.value},
        )
        raise Forbidden("Forbidden - doctor access required")
    return doctor


def _optional_reference(db: Session, model: type, reference: UUID | None) -> UUID | None:
    if reference is None:
        return None
    if db.get(model, reference) is None:
        return None
    return reference


def resolve_patient(
    db: Session,
    *,
    patient_id: UUID | None,
    descriptor: IdentityDescriptor,
) -> Identity:
    """Use a direct patient reference, else resolve the supplied contact details."""

    if patient_id is not None:
        return get_identity(db, patient_id, label="Patient")

    if not (descriptor.full_name or descriptor.email or descriptor.phone_number):
        raise ValidationFailed(
            "Patient ID or patient details (name/email/phone) are required "
            "to create a prescription."
        )
    patient, created = resolve_identity(db, descriptor, default_name="Unknown Patient")
    if created:
        logger.info(
            "created patient from prescription request",
            extra={"patient": str(patient.id)},
        )
    return patient


def issue_prescription(
    db: Session,
    *,
    doctor_id: UUID,
    patient_id: UUID | None,
    descriptor: IdentityDescriptor,
    details: dict[str, Any],
) -> Prescription:
    """Create a prescription and link it back onto the doctor.

    The prescription is committed before the doctor's back-reference is
    written; the second write may fail without undoing the first.
    """

    doctor = require_doctor(db, doctor_id)
    patient = resolve_patient(db, patient_id=patient_id, descriptor=descriptor)

    fields = {field: details.get(field) or "" for field in TEXT_FIELDS}
    prescription = Prescription(
        doctor_id=doctor.id,
        patient_id=patient.id,
        prescription_text=details.get("prescription_text"),
        medications=filter_medications(details.get("medications")),
        expiry_date=details.get("expiry_date"),
        follow_up_date=details.get("follow_up_date"),
        payment_amount=details.get("payment_amount"),
        physical_examiner_id=_optional_reference(
            db, Identity, details.get("physical_examiner_id")
        ),
        booking_id=_optional_reference(db, Booking, details.get("booking_id")),
        shareable_id=generate_shareable_id(),
        payment_status=PaymentStatus.PENDING,
        **fields,
    )
    db.add(prescription)
    db.commit()

    logger.info(
        "prescription issued",
        extra={
            "prescription": str(prescription.id),
            "doctor": str(doctor.id),
            "patient": str(patient.id),
            "medication_count": len(prescription.medications),
        },
    )
    append_reference(db, doctor, "prescription_ids", prescription.id)
    return prescription


def get_prescription(db: Session, prescription_id: UUID) -> Prescription:
    prescription = db.get(Prescription, prescription_id)
    if prescription is None:
        raise NotFound("Prescription not found")
    return prescription


def get_shared_prescription(db: Session, shareable_id: str) -> Prescription:
    stmt = select(Prescription).where(Prescription.shareable_id == shareable_id)
    prescription = db.execute(stmt).scalars().first()
    if prescription is None:
        raise NotFound("Prescription not found")
    return prescription


def update_prescription(
    db: Session,
    *,
    doctor_id: UUID,
    prescription_id: UUID,
    details: dict[str, Any],
) -> Prescription:
    """Replace the clinical content of a prescription.

    Any doctor may edit; ownership is not checked.
    """

    require_doctor(db, doctor_id)
    prescription = get_prescription(db, prescription_id)

    prescription.prescription_text = details.get("prescription_text")
    prescription.medications = filter_medications(details.get("medications"))
    for field in TEXT_FIELDS:
        setattr(prescription, field, details.get(field) or "")
    prescription.expiry_date = details.get("expiry_date")
    prescription.follow_up_date = details.get("follow_up_date")
    prescription.payment_amount = details.get("payment_amount")
    prescription.physical_examiner_id = _optional_reference(
        db, Identity, details.get("physical_examiner_id")
    )
    db.commit()

    logger.info(
        "prescription updated",
        extra={"prescription": str(prescription.id), "doctor": str(doctor_id)},
    )
    return prescription


def update_payment(
    db: Session,
    *,
    doctor_id: UUID,
    prescription_id: UUID,
    payment_status: PaymentStatus,
    payment_date: datetime | None = None,
    **changes: Any,
) -> Prescription:
    """Record payment state; a paid prescription defaults its date to now.

    ``payment_amount`` is only written when present in ``changes``, so a bare
    status change keeps the stored amount.
    """

    require_doctor(db, doctor_id)
    prescription = get_prescription(db, prescription_id)

    if payment_date is None and payment_status == PaymentStatus.PAID:
        payment_date = datetime.now(timezone.utc)

    prescription.payment_status = payment_status
    prescription.payment_date = payment_date
    if "payment_amount" in changes:
        prescription.payment_amount = changes["payment_amount"]
    db.commit()

    logger.info(
        "prescription payment updated",
        extra={"prescription": str(prescription.id), "payment_status": payment_status.value},
    )
    return prescription


def list_doctor_prescriptions(db: Session, doctor_id: UUID) -> list[Prescription]:
    doctor = require_doctor(db, doctor_id)
    stmt = (
        select(Prescription)
        .where(Prescription.doctor_id == doctor.id)
        .order_by(Prescription.date_issued.desc())
    )
    return list(db.execute(stmt).scalars().all())


def list_patient_prescriptions(db: Session, patient_id: UUID) -> list[Prescription]:
    stmt = (
        select(Prescription)
        .where(Prescription.patient_id == patient_id)
        .order_by(Prescription.date_issued.desc())
    )
    return list(db.execute(stmt).scalars().all())


def list_patient_payments(db: Session, *, doctor_id: UUID, patient_id: UUID) -> list[Prescription]:
    doctor = require_doctor(db, doctor_id)
    stmt = select(Prescription).where(
        Prescription.doctor_id == doctor.id,
        Prescription.patient_id == patient_id,
    )
    prescriptions = list(db.execute(stmt).scalars().all())
    if not prescriptions:
        raise NotFound("No prescriptions found for this patient")
    return prescriptions


def patients_with_appointments(db: Session, doctor_id: UUID) -> list[dict[str, Any]]:
    """Each distinct patient who booked the doctor, with their latest booking."""

    doctor = require_doctor(db, doctor_id)
    stmt = (
        select(Booking)
        .where(Booking.doctor_id == doctor.id)
        .order_by(Booking.date.desc(), Booking.time.desc())
    )
    bookings = db.execute(stmt).scalars().all()
    if not bookings:
        return []

    latest: dict[UUID, Booking] = {}
    for booking in bookings:
        latest.setdefault(booking.patient_id, booking)

    by_id = identity_map(db, latest)

    results: list[dict[str, Any]] = []
    for patient_id, booking in latest.items():
        patient = by_id.get(patient_id)
        if patient is None:
            logger.warning("booked patient missing from store", extra={"patient": str(patient_id)})
            continue
        results.append(
            {
                **serialize_contact(patient),
                "appointmentDate": booking.date.isoformat(),
                "appointmentTime": booking.time,
                "appointmentStatus": booking.status.value,
            }
        )
    return results


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_prescription(
    prescription: Prescription,
    *,
    doctor: Identity | None = None,
    patient: Identity | None = None,
) -> dict[str, Any]:
    """Return a JSON-friendly representation of a prescription."""

    return {
        "id": str(prescription.id),
        "doctor": serialize_contact(doctor) if doctor else str(prescription.doctor_id),
        "patient": serialize_contact(patient) if patient else str(prescription.patient_id),
        "physicalExaminer": str(prescription.physical_examiner_id)
        if prescription.physical_examiner_id
        else None,
        "appointment": str(prescription.booking_id) if prescription.booking_id else None,
        "prescriptionText": prescription.prescription_text,
        "medications": list(prescription.medications or []),
        "diagnosis": prescription.diagnosis,
        "notes": prescription.notes,
        "vitals": prescription.vitals,
        "complaints": prescription.complaints,
        "tests": prescription.tests,
        "investigation": prescription.investigation,
        "patientHistory": prescription.patient_history,
        "treatmentPlan": prescription.treatment_plan,
        "followUpDate": _iso(prescription.follow_up_date),
        "dateIssued": _iso(prescription.date_issued),
        "expiryDate": _iso(prescription.expiry_date),
        "shareableId": prescription.shareable_id,
        "paymentStatus": prescription.payment_status.value,
        "paymentDate": _iso(prescription.payment_date),
        "paymentAmount": prescription.payment_amount,
    }
