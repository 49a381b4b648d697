from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clinic_api.access import Caller, require_authenticated, require_doctor
from clinic_api.db.session import get_db
from clinic_api.models import Prescription
from clinic_api.schemas import PaymentUpdate, PrescriptionContent, PrescriptionCreate
from clinic_api.services.identity import identity_map
from clinic_api.services.prescriptions import (
    get_prescription,
    get_shared_prescription,
    issue_prescription,
    list_doctor_prescriptions,
    list_patient_payments,
    list_patient_prescriptions,
    patients_with_appointments,
    serialize_prescription,
    shareable_url,
    update_payment,
    update_prescription,
)

router = APIRouter(prefix="/prescription", tags=["prescriptions"])


def serialize_prescriptions(db: Session, prescriptions: list[Prescription]) -> list[dict[str, Any]]:
    people = identity_map(
        db,
        {p.doctor_id for p in prescriptions} | {p.patient_id for p in prescriptions},
    )
    return [
        serialize_prescription(
            prescription,
            doctor=people.get(prescription.doctor_id),
            patient=people.get(prescription.patient_id),
        )
        for prescription in prescriptions
    ]


@router.get("/share/{shareable_id}")
def shared_prescription(shareable_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Anonymous read access for whoever holds the shareable token."""

    return serialize_prescriptions(db, [get_shared_prescription(db, shareable_id)])[0]


@router.get("/user/{user_id}")
def user_prescriptions(
    user_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return serialize_prescriptions(db, list_patient_prescriptions(db, user_id))


@router.get("/single/{prescription_id}")
def single_prescription(
    prescription_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return serialize_prescriptions(db, [get_prescription(db, prescription_id)])[0]


@router.post("/create/{doctor_id}", status_code=status.HTTP_201_CREATED)
def create(
    doctor_id: UUID,
    payload: PrescriptionCreate,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    prescription = issue_prescription(
        db,
        doctor_id=doctor_id,
        patient_id=payload.patient_id,
        descriptor=payload.descriptor(),
        details=payload.clinical_details(),
    )
    return {
        "message": "Prescription created successfully",
        "prescription": serialize_prescription(prescription),
        "shareableUrl": shareable_url(prescription),
    }


@router.put("/{doctor_id}/update/{prescription_id}")
def update(
    doctor_id: UUID,
    prescription_id: UUID,
    payload: PrescriptionContent,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    prescription = update_prescription(
        db,
        doctor_id=doctor_id,
        prescription_id=prescription_id,
        details=payload.clinical_details(),
    )
    return {
        "message": "Prescription updated successfully",
        "prescription": serialize_prescription(prescription),
    }


@router.get("/{doctor_id}/patients-with-appointments")
def doctor_patients(
    doctor_id: UUID,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return patients_with_appointments(db, doctor_id)


@router.get("/{doctor_id}/patient/{patient_id}/payments")
def patient_payments(
    doctor_id: UUID,
    patient_id: UUID,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    prescriptions = list_patient_payments(db, doctor_id=doctor_id, patient_id=patient_id)
    return [serialize_prescription(prescription) for prescription in prescriptions]


@router.patch("/{doctor_id}/payment/{prescription_id}")
def payment(
    doctor_id: UUID,
    prescription_id: UUID,
    payload: PaymentUpdate,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    prescription = update_payment(
        db,
        doctor_id=doctor_id,
        prescription_id=prescription_id,
        **payload.model_dump(exclude_unset=True),
    )
    return {
        "message": "Payment status updated successfully",
        "prescription": serialize_prescription(prescription),
    }


@router.get("/{doctor_id}")
def doctor_prescriptions(
    doctor_id: UUID,
    caller: Caller = Depends(require_doctor),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    return serialize_prescriptions(db, list_doctor_prescriptions(db, doctor_id))
