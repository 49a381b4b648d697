from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from clinic_api.db.session import SessionLocal
from clinic_api.logging_utils import configure_logging
from clinic_api.models import Identity, IdentityRole
from clinic_api.services.identity import IdentityDescriptor, create_identity, find_by_email
from clinic_api.services.security import hash_password, unusable_password

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "clinic-demo"  # pragma: allowlist secret

DOCTORS: list[tuple[str, str, str]] = [
    ("Dr. Asha Raman", "asha.raman@example.com", "+15550100001"),
    ("Dr. Tomas Ortega", "tomas.ortega@example.com", "+15550100002"),
]

PATIENTS: list[tuple[str, str, str, int]] = [
    ("Maria Silva", "maria.silva@example.com", "+15550200001", 34),
    ("John Pereira", "john.pereira@example.com", "+15550200002", 51),
]


def ensure_doctors(session: Session) -> list[Identity]:
    created = 0
    doctors: list[Identity] = []
    for name, email, phone in DOCTORS:
        doctor = find_by_email(session, email)
        if doctor is None:
            doctor = create_identity(
                session,
                IdentityDescriptor(full_name=name, email=email, phone_number=phone),
                role=IdentityRole.DOCTOR,
                password_hash=hash_password(DEMO_PASSWORD),
            )
            created += 1
        doctors.append(doctor)

    logger.info("ensured doctors", extra={"created": created, "total": len(doctors)})
    return doctors


def ensure_patients(session: Session) -> list[Identity]:
    created = 0
    patients: list[Identity] = []
    for name, email, phone, age in PATIENTS:
        patient = find_by_email(session, email)
        if patient is None:
            patient = create_identity(
                session,
                IdentityDescriptor(full_name=name, email=email, phone_number=phone, age=age),
                role=IdentityRole.PATIENT,
                password_hash=unusable_password(),
            )
            created += 1
        patients.append(patient)

    logger.info("ensured patients", extra={"created": created, "total": len(patients)})
    return patients


def seed() -> None:
    configure_logging()
    logger.info("starting seed process")

    session = SessionLocal()
    try:
        ensure_doctors(session)
        ensure_patients(session)
        logger.info("seed complete")
    except Exception:
        session.rollback()
        logger.exception("seed failed")
        raise
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    seed()
