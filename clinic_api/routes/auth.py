from __future__ import annotations

import logging
import secrets
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from clinic_api.access import Caller, require_authenticated
from clinic_api.core.config import settings
from clinic_api.db.session import get_db
from clinic_api.errors import Conflict, Forbidden, Unauthorized, ValidationFailed
from clinic_api.models import Identity, IdentityRole
from clinic_api.schemas import (
    AdminFirewall,
    ContactDetails,
    Credentials,
    ProviderSync,
    Registration,
)
from clinic_api.services.identity import (
    IdentityDescriptor,
    create_identity,
    find_by_email,
    get_identity,
    normalize_email,
    resolve_identity,
    serialize_identity,
)
from clinic_api.services.security import (
    create_access_token,
    has_usable_password,
    hash_password,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)


def admin_password_matches(candidate: str | None) -> bool:
    if not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), settings.admin_password.encode("utf-8"))


def token_response(identity: Identity) -> dict[str, Any]:
    return {
        "token": create_access_token(identity),
        "user": {
            "id": str(identity.id),
            "email": identity.email,
            "full_name": identity.full_name,
            "role": identity.role.value,
        },
    }


def _register(db: Session, payload: Registration, role: IdentityRole) -> Identity:
    email = normalize_email(payload.email)
    if not email or not payload.password:
        raise ValidationFailed("Please provide all required fields")
    if find_by_email(db, email) is not None:
        raise Conflict("User with this email already exists")
    return create_identity(
        db,
        payload.descriptor(),
        role=role,
        password_hash=hash_password(payload.password),
    )


def _login(db: Session, payload: Credentials, *, doctor_only: bool) -> Identity:
    email = normalize_email(payload.email)
    if not email or not payload.password:
        raise ValidationFailed("Please provide email and password")

    identity = find_by_email(db, email)
    if identity is None:
        raise ValidationFailed("Invalid email or password")
    if doctor_only and identity.role != IdentityRole.DOCTOR:
        raise Forbidden("Only doctors can login here")
    if not has_usable_password(identity):
        raise ValidationFailed("This account doesn't use password authentication")
    if not verify_password(payload.password, identity):
        logger.warning("failed login", extra={"identity": str(identity.id)})
        raise ValidationFailed("Invalid email or password")
    return identity


@router.post("/admin-firewall")
def verify_admin_password(payload: AdminFirewall) -> dict[str, bool]:
    """Gate the doctor registration screen behind the admin password."""

    if admin_password_matches(payload.admin_password):
        return {"success": True}
    raise Unauthorized("Invalid admin password")


@router.post("/doctor/register", status_code=status.HTTP_201_CREATED)
def register_doctor(payload: Registration, db: Session = Depends(get_db)) -> dict[str, Any]:
    doctor = _register(db, payload, IdentityRole.DOCTOR)
    return token_response(doctor)


@router.post("/doctor/login")
def doctor_login(payload: Credentials, db: Session = Depends(get_db)) -> dict[str, Any]:
    return token_response(_login(db, payload, doctor_only=True))


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: Registration, db: Session = Depends(get_db)) -> dict[str, Any]:
    patient = _register(db, payload, IdentityRole.PATIENT)
    return token_response(patient)


@router.post("/login")
def login(payload: Credentials, db: Session = Depends(get_db)) -> dict[str, Any]:
    return token_response(_login(db, payload, doctor_only=False))


@router.post("/user")
def basic_user_info(
    payload: ContactDetails,
    response: Response,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Find or create the patient identity behind an anonymous visitor."""

    identity, created = resolve_identity(db, payload.descriptor())
    if created:
        response.status_code = status.HTTP_201_CREATED
    return serialize_identity(identity)


@router.post("/sync")
def sync_external_user(
    payload: ProviderSync,
    response: Response,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Mirror a user signed in through the external provider; role stays unassigned."""

    email = normalize_email(payload.data.email_addresses[0].email_address)
    if not email:
        raise ValidationFailed("Email is required")

    existing = find_by_email(db, email)
    if existing is not None:
        return serialize_identity(existing)

    identity = create_identity(
        db,
        IdentityDescriptor(full_name=payload.data.full_name, email=email),
        role=IdentityRole.UNASSIGNED,
        password_hash=None,
    )
    response.status_code = status.HTTP_201_CREATED
    return serialize_identity(identity)


@router.get("/{identity_id}")
def get_user_details(
    identity_id: UUID,
    caller: Caller = Depends(require_authenticated),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    return serialize_identity(get_identity(db, identity_id, label="User"))
