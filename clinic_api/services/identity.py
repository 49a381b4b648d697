"""Identity lookup, deduplication and progressive enrichment."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.errors import Conflict, NotFound, ValidationFailed
from clinic_api.models import Identity, IdentityRole
from clinic_api.services.security import unusable_password

logger = logging.getLogger(__name__)


@dataclass
class IdentityDescriptor:
    """Partial contact details used to find or create an identity."""

    full_name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    age: int | None = None
    address: str | None = None

    @property
    def normalized_email(self) -> str | None:
        return normalize_email(self.email)

    @property
    def normalized_phone(self) -> str | None:
        return normalize_phone(self.phone_number)


def normalize_email(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().lower()
    return cleaned or None


def normalize_phone(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def find_by_email(db: Session, email: str, *, exclude: UUID | None = None) -> Identity | None:
    stmt = select(Identity).where(Identity.email == email)
    if exclude is not None:
        stmt = stmt.where(Identity.id != exclude)
    return db.execute(stmt).scalars().first()


def find_by_phone(db: Session, phone: str, *, exclude: UUID | None = None) -> Identity | None:
    stmt = select(Identity).where(Identity.phone_number == phone)
    if exclude is not None:
        stmt = stmt.where(Identity.id != exclude)
    return db.execute(stmt).scalars().first()


def get_identity(db: Session, identity_id: UUID, *, label: str = "User") -> Identity:
    identity = db.get(Identity, identity_id)
    if identity is None:
        raise NotFound(f"{label} not found")
    return identity


def merge_contact_details(db: Session, identity: Identity, descriptor: IdentityDescriptor) -> bool:
    """Apply newly provided details that differ from the stored ones.

    Unique fields are only moved onto ``identity`` when no other identity
    holds them. Returns whether anything changed.
    """

    updates: dict[str, Any] = {}
    if descriptor.full_name and descriptor.full_name != identity.full_name:
        updates["full_name"] = descriptor.full_name
    if descriptor.age and descriptor.age != identity.age:
        updates["age"] = descriptor.age
    if descriptor.address and descriptor.address != identity.address:
        updates["address"] = descriptor.address

    email = descriptor.normalized_email
    if email and email != identity.email:
        if find_by_email(db, email, exclude=identity.id) is None:
            updates["email"] = email
        else:
            logger.warning(
                "email belongs to another identity, not merged",
                extra={"matched_identity": str(identity.id)},
            )

    phone = descriptor.normalized_phone
    if phone and phone != identity.phone_number:
        if find_by_phone(db, phone, exclude=identity.id) is None:
            updates["phone_number"] = phone
        else:
            logger.warning(
                "phone number belongs to another identity, not merged",
                extra={"matched_identity": str(identity.id)},
            )

    if not updates:
        return False

    for field, value in updates.items():
        setattr(identity, field, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict(_collision_message(db, email, phone)) from exc

    logger.info(
        "identity enriched",
        extra={"identity": str(identity.id), "fields": sorted(updates)},
    )
    return True


def _collision_message(db: Session, email: str | None, phone: str | None) -> str:
    if phone and find_by_phone(db, phone) is not None:
        return (
            "A user with this phone number already exists. "
            "Please use a different phone number or contact support."
        )
    if email and find_by_email(db, email) is not None:
        return (
            "A user with this email already exists. "
            "Please use a different email or contact support."
        )
    return "A user with these contact details already exists."


def create_identity(
    db: Session,
    descriptor: IdentityDescriptor,
    *,
    role: IdentityRole,
    password_hash: str | None,
    default_name: str | None = None,
) -> Identity:
    """Insert a new identity, mapping unique violations to ``Conflict``."""

    email = descriptor.normalized_email
    phone = descriptor.normalized_phone
    identity = Identity(
        full_name=descriptor.full_name or default_name,
        email=email,
        phone_number=phone,
        age=descriptor.age,
        address=descriptor.address,
        role=role,
        password_hash=password_hash,
        prescription_ids=[],
        booking_ids=[],
    )
    db.add(identity)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict(_collision_message(db, email, phone)) from exc

    logger.info(
        "identity created",
        extra={"identity": str(identity.id), "role": role.value},
    )
    return identity


def resolve_identity(
    db: Session,
    descriptor: IdentityDescriptor,
    *,
    default_name: str | None = None,
) -> tuple[Identity, bool]:
    """Return the identity matching by email or phone, creating it if needed.

    Email is checked before phone. When both match different identities the
    email match wins and the phone stays with its current owner.
    """

    email = descriptor.normalized_email
    phone = descriptor.normalized_phone
    if not email and not phone:
        raise ValidationFailed("Email or phone number is required")

    identity = find_by_email(db, email) if email else None
    if identity is None and phone:
        identity = find_by_phone(db, phone)
    elif identity is not None and phone and identity.phone_number != phone:
        other = find_by_phone(db, phone, exclude=identity.id)
        if other is not None:
            logger.warning(
                "contact details match different identities",
                extra={"email_match": str(identity.id), "phone_match": str(other.id)},
            )

    if identity is not None:
        merge_contact_details(db, identity, descriptor)
        return identity, False

    identity = create_identity(
        db,
        descriptor,
        role=IdentityRole.PATIENT,
        password_hash=unusable_password(),
        default_name=default_name,
    )
    return identity, True


def append_reference(db: Session, identity: Identity, field: str, reference: UUID) -> bool:
    """Append a back-reference id onto one of the identity's link lists.

    Runs in its own commit after the referenced record is stored. A failure
    is logged and leaves the referenced record in place.
    """

    try:
        current = list(getattr(identity, field) or [])
        current.append(str(reference))
        setattr(identity, field, current)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "failed to link record to identity",
            extra={"identity": str(identity.id), "field": field, "reference": str(reference)},
        )
        return False
    return True


def identity_map(db: Session, ids: Iterable[UUID]) -> dict[UUID, Identity]:
    """Fetch several identities at once, keyed by id."""

    wanted = set(ids)
    if not wanted:
        return {}
    stmt = select(Identity).where(Identity.id.in_(wanted))
    return {identity.id: identity for identity in db.execute(stmt).scalars().all()}


def list_doctors(db: Session) -> list[Identity]:
    stmt = (
        select(Identity)
        .where(Identity.role == IdentityRole.DOCTOR)
        .order_by(Identity.full_name)
    )
    return list(db.execute(stmt).scalars().all())


def serialize_identity(identity: Identity) -> dict[str, Any]:
    """Return a JSON-friendly representation of an identity."""

    return {
        "id": str(identity.id),
        "email": identity.email,
        "phoneNumber": identity.phone_number,
        "full_name": identity.full_name,
        "age": identity.age,
        "address": identity.address,
        "role": identity.role.value,
        "prescriptions": list(identity.prescription_ids or []),
        "bookings": list(identity.booking_ids or []),
        "createdAt": identity.created_at.isoformat() if identity.created_at else None,
        "updatedAt": identity.updated_at.isoformat() if identity.updated_at else None,
    }


def serialize_contact(identity: Identity | None) -> dict[str, Any] | None:
    """Compact view used when embedding an identity in another record."""

    if identity is None:
        return None
    return {
        "id": str(identity.id),
        "full_name": identity.full_name,
        "email": identity.email,
        "phoneNumber": identity.phone_number,
    }
