from __future__ import annotations

import enum
import uuid

from sqlalchemy import JSON, Enum, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_api.models.base import Base, TimestampMixin


class IdentityRole(str, enum.Enum):
    """Closed set of roles an identity can hold."""

    UNASSIGNED = "unassigned"
    DOCTOR = "doctor"
    PATIENT = "patient"


class Identity(Base, TimestampMixin):
    """A person known to the clinic, doctor or patient."""

    __tablename__ = "identities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[IdentityRole] = mapped_column(
        Enum(IdentityRole, name="identity_role"),
        default=IdentityRole.UNASSIGNED,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    prescription_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    booking_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
