from __future__ import annotations

import datetime as dt
import enum
import uuid

from sqlalchemy import Date, Enum, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_api.models.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    """Possible statuses for a booking lifecycle."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    """Appointment request between a patient and a doctor.

    ``time`` is an opaque slot token; it carries no duration.
    """

    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_doctor_slot", "doctor_id", "date", "time"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), index=True
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    issue: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Snapshot of the contact details submitted with the request.
    patient_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    patient_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    patient_address: Mapped[str | None] = mapped_column(Text, nullable=True)
