from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from clinic_api.models.base import Base, TimestampMixin, utcnow


class PaymentStatus(str, enum.Enum):
    """Payment states tracked for a prescription."""

    PENDING = "pending"
    PAID = "paid"


class Prescription(Base, TimestampMixin):
    """Prescription issued by a doctor to a patient."""

    __tablename__ = "prescriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), index=True
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), index=True
    )
    physical_examiner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("identities.id", ondelete="SET NULL"), nullable=True
    )
    booking_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True
    )
    prescription_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    medications: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    diagnosis: Mapped[str] = mapped_column(Text, default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    vitals: Mapped[str] = mapped_column(Text, default="", nullable=False)
    complaints: Mapped[str] = mapped_column(Text, default="", nullable=False)
    tests: Mapped[str] = mapped_column(Text, default="", nullable=False)
    investigation: Mapped[str] = mapped_column(Text, default="", nullable=False)
    patient_history: Mapped[str] = mapped_column(Text, default="", nullable=False)
    treatment_plan: Mapped[str] = mapped_column(Text, default="", nullable=False)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    date_issued: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    shareable_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
