"""Request bodies accepted by the HTTP API.

Wire names follow the web client: camelCase, except ``full_name``.
"""

from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clinic_api.models import BookingStatus, IdentityRole, PaymentStatus
from clinic_api.services.identity import IdentityDescriptor


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactDetails(CamelModel):
    full_name: str | None = Field(default=None, alias="full_name")
    email: str | None = None
    phone_number: str | None = Field(
        default=None,
        validation_alias=AliasChoices("phoneNumber", "phone", "phone_number"),
    )
    age: int | None = None
    address: str | None = None

    def descriptor(self) -> IdentityDescriptor:
        return IdentityDescriptor(
            full_name=self.full_name,
            email=self.email,
            phone_number=self.phone_number,
            age=self.age,
            address=self.address,
        )


class BookingCreate(ContactDetails):
    date: dt.date
    time: str
    doctor: UUID
    user: UUID | None = None
    issue: str | None = None


class SlotCheck(CamelModel):
    doctor_id: UUID | None = None
    date: dt.date
    time: str


class BookingUpdate(CamelModel):
    date: dt.date | None = None
    time: str | None = None
    status: BookingStatus | None = None
    issue: str | None = None


class AdminFirewall(CamelModel):
    admin_password: str = ""


class Credentials(CamelModel):
    email: str
    password: str


class Registration(Credentials):
    full_name: str = Field(alias="full_name")
    phone_number: str | None = None
    age: int | None = None
    address: str | None = None

    def descriptor(self) -> IdentityDescriptor:
        return IdentityDescriptor(
            full_name=self.full_name,
            email=self.email,
            phone_number=self.phone_number,
            age=self.age,
            address=self.address,
        )


class ProviderEmail(BaseModel):
    email_address: str


class ProviderUser(BaseModel):
    email_addresses: list[ProviderEmail] = Field(min_length=1)
    full_name: str | None = None


class ProviderSync(BaseModel):
    """Payload pushed by the external sign-in provider."""

    data: ProviderUser


class RoleUpdate(CamelModel):
    role: IdentityRole
    admin_password: str | None = None


class MedicationIn(BaseModel):
    name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    duration: str | None = None
    instructions: str | None = None


class PrescriptionContent(CamelModel):
    prescription_text: str | None = None
    medications: list[MedicationIn | None] = Field(default_factory=list)
    diagnosis: str | None = None
    notes: str | None = None
    payment_amount: float | None = None
    expiry_date: dt.datetime | None = None
    patient_history: str | None = None
    treatment_plan: str | None = None
    follow_up_date: dt.datetime | None = None
    physical_examiner: UUID | None = None
    investigation: str | None = None
    vitals: str | None = None
    complaints: str | None = None
    tests: str | None = None

    def clinical_details(self) -> dict[str, Any]:
        return {
            "prescription_text": self.prescription_text,
            "medications": [m.model_dump() if m else None for m in self.medications],
            "diagnosis": self.diagnosis,
            "notes": self.notes,
            "payment_amount": self.payment_amount,
            "expiry_date": self.expiry_date,
            "patient_history": self.patient_history,
            "treatment_plan": self.treatment_plan,
            "follow_up_date": self.follow_up_date,
            "physical_examiner_id": self.physical_examiner,
            "investigation": self.investigation,
            "vitals": self.vitals,
            "complaints": self.complaints,
            "tests": self.tests,
        }


class PrescriptionCreate(PrescriptionContent):
    patient_id: UUID | None = None
    appointment_id: UUID | None = None
    patient_name: str | None = None
    patient_email: str | None = None
    patient_phone: str | None = None
    patient_age: int | None = None
    patient_address: str | None = None

    def descriptor(self) -> IdentityDescriptor:
        return IdentityDescriptor(
            full_name=self.patient_name,
            email=self.patient_email,
            phone_number=self.patient_phone,
            age=self.patient_age,
            address=self.patient_address,
        )

    def clinical_details(self) -> dict[str, Any]:
        details = super().clinical_details()
        details["booking_id"] = self.appointment_id
        return details


class PaymentUpdate(CamelModel):
    payment_status: PaymentStatus
    payment_date: dt.datetime | None = None
    payment_amount: float | None = None
