import uuid

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from clinic_api.models import Identity, IdentityRole, Prescription


def _create(client, doctor, headers, **overrides):
    payload = {
        "patientName": "Walk In",
        "patientEmail": "walkin@x.com",
        "diagnosis": "Seasonal flu",
        "medications": [
            {"name": "", "dosage": "5mg"},
            {"name": "Paracetamol", "dosage": "500mg"},
        ],
    }
    payload.update(overrides)
    return client.post(f"/prescription/create/{doctor.id}", json=payload, headers=headers)


def test_blank_medication_rows_are_dropped(client, doctor, doctor_headers):
    response = _create(
        client,
        doctor,
        doctor_headers,
        medications=[
            {"name": "", "dosage": "5mg"},
            {"name": "   ", "dosage": "1mg"},
            None,
            {"name": "Paracetamol", "dosage": "500mg"},
        ],
    )

    assert response.status_code == 201
    medications = response.json()["prescription"]["medications"]
    assert len(medications) == 1
    assert medications[0]["name"] == "Paracetamol"
    assert medications[0]["dosage"] == "500mg"


def test_create_returns_shareable_url(client, doctor, doctor_headers):
    body = _create(client, doctor, doctor_headers).json()

    shareable_id = body["prescription"]["shareableId"]
    assert len(shareable_id) == 32
    assert body["shareableUrl"] == f"/prescription/share/{shareable_id}"
    assert body["prescription"]["paymentStatus"] == "pending"


def test_shareable_ids_are_unique(client, doctor, doctor_headers):
    first = _create(client, doctor, doctor_headers).json()["prescription"]["shareableId"]
    second = _create(client, doctor, doctor_headers).json()["prescription"]["shareableId"]

    assert first != second


def test_shared_view_matches_direct_lookup(client, doctor, doctor_headers):
    created = _create(client, doctor, doctor_headers).json()["prescription"]

    shared = client.get(f"/prescription/share/{created['shareableId']}")
    direct = client.get(f"/prescription/single/{created['id']}", headers=doctor_headers)

    assert shared.status_code == 200
    assert direct.status_code == 200
    assert shared.json() == direct.json()
    assert shared.json()["patient"]["email"] == "walkin@x.com"


def test_unknown_share_token_is_not_found(client):
    response = client.get("/prescription/share/deadbeef")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_issue_links_prescription_onto_doctor(client, doctor, doctor_headers, db_session):
    created = _create(client, doctor, doctor_headers).json()["prescription"]

    db_session.refresh(doctor)
    assert doctor.prescription_ids == [created["id"]]


def test_issue_for_existing_patient_id(client, doctor, patient, doctor_headers):
    response = _create(
        client,
        doctor,
        doctor_headers,
        patientId=str(patient.id),
        patientName=None,
        patientEmail=None,
    )

    assert response.status_code == 201
    assert response.json()["prescription"]["patient"] == str(patient.id)


def test_issue_with_name_only_creates_nothing(client, doctor, doctor_headers, db_session):
    response = _create(client, doctor, doctor_headers, patientEmail=None)

    assert response.status_code == 400
    assert db_session.execute(select(Prescription)).first() is None
    assert db_session.execute(
        select(Identity).where(Identity.full_name == "Walk In")
    ).first() is None


def test_issue_without_patient_details_fails(client, doctor, doctor_headers):
    response = _create(client, doctor, doctor_headers, patientName=None, patientEmail=None)

    assert response.status_code == 400


def test_issue_requires_token(client, doctor):
    response = _create(client, doctor, {})

    assert response.status_code == 401


def test_issue_requires_doctor_role(client, doctor, patient_headers):
    response = _create(client, doctor, patient_headers)

    assert response.status_code == 403


def test_issue_for_path_identity_that_is_not_a_doctor(client, patient, doctor_headers):
    response = _create(client, patient, doctor_headers)

    assert response.status_code == 403


def test_revoked_role_takes_effect_immediately(client, doctor, doctor_headers, db_session):
    doctor.role = IdentityRole.PATIENT
    db_session.commit()

    response = _create(client, doctor, doctor_headers)

    assert response.status_code == 403


def test_token_for_deleted_identity_is_rejected(client, doctor, doctor_headers, db_session):
    doctor_id = doctor.id
    db_session.delete(doctor)
    db_session.commit()

    response = client.get(f"/prescription/{doctor_id}", headers=doctor_headers)

    assert response.status_code == 401
    assert "no longer exists" in response.json()["detail"]


def test_malformed_token_is_rejected(client, doctor):
    response = client.get(
        f"/prescription/{doctor.id}", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 401


def test_mark_prescription_paid(client, doctor, doctor_headers):
    created = _create(client, doctor, doctor_headers).json()["prescription"]

    response = client.patch(
        f"/prescription/{doctor.id}/payment/{created['id']}",
        json={"paymentStatus": "paid", "paymentAmount": 250},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    updated = response.json()["prescription"]
    assert updated["paymentStatus"] == "paid"
    assert updated["paymentAmount"] == 250
    assert updated["paymentDate"] is not None


def test_marking_paid_keeps_stored_amount(client, doctor, doctor_headers):
    created = _create(client, doctor, doctor_headers, paymentAmount=250).json()["prescription"]

    response = client.patch(
        f"/prescription/{doctor.id}/payment/{created['id']}",
        json={"paymentStatus": "paid"},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    updated = response.json()["prescription"]
    assert updated["paymentStatus"] == "paid"
    assert updated["paymentAmount"] == 250


def test_explicit_null_amount_clears_it(client, doctor, doctor_headers):
    created = _create(client, doctor, doctor_headers, paymentAmount=250).json()["prescription"]

    response = client.patch(
        f"/prescription/{doctor.id}/payment/{created['id']}",
        json={"paymentStatus": "pending", "paymentAmount": None},
        headers=doctor_headers,
    )

    assert response.json()["prescription"]["paymentAmount"] is None


def test_update_prescription_content(client, doctor, doctor_headers):
    created = _create(client, doctor, doctor_headers).json()["prescription"]

    response = client.put(
        f"/prescription/{doctor.id}/update/{created['id']}",
        json={"diagnosis": "Common cold", "medications": [{"name": "Rest"}]},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    updated = response.json()["prescription"]
    assert updated["diagnosis"] == "Common cold"
    assert [m["name"] for m in updated["medications"]] == ["Rest"]
    assert updated["shareableId"] == created["shareableId"]


def test_doctor_and_patient_listings(client, doctor, doctor_headers, patient, patient_headers):
    _create(client, doctor, doctor_headers, patientId=str(patient.id))

    by_doctor = client.get(f"/prescription/{doctor.id}", headers=doctor_headers)
    by_patient = client.get(f"/prescription/user/{patient.id}", headers=patient_headers)
    payments = client.get(
        f"/prescription/{doctor.id}/patient/{patient.id}/payments", headers=doctor_headers
    )

    assert len(by_doctor.json()) == 1
    assert by_patient.json()[0]["doctor"]["full_name"] == "Dr. Asha Raman"
    assert payments.status_code == 200
    assert len(payments.json()) == 1


def test_payments_for_patient_without_prescriptions(client, doctor, patient, doctor_headers):
    response = client.get(
        f"/prescription/{doctor.id}/patient/{patient.id}/payments", headers=doctor_headers
    )

    assert response.status_code == 404


def test_patients_with_appointments(client, doctor, doctor_headers):
    for time in ("09:00", "15:00"):
        client.post(
            "/booking/create",
            json={
                "doctor": str(doctor.id),
                "date": "2025-06-01",
                "time": time,
                "email": "a@x.com",
                "full_name": "A",
            },
        )

    response = client.get(
        f"/prescription/{doctor.id}/patients-with-appointments", headers=doctor_headers
    )

    assert response.status_code == 200
    assert len(response.json()) == 1
    assert response.json()[0]["appointmentTime"] == "15:00"
    assert response.json()[0]["appointmentStatus"] == "pending"


def test_failed_back_reference_keeps_prescription(
    client, doctor, patient, doctor_headers, db_session, monkeypatch
):
    real_commit = Session.commit
    commits = []

    # First commit stores the prescription, the second links it onto the doctor.
    def commit_failing_on_link(self):
        commits.append(self)
        if len(commits) == 2:
            raise OperationalError("UPDATE identities", {}, Exception("database is locked"))
        return real_commit(self)

    monkeypatch.setattr(Session, "commit", commit_failing_on_link)
    response = _create(client, doctor, doctor_headers, patientId=str(patient.id))
    monkeypatch.undo()

    assert response.status_code == 201
    created = response.json()["prescription"]

    shared = client.get(f"/prescription/share/{created['shareableId']}")
    assert shared.status_code == 200
    assert shared.json()["id"] == created["id"]

    db_session.refresh(doctor)
    assert doctor.prescription_ids == []
    assert db_session.get(Prescription, uuid.UUID(created["id"])) is not None
