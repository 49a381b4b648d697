from datetime import timedelta

import pytest
from jose import jwt

from clinic_api.access import AccessState, authenticate
from clinic_api.errors import Unauthorized
from clinic_api.models import IdentityRole
from clinic_api.services.security import create_access_token, decode_access_token

ADMIN_PASSWORD = "test-admin-password"  # pragma: allowlist secret


def _registration(**overrides):
    payload = {
        "full_name": "Dr. New",
        "email": "New.Doctor@clinic.test",
        "password": "s3cret-pass",  # pragma: allowlist secret
        "phoneNumber": "+15550300001",
    }
    payload.update(overrides)
    return payload


def test_admin_firewall(client):
    assert client.post("/auth/admin-firewall", json={"adminPassword": ADMIN_PASSWORD}).json() == {
        "success": True
    }
    assert client.post("/auth/admin-firewall", json={"adminPassword": "nope"}).status_code == 401


def test_doctor_register_then_login(client):
    registered = client.post("/auth/doctor/register", json=_registration())
    assert registered.status_code == 201
    assert registered.json()["user"]["role"] == "doctor"
    assert registered.json()["user"]["email"] == "new.doctor@clinic.test"

    login = client.post(
        "/auth/doctor/login",
        json={"email": "new.doctor@clinic.test", "password": "s3cret-pass"},
    )
    assert login.status_code == 200

    claims = decode_access_token(login.json()["token"])
    assert claims["sub"] == registered.json()["user"]["id"]
    assert claims["role"] == "doctor"


def test_register_duplicate_email_conflicts(client):
    client.post("/auth/register", json=_registration())
    response = client.post("/auth/register", json=_registration(phoneNumber="+15550300002"))

    assert response.status_code == 409
    assert response.json()["detail"] == "User with this email already exists"


def test_login_with_wrong_password(client, doctor):
    response = client.post(
        "/auth/login", json={"email": doctor.email, "password": "wrong-password"}
    )

    assert response.status_code == 400


def test_patient_cannot_use_doctor_login(client, patient):
    response = client.post(
        "/auth/doctor/login",
        json={"email": patient.email, "password": "patient-pass-123"},
    )

    assert response.status_code == 403


def test_resolved_identity_cannot_log_in(client):
    client.post("/auth/user", json={"full_name": "Walk In", "email": "walkin@x.com"})

    response = client.post(
        "/auth/login", json={"email": "walkin@x.com", "password": "anything"}
    )

    assert response.status_code == 400


def test_sync_creates_unassigned_identity_once(client):
    body = {
        "data": {
            "email_addresses": [{"email_address": "Synced@x.com"}],
            "full_name": "Synced User",
        }
    }

    first = client.post("/auth/sync", json=body)
    second = client.post("/auth/sync", json=body)

    assert first.status_code == 201
    assert first.json()["role"] == "unassigned"
    assert first.json()["email"] == "synced@x.com"
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]


def test_user_details_require_token(client, patient, patient_headers):
    assert client.get(f"/auth/{patient.id}").status_code == 401

    response = client.get(f"/auth/{patient.id}", headers=patient_headers)
    assert response.status_code == 200
    assert response.json()["full_name"] == "Maria Silva"


def test_public_doctor_list(client, doctor, patient):
    response = client.get("/role/doctors")

    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == [str(doctor.id)]


def test_role_update_to_patient(client, make_identity, headers_for):
    identity = make_identity("No Role", "norole@x.com", role=IdentityRole.UNASSIGNED)
    headers = headers_for(identity)

    response = client.post("/role/update", json={"role": "patient"}, headers=headers)

    assert response.status_code == 200
    assert client.get(f"/role/{identity.id}", headers=headers).json() == {"role": "patient"}


def test_role_update_to_doctor_needs_admin_password(client, make_identity, headers_for):
    identity = make_identity("No Role", "norole@x.com", role=IdentityRole.UNASSIGNED)
    headers = headers_for(identity)

    denied = client.post("/role/update", json={"role": "doctor"}, headers=headers)
    granted = client.post(
        "/role/update",
        json={"role": "doctor", "adminPassword": ADMIN_PASSWORD},
        headers=headers,
    )

    assert denied.status_code == 403
    assert granted.status_code == 200
    assert granted.json()["role"] == "doctor"


def test_authenticate_resolves_state_from_stored_role(db_session, make_identity):
    identity = make_identity("No Role", "norole@x.com", role=IdentityRole.UNASSIGNED)
    token = create_access_token(identity)

    assert authenticate(db_session, token).state == AccessState.AUTHENTICATED_NO_ROLE

    identity.role = IdentityRole.DOCTOR
    db_session.commit()
    assert authenticate(db_session, token).state == AccessState.AUTHENTICATED_DOCTOR


def test_expired_token_is_rejected(client, doctor):
    token = create_access_token(doctor, expires_delta=timedelta(seconds=-30))

    response = client.get(
        f"/prescription/{doctor.id}", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired. Please log in again."


def test_decode_rejects_foreign_signature(doctor):
    forged = jwt.encode({"sub": str(doctor.id)}, "other-secret", algorithm="HS256")

    with pytest.raises(Unauthorized, match="Invalid token"):
        decode_access_token(forged)
