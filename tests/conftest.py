"""Shared pytest fixtures: in-memory database, API client and signed-in identities."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-signing-secret"  # pragma: allowlist secret
os.environ["ADMIN_PASSWORD"] = "test-admin-password"  # pragma: allowlist secret
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"

from collections.abc import Callable, Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinic_api.db.base import Base  # noqa: E402
from clinic_api.db.session import get_db  # noqa: E402
from clinic_api.main import app  # noqa: E402
from clinic_api.models import Identity, IdentityRole  # noqa: E402
from clinic_api.services.identity import IdentityDescriptor, create_identity  # noqa: E402
from clinic_api.services.security import create_access_token, hash_password  # noqa: E402

DOCTOR_PASSWORD = "doctor-pass-123"  # pragma: allowlist secret
PATIENT_PASSWORD = "patient-pass-123"  # pragma: allowlist secret

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_identity(db_session: Session) -> Callable[..., Identity]:
    def _make(
        full_name: str,
        email: str,
        *,
        role: IdentityRole,
        phone_number: str | None = None,
        password: str | None = None,
    ) -> Identity:
        return create_identity(
            db_session,
            IdentityDescriptor(full_name=full_name, email=email, phone_number=phone_number),
            role=role,
            password_hash=hash_password(password) if password else None,
        )

    return _make


@pytest.fixture
def doctor(make_identity) -> Identity:
    return make_identity(
        "Dr. Asha Raman",
        "asha@clinic.test",
        role=IdentityRole.DOCTOR,
        phone_number="+15550100001",
        password=DOCTOR_PASSWORD,
    )


@pytest.fixture
def patient(make_identity) -> Identity:
    return make_identity(
        "Maria Silva",
        "maria@clinic.test",
        role=IdentityRole.PATIENT,
        phone_number="+15550200001",
        password=PATIENT_PASSWORD,
    )


def auth_headers(identity: Identity) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


@pytest.fixture
def headers_for() -> Callable[[Identity], dict[str, str]]:
    return auth_headers


@pytest.fixture
def doctor_headers(doctor: Identity) -> dict[str, str]:
    return auth_headers(doctor)


@pytest.fixture
def patient_headers(patient: Identity) -> dict[str, str]:
    return auth_headers(patient)
