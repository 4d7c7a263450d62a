"""
FILE: tests/conftest.py
Shared pytest fixtures and configuration for the Clinic multi-tenant API.

Fixture hierarchy:
    engine → session → client
    clinic → doctor, second_doctor, nurse, head_nurse, pharmacist
           └→ clinic_headers, doctor_headers, nurse_headers, ... (bearer tokens)
    other_clinic → other_doctor → other_clinic_headers, other_doctor_headers
    inactive_clinic, inactive_doctor  (edge-case principals)
    patient, other_patient, appointment
"""
import sys
import os

# Test modules import the builders below via `from conftest import ...`
sys.path.insert(0, os.path.dirname(__file__))

# Settings are read at import time; configure before the app is imported
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "1024"
os.environ["ARGON2_PARALLELISM"] = "1"
os.environ["SEND_EMAILS"] = "false"
os.environ["DEV_LOGIN_ENABLED"] = "false"

import pytest
from datetime import datetime, timedelta, timezone
from typing import Dict

from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from src.auth.rate_limit import login_failures
from src.core.config import settings
from src.core.database import get_session
from src.core.security import hash_password
from src.core.tokens import token_service
from src.shared.models import (
    Appointment,
    Clinic,
    Doctor,
    Nurse,
    NurseShift,
    Patient,
    Pharmacist,
    PrincipalRole,
    utcnow,
)

TEST_PASSWORD = "Str0ng!Pass1"


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture(name="engine")
def engine_fixture():
    """Create in-memory SQLite engine for tests. Schema is created per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a function-scoped session; rolls back after each test."""
    with Session(engine) as session:
        yield session
        session.rollback()


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """TestClient with the DB session dependency overridden."""
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# ============================================================================
# PRINCIPAL BUILDERS
# ============================================================================

def make_clinic(session: Session, email: str, name: str, is_active: bool = True) -> Clinic:
    clinic = Clinic(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        name=name,
        admin_name=f"{name} Admin",
        city="Lagos",
        country="Nigeria",
        is_active=is_active,
        email_verified=True,
    )
    session.add(clinic)
    session.commit()
    session.refresh(clinic)
    return clinic


def make_staff(session: Session, model, clinic: Clinic, email: str, uhid: str, **extra):
    member = model(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        full_name=extra.pop("full_name", email.split("@")[0].title()),
        uhid=uhid,
        clinic_id=clinic.id,
        email_verified=True,
        **extra,
    )
    session.add(member)
    session.commit()
    session.refresh(member)
    return member


def bearer(principal) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_service.mint(principal)}"}


def forge_token(principal, issued_at: datetime, ttl_seconds: int = 3600, **overrides) -> str:
    """Sign a token with an arbitrary issue time, using the configured key."""
    payload = {
        "sub": str(principal.id),
        "role": principal.role.value,
        "cid": str(principal.clinic_id),
        "jti": os.urandom(16).hex(),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    payload.update(overrides)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# ============================================================================
# CLINIC (TENANT) FIXTURES
# ============================================================================

@pytest.fixture(name="clinic")
def clinic_fixture(session: Session) -> Clinic:
    """Primary clinic (C1)."""
    return make_clinic(session, "admin@sunrise.example.com", "Sunrise Clinic")


@pytest.fixture(name="other_clinic")
def other_clinic_fixture(session: Session) -> Clinic:
    """Second clinic (C2), used to prove isolation."""
    return make_clinic(session, "admin@harbor.example.com", "Harbor Clinic")


@pytest.fixture(name="inactive_clinic")
def inactive_clinic_fixture(session: Session) -> Clinic:
    return make_clinic(session, "admin@closed.example.com", "Closed Clinic", is_active=False)


# ============================================================================
# STAFF FIXTURES
# ============================================================================

@pytest.fixture(name="doctor")
def doctor_fixture(session: Session, clinic: Clinic) -> Doctor:
    return make_staff(
        session, Doctor, clinic, "alice@sunrise.example.com", "DOC-001",
        full_name="Dr. Alice Obi", specialty="Cardiology",
    )


@pytest.fixture(name="second_doctor")
def second_doctor_fixture(session: Session, clinic: Clinic) -> Doctor:
    return make_staff(session, Doctor, clinic, "bola@sunrise.example.com", "DOC-002", full_name="Dr. Bola Ade")


@pytest.fixture(name="nurse")
def nurse_fixture(session: Session, clinic: Clinic) -> Nurse:
    return make_staff(
        session, Nurse, clinic, "nina@sunrise.example.com", "NUR-001",
        role=PrincipalRole.NURSE, departments=["Triage"], shift=NurseShift.NIGHT,
    )


@pytest.fixture(name="head_nurse")
def head_nurse_fixture(session: Session, clinic: Clinic) -> Nurse:
    return make_staff(
        session, Nurse, clinic, "hanna@sunrise.example.com", "NUR-002",
        role=PrincipalRole.HEAD_NURSE, departments=["Outpatient"], shift=NurseShift.DAY,
    )


@pytest.fixture(name="pharmacist")
def pharmacist_fixture(session: Session, clinic: Clinic) -> Pharmacist:
    return make_staff(session, Pharmacist, clinic, "paul@sunrise.example.com", "PHA-001")


@pytest.fixture(name="other_doctor")
def other_doctor_fixture(session: Session, other_clinic: Clinic) -> Doctor:
    return make_staff(session, Doctor, other_clinic, "bob@harbor.example.com", "DOC-101", full_name="Dr. Bob Eze")


@pytest.fixture(name="inactive_doctor")
def inactive_doctor_fixture(session: Session, clinic: Clinic) -> Doctor:
    return make_staff(session, Doctor, clinic, "idle@sunrise.example.com", "DOC-003", is_active=False)


# ============================================================================
# TOKEN / HEADER FIXTURES
# ============================================================================

@pytest.fixture(name="clinic_headers")
def clinic_headers_fixture(clinic: Clinic) -> Dict[str, str]:
    return bearer(clinic)


@pytest.fixture(name="other_clinic_headers")
def other_clinic_headers_fixture(other_clinic: Clinic) -> Dict[str, str]:
    return bearer(other_clinic)


@pytest.fixture(name="doctor_headers")
def doctor_headers_fixture(doctor: Doctor) -> Dict[str, str]:
    return bearer(doctor)


@pytest.fixture(name="second_doctor_headers")
def second_doctor_headers_fixture(second_doctor: Doctor) -> Dict[str, str]:
    return bearer(second_doctor)


@pytest.fixture(name="other_doctor_headers")
def other_doctor_headers_fixture(other_doctor: Doctor) -> Dict[str, str]:
    return bearer(other_doctor)


@pytest.fixture(name="nurse_headers")
def nurse_headers_fixture(nurse: Nurse) -> Dict[str, str]:
    return bearer(nurse)


@pytest.fixture(name="head_nurse_headers")
def head_nurse_headers_fixture(head_nurse: Nurse) -> Dict[str, str]:
    return bearer(head_nurse)


@pytest.fixture(name="pharmacist_headers")
def pharmacist_headers_fixture(pharmacist: Pharmacist) -> Dict[str, str]:
    return bearer(pharmacist)


# ============================================================================
# RESOURCE FIXTURES
# ============================================================================

@pytest.fixture(name="patient")
def patient_fixture(session: Session, clinic: Clinic) -> Patient:
    patient = Patient(clinic_id=clinic.id, full_name="Chidi Nwosu", gender="Male")
    session.add(patient)
    session.commit()
    session.refresh(patient)
    return patient


@pytest.fixture(name="other_patient")
def other_patient_fixture(session: Session, other_clinic: Clinic) -> Patient:
    patient = Patient(clinic_id=other_clinic.id, full_name="Harbor Patient", gender="Female")
    session.add(patient)
    session.commit()
    session.refresh(patient)
    return patient


@pytest.fixture(name="appointment")
def appointment_fixture(session: Session, clinic: Clinic, patient: Patient, doctor: Doctor) -> Appointment:
    """Appointment owned by `doctor`."""
    appointment = Appointment(
        clinic_id=clinic.id,
        patient_id=patient.id,
        doctor_id=doctor.id,
        scheduled_at=utcnow() + timedelta(days=1),
        reason="Follow-up",
    )
    session.add(appointment)
    session.commit()
    session.refresh(appointment)
    return appointment


# ============================================================================
# EMAIL SERVICE FIXTURE
# ============================================================================

@pytest.fixture(name="mock_email_settings")
def mock_email_settings_fixture():
    """Disable outbound email. Restores original values after each test."""
    from src.email.config import email_settings

    original_send = email_settings.SEND_EMAILS
    original_key = email_settings.RESEND_API_KEY

    email_settings.SEND_EMAILS = False
    email_settings.RESEND_API_KEY = "re_test_key_no_real_sending"

    yield email_settings

    email_settings.SEND_EMAILS = original_send
    email_settings.RESEND_API_KEY = original_key


# ============================================================================
# SETUP / TEARDOWN
# ============================================================================

@pytest.fixture(autouse=True)
def reset_database(session: Session):
    """Rollback any uncommitted changes after each test (safety net)."""
    yield
    session.rollback()


@pytest.fixture(autouse=True)
def reset_login_throttle():
    """The failed-login counter is process-wide; start every test clean."""
    login_failures.clear()
    yield
    login_failures.clear()


# ============================================================================
# PYTEST MARKERS
# ============================================================================

def pytest_configure(config):
    """Register all custom test markers."""
    # Module-level markers
    config.addinivalue_line("markers", "auth: Authentication and token tests")
    config.addinivalue_line("markers", "otp: One-time password lifecycle tests")
    config.addinivalue_line("markers", "identity: Identity store tests")
    config.addinivalue_line("markers", "tokens: Session token tests")
    config.addinivalue_line("markers", "resources: Tenant-bound resource tests")
    config.addinivalue_line("markers", "staff: Staff management tests")
    config.addinivalue_line("markers", "rbac: Role-based access control tests")
    config.addinivalue_line("markers", "email: Email service tests")
    config.addinivalue_line("markers", "audit: Security audit trail tests")

    # Cross-cutting markers
    config.addinivalue_line("markers", "tenant_isolation: Cross-tenant data isolation tests")
    config.addinivalue_line("markers", "security: Security and edge-case tests")
    config.addinivalue_line("markers", "unit: Unit tests (no HTTP client)")
    config.addinivalue_line("markers", "integration: Full HTTP stack integration tests")
