"""
FILE: src/shared/models.py
SQLModel ORM models — Clinic Multi-Tenant Domain
Principals (clinics and staff), OTP records, the token denylist, and the
tenant-bound resources. Every tenant-bound table carries clinic_id.
"""

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Enum as SAEnum, Index, text
from typing import List, Optional, Union
from datetime import date, datetime, timezone
from uuid import UUID, uuid4
import enum


# Enums

class PrincipalRole(str, enum.Enum):
    CLINIC = "clinic"             # Clinic administrator (tenant anchor)
    DOCTOR = "doctor"
    NURSE = "nurse"
    HEAD_NURSE = "head_nurse"
    SUPERVISOR = "supervisor"
    PHARMACIST = "pharmacist"


STAFF_ROLES = (
    PrincipalRole.DOCTOR,
    PrincipalRole.NURSE,
    PrincipalRole.HEAD_NURSE,
    PrincipalRole.SUPERVISOR,
    PrincipalRole.PHARMACIST,
)

NURSE_ROLES = (PrincipalRole.NURSE, PrincipalRole.HEAD_NURSE, PrincipalRole.SUPERVISOR)


class NurseShift(str, enum.Enum):
    DAY = "Day"
    NIGHT = "Night"
    EVENING = "Evening"
    ROTATING = "Rotating"


class OTPPurpose(str, enum.Enum):
    LOGIN = "login"
    REGISTRATION = "registration"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


class OTPStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    USED = "used"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PostCategory(str, enum.Enum):
    HEALTH_TIPS = "Health Tips"
    MEDICAL_NEWS = "Medical News"
    PATIENT_STORIES = "Patient Stories"
    RESEARCH = "Research"
    GENERAL = "General"
    OTHER = "Other"


def _enum_type(enum_cls, length: int = 32) -> SAEnum:
    """Store enum *values* (e.g. 'pending'), not member names."""
    return SAEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=length,
    )


# Base mixins

def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin(SQLModel):
    created_at: Optional[datetime] = Field(default_factory=utcnow, nullable=True)
    updated_at: Optional[datetime] = Field(default=None, nullable=True)


class CredentialMixin(SQLModel):
    """Columns every authenticatable principal carries."""
    email: str = Field(..., max_length=255, unique=True, index=True)
    password_hash: str = Field(...)
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    password_changed_at: Optional[datetime] = Field(default=None)
    last_login_at: Optional[datetime] = Field(default=None)


# Clinics (tenant anchor + principal)

class Clinic(CredentialMixin, TimestampMixin, table=True):
    """A clinic. Both the tenant and the principal of its administrator."""
    __tablename__ = "clinics"  # type: ignore

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(..., max_length=255, index=True)
    admin_name: str = Field(..., max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    registration_number: Optional[str] = Field(default=None, max_length=100)

    @property
    def role(self) -> PrincipalRole:
        return PrincipalRole.CLINIC

    @property
    def clinic_id(self) -> UUID:
        return self.id

    @property
    def full_name(self) -> str:
        return self.admin_name


# Staff principals

class StaffMixin(CredentialMixin, TimestampMixin):
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    full_name: str = Field(..., max_length=100)
    uhid: str = Field(..., max_length=50, unique=True, index=True)
    clinic_id: UUID = Field(..., foreign_key="clinics.id", index=True)
    phone: Optional[str] = Field(default=None, max_length=20)
    license_number: Optional[str] = Field(default=None, max_length=100)
    profile_image: Optional[str] = Field(default=None)


class Doctor(StaffMixin, table=True):
    __tablename__ = "doctors"  # type: ignore

    specialty: str = Field(default="General Practitioner", max_length=100)

    @property
    def role(self) -> PrincipalRole:
        return PrincipalRole.DOCTOR


class Nurse(StaffMixin, table=True):
    """Nurses, head nurses and supervisors share one table; `role` tells them apart."""
    __tablename__ = "nurses"  # type: ignore

    role: PrincipalRole = Field(default=PrincipalRole.NURSE, sa_type=_enum_type(PrincipalRole))
    departments: List[str] = Field(default_factory=list, sa_type=JSON)
    shift: NurseShift = Field(default=NurseShift.DAY, sa_type=_enum_type(NurseShift))


class Pharmacist(StaffMixin, table=True):
    __tablename__ = "pharmacists"  # type: ignore

    specialization: str = Field(default="General Pharmacy", max_length=100)

    @property
    def role(self) -> PrincipalRole:
        return PrincipalRole.PHARMACIST


Principal = Union[Clinic, Doctor, Nurse, Pharmacist]
StaffPrincipal = Union[Doctor, Nurse, Pharmacist]


# One-time passwords

class OTPRecord(SQLModel, table=True):
    """
    A 6-digit code bound to (email, purpose).
    The partial unique index keeps at most one pending record per pair.
    """
    __tablename__ = "otp_records"  # type: ignore
    __table_args__ = (
        Index(
            "uq_otp_records_pending",
            "email",
            "purpose",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(..., max_length=255, index=True)
    code: str = Field(..., min_length=6, max_length=6)
    purpose: OTPPurpose = Field(..., sa_type=_enum_type(OTPPurpose))
    status: OTPStatus = Field(default=OTPStatus.PENDING, sa_type=_enum_type(OTPStatus), index=True)
    attempts: int = Field(default=0)
    expires_at: datetime = Field(..., index=True)
    issued_at: datetime = Field(default_factory=utcnow, index=True)
    verified_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)
    principal_id: Optional[UUID] = Field(default=None)
    client_ip: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = Field(default=None, max_length=500)


# Revoked session tokens (logout / refresh)

class RevokedToken(SQLModel, table=True):
    __tablename__ = "revoked_tokens"  # type: ignore

    jti: str = Field(..., primary_key=True, max_length=64)
    principal_id: UUID = Field(..., index=True)
    expires_at: datetime = Field(..., index=True)
    revoked_at: datetime = Field(default_factory=utcnow)


# Security audit trail

class AuditAction(str, enum.Enum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"
    DEVELOPER_LOGIN = "DEVELOPER_LOGIN"
    CORRUPT_CREDENTIAL = "CORRUPT_CREDENTIAL"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    STAFF_STATUS_CHANGE = "STAFF_STATUS_CHANGE"


class AuditLog(SQLModel, table=True):
    """
    Append-only record of security events.
    clinic_id is informational and nullable: failed logins may have no tenant.
    """
    __tablename__ = "audit_logs"  # type: ignore

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    action: AuditAction = Field(..., sa_type=_enum_type(AuditAction, length=40), index=True)
    principal_id: Optional[UUID] = Field(default=None, index=True)
    principal_role: Optional[str] = Field(default=None, max_length=32)
    clinic_id: Optional[UUID] = Field(default=None, index=True)
    email: Optional[str] = Field(default=None, max_length=255)
    ip_address: Optional[str] = Field(default=None, max_length=45)
    details: Optional[dict] = Field(default=None, sa_type=JSON)
    timestamp: datetime = Field(default_factory=utcnow, index=True)


# Tenant-bound resources

class Patient(TimestampMixin, table=True):
    __tablename__ = "patients"  # type: ignore

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    clinic_id: UUID = Field(..., foreign_key="clinics.id", index=True)
    full_name: str = Field(..., max_length=150)
    date_of_birth: Optional[date] = Field(default=None)
    gender: Optional[str] = Field(default=None, max_length=20)
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    created_by: Optional[UUID] = Field(default=None)


class Appointment(TimestampMixin, table=True):
    __tablename__ = "appointments"  # type: ignore

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    clinic_id: UUID = Field(..., foreign_key="clinics.id", index=True)
    patient_id: UUID = Field(..., foreign_key="patients.id", index=True)
    doctor_id: UUID = Field(..., foreign_key="doctors.id", index=True)
    scheduled_at: datetime = Field(...)
    duration_minutes: int = Field(default=30)
    status: AppointmentStatus = Field(
        default=AppointmentStatus.SCHEDULED, sa_type=_enum_type(AppointmentStatus)
    )
    reason: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None)


class Post(TimestampMixin, table=True):
    """Community feed entry, visible to the whole clinic."""
    __tablename__ = "posts"  # type: ignore

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    clinic_id: UUID = Field(..., foreign_key="clinics.id", index=True)
    author_id: UUID = Field(..., index=True)
    author_role: PrincipalRole = Field(..., sa_type=_enum_type(PrincipalRole))
    author_name: str = Field(..., max_length=150)
    title: str = Field(..., max_length=200)
    content: str = Field(..., max_length=5000)
    category: PostCategory = Field(default=PostCategory.GENERAL, sa_type=_enum_type(PostCategory))
    tags: List[str] = Field(default_factory=list, sa_type=JSON)
