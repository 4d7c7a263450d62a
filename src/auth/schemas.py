"""
FILE: src/auth/schemas.py
Auth request and response schemas
Request bodies accept camelCase or snake_case keys and reject unknown fields.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, RootModel, field_validator
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from src.core.security import check_password_policy
from src.shared.models import NurseShift, OTPPurpose


class StrictRequest(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )


class _PolicyPassword(StrictRequest):
    @field_validator("password", check_fields=False)
    @classmethod
    def password_policy(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_password_policy(v)


# Registration (discriminated on `role`)

class RegisterClinicRequest(_PolicyPassword):
    role: Literal["clinic"]
    email: EmailStr
    password: str
    name: str = Field(..., min_length=2, max_length=255)
    admin_name: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    registration_number: Optional[str] = Field(default=None, max_length=100)


class _RegisterStaffBase(_PolicyPassword):
    email: EmailStr
    password: Optional[str] = Field(
        default=None, description="Leave empty to generate a temporary password"
    )
    full_name: str = Field(..., min_length=2, max_length=100)
    uhid: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, max_length=20)
    license_number: Optional[str] = Field(default=None, max_length=100)


class RegisterDoctorRequest(_RegisterStaffBase):
    role: Literal["doctor"]
    specialty: str = Field(default="General Practitioner", max_length=100)


class RegisterNurseRequest(_RegisterStaffBase):
    role: Literal["nurse", "head_nurse", "supervisor"]
    departments: List[str] = Field(default_factory=list)
    shift: NurseShift = NurseShift.DAY


class RegisterPharmacistRequest(_RegisterStaffBase):
    role: Literal["pharmacist"]
    specialization: str = Field(default="General Pharmacy", max_length=100)


RegisterStaffRequest = Union[RegisterDoctorRequest, RegisterNurseRequest, RegisterPharmacistRequest]


class RegisterRequest(RootModel):
    root: Annotated[
        Union[
            RegisterClinicRequest,
            RegisterDoctorRequest,
            RegisterNurseRequest,
            RegisterPharmacistRequest,
        ],
        Field(discriminator="role"),
    ]


# Login family

class LoginRequest(StrictRequest):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class OTPLoginRequest(StrictRequest):
    email: str = Field(..., min_length=3, max_length=255)
    otp: str = Field(..., min_length=1, max_length=16)


class RequestOTPRequest(StrictRequest):
    email: str = Field(..., min_length=3, max_length=255)
    purpose: Literal["email_verification", "registration"] = "email_verification"

    @property
    def otp_purpose(self) -> OTPPurpose:
        return OTPPurpose(self.purpose)


class VerifyEmailRequest(StrictRequest):
    email: str = Field(..., min_length=3, max_length=255)
    otp: str = Field(..., min_length=1, max_length=16)
    purpose: Literal["email_verification", "registration"] = "email_verification"

    @property
    def otp_purpose(self) -> OTPPurpose:
        return OTPPurpose(self.purpose)


class ForgotPasswordRequest(StrictRequest):
    email: str = Field(..., min_length=3, max_length=255)


class ResetPasswordRequest(StrictRequest):
    email: str = Field(..., min_length=3, max_length=255)
    otp: str = Field(..., min_length=1, max_length=16)
    new_password: str = Field(..., max_length=256)

    @field_validator("new_password")
    @classmethod
    def password_policy(cls, v: str) -> str:
        return check_password_policy(v)


# Responses

class PrincipalSummary(BaseModel):
    id: UUID
    email: str
    full_name: str
    role: str
    cid: Optional[UUID]
    is_active: bool
    email_verified: bool
    uhid: Optional[str] = None
    clinic_name: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: PrincipalSummary
