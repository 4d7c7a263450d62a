"""
FILE: src/email/schemas.py
Email data schemas — clinic-aligned
"""

from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime

from src.shared.models import OTPPurpose


class OTPEmailData(BaseModel):
    """One-time code for login, registration, verification or reset."""
    email: EmailStr
    full_name: str
    code: str
    purpose: OTPPurpose
    expires_at: datetime


class WelcomeEmailData(BaseModel):
    """Welcome email for staff onboarded by a clinic administrator."""
    email: EmailStr
    full_name: str
    role: str
    uhid: str
    clinic_name: Optional[str] = None
    temp_password: Optional[str] = None  # only when the admin let us generate one


class PasswordChangedEmailData(BaseModel):
    email: EmailStr
    full_name: str
    changed_at: datetime


class EmailResponse(BaseModel):
    success: bool
    message: str
    email_id: Optional[str] = None
    error: Optional[str] = None
