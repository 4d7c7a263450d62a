"""
FILE: src/auth/router.py
Authentication endpoints — register, password / two-step login, OTP,
password reset, refresh, logout, current principal
"""

from fastapi import APIRouter, Depends, Header, Request, status
from sqlmodel import Session
from typing import Optional

from src.core.database import get_session
from src.core.dependencies import (
    claims_from_header,
    get_bearer_token,
    get_claims,
    get_current_principal,
)
from src.core.tokens import Claims
from src.shared.models import Principal, utcnow
from src.shared.schemas import ResponseModel
from src.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    OTPLoginRequest,
    RegisterClinicRequest,
    RegisterRequest,
    RequestOTPRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from src.auth.services import AuthService, OTPDelivery
from src.email.service import EmailService
from src.email.schemas import OTPEmailData, PasswordChangedEmailData, WelcomeEmailData
from src.tenancy.guard import AccessGuard
from src.tenancy.permissions import Resource, Verb
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

OTP_SENT_MESSAGE = "If that email is registered, a code has been sent."


def _request_meta(request: Request) -> dict:
    return {
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def _deliver_otp(delivery: Optional[OTPDelivery]) -> None:
    """Mail a freshly issued code. Delivery failures never undo issuance."""
    if delivery is None:
        return
    principal, record = delivery
    resp = await EmailService.send_otp_email(
        OTPEmailData(
            email=principal.email,
            full_name=principal.full_name,
            code=record.code,
            purpose=record.purpose,
            expires_at=record.expires_at,
        )
    )
    if not resp.success:
        logger.error(f"Failed to send OTP email to {principal.email}: {resp.error}")


# Registration

@router.post("/register", response_model=ResponseModel, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_session),
):
    """
    Register a clinic (public) or onboard staff into the caller's clinic
    (clinic administrator token required). The `role` field selects the shape.
    """
    req = body.root

    if isinstance(req, RegisterClinicRequest):
        clinic, record = await AuthService.register_clinic(req, session, _request_meta(request))
        if record is not None:
            await _deliver_otp((clinic, record))
        return ResponseModel(
            success=True,
            message="Clinic registered. Check your email for a verification code.",
            data=AuthService.summary(clinic, session).model_dump(mode="json"),
        )

    # Clinic sign-up is public; only the staff branch reads the bearer token
    claims = claims_from_header(authorization, session)
    scope = AccessGuard(session).authorize(claims, Resource.STAFF, Verb.CREATE)
    principal, temp_password = await AuthService.register_staff(req, scope.clinic_id, session)

    welcome = WelcomeEmailData(
        email=principal.email,
        full_name=principal.full_name,
        role=principal.role.value,
        uhid=principal.uhid,
        clinic_name=getattr(scope.principal, "name", None),
        temp_password=temp_password,
    )
    email_resp = await EmailService.send_welcome_email(welcome)
    if not email_resp.success:
        logger.error(f"Failed to send welcome email to {principal.email}: {email_resp.error}")

    return ResponseModel(
        success=True,
        message="Staff registered successfully",
        data=AuthService.summary(principal, session).model_dump(mode="json"),
    )


# Login

@router.post("/login", response_model=ResponseModel)
async def login(
    credentials: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Password login. Every failure is 401 "Invalid credentials"."""
    result = await AuthService.login(credentials, session, _request_meta(request))
    return ResponseModel(success=True, message="Login successful", data=result.model_dump(mode="json"))


@router.post("/login-step1", response_model=ResponseModel)
async def login_step1(
    credentials: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Check the password and mail a login code. No token is issued here."""
    delivery = await AuthService.login_step1(credentials, session, _request_meta(request))
    await _deliver_otp(delivery)
    return ResponseModel(success=True, message="OTP sent", data={"otpSent": True})


@router.post("/login-step2", response_model=ResponseModel)
async def login_step2(
    req: OTPLoginRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Exchange the mailed login code for a session token."""
    result = await AuthService.login_step2(req, session, _request_meta(request))
    return ResponseModel(success=True, message="Login successful", data=result.model_dump(mode="json"))


@router.post("/developer-login", response_model=ResponseModel)
async def developer_login(
    credentials: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Password login without the OTP step. 404 unless enabled outside production."""
    result = await AuthService.developer_login(credentials, session, _request_meta(request))
    return ResponseModel(success=True, message="Login successful", data=result.model_dump(mode="json"))


# Email verification

@router.post("/request-otp", response_model=ResponseModel)
async def request_otp(
    req: RequestOTPRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Mail a verification code. Always 200."""
    delivery = await AuthService.request_otp(req, session, _request_meta(request))
    await _deliver_otp(delivery)
    return ResponseModel(success=True, message=OTP_SENT_MESSAGE)


@router.post("/verify-email", response_model=ResponseModel)
async def verify_email(
    req: VerifyEmailRequest,
    session: Session = Depends(get_session),
):
    await AuthService.verify_email(req, session)
    return ResponseModel(success=True, message="Email verified")


# Password Reset Flow

@router.post("/forgot-password", response_model=ResponseModel)
async def forgot_password(
    req: ForgotPasswordRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Mail a password reset code. Always 200 (no user enumeration)."""
    delivery = await AuthService.forgot_password(req, session, _request_meta(request))
    await _deliver_otp(delivery)
    return ResponseModel(success=True, message=OTP_SENT_MESSAGE)


@router.post("/reset-password", response_model=ResponseModel)
async def reset_password(
    req: ResetPasswordRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    """Reset the password with the mailed code. Existing tokens stop working."""
    principal = await AuthService.reset_password(req, session, _request_meta(request))

    changed_data = PasswordChangedEmailData(
        email=principal.email,
        full_name=principal.full_name,
        changed_at=principal.password_changed_at or utcnow(),
    )
    resp = await EmailService.send_password_changed_email(changed_data)
    if not resp.success:
        logger.error(f"Failed to send password changed email: {resp.error}")

    return ResponseModel(success=True, message="Password reset successfully. Please log in.")


# Session

@router.post("/refresh", response_model=ResponseModel)
async def refresh(
    token: str = Depends(get_bearer_token),
    claims: Claims = Depends(get_claims),
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
):
    """Swap a token in its final refresh window for a fresh one."""
    result = await AuthService.refresh(token, claims, principal, session)
    return ResponseModel(success=True, message="Token refreshed", data=result.model_dump(mode="json"))


@router.post("/logout", response_model=ResponseModel)
async def logout(
    claims: Claims = Depends(get_claims),
    session: Session = Depends(get_session),
):
    """Revoke the presented token."""
    await AuthService.logout(claims, session)
    return ResponseModel(success=True, message="Logged out successfully")


@router.get("/me", response_model=ResponseModel)
async def me(
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_session),
):
    """Return the authenticated principal with its clinic context."""
    return ResponseModel(success=True, data=AuthService.summary(principal, session).model_dump(mode="json"))
