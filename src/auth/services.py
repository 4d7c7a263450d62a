"""
FILE: src/auth/services.py
Authentication Gateway — registration, password / two-step login, OTP flows,
password reset, refresh and logout
"""

import logging
from typing import Dict, Optional, Tuple
from uuid import UUID

from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from src.auth.rate_limit import login_failures
from src.auth.revocation import TokenDenylist
from src.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    OTPLoginRequest,
    PrincipalSummary,
    RegisterClinicRequest,
    RegisterStaffRequest,
    RequestOTPRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerifyEmailRequest,
)
from src.core.audit_service import create_audit_log
from src.core.config import settings
from src.core.exceptions import (
    AuthFailed,
    Conflict,
    InputInvalid,
    NotFound,
    RateLimited,
)
from src.core.security import (
    CorruptHashError,
    dummy_verify,
    generate_temp_password,
    hash_password,
    needs_rehash,
    verify_password,
)
from src.core.tokens import Claims, token_service
from src.identity.store import IdentityStore, normalize_email
from src.otp.service import (
    OTPIssueConflict,
    OTPService,
    OTPStateError,
    OTPVerificationError,
)
from src.shared.models import (
    AuditAction,
    Clinic,
    Doctor,
    Nurse,
    OTPPurpose,
    OTPRecord,
    Pharmacist,
    Principal,
    PrincipalRole,
)

logger = logging.getLogger(__name__)

RESET_FAILED_MESSAGE = "Invalid or expired OTP"

OTPDelivery = Tuple[Principal, OTPRecord]


class AuthService:
    """All authentication and token business logic."""

    # Helpers

    @staticmethod
    def _clinic_of(principal: Principal, session: Session) -> Optional[Clinic]:
        if isinstance(principal, Clinic):
            return principal
        return session.get(Clinic, principal.clinic_id)

    @staticmethod
    def summary(principal: Principal, session: Session) -> PrincipalSummary:
        clinic = AuthService._clinic_of(principal, session)
        extra: Dict = {}
        if isinstance(principal, Clinic):
            extra = {"phone": principal.phone, "city": principal.city, "country": principal.country}
        elif isinstance(principal, Doctor):
            extra = {"specialty": principal.specialty}
        elif isinstance(principal, Nurse):
            extra = {"departments": principal.departments, "shift": principal.shift.value}
        elif isinstance(principal, Pharmacist):
            extra = {"specialization": principal.specialization}

        return PrincipalSummary(
            id=principal.id,
            email=principal.email,
            full_name=principal.full_name,
            role=principal.role.value,
            cid=principal.clinic_id,
            is_active=principal.is_active,
            email_verified=principal.email_verified,
            uhid=getattr(principal, "uhid", None),
            clinic_name=clinic.name if clinic else None,
            extra=extra,
        )

    @staticmethod
    def _session_for(
        principal: Principal, session: Session, method: str, request_meta: Optional[Dict] = None
    ) -> TokenResponse:
        token = token_service.mint(principal)
        IdentityStore(session).record_login(principal)
        create_audit_log(
            session,
            AuditAction.LOGIN_SUCCESS,
            principal=principal,
            ip_address=(request_meta or {}).get("ip"),
            details={"method": method},
        )
        return TokenResponse(
            token=token,
            expires_in=token_service.ttl_seconds,
            user=AuthService.summary(principal, session),
        )

    @staticmethod
    def _can_sign_in(principal: Principal, session: Session) -> bool:
        if not principal.is_active:
            return False
        clinic = AuthService._clinic_of(principal, session)
        return clinic is not None and clinic.is_active

    @staticmethod
    def _issue_otp(
        session: Session,
        principal: Principal,
        purpose: OTPPurpose,
        request_meta: Dict,
    ) -> Optional[OTPRecord]:
        """
        Issue a code unless one went out inside the resend interval.
        Returns None when nothing new was issued; the caller still reports
        "OTP sent".
        """
        otp = OTPService(session)
        if otp.recently_issued(principal.email, purpose):
            logger.info(f"⏳ OTP resend interval not elapsed for {principal.email} ({purpose.value})")
            return None
        try:
            return otp.issue(
                principal.email,
                purpose,
                client_ip=request_meta.get("ip"),
                user_agent=request_meta.get("user_agent"),
                principal_id=principal.id,
            )
        except OTPIssueConflict:
            return None

    @staticmethod
    async def _authenticate_password(
        email: str, password: str, session: Session, request_meta: Optional[Dict] = None
    ) -> Principal:
        """
        Password check shared by login, login step 1 and developer login.
        Every failure raises the same AuthFailed; unknown emails still pay
        for one hash verification. Argon2 runs in the threadpool.
        """
        key = normalize_email(email)
        ip = (request_meta or {}).get("ip")
        if login_failures.is_blocked(key):
            logger.warning(f"🚫 Login throttled for {key}")
            raise RateLimited()

        store = IdentityStore(session)
        principal = store.find_any_by_email(key)
        if principal is None:
            await run_in_threadpool(dummy_verify, password)
            login_failures.record_failure(key)
            create_audit_log(
                session, AuditAction.LOGIN_FAILURE, email=key, ip_address=ip,
                details={"reason": "unknown_email"},
            )
            raise AuthFailed()

        try:
            valid = await run_in_threadpool(verify_password, password, principal.password_hash)
        except CorruptHashError:
            create_audit_log(session, AuditAction.CORRUPT_CREDENTIAL, principal=principal, ip_address=ip)
            valid = False

        if not valid:
            failures = login_failures.record_failure(key)
            create_audit_log(
                session, AuditAction.LOGIN_FAILURE, principal=principal, ip_address=ip,
                details={"reason": "wrong_password", "recent_failures": failures},
            )
            raise AuthFailed()

        if not AuthService._can_sign_in(principal, session):
            create_audit_log(
                session, AuditAction.LOGIN_FAILURE, principal=principal, ip_address=ip,
                details={"reason": "inactive"},
            )
            raise AuthFailed()

        login_failures.reset(key)
        if needs_rehash(principal.password_hash):
            store.upgrade_hash(principal, await run_in_threadpool(hash_password, password))
        return principal

    # Registration

    @staticmethod
    async def register_clinic(
        req: RegisterClinicRequest, session: Session, request_meta: Dict
    ) -> Tuple[Clinic, Optional[OTPRecord]]:
        """Create a clinic and send it an email-verification code."""
        store = IdentityStore(session)
        if store.email_taken(req.email):
            raise Conflict("Email already registered")

        attributes = req.model_dump(exclude={"role", "password"})
        attributes["password_hash"] = await run_in_threadpool(hash_password, req.password)
        clinic = store.create(PrincipalRole.CLINIC, attributes)

        record = AuthService._issue_otp(session, clinic, OTPPurpose.EMAIL_VERIFICATION, request_meta)
        logger.info(f"🏥 Clinic registered: {clinic.name} ({clinic.id})")
        return clinic, record

    @staticmethod
    async def register_staff(
        req: RegisterStaffRequest, clinic_id: UUID, session: Session
    ) -> Tuple[Principal, Optional[str]]:
        """
        Onboard a doctor, nurse or pharmacist into the caller's clinic.
        Returns (principal, temp_password); temp_password is None when the
        administrator chose the password.
        """
        store = IdentityStore(session)
        if store.email_taken(req.email):
            raise Conflict("Email already registered")

        temp_password = None
        password = req.password
        if not password:
            temp_password = generate_temp_password()
            password = temp_password

        attributes = req.model_dump(exclude={"role", "password"})
        attributes["password_hash"] = await run_in_threadpool(hash_password, password)
        attributes["clinic_id"] = clinic_id
        principal = store.create(PrincipalRole(req.role), attributes)

        logger.info(f"👤 Staff registered: {principal.role.value} {principal.id} in clinic {clinic_id}")
        return principal, temp_password

    # Login

    @staticmethod
    async def login(
        req: LoginRequest, session: Session, request_meta: Optional[Dict] = None
    ) -> TokenResponse:
        """Single-factor password login."""
        principal = await AuthService._authenticate_password(req.email, req.password, session, request_meta)
        logger.info(f"Login successful: {principal.email}")
        return AuthService._session_for(principal, session, "password", request_meta)

    @staticmethod
    async def login_step1(
        req: LoginRequest, session: Session, request_meta: Dict
    ) -> Optional[OTPDelivery]:
        """Check the password and issue a login code. No token yet."""
        principal = await AuthService._authenticate_password(req.email, req.password, session, request_meta)
        record = AuthService._issue_otp(session, principal, OTPPurpose.LOGIN, request_meta)
        if record is None:
            return None
        return principal, record

    @staticmethod
    async def login_step2(
        req: OTPLoginRequest, session: Session, request_meta: Optional[Dict] = None
    ) -> TokenResponse:
        """Exchange a valid login code for a session token."""
        otp = OTPService(session)
        try:
            record = otp.verify(req.email, req.otp, OTPPurpose.LOGIN)
        except OTPVerificationError as e:
            logger.info(f"Login step 2 failed for {normalize_email(req.email)}: {e.reason.value}")
            raise AuthFailed()

        principal = IdentityStore(session).find_any_by_email(req.email)
        if principal is None or not AuthService._can_sign_in(principal, session):
            raise AuthFailed()

        try:
            otp.consume(record)
        except OTPStateError:
            raise AuthFailed()
        response = AuthService._session_for(principal, session, "otp", request_meta)
        logger.info(f"Two-step login successful: {principal.email}")
        return response

    @staticmethod
    async def developer_login(
        req: LoginRequest, session: Session, request_meta: Optional[Dict] = None
    ) -> TokenResponse:
        """Password login without the OTP step. Only routed outside production."""
        if not settings.DEV_LOGIN_ENABLED or settings.is_production:
            raise NotFound()
        principal = await AuthService._authenticate_password(req.email, req.password, session, request_meta)
        create_audit_log(
            session, AuditAction.DEVELOPER_LOGIN, principal=principal,
            ip_address=(request_meta or {}).get("ip"),
        )
        return AuthService._session_for(principal, session, "developer", request_meta)

    # Email verification

    @staticmethod
    async def request_otp(
        req: RequestOTPRequest, session: Session, request_meta: Dict
    ) -> Optional[OTPDelivery]:
        """Issue a verification code if the email belongs to a principal."""
        principal = IdentityStore(session).find_any_by_email(req.email)
        if principal is None or not principal.is_active:
            return None
        if principal.email_verified:
            return None
        record = AuthService._issue_otp(session, principal, req.otp_purpose, request_meta)
        if record is None:
            return None
        return principal, record

    @staticmethod
    async def verify_email(req: VerifyEmailRequest, session: Session) -> Principal:
        otp = OTPService(session)
        try:
            record = otp.verify(req.email, req.otp, req.otp_purpose)
        except OTPVerificationError as e:
            raise InputInvalid(e.message)

        store = IdentityStore(session)
        principal = store.find_any_by_email(req.email)
        if principal is None:
            raise InputInvalid(RESET_FAILED_MESSAGE)
        try:
            otp.consume(record)
        except OTPStateError:
            raise InputInvalid(RESET_FAILED_MESSAGE)
        store.mark_email_verified(principal)
        return principal

    # Password reset

    @staticmethod
    async def forgot_password(
        req: ForgotPasswordRequest, session: Session, request_meta: Dict
    ) -> Optional[OTPDelivery]:
        """Issue a reset code. Callers always answer 200."""
        principal = IdentityStore(session).find_any_by_email(req.email)
        if principal is None or not principal.is_active:
            return None
        record = AuthService._issue_otp(session, principal, OTPPurpose.PASSWORD_RESET, request_meta)
        if record is None:
            return None
        return principal, record

    @staticmethod
    async def reset_password(
        req: ResetPasswordRequest, session: Session, request_meta: Optional[Dict] = None
    ) -> Principal:
        """Verify the reset code, replace the credential and consume the code."""
        otp = OTPService(session)
        try:
            record = otp.verify(req.email, req.otp, OTPPurpose.PASSWORD_RESET)
        except OTPVerificationError as e:
            logger.info(f"Password reset failed for {normalize_email(req.email)}: {e.reason.value}")
            raise InputInvalid(RESET_FAILED_MESSAGE)

        store = IdentityStore(session)
        principal = store.find_any_by_email(req.email)
        if principal is None:
            raise InputInvalid(RESET_FAILED_MESSAGE)

        try:
            otp.consume(record)
        except OTPStateError:
            raise InputInvalid(RESET_FAILED_MESSAGE)
        new_hash = await run_in_threadpool(hash_password, req.new_password)
        store.update_credential(principal.role, principal.id, new_hash)
        login_failures.reset(principal.email)
        session.refresh(principal)
        create_audit_log(
            session, AuditAction.PASSWORD_CHANGE, principal=principal,
            ip_address=(request_meta or {}).get("ip"), details={"method": "otp_reset"},
        )
        logger.info(f"Password reset successful: {principal.email}")
        return principal

    # Session management

    @staticmethod
    async def logout(claims: Claims, session: Session) -> None:
        TokenDenylist(session).revoke(claims)
        logger.info(f"User logged out: {claims.sub}")

    @staticmethod
    async def refresh(
        token: str, claims: Claims, principal: Principal, session: Session
    ) -> TokenResponse:
        """Sliding refresh: new token from the current principal record, old jti revoked."""
        new_token = token_service.refresh(token, principal)
        TokenDenylist(session).revoke(claims)
        return TokenResponse(
            token=new_token,
            expires_in=token_service.ttl_seconds,
            user=AuthService.summary(principal, session),
        )
