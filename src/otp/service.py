"""
FILE: src/otp/service.py
OTP Service — issue and verify 6-digit codes bound to (email, purpose)

State machine (OTPRecord.status):
    pending  --correct code-->                    verified
    pending  --wrong code, attempts+1 < max-->    pending (attempts incremented)
    pending  --wrong code, attempts+1 = max-->    expired
    pending  --now >= expires_at-->               expired
    verified --consumed by caller-->              used
    any      --sweep after expires_at + grace-->  removed
"""

import enum
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from src.core.config import settings
from src.shared.models import OTPPurpose, OTPRecord, OTPStatus, utcnow

logger = logging.getLogger(__name__)

CODE_DIGITS = 6

# Attempts at the compare-and-set before giving up on a contended record
_CAS_RETRIES = 5


class OTPFailure(str, enum.Enum):
    NO_PENDING = "NO_PENDING"
    EXPIRED = "EXPIRED"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    WRONG_CODE = "WRONG_CODE"


# NO_PENDING and WRONG_CODE must read the same
PUBLIC_MESSAGES = {
    OTPFailure.NO_PENDING: "Invalid OTP code",
    OTPFailure.WRONG_CODE: "Invalid OTP code",
    OTPFailure.EXPIRED: "OTP has expired",
    OTPFailure.TOO_MANY_ATTEMPTS: "Too many attempts. OTP has been invalidated",
}


class OTPVerificationError(Exception):
    def __init__(self, reason: OTPFailure):
        self.reason = reason
        self.message = PUBLIC_MESSAGES[reason]
        super().__init__(self.message)


class OTPIssueConflict(Exception):
    """A concurrent issuance for the same (email, purpose) won the race."""


class OTPStateError(Exception):
    """consume() called on a record that was never verified."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


class OTPService:
    def __init__(
        self,
        session: Session,
        ttl_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
        resend_interval_seconds: Optional[int] = None,
    ):
        self.session = session
        self.ttl = timedelta(seconds=ttl_seconds or settings.OTP_TTL_SECONDS)
        self.max_attempts = max_attempts or settings.OTP_MAX_ATTEMPTS
        self.resend_interval = timedelta(
            seconds=resend_interval_seconds
            if resend_interval_seconds is not None
            else settings.OTP_RESEND_INTERVAL_SECONDS
        )

    @staticmethod
    def generate_code() -> str:
        """Uniform over the full 000000-999999 range; leading zeros kept."""
        return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"

    # Issuance

    def issue(
        self,
        email: str,
        purpose: OTPPurpose,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        principal_id: Optional[UUID] = None,
    ) -> OTPRecord:
        """
        Expire every pending record for (email, purpose) and insert a fresh one,
        in a single transaction.
        Raises OTPIssueConflict when a concurrent issue already inserted the
        surviving pending record.
        """
        email = normalize_email(email)
        now = utcnow()

        self.session.exec(  # type: ignore[call-overload]
            update(OTPRecord)
            .where(
                OTPRecord.email == email,  # type: ignore[arg-type]
                OTPRecord.purpose == purpose,  # type: ignore[arg-type]
                OTPRecord.status == OTPStatus.PENDING,  # type: ignore[arg-type]
            )
            .values(status=OTPStatus.EXPIRED, updated_at=now)
        )
        record = OTPRecord(
            email=email,
            code=self.generate_code(),
            purpose=purpose,
            status=OTPStatus.PENDING,
            attempts=0,
            issued_at=now,
            expires_at=now + self.ttl,
            principal_id=principal_id,
            client_ip=client_ip,
            user_agent=user_agent[:500] if user_agent else None,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"⚠️ Concurrent OTP issuance for {email} ({purpose.value})")
            raise OTPIssueConflict(str(e)) from e

        self.session.refresh(record)
        logger.info(f"🔑 OTP issued for {email} ({purpose.value})")
        return record

    def recently_issued(self, email: str, purpose: OTPPurpose) -> bool:
        """True when a code was issued for (email, purpose) inside the resend interval."""
        cutoff = utcnow() - self.resend_interval
        statement = (
            select(OTPRecord.id)
            .where(
                OTPRecord.email == normalize_email(email),
                OTPRecord.purpose == purpose,
                OTPRecord.issued_at > cutoff,
            )
            .limit(1)
        )
        return self.session.exec(statement).first() is not None

    def pending(self, email: str, purpose: OTPPurpose) -> Optional[OTPRecord]:
        statement = select(OTPRecord).where(
            OTPRecord.email == normalize_email(email),
            OTPRecord.purpose == purpose,
            OTPRecord.status == OTPStatus.PENDING,
        )
        return self.session.exec(statement).first()

    # Verification

    def verify(self, email: str, code: str, purpose: OTPPurpose) -> OTPRecord:
        """
        Check a submitted code against the pending record.

        Every check costs one attempt, recorded with a compare-and-set on
        the observed attempt count; a lost race re-reads and tries again.
        Raises OTPVerificationError with the failure reason.
        """
        email = normalize_email(email)
        submitted = (code or "").strip().encode("utf-8")

        for _ in range(_CAS_RETRIES):
            record = self.pending(email, purpose)
            if record is None:
                raise OTPVerificationError(OTPFailure.NO_PENDING)

            now = utcnow()
            if now >= record.expires_at:
                self._expire(record.id, now)
                raise OTPVerificationError(OTPFailure.EXPIRED)

            observed = record.attempts
            attempts = observed + 1
            matches = hmac.compare_digest(record.code.encode("utf-8"), submitted)

            values = {"attempts": attempts, "updated_at": now}
            if matches:
                values.update(status=OTPStatus.VERIFIED, verified_at=now)
            elif attempts >= self.max_attempts:
                values["status"] = OTPStatus.EXPIRED

            result = self.session.exec(  # type: ignore[call-overload]
                update(OTPRecord)
                .where(
                    OTPRecord.id == record.id,  # type: ignore[arg-type]
                    OTPRecord.status == OTPStatus.PENDING,  # type: ignore[arg-type]
                    OTPRecord.attempts == observed,  # type: ignore[arg-type]
                )
                .values(**values)
            )
            self.session.commit()
            if result.rowcount != 1:
                continue

            self.session.refresh(record)
            if matches:
                logger.info(f"✅ OTP verified for {email} ({purpose.value})")
                return record
            if record.status == OTPStatus.EXPIRED:
                logger.warning(f"🚫 OTP invalidated after {attempts} attempts for {email} ({purpose.value})")
                raise OTPVerificationError(OTPFailure.TOO_MANY_ATTEMPTS)
            raise OTPVerificationError(OTPFailure.WRONG_CODE)

        logger.warning(f"⚠️ OTP verification contended for {email} ({purpose.value})")
        raise OTPVerificationError(OTPFailure.NO_PENDING)

    def consume(self, record: OTPRecord) -> None:
        """verified -> used. A second call on a used record is a no-op."""
        result = self.session.exec(  # type: ignore[call-overload]
            update(OTPRecord)
            .where(
                OTPRecord.id == record.id,  # type: ignore[arg-type]
                OTPRecord.status == OTPStatus.VERIFIED,  # type: ignore[arg-type]
            )
            .values(status=OTPStatus.USED, updated_at=utcnow())
        )
        self.session.commit()
        self.session.refresh(record)
        if result.rowcount == 1 or record.status == OTPStatus.USED:
            return
        raise OTPStateError(f"Cannot consume OTP in state '{record.status.value}'")

    # Housekeeping

    def cancel(self, email: str, purpose: OTPPurpose) -> int:
        """Expire the pending record for (email, purpose), if any."""
        result = self.session.exec(  # type: ignore[call-overload]
            update(OTPRecord)
            .where(
                OTPRecord.email == normalize_email(email),  # type: ignore[arg-type]
                OTPRecord.purpose == purpose,  # type: ignore[arg-type]
                OTPRecord.status == OTPStatus.PENDING,  # type: ignore[arg-type]
            )
            .values(status=OTPStatus.EXPIRED, updated_at=utcnow())
        )
        self.session.commit()
        return result.rowcount or 0

    def purge_expired(self, grace_seconds: Optional[int] = None) -> int:
        """Delete records whose expires_at + grace has passed, whatever their state."""
        grace = timedelta(
            seconds=grace_seconds if grace_seconds is not None else settings.OTP_PURGE_GRACE_SECONDS
        )
        result = self.session.exec(  # type: ignore[call-overload]
            delete(OTPRecord).where(OTPRecord.expires_at < utcnow() - grace)  # type: ignore[arg-type]
        )
        self.session.commit()
        purged = result.rowcount or 0
        if purged:
            logger.info(f"🧹 Purged {purged} expired OTP records")
        return purged

    def _expire(self, record_id: UUID, now) -> None:
        self.session.exec(  # type: ignore[call-overload]
            update(OTPRecord)
            .where(
                OTPRecord.id == record_id,  # type: ignore[arg-type]
                OTPRecord.status == OTPStatus.PENDING,  # type: ignore[arg-type]
            )
            .values(status=OTPStatus.EXPIRED, updated_at=now)
        )
        self.session.commit()
