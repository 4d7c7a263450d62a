"""
FILE: src/otp/sweeper.py
Periodic cleanup of expired OTP records and denylisted tokens
"""

import asyncio
import logging
from typing import Tuple

from sqlmodel import Session

from src.auth.revocation import TokenDenylist
from src.core.config import settings
from src.otp.service import OTPService

logger = logging.getLogger(__name__)


def purge_expired_state(session: Session) -> Tuple[int, int]:
    """Returns (otp_records_removed, revoked_tokens_removed)."""
    otps = OTPService(session).purge_expired(settings.OTP_PURGE_GRACE_SECONDS)
    tokens = TokenDenylist(session).purge_expired()
    return otps, tokens


async def sweep_forever(engine, interval_seconds: int) -> None:
    """Runs until cancelled by the application lifespan."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            with Session(engine) as session:
                otps, tokens = purge_expired_state(session)
            if otps or tokens:
                logger.info(f"🧹 Sweep removed {otps} OTP records, {tokens} revoked tokens")
        except Exception as e:
            logger.error(f"❌ Sweep failed: {e}")
