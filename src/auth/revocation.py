"""
FILE: src/auth/revocation.py
Short-lived denylist of revoked token ids (logout / refresh)
"""

import logging

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from src.core.tokens import Claims
from src.shared.models import RevokedToken, utcnow

logger = logging.getLogger(__name__)


class TokenDenylist:
    """Rows live only until the token they name would have expired anyway."""

    def __init__(self, session: Session):
        self.session = session

    def revoke(self, claims: Claims) -> None:
        if self.is_revoked(claims.jti):
            return
        self.session.add(
            RevokedToken(
                jti=claims.jti,
                principal_id=claims.sub,
                expires_at=claims.exp.replace(tzinfo=None),
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            # Revoked concurrently by another request
            self.session.rollback()
        logger.info(f"🔒 Token revoked for principal {claims.sub}")

    def is_revoked(self, jti: str) -> bool:
        return self.session.get(RevokedToken, jti) is not None

    def purge_expired(self) -> int:
        result = self.session.exec(  # type: ignore[call-overload]
            delete(RevokedToken).where(RevokedToken.expires_at < utcnow())  # type: ignore[arg-type]
        )
        self.session.commit()
        return result.rowcount or 0
