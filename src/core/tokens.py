"""
FILE: src/core/tokens.py
Session tokens — signed JWTs carrying principal identity and tenant scope
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from src.core.config import settings
from src.core.exceptions import AuthRequired, TokenExpired, TokenMalformed
from src.shared.models import PrincipalRole

logger = logging.getLogger(__name__)


class RefreshDenied(AuthRequired):
    default_message = "Token is not eligible for refresh"
    code = "REFRESH_DENIED"


@dataclass(frozen=True)
class SigningKey:
    """Immutable signing material, loaded once at startup."""
    secret: str
    algorithm: str
    issuer: str
    audience: str
    ttl_seconds: int
    refresh_window_seconds: int

    @classmethod
    def from_settings(cls) -> "SigningKey":
        return cls(
            secret=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            ttl_seconds=settings.JWT_ACCESS_TOKEN_TTL_SECONDS,
            refresh_window_seconds=settings.JWT_REFRESH_WINDOW_SECONDS,
        )


@dataclass(frozen=True)
class Claims:
    """Verified contents of a session token."""
    sub: UUID
    role: PrincipalRole
    cid: Optional[UUID]
    iat: datetime
    exp: datetime
    jti: str

    @property
    def remaining(self) -> timedelta:
        return self.exp - datetime.now(timezone.utc)


class SessionTokenService:
    def __init__(self, key: SigningKey):
        self._key = key

    @property
    def ttl_seconds(self) -> int:
        return self._key.ttl_seconds

    def mint(self, principal: Any) -> str:
        """
        Create a signed token for a principal.

        Payload structure:
        {
          "sub":  "<principal id>",
          "role": "clinic|doctor|nurse|head_nurse|supervisor|pharmacist",
          "cid":  "<clinic id>",       # the clinic itself for clinic admins
          "jti":  "<uuid4 hex>",
          "iss":  "clinic-api",
          "aud":  "clinic-frontend",
          "iat":  <timestamp>,
          "exp":  <timestamp>,
        }
        """
        now = datetime.now(timezone.utc)
        clinic_id = principal.clinic_id
        payload: Dict[str, Any] = {
            "sub": str(principal.id),
            "role": PrincipalRole(principal.role).value,
            "cid": str(clinic_id) if clinic_id else None,
            "jti": uuid.uuid4().hex,
            "iss": self._key.issuer,
            "aud": self._key.audience,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._key.ttl_seconds)).timestamp()),
        }
        return jwt.encode(payload, self._key.secret, algorithm=self._key.algorithm)

    def validate(self, token: str) -> Claims:
        """Verify signature and expiry. Raises TokenExpired or TokenMalformed."""
        try:
            payload = jwt.decode(
                token,
                self._key.secret,
                algorithms=[self._key.algorithm],
                audience=self._key.audience,
                issuer=self._key.issuer,
                options={"require_iat": True, "require_exp": True, "require_sub": True, "require_jti": True},
            )
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError:
            raise TokenMalformed()

        try:
            cid = payload.get("cid")
            return Claims(
                sub=UUID(payload["sub"]),
                role=PrincipalRole(payload["role"]),
                cid=UUID(cid) if cid else None,
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=str(payload["jti"]),
            )
        except (KeyError, ValueError, TypeError):
            raise TokenMalformed()

    def in_refresh_window(self, claims: Claims) -> bool:
        return claims.remaining <= timedelta(seconds=self._key.refresh_window_seconds)

    def refresh(self, token: str, principal: Any) -> str:
        """
        Re-mint for a token in the final refresh window of its life.
        The caller passes the freshly re-read principal so role and clinic
        come from the store, not the old claims.
        """
        claims = self.validate(token)
        if not self.in_refresh_window(claims):
            raise RefreshDenied()
        if principal.id != claims.sub:
            raise TokenMalformed()
        return self.mint(principal)


token_service = SessionTokenService(SigningKey.from_settings())
