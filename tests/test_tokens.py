"""
FILE: tests/test_tokens.py
Session token tests — minting, validation failures, refresh window,
denylist.
"""

import base64
import json
import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlmodel import Session

from conftest import forge_token
from src.auth.revocation import TokenDenylist
from src.core.config import settings
from src.core.exceptions import TokenExpired, TokenMalformed
from src.core.tokens import RefreshDenied, SessionTokenService, SigningKey, token_service
from src.shared.models import Clinic, Doctor, PrincipalRole, RevokedToken, utcnow


def _service_with_ttl(ttl_seconds: int) -> SessionTokenService:
    return SessionTokenService(replace(SigningKey.from_settings(), ttl_seconds=ttl_seconds))


# ============================================================================
# MINT / VALIDATE
# ============================================================================

@pytest.mark.unit
@pytest.mark.tokens
class TestMintAndValidate:
    """SessionTokenService.mint() and validate()"""

    def test_staff_token_carries_role_and_clinic(self, doctor: Doctor):
        claims = token_service.validate(token_service.mint(doctor))

        assert claims.sub == doctor.id
        assert claims.role == PrincipalRole.DOCTOR
        assert claims.cid == doctor.clinic_id
        assert claims.exp - claims.iat == timedelta(seconds=settings.JWT_ACCESS_TOKEN_TTL_SECONDS)

    def test_clinic_token_cid_is_its_own_id(self, clinic: Clinic):
        claims = token_service.validate(token_service.mint(clinic))

        assert claims.role == PrincipalRole.CLINIC
        assert claims.cid == clinic.id

    def test_each_token_has_a_unique_jti(self, doctor: Doctor):
        first = token_service.validate(token_service.mint(doctor))
        second = token_service.validate(token_service.mint(doctor))

        assert first.jti != second.jti

    def test_token_payload_has_no_credential_material(self, doctor: Doctor):
        payload = jwt.get_unverified_claims(token_service.mint(doctor))

        assert set(payload) == {"sub", "role", "cid", "jti", "iss", "aud", "iat", "exp"}


@pytest.mark.unit
@pytest.mark.tokens
@pytest.mark.security
class TestValidateFailures:
    """Every failure maps to TokenExpired or TokenMalformed."""

    def test_expired_token_raises_token_expired(self, doctor: Doctor):
        token = forge_token(doctor, datetime.now(timezone.utc) - timedelta(hours=2))

        with pytest.raises(TokenExpired):
            token_service.validate(token)

    def test_garbage_raises_token_malformed(self):
        with pytest.raises(TokenMalformed):
            token_service.validate("not.a.jwt")

    def test_wrong_secret_raises_token_malformed(self, doctor: Doctor):
        payload = jwt.get_unverified_claims(token_service.mint(doctor))
        token = jwt.encode(payload, "x" * 40, algorithm="HS256")

        with pytest.raises(TokenMalformed):
            token_service.validate(token)

    def test_other_algorithm_raises_token_malformed(self, doctor: Doctor):
        payload = jwt.get_unverified_claims(token_service.mint(doctor))
        token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm="HS512")

        with pytest.raises(TokenMalformed):
            token_service.validate(token)

    def test_unsigned_token_raises_token_malformed(self, doctor: Doctor):
        payload = jwt.get_unverified_claims(token_service.mint(doctor))

        def b64(data: dict) -> str:
            return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

        token = f"{b64({'alg': 'none', 'typ': 'JWT'})}.{b64(payload)}."

        with pytest.raises(TokenMalformed):
            token_service.validate(token)

    def test_wrong_audience_raises_token_malformed(self, doctor: Doctor):
        token = forge_token(doctor, datetime.now(timezone.utc), aud="someone-else")

        with pytest.raises(TokenMalformed):
            token_service.validate(token)

    def test_unknown_role_raises_token_malformed(self, doctor: Doctor):
        token = forge_token(doctor, datetime.now(timezone.utc), role="superuser")

        with pytest.raises(TokenMalformed):
            token_service.validate(token)

    def test_missing_jti_raises_token_malformed(self, doctor: Doctor):
        payload = jwt.get_unverified_claims(token_service.mint(doctor))
        payload.pop("jti")
        token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(TokenMalformed):
            token_service.validate(token)


# ============================================================================
# REFRESH WINDOW
# ============================================================================

@pytest.mark.unit
@pytest.mark.tokens
class TestRefresh:
    """SessionTokenService.refresh()"""

    def test_fresh_token_is_not_refreshable(self, doctor: Doctor):
        with pytest.raises(RefreshDenied):
            token_service.refresh(token_service.mint(doctor), doctor)

    def test_token_in_final_window_is_refreshed(self, doctor: Doctor):
        old = _service_with_ttl(600).mint(doctor)

        new = token_service.refresh(old, doctor)
        claims = token_service.validate(new)

        assert new != old
        assert claims.sub == doctor.id
        assert claims.remaining > timedelta(seconds=settings.JWT_REFRESH_WINDOW_SECONDS)

    def test_refresh_for_a_different_principal_is_rejected(self, doctor: Doctor, second_doctor: Doctor):
        old = _service_with_ttl(600).mint(doctor)

        with pytest.raises(TokenMalformed):
            token_service.refresh(old, second_doctor)


# ============================================================================
# DENYLIST
# ============================================================================

@pytest.mark.unit
@pytest.mark.tokens
class TestTokenDenylist:
    """TokenDenylist"""

    def test_revoke_then_is_revoked(self, session: Session, doctor: Doctor):
        claims = token_service.validate(token_service.mint(doctor))
        denylist = TokenDenylist(session)

        denylist.revoke(claims)

        assert denylist.is_revoked(claims.jti) is True

    def test_revoke_is_idempotent(self, session: Session, doctor: Doctor):
        claims = token_service.validate(token_service.mint(doctor))
        denylist = TokenDenylist(session)

        denylist.revoke(claims)
        denylist.revoke(claims)

        assert session.get(RevokedToken, claims.jti) is not None

    def test_purge_removes_only_lapsed_entries(self, session: Session, doctor: Doctor):
        session.add(RevokedToken(jti="lapsed", principal_id=doctor.id, expires_at=utcnow() - timedelta(minutes=1)))
        session.add(RevokedToken(jti="live", principal_id=doctor.id, expires_at=utcnow() + timedelta(minutes=30)))
        session.commit()

        removed = TokenDenylist(session).purge_expired()

        assert removed == 1
        assert session.get(RevokedToken, "lapsed") is None
        assert session.get(RevokedToken, "live") is not None
