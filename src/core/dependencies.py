"""
FILE: src/core/dependencies.py
FastAPI dependencies — bearer authentication, tenant-scoped access, pagination
"""

from fastapi import Depends, Header
from sqlmodel import Session
from typing import Optional

from src.auth.revocation import TokenDenylist
from src.core.database import get_session
from src.core.exceptions import AuthRequired, InputInvalid, TokenRevoked
from src.core.tokens import Claims, token_service
from src.shared.models import Principal
from src.tenancy.guard import AccessGuard, AccessScope
from src.tenancy.permissions import Resource, Verb
import logging

logger = logging.getLogger(__name__)


# Token extraction

def _extract_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthRequired("Not authenticated")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthRequired("Invalid authorization header format")
    return parts[1]


async def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    return _extract_token(authorization)


async def get_claims(
    token: str = Depends(get_bearer_token),
    session: Session = Depends(get_session),
) -> Claims:
    """
    Validate the bearer token and reject revoked ones.
    Raises 401 with code TOKEN_EXPIRED, TOKEN_MALFORMED or TOKEN_REVOKED.
    """
    claims = token_service.validate(token)
    if TokenDenylist(session).is_revoked(claims.jti):
        raise TokenRevoked()
    return claims


def claims_from_header(authorization: Optional[str], session: Session) -> Claims:
    """
    Validate a raw Authorization header outside the dependency graph, for
    routes where only some request shapes need a token.
    """
    claims = token_service.validate(_extract_token(authorization))
    if TokenDenylist(session).is_revoked(claims.jti):
        raise TokenRevoked()
    return claims


# Current principal

async def get_current_principal(
    claims: Claims = Depends(get_claims),
    session: Session = Depends(get_session),
) -> Principal:
    """Re-read the principal from the Identity Store; inactive accounts get 403."""
    return AccessGuard(session).load_principal(claims)


# Tenant-scoped access

def require_access(resource: Resource, verb: Verb):
    """
    Dependency factory: authorize (resource, verb) and hand the route an
    AccessScope bound to the caller's clinic.

    Usage:
        @router.get("/{post_id}")
        async def get_post(scope: AccessScope = Depends(require_access(Resource.POSTS, Verb.READ))):
    """
    async def checker(
        claims: Claims = Depends(get_claims),
        session: Session = Depends(get_session),
    ) -> AccessScope:
        return AccessGuard(session).authorize(claims, resource, verb)

    return checker


# Pagination

def pagination_params(page: int = 1, page_size: int = 20) -> dict:
    """
    Standard pagination parameters.
    Returns {skip, limit, page, page_size}.
    """
    if page < 1:
        raise InputInvalid("page must be >= 1")
    if page_size < 1 or page_size > 200:
        raise InputInvalid("page_size must be between 1 and 200")
    skip = (page - 1) * page_size
    return {"skip": skip, "limit": page_size, "page": page, "page_size": page_size}
