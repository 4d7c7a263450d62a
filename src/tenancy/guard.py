"""
FILE: src/tenancy/guard.py
Access Guard — the single interception point for tenant-bound resources
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type
from uuid import UUID

from sqlmodel import Session

from src.core.audit_service import audit_logger, create_audit_log
from src.core.exceptions import AuthRequired, Forbidden, TokenRevoked
from src.core.tokens import Claims
from src.identity.store import IdentityStore
from src.resources.repository import TenantQuery
from src.shared.models import AuditAction, Principal, PrincipalRole
from src.tenancy.permissions import OWNER_FIELDS, Grant, Resource, Verb, grant_for
from src.tenancy.resolver import TenantResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessScope:
    """What an authorized request may touch: one clinic, optionally one owner."""
    principal: Principal = field(compare=False, repr=False)
    role: PrincipalRole
    clinic_id: UUID
    resource: Resource
    verb: Verb
    grant: Grant
    session: Session = field(compare=False, repr=False)

    @property
    def principal_id(self) -> UUID:
        return self.principal.id

    @property
    def owner_field(self) -> Optional[str]:
        if not self.grant.own:
            return None
        return OWNER_FIELDS.get(self.role)

    def query(self, model: Type[Any]) -> TenantQuery:
        """Clinic predicate always; owner predicate on writes under an "own" grant."""
        query = TenantQuery(model, clinic_id=self.clinic_id)
        owner = self.owner_field
        if owner and self.verb.is_write and hasattr(model, owner):
            query = query.where(**{owner: self.principal_id})
        return query

    def stamp(self, values: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        """Overwrite tenant (and owner) fields with server-side values."""
        values = dict(values)
        supplied = values.pop("clinic_id", None)
        if supplied is not None and str(supplied) != str(self.clinic_id):
            create_audit_log(
                self.session,
                AuditAction.UNAUTHORIZED_ACCESS,
                principal=self.principal,
                clinic_id=self.clinic_id,
                details={
                    "resource": self.resource.value,
                    "verb": self.verb.value,
                    "supplied_clinic_id": str(supplied),
                },
            )
        values["clinic_id"] = self.clinic_id

        owner = self.owner_field
        if owner:
            if creating:
                values[owner] = self.principal_id
            else:
                values.pop(owner, None)
        return values


class AccessGuard:
    def __init__(self, session: Session):
        self.session = session
        self.store = IdentityStore(session)
        self.resolver = TenantResolver(self.store)

    def load_principal(self, claims: Claims) -> Principal:
        """Re-read the principal behind a token; claims alone are never trusted."""
        principal = self.store.find_by_id(claims.role, claims.sub)
        if principal is None:
            raise AuthRequired()
        if not principal.is_active:
            raise Forbidden("Account is deactivated")
        # Token iat has whole-second precision
        changed_at = principal.password_changed_at
        if changed_at is not None and claims.iat.replace(tzinfo=None) < changed_at.replace(microsecond=0):
            raise TokenRevoked()
        return principal

    def authorize(self, claims: Claims, resource: Resource, verb: Verb) -> AccessScope:
        principal = self.load_principal(claims)
        role = PrincipalRole(principal.role)
        clinic_id = self.resolver.resolve_principal(principal)

        if claims.cid is not None and claims.cid != clinic_id:
            audit_logger.warning(
                f"Stale clinic claim: {role.value} {principal.id} token cid {claims.cid}, store says {clinic_id}"
            )

        grant = grant_for(role, resource)
        if grant is None or not grant.allows(verb):
            create_audit_log(
                self.session,
                AuditAction.PERMISSION_DENIED,
                principal=principal,
                clinic_id=clinic_id,
                details={"resource": resource.value, "verb": verb.value},
            )
            raise Forbidden(f"Role '{role.value}' may not {verb.value} {resource.value}")

        return AccessScope(
            principal=principal,
            role=role,
            clinic_id=clinic_id,
            resource=resource,
            verb=verb,
            grant=grant,
            session=self.session,
        )
