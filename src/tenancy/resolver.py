"""
FILE: src/tenancy/resolver.py
Tenant Resolver — effective clinic id for a principal
"""

import logging
from uuid import UUID

from src.core.exceptions import TenantUnresolved
from src.core.tokens import Claims
from src.identity.store import IdentityStore
from src.shared.models import STAFF_ROLES, Clinic, Principal, PrincipalRole

logger = logging.getLogger(__name__)


class TenantResolver:
    """
    Clinic → its own id. Staff roles (head nurse and supervisor included)
    → the clinic_id re-read from the store, which must name an existing,
    active clinic. Anything else is unresolved.
    """

    def __init__(self, store: IdentityStore):
        self.store = store

    def resolve(self, claims: Claims) -> UUID:
        principal = self.store.find_by_id(claims.role, claims.sub)
        if principal is None:
            raise TenantUnresolved()
        return self.resolve_principal(principal)

    def resolve_principal(self, principal: Principal) -> UUID:
        role = PrincipalRole(principal.role)

        if role == PrincipalRole.CLINIC:
            clinic_id = principal.id
        elif role in STAFF_ROLES:
            clinic_id = principal.clinic_id
        else:
            raise TenantUnresolved()

        if clinic_id is None:
            raise TenantUnresolved()

        clinic = self.store.session.get(Clinic, clinic_id)
        if clinic is None or not clinic.is_active:
            logger.warning(f"Tenant unresolved for {role.value} {principal.id}: clinic {clinic_id} unavailable")
            raise TenantUnresolved()
        return clinic_id
