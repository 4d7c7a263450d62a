"""
FILE: src/identity/store.py
Identity Store — canonical registry of principals and the clinic tenant anchor
"""

import logging
from typing import Any, Dict, Optional, Type
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from src.core.exceptions import Conflict, NotFound
from src.shared.models import (
    NURSE_ROLES,
    Clinic,
    Doctor,
    Nurse,
    Pharmacist,
    Principal,
    PrincipalRole,
    utcnow,
)

logger = logging.getLogger(__name__)


ROLE_MODELS: Dict[PrincipalRole, Type[Any]] = {
    PrincipalRole.CLINIC: Clinic,
    PrincipalRole.DOCTOR: Doctor,
    PrincipalRole.NURSE: Nurse,
    PrincipalRole.HEAD_NURSE: Nurse,
    PrincipalRole.SUPERVISOR: Nurse,
    PrincipalRole.PHARMACIST: Pharmacist,
}

# Cross-role lookup order
LOOKUP_ORDER = (Clinic, Doctor, Nurse, Pharmacist)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_uhid(uhid: str) -> str:
    return uhid.strip().upper()


class IdentityStore:
    """
    Principal persistence. Emails are stored lowercased and compared
    case-insensitively; UHIDs are stored uppercased. Password hashes are
    opaque strings here.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def model_for(role: PrincipalRole) -> Type[Any]:
        try:
            return ROLE_MODELS[PrincipalRole(role)]
        except (KeyError, ValueError):
            raise NotFound(f"Unknown role '{role}'")

    # Lookups

    def find_by_email(self, role: PrincipalRole, email: str) -> Optional[Principal]:
        model = self.model_for(role)
        statement = select(model).where(model.email == normalize_email(email))
        if model is Nurse:
            statement = statement.where(Nurse.role == PrincipalRole(role))
        return self.session.exec(statement).first()

    def find_any_by_email(self, email: str) -> Optional[Principal]:
        email = normalize_email(email)
        for model in LOOKUP_ORDER:
            principal = self.session.exec(select(model).where(model.email == email)).first()
            if principal is not None:
                return principal
        return None

    def find_by_id(self, role: PrincipalRole, principal_id: UUID) -> Optional[Principal]:
        model = self.model_for(role)
        principal = self.session.get(model, principal_id)
        if principal is None:
            return None
        if model is Nurse and principal.role != PrincipalRole(role):
            return None
        return principal

    def get(self, role: PrincipalRole, principal_id: UUID) -> Principal:
        principal = self.find_by_id(role, principal_id)
        if principal is None:
            raise NotFound(f"{PrincipalRole(role).value.replace('_', ' ').title()} not found")
        return principal

    def email_taken(self, email: str) -> bool:
        return self.find_any_by_email(email) is not None

    # Mutations

    def create(self, role: PrincipalRole, attributes: Dict[str, Any]) -> Principal:
        """
        Insert a principal.
        Raises Conflict on a duplicate email (any role) or UHID (same role table),
        NotFound when a staff principal's clinic is missing or inactive.
        """
        role = PrincipalRole(role)
        model = self.model_for(role)
        values = dict(attributes)
        values["email"] = normalize_email(values["email"])

        if self.email_taken(values["email"]):
            raise Conflict("Email already registered")

        if model is not Clinic:
            values["uhid"] = normalize_uhid(values["uhid"])
            existing = self.session.exec(select(model).where(model.uhid == values["uhid"])).first()
            if existing is not None:
                raise Conflict("UHID already registered")
            clinic = self.session.get(Clinic, values["clinic_id"])
            if clinic is None or not clinic.is_active:
                raise NotFound("Clinic not found")
            if model is Nurse:
                values["role"] = role

        principal = model(**values)
        self.session.add(principal)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"⚠️ Duplicate principal rejected by the database: {e.orig}")
            raise Conflict("Email or UHID already registered")
        self.session.refresh(principal)
        logger.info(f"👤 Created {role.value} {principal.id}")
        return principal

    def set_active(self, role: PrincipalRole, principal_id: UUID, flag: bool) -> Principal:
        principal = self.get(role, principal_id)
        principal.is_active = flag
        principal.updated_at = utcnow()
        self.session.add(principal)
        self.session.commit()
        self.session.refresh(principal)
        logger.info(f"{'✅' if flag else '⛔'} {PrincipalRole(role).value} {principal_id} active={flag}")
        return principal

    def update_credential(self, role: PrincipalRole, principal_id: UUID, new_hash: str) -> None:
        principal = self.get(role, principal_id)
        now = utcnow()
        principal.password_hash = new_hash
        principal.password_changed_at = now
        principal.updated_at = now
        self.session.add(principal)
        self.session.commit()

    def upgrade_hash(self, principal: Principal, new_hash: str) -> None:
        """Re-encode the same password under current cost settings. Sessions stay valid."""
        principal.password_hash = new_hash
        self.session.add(principal)
        self.session.commit()
        self.session.refresh(principal)
        logger.info(f"🔐 Credential hash upgraded for {principal.role.value} {principal.id}")

    def record_login(self, principal: Principal) -> None:
        principal.last_login_at = utcnow()
        self.session.add(principal)
        self.session.commit()
        self.session.refresh(principal)

    def mark_email_verified(self, principal: Principal) -> None:
        principal.email_verified = True
        principal.updated_at = utcnow()
        self.session.add(principal)
        self.session.commit()
        self.session.refresh(principal)
