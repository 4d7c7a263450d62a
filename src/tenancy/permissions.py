"""
FILE: src/tenancy/permissions.py
Role → resource → verb permission matrix
"""

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from src.shared.models import PrincipalRole


class Resource(str, enum.Enum):
    PATIENTS = "patients"
    APPOINTMENTS = "appointments"
    PRESCRIPTIONS = "prescriptions"
    INVENTORY = "inventory"
    POSTS = "posts"
    STAFF = "staff"
    INVOICES = "invoices"
    AUDIT_LOGS = "audit_logs"


class Verb(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def is_write(self) -> bool:
        return self is not Verb.READ


@dataclass(frozen=True)
class Grant:
    verbs: FrozenSet[Verb]
    own: bool = False  # writes limited to rows the principal owns

    def allows(self, verb: Verb) -> bool:
        return verb in self.verbs


def _grant(letters: str, own: bool = False) -> Grant:
    table = {"C": Verb.CREATE, "R": Verb.READ, "U": Verb.UPDATE, "D": Verb.DELETE}
    return Grant(frozenset(table[c] for c in letters), own=own)


_CLINIC_ROW = {
    Resource.PATIENTS: _grant("CRUD"),
    Resource.APPOINTMENTS: _grant("CRUD"),
    Resource.PRESCRIPTIONS: _grant("R"),
    Resource.INVENTORY: _grant("R"),
    Resource.POSTS: _grant("CRUD"),
    Resource.STAFF: _grant("CRUD"),
    Resource.INVOICES: _grant("CRUD"),
    Resource.AUDIT_LOGS: _grant("R"),
}

_DOCTOR_ROW = {
    Resource.PATIENTS: _grant("RU"),
    Resource.APPOINTMENTS: _grant("CRUD", own=True),
    Resource.PRESCRIPTIONS: _grant("CRUD", own=True),
    Resource.INVENTORY: _grant("R"),
    Resource.POSTS: _grant("CR"),
    Resource.INVOICES: _grant("R"),
}

# Head nurses and supervisors hold the nurse row; elevation never crosses tenants
_NURSE_ROW = {
    Resource.PATIENTS: _grant("RU"),
    Resource.APPOINTMENTS: _grant("R"),
    Resource.PRESCRIPTIONS: _grant("R"),
    Resource.POSTS: _grant("CR"),
}

_PHARMACIST_ROW = {
    Resource.PATIENTS: _grant("R"),
    Resource.APPOINTMENTS: _grant("R"),
    Resource.PRESCRIPTIONS: _grant("RU"),
    Resource.INVENTORY: _grant("CRUD"),
}

PERMISSIONS: Dict[PrincipalRole, Dict[Resource, Grant]] = {
    PrincipalRole.CLINIC: _CLINIC_ROW,
    PrincipalRole.DOCTOR: _DOCTOR_ROW,
    PrincipalRole.NURSE: _NURSE_ROW,
    PrincipalRole.HEAD_NURSE: _NURSE_ROW,
    PrincipalRole.SUPERVISOR: _NURSE_ROW,
    PrincipalRole.PHARMACIST: _PHARMACIST_ROW,
}

# Column holding the owning principal for "own" grants
OWNER_FIELDS: Dict[PrincipalRole, str] = {
    PrincipalRole.DOCTOR: "doctor_id",
}


def grant_for(role: PrincipalRole, resource: Resource) -> Optional[Grant]:
    return PERMISSIONS.get(role, {}).get(resource)
