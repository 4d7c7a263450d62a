"""
FILE: src/resources/services.py
Tenant-bound resource operations — every call goes through an AccessScope
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlmodel import Session

from src.core.exceptions import InputInvalid, NotFound
from src.identity.store import IdentityStore
from src.resources.repository import TenantRepository
from src.shared.models import Appointment, Doctor, Patient, Post, PrincipalRole
from src.tenancy.guard import AccessScope

logger = logging.getLogger(__name__)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ScopedCrudService:
    """List / get / create / update / delete for one tenant-bound model."""

    model: Type[Any]
    label: str

    @classmethod
    def _out(cls, record: Any, session: Session) -> Dict[str, Any]:
        return record.model_dump(mode="json")

    @classmethod
    async def list(
        cls,
        scope: AccessScope,
        session: Session,
        skip: int = 0,
        limit: int = 20,
        **filters: Any,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = scope.query(cls.model)
        filters = {k: v for k, v in filters.items() if v is not None}
        if filters:
            query = query.where(**filters)
        records, total = TenantRepository(session).list(query, skip=skip, limit=limit)
        return [cls._out(r, session) for r in records], total

    @classmethod
    async def get(cls, scope: AccessScope, record_id: UUID, session: Session) -> Dict[str, Any]:
        record = TenantRepository(session).get(scope.query(cls.model), record_id)
        if record is None:
            raise NotFound(f"{cls.label} not found")
        return cls._out(record, session)

    @classmethod
    async def create(cls, scope: AccessScope, values: Dict[str, Any], session: Session) -> Dict[str, Any]:
        values = scope.stamp(values, creating=True)
        record = TenantRepository(session).create(scope.query(cls.model), values)
        logger.info(f"➕ {cls.label} {record.id} created in clinic {scope.clinic_id}")
        return cls._out(record, session)

    @classmethod
    async def update(
        cls, scope: AccessScope, record_id: UUID, values: Dict[str, Any], session: Session
    ) -> Dict[str, Any]:
        values = scope.stamp(values, creating=False)
        values.pop("clinic_id", None)
        record = TenantRepository(session).update(scope.query(cls.model), record_id, values)
        if record is None:
            raise NotFound(f"{cls.label} not found")
        return cls._out(record, session)

    @classmethod
    async def delete(cls, scope: AccessScope, record_id: UUID, session: Session) -> None:
        if not TenantRepository(session).delete(scope.query(cls.model), record_id):
            raise NotFound(f"{cls.label} not found")
        logger.info(f"🗑️ {cls.label} {record_id} deleted in clinic {scope.clinic_id}")


class PostService(ScopedCrudService):
    model = Post
    label = "Post"

    @classmethod
    def _out(cls, record: Post, session: Session) -> Dict[str, Any]:
        data = record.model_dump(mode="json")
        # Posts by deactivated authors stay visible, flagged
        author = IdentityStore(session).find_by_id(record.author_role, record.author_id)
        data["author_active"] = bool(author and author.is_active)
        return data

    @classmethod
    async def create(cls, scope: AccessScope, values: Dict[str, Any], session: Session) -> Dict[str, Any]:
        values = dict(values)
        values.update(
            author_id=scope.principal_id,
            author_role=scope.role,
            author_name=scope.principal.full_name,
        )
        return await super().create(scope, values, session)

    @classmethod
    async def update(
        cls, scope: AccessScope, record_id: UUID, values: Dict[str, Any], session: Session
    ) -> Dict[str, Any]:
        for key in ("author_id", "author_role", "author_name"):
            values.pop(key, None)
        return await super().update(scope, record_id, values, session)


class PatientService(ScopedCrudService):
    model = Patient
    label = "Patient"

    @classmethod
    async def create(cls, scope: AccessScope, values: Dict[str, Any], session: Session) -> Dict[str, Any]:
        values = dict(values)
        values["created_by"] = scope.principal_id
        return await super().create(scope, values, session)


class AppointmentService(ScopedCrudService):
    model = Appointment
    label = "Appointment"

    @classmethod
    async def create(cls, scope: AccessScope, values: Dict[str, Any], session: Session) -> Dict[str, Any]:
        values = dict(values)
        values["scheduled_at"] = _naive_utc(values.get("scheduled_at"))
        repo = TenantRepository(session)

        if repo.get(scope.query(Patient), values["patient_id"]) is None:
            raise NotFound("Patient not found")

        if scope.role == PrincipalRole.DOCTOR:
            values["doctor_id"] = scope.principal_id
        elif values.get("doctor_id") is None:
            raise InputInvalid("doctor_id is required")

        doctor = repo.get(scope.query(Doctor), values["doctor_id"])
        if doctor is None or not doctor.is_active:
            raise NotFound("Doctor not found")

        return await super().create(scope, values, session)

    @classmethod
    async def update(
        cls, scope: AccessScope, record_id: UUID, values: Dict[str, Any], session: Session
    ) -> Dict[str, Any]:
        values = dict(values)
        if "scheduled_at" in values:
            values["scheduled_at"] = _naive_utc(values["scheduled_at"])
        values.pop("patient_id", None)
        values.pop("doctor_id", None)
        return await super().update(scope, record_id, values, session)
