"""
FILE: src/resources/repository.py
Tenant-scoped persistence — every statement carries a clinic predicate

TenantQuery is a frozen query spec with a typed clinic_id slot. Only the
Access Guard fills the slot; TenantRepository refuses to run a query whose
slot is empty.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from src.core.audit_service import create_audit_log
from src.core.exceptions import Internal
from src.shared.models import (
    Appointment,
    AuditAction,
    Doctor,
    Nurse,
    Patient,
    Pharmacist,
    Post,
    utcnow,
)

logger = logging.getLogger(__name__)

TENANT_BOUND_MODELS: Tuple[Type[Any], ...] = (
    Patient,
    Appointment,
    Post,
    Doctor,
    Nurse,
    Pharmacist,
)

# Never written through a generic update
_PROTECTED_FIELDS = {"id", "clinic_id", "created_at"}


class UnscopedQueryError(Internal):
    """A tenant-bound query reached the repository without a clinic predicate."""


@dataclass(frozen=True)
class TenantQuery:
    model: Type[Any]
    clinic_id: Optional[UUID] = None
    filters: Tuple[Tuple[str, Any], ...] = ()

    def where(self, **equals: Any) -> "TenantQuery":
        if "clinic_id" in equals:
            raise ValueError("clinic_id is set by the access guard, not by filters")
        for name in equals:
            if not hasattr(self.model, name):
                raise ValueError(f"{self.model.__name__} has no field '{name}'")
        return replace(self, filters=self.filters + tuple(equals.items()))

    def statement(self):
        if self.clinic_id is None:
            raise UnscopedQueryError(f"Unscoped query on {self.model.__name__}")
        if self.model not in TENANT_BOUND_MODELS:
            raise UnscopedQueryError(f"{self.model.__name__} is not tenant-bound")
        statement = select(self.model).where(self.model.clinic_id == self.clinic_id)
        for name, value in self.filters:
            statement = statement.where(getattr(self.model, name) == value)
        return statement


class TenantRepository:
    def __init__(self, session: Session):
        self.session = session

    def list(
        self,
        query: TenantQuery,
        skip: int = 0,
        limit: int = 20,
        newest_first: bool = True,
    ) -> Tuple[List[Any], int]:
        statement = query.statement()
        total = self.session.exec(
            select(func.count()).select_from(statement.subquery())
        ).one()
        if newest_first and hasattr(query.model, "created_at"):
            statement = statement.order_by(query.model.created_at.desc())
        items = self.session.exec(statement.offset(skip).limit(limit)).all()
        return list(items), total

    def get(self, query: TenantQuery, record_id: UUID) -> Optional[Any]:
        record = self.session.exec(query.where(id=record_id).statement()).first()
        if record is None:
            self._audit_foreign(query, record_id)
        return record

    def create(self, query: TenantQuery, values: Dict[str, Any]) -> Any:
        statement_clinic = query.clinic_id
        if statement_clinic is None or values.get("clinic_id") != statement_clinic:
            raise UnscopedQueryError(f"Unscoped insert into {query.model.__name__}")
        record = query.model(**values)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def update(self, query: TenantQuery, record_id: UUID, values: Dict[str, Any]) -> Optional[Any]:
        record = self.get(query, record_id)
        if record is None:
            return None
        for key, value in values.items():
            if key in _PROTECTED_FIELDS:
                continue
            setattr(record, key, value)
        if hasattr(record, "updated_at"):
            record.updated_at = utcnow()
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def delete(self, query: TenantQuery, record_id: UUID) -> bool:
        record = self.get(query, record_id)
        if record is None:
            return False
        self.session.delete(record)
        self.session.commit()
        return True

    def _audit_foreign(self, query: TenantQuery, record_id: UUID) -> None:
        """Record lookups of ids that exist under another clinic."""
        existing = self.session.get(query.model, record_id)
        if existing is not None and existing.clinic_id != query.clinic_id:
            create_audit_log(
                self.session,
                AuditAction.UNAUTHORIZED_ACCESS,
                clinic_id=query.clinic_id,
                details={
                    "model": query.model.__name__,
                    "record_id": record_id,
                    "owner_clinic_id": existing.clinic_id,
                },
            )


def verify_tenant_models() -> None:
    """
    Startup check: every tenant-bound table has a non-null clinic_id
    foreign key to clinics.
    """
    for model in TENANT_BOUND_MODELS:
        column = model.__table__.c.get("clinic_id")
        if column is None or column.nullable:
            raise RuntimeError(f"{model.__name__} must carry a non-null clinic_id")
        if not any(fk.target_fullname == "clinics.id" for fk in column.foreign_keys):
            raise RuntimeError(f"{model.__name__}.clinic_id must reference clinics.id")
    logger.info(f"✅ Tenant scoping verified for {len(TENANT_BOUND_MODELS)} models")
