"""
FILE: src/core/audit_service.py
Security audit trail — persisted AuditLog rows mirrored to the "audit" logger
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from src.shared.models import AuditAction, AuditLog, Principal

audit_logger = logging.getLogger("audit")

_WARNING_ACTIONS = {
    AuditAction.LOGIN_FAILURE,
    AuditAction.DEVELOPER_LOGIN,
    AuditAction.PERMISSION_DENIED,
    AuditAction.UNAUTHORIZED_ACCESS,
}


def create_audit_log(
    session: Session,
    action: AuditAction,
    principal: Optional[Principal] = None,
    email: Optional[str] = None,
    clinic_id: Optional[UUID] = None,
    ip_address: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Write one audit entry and commit it.

    Args:
        session: The database session.
        action: What happened (e.g. LOGIN_FAILURE, PERMISSION_DENIED).
        principal: The acting principal, when one is known.
        email: The email involved, for events without a principal.
        clinic_id: Tenant the event concerns; defaults to the principal's clinic.
        ip_address: Client address, when the caller has the request.
        details: Additional context stored as JSON.
    """
    entry = AuditLog(
        action=action,
        principal_id=principal.id if principal is not None else None,
        principal_role=principal.role.value if principal is not None else None,
        clinic_id=clinic_id or (principal.clinic_id if principal is not None else None),
        email=email or (principal.email if principal is not None else None),
        ip_address=ip_address,
        details={k: str(v) if isinstance(v, UUID) else v for k, v in (details or {}).items()},
    )
    session.add(entry)
    session.commit()
    session.refresh(entry)

    level = logging.WARNING if action in _WARNING_ACTIONS else logging.INFO
    audit_logger.log(
        level,
        f"{action.value} principal={entry.principal_id} clinic={entry.clinic_id} "
        f"email={entry.email} details={entry.details}",
    )
    return entry


def list_audit_logs(
    session: Session,
    clinic_id: UUID,
    action: Optional[AuditAction] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[AuditLog], int]:
    """Entries for one clinic, newest first, with the unpaged total."""
    statement = select(AuditLog).where(AuditLog.clinic_id == clinic_id)
    if action is not None:
        statement = statement.where(AuditLog.action == action)
    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    statement = statement.order_by(AuditLog.timestamp.desc()).offset(skip).limit(limit)  # type: ignore[attr-defined]
    return list(session.exec(statement).all()), total
