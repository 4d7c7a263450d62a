"""
FILE: src/audit/router.py
Audit trail — clinic administrators read their clinic's security events
"""

from fastapi import APIRouter, Depends
from sqlmodel import Session
from typing import Optional

from src.core.audit_service import list_audit_logs
from src.core.database import get_session
from src.core.dependencies import pagination_params, require_access
from src.shared.models import AuditAction
from src.shared.schemas import ResponseModel, paginated
from src.tenancy.guard import AccessScope
from src.tenancy.permissions import Resource, Verb

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=ResponseModel)
async def get_audit_logs(
    action: Optional[AuditAction] = None,
    scope: AccessScope = Depends(require_access(Resource.AUDIT_LOGS, Verb.READ)),
    pagination: dict = Depends(pagination_params),
    session: Session = Depends(get_session),
):
    """Newest first. Filter by action, e.g. ?action=PERMISSION_DENIED."""
    entries, total = list_audit_logs(
        session,
        scope.clinic_id,
        action=action,
        skip=pagination["skip"],
        limit=pagination["limit"],
    )
    items = [entry.model_dump(mode="json") for entry in entries]
    return paginated("Audit logs retrieved", items, total, pagination)
