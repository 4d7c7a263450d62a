"""
FILE: src/staff/router.py
Staff management — clinic administrators list and (de)activate their staff
"""

from fastapi import APIRouter, Depends
from sqlmodel import Session
from uuid import UUID
from typing import Any, List, Optional

from src.auth.services import AuthService
from src.core.audit_service import create_audit_log
from src.core.database import get_session
from src.core.dependencies import pagination_params, require_access
from src.core.exceptions import InputInvalid, NotFound
from src.identity.store import IdentityStore
from src.otp.service import OTPService
from src.resources.repository import TenantRepository
from src.resources.schemas import StaffStatusUpdate
from src.shared.models import (
    STAFF_ROLES,
    AuditAction,
    Doctor,
    Nurse,
    OTPPurpose,
    Pharmacist,
    PrincipalRole,
)
from src.shared.schemas import ResponseModel, paginated
from src.tenancy.guard import AccessScope
from src.tenancy.permissions import Resource, Verb
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["Staff"])

STAFF_MODELS = (Doctor, Nurse, Pharmacist)


def _staff_role(role: str) -> PrincipalRole:
    try:
        parsed = PrincipalRole(role)
    except ValueError:
        raise InputInvalid(f"Unknown staff role '{role}'")
    if parsed not in STAFF_ROLES:
        raise InputInvalid(f"Unknown staff role '{role}'")
    return parsed


def _scoped_lookup(scope: AccessScope, role: PrincipalRole, staff_id: UUID, session: Session) -> Any:
    """Fetch a staff member inside the caller's clinic, or 404."""
    model = IdentityStore.model_for(role)
    query = scope.query(model)
    if model is Nurse:
        query = query.where(role=role)
    principal = TenantRepository(session).get(query, staff_id)
    if principal is None:
        raise NotFound("Staff member not found")
    return principal


@router.get("", response_model=ResponseModel)
async def list_staff(
    role: Optional[str] = None,
    scope: AccessScope = Depends(require_access(Resource.STAFF, Verb.READ)),
    pagination: dict = Depends(pagination_params),
    session: Session = Depends(get_session),
):
    """List staff in the caller's clinic, optionally filtered by role."""
    repo = TenantRepository(session)
    window = pagination["skip"] + pagination["limit"]

    if role:
        parsed = _staff_role(role)
        model = IdentityStore.model_for(parsed)
        query = scope.query(model)
        if model is Nurse:
            query = query.where(role=parsed)
        members, total = repo.list(query, skip=pagination["skip"], limit=pagination["limit"])
    else:
        merged: List[Any] = []
        total = 0
        for model in STAFF_MODELS:
            rows, count = repo.list(scope.query(model), skip=0, limit=window)
            merged.extend(rows)
            total += count
        merged.sort(key=lambda p: p.created_at, reverse=True)
        members = merged[pagination["skip"]:window]

    items = [AuthService.summary(m, session).model_dump(mode="json") for m in members]
    return paginated("Staff retrieved", items, total, pagination)


@router.get("/{role}/{staff_id}", response_model=ResponseModel)
async def get_staff(
    role: str,
    staff_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.STAFF, Verb.READ)),
    session: Session = Depends(get_session),
):
    principal = _scoped_lookup(scope, _staff_role(role), staff_id, session)
    return ResponseModel(success=True, data=AuthService.summary(principal, session).model_dump(mode="json"))


@router.patch("/{role}/{staff_id}/status", response_model=ResponseModel)
async def set_staff_status(
    role: str,
    staff_id: UUID,
    req: StaffStatusUpdate,
    scope: AccessScope = Depends(require_access(Resource.STAFF, Verb.UPDATE)),
    session: Session = Depends(get_session),
):
    """
    Activate or deactivate a staff member. Principals are never deleted.
    Deactivation also voids any code the member has pending.
    """
    parsed = _staff_role(role)
    _scoped_lookup(scope, parsed, staff_id, session)
    principal = IdentityStore(session).set_active(parsed, staff_id, req.is_active)
    state = "activated" if req.is_active else "deactivated"

    if not req.is_active:
        otp = OTPService(session)
        cancelled = sum(otp.cancel(principal.email, purpose) for purpose in OTPPurpose)
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending OTP(s) for {principal.id}")

    create_audit_log(
        session,
        AuditAction.STAFF_STATUS_CHANGE,
        principal=scope.principal,
        clinic_id=scope.clinic_id,
        details={"staff_id": principal.id, "staff_role": parsed.value, "is_active": req.is_active},
    )
    logger.info(f"Staff {principal.id} {state} by clinic {scope.clinic_id}")
    return ResponseModel(
        success=True,
        message=f"Staff member {state}",
        data=AuthService.summary(principal, session).model_dump(mode="json"),
    )
