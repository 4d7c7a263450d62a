"""
FILE: src/resources/router.py
Posts, Patients and Appointments — tenant-scoped CRUD behind the Access Guard
Lookups outside the caller's clinic answer 404, never 403.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session
from uuid import UUID
from typing import Optional

from src.core.database import get_session
from src.core.dependencies import pagination_params, require_access
from src.resources.schemas import (
    AppointmentCreate,
    AppointmentUpdate,
    PatientCreate,
    PatientUpdate,
    PostCreate,
    PostUpdate,
)
from src.resources.services import AppointmentService, PatientService, PostService
from src.shared.models import AppointmentStatus, PostCategory
from src.shared.schemas import ResponseModel, paginated
from src.tenancy.guard import AccessScope
from src.tenancy.permissions import Resource, Verb
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _create_values(req) -> dict:
    values = req.model_dump()
    values["clinic_id"] = req.clinic_id
    return values


def _update_values(req) -> dict:
    values = req.model_dump(exclude_unset=True)
    values["clinic_id"] = req.clinic_id
    return values


# Posts

posts_router = APIRouter(prefix="/posts", tags=["Posts"])


@posts_router.get("", response_model=ResponseModel)
async def list_posts(
    category: Optional[PostCategory] = None,
    scope: AccessScope = Depends(require_access(Resource.POSTS, Verb.READ)),
    pagination: dict = Depends(pagination_params),
    session: Session = Depends(get_session),
):
    """Community feed of the caller's clinic, newest first."""
    items, total = await PostService.list(
        scope, session, skip=pagination["skip"], limit=pagination["limit"], category=category
    )
    return paginated("Posts retrieved", items, total, pagination)


@posts_router.get("/{post_id}", response_model=ResponseModel)
async def get_post(
    post_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.POSTS, Verb.READ)),
    session: Session = Depends(get_session),
):
    return ResponseModel(success=True, data=await PostService.get(scope, post_id, session))


@posts_router.post("", response_model=ResponseModel, status_code=status.HTTP_201_CREATED)
async def create_post(
    req: PostCreate,
    scope: AccessScope = Depends(require_access(Resource.POSTS, Verb.CREATE)),
    session: Session = Depends(get_session),
):
    """Create a post in the caller's clinic. A clinicId in the body is ignored."""
    post = await PostService.create(scope, _create_values(req), session)
    return ResponseModel(success=True, message="Post created", data=post)


@posts_router.patch("/{post_id}", response_model=ResponseModel)
async def update_post(
    post_id: UUID,
    req: PostUpdate,
    scope: AccessScope = Depends(require_access(Resource.POSTS, Verb.UPDATE)),
    session: Session = Depends(get_session),
):
    post = await PostService.update(scope, post_id, _update_values(req), session)
    return ResponseModel(success=True, message="Post updated", data=post)


@posts_router.delete("/{post_id}", response_model=ResponseModel)
async def delete_post(
    post_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.POSTS, Verb.DELETE)),
    session: Session = Depends(get_session),
):
    await PostService.delete(scope, post_id, session)
    return ResponseModel(success=True, message="Post deleted")


# Patients

patients_router = APIRouter(prefix="/patients", tags=["Patients"])


@patients_router.get("", response_model=ResponseModel)
async def list_patients(
    scope: AccessScope = Depends(require_access(Resource.PATIENTS, Verb.READ)),
    pagination: dict = Depends(pagination_params),
    session: Session = Depends(get_session),
):
    items, total = await PatientService.list(
        scope, session, skip=pagination["skip"], limit=pagination["limit"]
    )
    return paginated("Patients retrieved", items, total, pagination)


@patients_router.get("/{patient_id}", response_model=ResponseModel)
async def get_patient(
    patient_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.PATIENTS, Verb.READ)),
    session: Session = Depends(get_session),
):
    return ResponseModel(success=True, data=await PatientService.get(scope, patient_id, session))


@patients_router.post("", response_model=ResponseModel, status_code=status.HTTP_201_CREATED)
async def create_patient(
    req: PatientCreate,
    scope: AccessScope = Depends(require_access(Resource.PATIENTS, Verb.CREATE)),
    session: Session = Depends(get_session),
):
    patient = await PatientService.create(scope, _create_values(req), session)
    return ResponseModel(success=True, message="Patient created", data=patient)


@patients_router.patch("/{patient_id}", response_model=ResponseModel)
async def update_patient(
    patient_id: UUID,
    req: PatientUpdate,
    scope: AccessScope = Depends(require_access(Resource.PATIENTS, Verb.UPDATE)),
    session: Session = Depends(get_session),
):
    patient = await PatientService.update(scope, patient_id, _update_values(req), session)
    return ResponseModel(success=True, message="Patient updated", data=patient)


@patients_router.delete("/{patient_id}", response_model=ResponseModel)
async def delete_patient(
    patient_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.PATIENTS, Verb.DELETE)),
    session: Session = Depends(get_session),
):
    await PatientService.delete(scope, patient_id, session)
    return ResponseModel(success=True, message="Patient deleted")


# Appointments

appointments_router = APIRouter(prefix="/appointments", tags=["Appointments"])


@appointments_router.get("", response_model=ResponseModel)
async def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    doctor_id: Optional[UUID] = None,
    scope: AccessScope = Depends(require_access(Resource.APPOINTMENTS, Verb.READ)),
    pagination: dict = Depends(pagination_params),
    session: Session = Depends(get_session),
):
    items, total = await AppointmentService.list(
        scope,
        session,
        skip=pagination["skip"],
        limit=pagination["limit"],
        status=status_filter,
        doctor_id=doctor_id,
    )
    return paginated("Appointments retrieved", items, total, pagination)


@appointments_router.get("/{appointment_id}", response_model=ResponseModel)
async def get_appointment(
    appointment_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.APPOINTMENTS, Verb.READ)),
    session: Session = Depends(get_session),
):
    return ResponseModel(success=True, data=await AppointmentService.get(scope, appointment_id, session))


@appointments_router.post("", response_model=ResponseModel, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    req: AppointmentCreate,
    scope: AccessScope = Depends(require_access(Resource.APPOINTMENTS, Verb.CREATE)),
    session: Session = Depends(get_session),
):
    """Book an appointment. Doctors always book themselves."""
    appointment = await AppointmentService.create(scope, _create_values(req), session)
    return ResponseModel(success=True, message="Appointment created", data=appointment)


@appointments_router.patch("/{appointment_id}", response_model=ResponseModel)
async def update_appointment(
    appointment_id: UUID,
    req: AppointmentUpdate,
    scope: AccessScope = Depends(require_access(Resource.APPOINTMENTS, Verb.UPDATE)),
    session: Session = Depends(get_session),
):
    """Doctors may only change their own appointments; others are 404."""
    appointment = await AppointmentService.update(scope, appointment_id, _update_values(req), session)
    return ResponseModel(success=True, message="Appointment updated", data=appointment)


@appointments_router.delete("/{appointment_id}", response_model=ResponseModel)
async def delete_appointment(
    appointment_id: UUID,
    scope: AccessScope = Depends(require_access(Resource.APPOINTMENTS, Verb.DELETE)),
    session: Session = Depends(get_session),
):
    await AppointmentService.delete(scope, appointment_id, session)
    return ResponseModel(success=True, message="Appointment deleted")


router.include_router(posts_router)
router.include_router(patients_router)
router.include_router(appointments_router)
