"""
FILE: src/resources/schemas.py
Request schemas for tenant-bound resources
"""

from datetime import date, datetime
from typing import ClassVar, FrozenSet, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from src.shared.models import AppointmentStatus, PostCategory


class ResourceRequest(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    # Legacy clients send their clinic id; it is always replaced server-side
    clinic_id: Optional[str] = Field(default=None, exclude=True)


class ResourceUpdate(ResourceRequest):
    """Partial update. Omitted fields are left alone; null is refused for NOT NULL columns."""
    non_nullable: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in sorted(self.non_nullable & self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


# Posts

class PostCreate(ResourceRequest):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=5000)
    category: PostCategory = PostCategory.GENERAL
    tags: List[str] = Field(default_factory=list, max_length=20)


class PostUpdate(ResourceUpdate):
    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"title", "content", "category", "tags"})

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    category: Optional[PostCategory] = None
    tags: Optional[List[str]] = Field(default=None, max_length=20)


# Patients

class PatientCreate(ResourceRequest):
    full_name: str = Field(..., min_length=2, max_length=150)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(default=None, pattern="^(Male|Female|Other)$")
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=5000)


class PatientUpdate(ResourceUpdate):
    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"full_name"})

    full_name: Optional[str] = Field(default=None, min_length=2, max_length=150)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(default=None, pattern="^(Male|Female|Other)$")
    phone: Optional[str] = Field(default=None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=5000)


# Appointments

class AppointmentCreate(ResourceRequest):
    patient_id: UUID
    doctor_id: Optional[UUID] = Field(
        default=None, description="Required for clinic administrators; doctors book themselves"
    )
    scheduled_at: datetime
    duration_minutes: int = Field(default=30, ge=5, le=480)
    reason: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=5000)


class AppointmentUpdate(ResourceUpdate):
    non_nullable: ClassVar[FrozenSet[str]] = frozenset({"scheduled_at", "duration_minutes", "status"})

    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)
    status: Optional[AppointmentStatus] = None
    reason: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=5000)


# Staff

class StaffStatusUpdate(ResourceRequest):
    is_active: bool
