"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the scheduler API.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models.models import AppointmentStatus, NotificationStatus, SlotStatus


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)


# ── Subjects ──────────────────────────────────────────────────

class SubjectResponse(BaseSchema):
    subject_id: int
    subject_name: str


class SubjectCreateRequest(BaseSchema):
    subject_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("subject_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Subject name is required")
        return v


class TutorSubjectsRequest(BaseSchema):
    tutor_id: int
    subjects: List[str] = Field(..., min_length=1)


# ── Availability ──────────────────────────────────────────────

class AvailabilityCreateRequest(BaseSchema):
    tutor_id: int
    available_date: date = Field(..., alias="date")
    start_time: time


class AvailabilityResponse(BaseSchema):
    availability_id: int
    tutor_id: int
    available_date: date
    start_time: time
    end_time: time
    status: SlotStatus


class AvailabilitySearchResult(AvailabilityResponse):
    tutor_name: str
    subjects: List[str] = []


class AdminAvailabilityRow(AvailabilityResponse):
    tutor_name: str
    # Populated only while the slot has an active appointment
    appointment_id: Optional[int] = None
    appointment_status: Optional[AppointmentStatus] = None
    subject_name: Optional[str] = None
    student_name: Optional[str] = None


# ── Appointments ──────────────────────────────────────────────

class RequestSessionRequest(BaseSchema):
    student_id: int
    tutor_id: int
    subject_name: str = Field(..., min_length=1, max_length=100)
    availability_id: int


class AppointmentStatusUpdate(BaseSchema):
    status: str


class UpcomingAppointmentResponse(BaseSchema):
    appointment_id: int
    status: AppointmentStatus
    available_date: date
    start_time: time
    end_time: time
    subject_name: str
    tutor_name: Optional[str] = None
    student_name: Optional[str] = None
    location: Optional[str] = None


class TutorAppointmentResponse(BaseSchema):
    appointment_id: int
    status: AppointmentStatus
    created_at: datetime
    availability_id: int
    available_date: date
    start_time: time
    end_time: time
    subject_name: str
    student_name: str


# ── Notification ──────────────────────────────────────────────

class NotificationResponse(BaseSchema):
    notification_id: int
    user_id: int
    message: str
    status: NotificationStatus
    read_at: Optional[datetime] = None
    created_at: datetime


class UnreadCountResponse(BaseSchema):
    unread_count: int


# ── Admin ─────────────────────────────────────────────────────

class AdminSummaryResponse(BaseSchema):
    total_users: int
    total_students: int
    total_tutors: int
    total_appointments: int      # all-time
    active_appointments: int     # pending + accepted
    pending_appointments: int
    accepted_appointments: int


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class AppointmentCreatedResponse(MessageResponse):
    appointment_id: int


class SubjectCreatedResponse(MessageResponse):
    subject_id: int


class ReadAllResponse(MessageResponse):
    updated: int
