"""
services/booking/router.py
Appointment endpoints: a student requests a slot, the tutor accepts,
declines or completes it, and either party lists what is coming up.

Lifecycle rules live in services/booking/lifecycle.py; errors raised
there are mapped to HTTP responses by the handler registered in main.py.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.lifecycle import request_session, update_appointment_status
from services.search.queries import upcoming_appointments
from shared.models.models import UserRole
from shared.schemas.schemas import (
    AppointmentCreatedResponse,
    AppointmentStatusUpdate,
    MessageResponse,
    RequestSessionRequest,
    UpcomingAppointmentResponse,
)

router = APIRouter(tags=["Appointments"])


# ── Request Session ───────────────────────────────────────────

@router.post(
    "/appointments",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    payload: RequestSessionRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Student requests a session on an open slot.
    The slot moves to pending and the tutor is notified.
    409 if another student claimed the slot first.
    """
    appointment_id = await request_session(
        db,
        student_id=payload.student_id,
        tutor_id=payload.tutor_id,
        subject_name=payload.subject_name,
        availability_id=payload.availability_id,
    )
    return AppointmentCreatedResponse(
        message="Session requested",
        appointment_id=appointment_id,
    )


# ── Tutor Decision ────────────────────────────────────────────

@router.put("/appointments/{appointment_id}/status", response_model=MessageResponse)
async def set_appointment_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """accepted | declined | completed. The student is notified of the outcome."""
    await update_appointment_status(db, appointment_id, payload.status)
    return MessageResponse(message=f"Appointment {payload.status}")


# ── Upcoming ──────────────────────────────────────────────────

@router.get(
    "/students/{student_id}/appointments/upcoming",
    response_model=List[UpcomingAppointmentResponse],
)
async def student_upcoming(student_id: int, db: AsyncSession = Depends(get_db)):
    return await upcoming_appointments(db, student_id, UserRole.STUDENT)


@router.get(
    "/tutors/{tutor_id}/appointments/upcoming",
    response_model=List[UpcomingAppointmentResponse],
)
async def tutor_upcoming(tutor_id: int, db: AsyncSession = Depends(get_db)):
    return await upcoming_appointments(db, tutor_id, UserRole.TUTOR)
