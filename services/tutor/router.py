"""
services/tutor/router.py
Tutor dashboard: publish availability, list own slots and appointment
requests, and maintain the subjects the tutor teaches.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.lifecycle import add_availability
from services.search.queries import tutor_appointments, tutor_slots, tutor_subjects
from shared.models.models import Subject, TutorSubject, User, UserRole
from shared.schemas.schemas import (
    AvailabilityCreateRequest,
    AvailabilityResponse,
    MessageResponse,
    SubjectResponse,
    TutorAppointmentResponse,
    TutorSubjectsRequest,
)
from shared.utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutors", tags=["Tutors"])


# ── Availability ──────────────────────────────────────────────

@router.post(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_availability(
    payload: AvailabilityCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Publish a one-hour slot starting at `start_time` on `date`.
    409 if the tutor already has a slot starting then.
    """
    slot = await add_availability(db, payload.tutor_id, payload.available_date, payload.start_time)
    return AvailabilityResponse.model_validate(slot)


@router.get("/{tutor_id}/availability", response_model=List[AvailabilityResponse])
async def list_tutor_availability(tutor_id: int, db: AsyncSession = Depends(get_db)):
    """Open and requested slots. Booked slots appear under appointments."""
    return await tutor_slots(db, tutor_id)


# ── Appointment Requests ──────────────────────────────────────

@router.get("/{tutor_id}/appointments", response_model=List[TutorAppointmentResponse])
async def list_tutor_appointments(tutor_id: int, db: AsyncSession = Depends(get_db)):
    """Pending first, then accepted, declined, completed; newest first within each."""
    return await tutor_appointments(db, tutor_id)


# ── Subjects ──────────────────────────────────────────────────

@router.get("/{tutor_id}/subjects", response_model=List[SubjectResponse])
async def list_tutor_subjects(tutor_id: int, db: AsyncSession = Depends(get_db)):
    return await tutor_subjects(db, tutor_id)


@router.post("/subjects", response_model=MessageResponse)
async def save_tutor_subjects(
    payload: TutorSubjectsRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Link the tutor to each named subject, creating subjects that do not
    exist yet. Links that already exist are left alone.
    """
    tutor = await db.scalar(select(User).where(User.user_id == payload.tutor_id))
    if not tutor:
        raise NotFoundError("Tutor not found", details={"tutor_id": payload.tutor_id})
    if tutor.role != UserRole.TUTOR:
        raise ValidationError(
            "Only tutors can teach subjects", details={"tutor_id": payload.tutor_id}
        )

    names = list(dict.fromkeys(n.strip() for n in payload.subjects if n and n.strip()))
    if not names:
        raise ValidationError("Missing required fields: subjects", details={"missing": ["subjects"]})

    result = await db.execute(select(Subject).where(Subject.subject_name.in_(names)))
    by_name = {s.subject_name: s for s in result.scalars()}
    for name in names:
        if name not in by_name:
            by_name[name] = Subject(subject_name=name)
            db.add(by_name[name])
    await db.flush()

    linked = await db.execute(
        select(TutorSubject.subject_id).where(TutorSubject.tutor_id == payload.tutor_id)
    )
    already = set(linked.scalars())
    added = 0
    for name in names:
        subject_id = by_name[name].subject_id
        if subject_id not in already:
            db.add(TutorSubject(tutor_id=payload.tutor_id, subject_id=subject_id))
            added += 1

    await db.commit()
    logger.info("Tutor %s linked to %d new subject(s)", payload.tutor_id, added)
    return MessageResponse(message="Subjects saved")
