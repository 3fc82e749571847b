"""
services/admin/router.py
Admin oversight: every slot with its active session, platform counts,
forced cancellation, slot removal, and the subject catalogue.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db, unit_of_work
from services.booking.lifecycle import admin_cancel_session, delete_availability
from services.search.queries import admin_availability_overview, admin_summary
from shared.models.models import Appointment, Subject, TutorSubject
from shared.schemas.schemas import (
    AdminAvailabilityRow,
    AdminSummaryResponse,
    MessageResponse,
    SubjectCreatedResponse,
    SubjectCreateRequest,
)
from shared.utils.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Overview ───────────────────────────────────────────────────────────────────

@router.get("/summary", response_model=AdminSummaryResponse)
async def get_summary(db: AsyncSession = Depends(get_db)):
    return await admin_summary(db)


@router.get("/availability", response_model=List[AdminAvailabilityRow])
async def list_all_availability(db: AsyncSession = Depends(get_db)):
    """
    Every slot, newest date first. Slots with a pending or accepted
    appointment include the subject, student and appointment status.
    """
    return await admin_availability_overview(db)


# ── Session Oversight ──────────────────────────────────────────────────────────

@router.post("/appointments/{appointment_id}/cancel", response_model=MessageResponse)
async def cancel_session(appointment_id: int, db: AsyncSession = Depends(get_db)):
    """
    Force a pending or accepted session to declined and reopen its slot.
    Student and tutor are both notified. 409 if already declined/completed.
    """
    await admin_cancel_session(db, appointment_id)
    return MessageResponse(message="Session cancelled and slot reopened")


@router.delete("/availability/{availability_id}", response_model=MessageResponse)
async def remove_slot(availability_id: int, db: AsyncSession = Depends(get_db)):
    """Only slots no appointment has ever referenced can be deleted."""
    await delete_availability(db, availability_id)
    return MessageResponse(message="Availability slot deleted")


# ── Subject Catalogue ──────────────────────────────────────────────────────────

@router.post(
    "/subjects",
    response_model=SubjectCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_subject(data: SubjectCreateRequest, db: AsyncSession = Depends(get_db)):
    """409 if the name is already in the catalogue."""
    subject = Subject(subject_name=data.subject_name)
    async with unit_of_work(db, "add subject"):
        db.add(subject)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError(
                "Subject already exists", details={"subject_name": data.subject_name}
            ) from None

    logger.info("Subject %s added: %s", subject.subject_id, subject.subject_name)
    return SubjectCreatedResponse(message="Subject added", subject_id=subject.subject_id)


@router.delete("/subjects/{subject_id}", response_model=MessageResponse)
async def delete_subject(subject_id: int, db: AsyncSession = Depends(get_db)):
    """Refused while any tutor teaches the subject or any appointment names it."""
    async with unit_of_work(db, "delete subject"):
        subject = await db.scalar(select(Subject).where(Subject.subject_id == subject_id))
        if not subject:
            raise NotFoundError("Subject not found", details={"subject_id": subject_id})

        tutors = await db.scalar(
            select(func.count()).select_from(TutorSubject).where(TutorSubject.subject_id == subject_id)
        )
        appointments = await db.scalar(
            select(func.count()).select_from(Appointment).where(Appointment.subject_id == subject_id)
        )
        if tutors or appointments:
            raise ConflictError(
                "Cannot delete subject: it is used by tutors or appointments.",
                details={"subject_id": subject_id, "tutors": tutors, "appointments": appointments},
            )

        await db.delete(subject)

    logger.info("Subject %s deleted", subject_id)
    return MessageResponse(message="Subject deleted")
