"""
services/booking/lifecycle.py
Appointment lifecycle engine.

Each operation is one unit of work against the session it is handed:
validate → conditional update(s) → notification(s) → commit. Any failure
rolls the whole unit back, so a slot is never left pending/booked without
its appointment (or the reverse), and no notification outlives a failed
transition.

The only multi-writer hazard is two students racing for one slot. It is
closed by claiming the slot with a single guarded UPDATE
(status must still be 'available') and checking the affected-row count.
"""

import logging
from datetime import date, time
from typing import Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlalchemy.orm.attributes import set_committed_value

from config.database import unit_of_work
from services.booking.state_machine import (
    LifecycleEvent,
    Transition,
    check_transition,
    event_for_status,
    transition_for,
)
from services.notification.emitter import (
    admin_cancel_messages,
    emit,
    request_message,
    status_message,
)
from shared.models.models import (
    Appointment,
    AppointmentStatus,
    Availability,
    Subject,
    User,
    UserRole,
)
from shared.utils.exceptions import ConflictError, NotFoundError, ValidationError
from shared.utils.formatting import parse_date, parse_time, slot_end_time

logger = logging.getLogger(__name__)

Student = aliased(User, name="student")
Tutor = aliased(User, name="tutor")


# ── Helpers ───────────────────────────────────────────────────

def _require(**fields) -> None:
    missing = [
        name for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise ValidationError(
            "Missing required fields: " + ", ".join(missing),
            details={"missing": missing},
        )


async def _load_appointment(db: AsyncSession, appointment_id: int):
    """Appointment with its slot, subject name and both party names."""
    result = await db.execute(
        select(
            Appointment,
            Availability,
            Subject.subject_name,
            Student.full_name.label("student_name"),
            Tutor.full_name.label("tutor_name"),
        )
        .join(Availability, Availability.availability_id == Appointment.availability_id)
        .join(Subject, Subject.subject_id == Appointment.subject_id)
        .join(Student, Student.user_id == Appointment.student_id)
        .join(Tutor, Tutor.user_id == Appointment.tutor_id)
        .where(Appointment.appointment_id == appointment_id)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(
            "Appointment not found", details={"appointment_id": appointment_id}
        )
    return row


async def _swap_appointment_status(
    db: AsyncSession, appointment: Appointment, transition: Transition
) -> None:
    """Compare-and-swap on the appointment row; loses cleanly to a concurrent change."""
    result = await db.execute(
        update(Appointment)
        .where(
            Appointment.appointment_id == appointment.appointment_id,
            Appointment.status.in_(list(transition.appointment_from)),
        )
        .values(status=transition.appointment_to)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Appointment {appointment.appointment_id} changed state concurrently",
            details={
                "appointment_id": appointment.appointment_id,
                "expected": sorted(s.value for s in transition.appointment_from),
            },
        )
    set_committed_value(appointment, "status", transition.appointment_to)


async def _reconcile_slot(db: AsyncSession, slot: Availability, transition: Transition) -> None:
    if transition.slot_to is None:
        return
    if slot.status not in transition.slot_from:
        logger.warning(
            "Slot %s was %s during %s (expected %s); reconciling to %s",
            slot.availability_id,
            slot.status.value,
            transition.event.value,
            "/".join(sorted(s.value for s in transition.slot_from)),
            transition.slot_to.value,
        )
    await db.execute(
        update(Availability)
        .where(Availability.availability_id == slot.availability_id)
        .values(status=transition.slot_to)
        .execution_options(synchronize_session=False)
    )
    set_committed_value(slot, "status", transition.slot_to)


# ── Request Session ───────────────────────────────────────────

async def request_session(
    db: AsyncSession,
    student_id: int,
    tutor_id: int,
    subject_name: str,
    availability_id: int,
) -> int:
    """
    Student requests a slot. Returns the new appointment id.

    Raises ValidationError for missing input, a requester who is not a student
    or a slot that belongs to a different tutor, NotFoundError for an unknown
    subject, slot or student, and ConflictError("slot unavailable") when the
    slot is no longer available.
    """
    _require(
        student_id=student_id,
        tutor_id=tutor_id,
        subject_name=subject_name,
        availability_id=availability_id,
    )
    subject_name = subject_name.strip()
    transition = transition_for(LifecycleEvent.REQUEST_SESSION)

    async with unit_of_work(db, "request session"):
        subject = await db.scalar(select(Subject).where(Subject.subject_name == subject_name))
        if subject is None:
            raise NotFoundError(
                f"Unknown subject '{subject_name}'", details={"subject_name": subject_name}
            )

        slot = await db.scalar(
            select(Availability)
            .where(Availability.availability_id == availability_id)
            .execution_options(populate_existing=True)
        )
        if slot is None:
            raise NotFoundError(
                "Time slot not found", details={"availability_id": availability_id}
            )
        if slot.tutor_id != tutor_id:
            raise ValidationError(
                "Time slot does not belong to this tutor",
                details={"availability_id": availability_id, "tutor_id": tutor_id},
            )

        student = await db.scalar(select(User).where(User.user_id == student_id))
        if student is None:
            raise NotFoundError("Student not found", details={"student_id": student_id})
        if student.role != UserRole.STUDENT:
            raise ValidationError(
                "Only students can request sessions", details={"student_id": student_id}
            )

        claimed = await db.execute(
            update(Availability)
            .where(
                Availability.availability_id == availability_id,
                Availability.status.in_(list(transition.slot_from)),
            )
            .values(status=transition.slot_to)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            logger.warning(
                "Slot %s request by student %s lost: no longer available",
                availability_id,
                student_id,
            )
            raise ConflictError(
                "slot unavailable",
                details={"availability_id": availability_id, "expected": "available"},
            )
        set_committed_value(slot, "status", transition.slot_to)

        appointment = Appointment(
            student_id=student_id,
            tutor_id=tutor_id,
            subject_id=subject.subject_id,
            availability_id=availability_id,
            status=transition.appointment_to,
        )
        db.add(appointment)
        emit(
            db,
            tutor_id,
            request_message(student.full_name, subject.subject_name, slot.available_date, slot.start_time),
        )
        await db.flush()
        appointment_id = appointment.appointment_id

    logger.info(
        "Appointment %s created: student %s requested slot %s (available -> pending)",
        appointment_id,
        student_id,
        availability_id,
    )
    return appointment_id


# ── Tutor Accept / Decline / Complete ─────────────────────────

async def update_appointment_status(
    db: AsyncSession,
    appointment_id: int,
    new_status: Union[AppointmentStatus, str],
) -> None:
    """
    Tutor moves an appointment to accepted, declined or completed.
    The slot follows (booked / available / unchanged) and the student
    gets one notification; location is appended only on acceptance.
    """
    event = event_for_status(new_status)

    async with unit_of_work(db, "update appointment status"):
        row = await _load_appointment(db, appointment_id)
        appointment, slot = row.Appointment, row.Availability
        previous = appointment.status
        transition = check_transition(event, previous)

        await _swap_appointment_status(db, appointment, transition)
        await _reconcile_slot(db, slot, transition)
        emit(
            db,
            appointment.student_id,
            status_message(
                transition.appointment_to,
                row.tutor_name,
                row.subject_name,
                slot.available_date,
                slot.start_time,
            ),
        )

    logger.info(
        "Appointment %s: %s -> %s",
        appointment_id,
        previous.value,
        transition.appointment_to.value,
    )


# ── Admin Cancel ──────────────────────────────────────────────

async def admin_cancel_session(db: AsyncSession, appointment_id: int) -> None:
    """
    Administrative override: force a pending or accepted appointment to
    declined, free its slot, and notify both student and tutor.
    """
    async with unit_of_work(db, "admin cancel session"):
        row = await _load_appointment(db, appointment_id)
        appointment, slot = row.Appointment, row.Availability
        previous = appointment.status
        transition = check_transition(LifecycleEvent.ADMIN_CANCEL, previous)

        await _swap_appointment_status(db, appointment, transition)
        await _reconcile_slot(db, slot, transition)

        student_msg, tutor_msg = admin_cancel_messages(
            row.student_name, row.subject_name, slot.available_date, slot.start_time
        )
        emit(db, appointment.student_id, student_msg)
        emit(db, appointment.tutor_id, tutor_msg)

    logger.info(
        "Appointment %s cancelled by admin: %s -> declined, slot %s freed",
        appointment_id,
        previous.value,
        slot.availability_id,
    )


# ── Availability ──────────────────────────────────────────────

async def add_availability(
    db: AsyncSession,
    tutor_id: int,
    available_date: Union[date, str],
    start_time: Union[time, str],
) -> Availability:
    """
    Publish a one-hour slot. end_time wraps past midnight (23:30 → 00:30).
    The duplicate check is read-then-insert: only the owning tutor creates
    their own slots, and the unique constraint backs it up.
    """
    _require(tutor_id=tutor_id, date=available_date, start_time=start_time)
    on = parse_date(available_date)
    start = parse_time(start_time)
    transition = transition_for(LifecycleEvent.CREATE_SLOT)

    async with unit_of_work(db, "add availability"):
        tutor = await db.scalar(select(User).where(User.user_id == tutor_id))
        if tutor is None:
            raise NotFoundError("Tutor not found", details={"tutor_id": tutor_id})
        if tutor.role != UserRole.TUTOR:
            raise ValidationError(
                "Only tutors can publish availability", details={"tutor_id": tutor_id}
            )

        existing = await db.scalar(
            select(Availability.availability_id).where(
                Availability.tutor_id == tutor_id,
                Availability.available_date == on,
                Availability.start_time == start,
            )
        )
        if existing is not None:
            raise ConflictError(
                "You already have a slot at this time.",
                details={"availability_id": existing},
            )

        slot = Availability(
            tutor_id=tutor_id,
            available_date=on,
            start_time=start,
            end_time=slot_end_time(start),
            status=transition.slot_to,
        )
        db.add(slot)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError("You already have a slot at this time.") from None

    logger.info(
        "Slot %s added for tutor %s on %s %s-%s",
        slot.availability_id,
        tutor_id,
        on.isoformat(),
        slot.start_time.strftime("%H:%M"),
        slot.end_time.strftime("%H:%M"),
    )
    return slot


async def delete_availability(db: AsyncSession, availability_id: int) -> None:
    """Admin removes a slot. Refused while any appointment references it."""
    async with unit_of_work(db, "delete availability"):
        slot = await db.scalar(
            select(Availability).where(Availability.availability_id == availability_id)
        )
        if slot is None:
            raise NotFoundError(
                "Time slot not found", details={"availability_id": availability_id}
            )
        references = await db.scalar(
            select(func.count(Appointment.appointment_id)).where(
                Appointment.availability_id == availability_id
            )
        )
        if references:
            raise ConflictError(
                "Cannot delete: this slot has an appointment. Cancel the session instead.",
                details={"availability_id": availability_id, "appointments": references},
            )
        await db.delete(slot)

    logger.info("Slot %s deleted", availability_id)
