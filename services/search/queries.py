"""
services/search/queries.py
Read-only queries: student slot search, upcoming appointments,
tutor dashboards, and the admin overview. Nothing here writes.
"""

from collections import defaultdict
from datetime import date, time
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from services.booking.state_machine import ACTIVE_STATUSES
from shared.models.models import (
    Appointment,
    AppointmentStatus,
    Availability,
    SlotStatus,
    Subject,
    TutorSubject,
    User,
    UserRole,
)
from shared.schemas.schemas import (
    AdminAvailabilityRow,
    AdminSummaryResponse,
    AvailabilitySearchResult,
    AvailabilityResponse,
    SubjectResponse,
    TutorAppointmentResponse,
    UpcomingAppointmentResponse,
)
from shared.utils.exceptions import ValidationError
from shared.utils.formatting import location_for_subject, parse_date, parse_time

Student = aliased(User, name="student")
Tutor = aliased(User, name="tutor")

_ACTIVE = list(ACTIVE_STATUSES)

_SLOT_COLUMNS = (
    Availability.availability_id,
    Availability.tutor_id,
    Availability.available_date,
    Availability.start_time,
    Availability.end_time,
    Availability.status,
)


# ── Helpers ───────────────────────────────────────────────────

async def _subjects_by_tutor(db: AsyncSession, tutor_ids: Iterable[int]) -> Dict[int, List[str]]:
    tutor_ids = set(tutor_ids)
    if not tutor_ids:
        return {}
    result = await db.execute(
        select(TutorSubject.tutor_id, Subject.subject_name)
        .join(Subject, Subject.subject_id == TutorSubject.subject_id)
        .where(TutorSubject.tutor_id.in_(tutor_ids))
        .order_by(Subject.subject_name)
    )
    subjects = defaultdict(list)
    for tutor_id, subject_name in result.all():
        subjects[tutor_id].append(subject_name)
    return subjects


# ── Student Search ────────────────────────────────────────────

async def search_availability(
    db: AsyncSession,
    subject: Optional[str] = None,
    tutor_name: Optional[str] = None,
    on_date: Optional[Union[date, str]] = None,
    at_time: Optional[Union[time, str]] = None,
) -> List[AvailabilitySearchResult]:
    """
    Open slots matching every filter given, ordered by date then start time.

    subject:    exact subject name the tutor teaches
    tutor_name: case-insensitive substring of the tutor's full name
    on_date:    exact date
    at_time:    start_time <= at_time <= end_time (both ends inclusive)

    Each row carries all of the tutor's subjects, alphabetised.
    """
    query = (
        select(*_SLOT_COLUMNS, Tutor.full_name.label("tutor_name"))
        .join(Tutor, Tutor.user_id == Availability.tutor_id)
        .where(Availability.status == SlotStatus.AVAILABLE)
    )

    if subject and subject.strip():
        teaches = (
            select(TutorSubject.tutor_id)
            .join(Subject, Subject.subject_id == TutorSubject.subject_id)
            .where(
                TutorSubject.tutor_id == Availability.tutor_id,
                Subject.subject_name == subject.strip(),
            )
        )
        query = query.where(teaches.exists())

    if tutor_name and tutor_name.strip():
        query = query.where(Tutor.full_name.icontains(tutor_name.strip(), autoescape=True))

    if on_date:
        query = query.where(Availability.available_date == parse_date(on_date))

    if at_time:
        t = parse_time(at_time)
        query = query.where(Availability.start_time <= t, Availability.end_time >= t)

    query = query.order_by(
        Availability.available_date, Availability.start_time, Availability.availability_id
    )
    rows = (await db.execute(query)).all()
    subjects = await _subjects_by_tutor(db, (row.tutor_id for row in rows))

    return [
        AvailabilitySearchResult(**row._asdict(), subjects=subjects.get(row.tutor_id, []))
        for row in rows
    ]


# ── Upcoming Appointments ─────────────────────────────────────

async def upcoming_appointments(
    db: AsyncSession, user_id: int, role: Union[UserRole, str]
) -> List[UpcomingAppointmentResponse]:
    """
    Pending and accepted appointments for a student or tutor, ordered by
    date then start time, with the other party's name. Accepted rows
    carry the session location when the subject has one.
    """
    if role == UserRole.STUDENT:
        owner, counterpart, join_on = Appointment.student_id, Tutor, Appointment.tutor_id
        name_field = "tutor_name"
    elif role == UserRole.TUTOR:
        owner, counterpart, join_on = Appointment.tutor_id, Student, Appointment.student_id
        name_field = "student_name"
    else:
        raise ValidationError(
            "Upcoming appointments are listed for students or tutors only",
            details={"role": str(getattr(role, "value", role))},
        )

    result = await db.execute(
        select(
            Appointment.appointment_id,
            Appointment.status,
            Availability.available_date,
            Availability.start_time,
            Availability.end_time,
            Subject.subject_name,
            counterpart.full_name.label("counterpart_name"),
        )
        .join(Availability, Availability.availability_id == Appointment.availability_id)
        .join(Subject, Subject.subject_id == Appointment.subject_id)
        .join(counterpart, counterpart.user_id == join_on)
        .where(owner == user_id, Appointment.status.in_(_ACTIVE))
        .order_by(Availability.available_date, Availability.start_time)
    )

    items = []
    for row in result.all():
        location = None
        if row.status == AppointmentStatus.ACCEPTED:
            location = location_for_subject(row.subject_name) or None
        items.append(
            UpcomingAppointmentResponse(
                appointment_id=row.appointment_id,
                status=row.status,
                available_date=row.available_date,
                start_time=row.start_time,
                end_time=row.end_time,
                subject_name=row.subject_name,
                location=location,
                **{name_field: row.counterpart_name},
            )
        )
    return items


# ── Tutor Dashboard ───────────────────────────────────────────

async def tutor_slots(db: AsyncSession, tutor_id: int) -> List[AvailabilityResponse]:
    """The tutor's own open and requested slots; booked ones are shown as appointments."""
    result = await db.execute(
        select(*_SLOT_COLUMNS)
        .where(
            Availability.tutor_id == tutor_id,
            Availability.status.in_([SlotStatus.AVAILABLE, SlotStatus.PENDING]),
        )
        .order_by(Availability.available_date, Availability.start_time)
    )
    return [AvailabilityResponse(**row._asdict()) for row in result.all()]


async def tutor_appointments(db: AsyncSession, tutor_id: int) -> List[TutorAppointmentResponse]:
    status_rank = case(
        (Appointment.status == AppointmentStatus.PENDING, 0),
        (Appointment.status == AppointmentStatus.ACCEPTED, 1),
        (Appointment.status == AppointmentStatus.DECLINED, 2),
        (Appointment.status == AppointmentStatus.COMPLETED, 3),
        else_=4,
    )
    result = await db.execute(
        select(
            Appointment.appointment_id,
            Appointment.status,
            Appointment.created_at,
            Availability.availability_id,
            Availability.available_date,
            Availability.start_time,
            Availability.end_time,
            Subject.subject_name,
            Student.full_name.label("student_name"),
        )
        .join(Student, Student.user_id == Appointment.student_id)
        .join(Availability, Availability.availability_id == Appointment.availability_id)
        .join(Subject, Subject.subject_id == Appointment.subject_id)
        .where(Appointment.tutor_id == tutor_id)
        .order_by(status_rank, Appointment.created_at.desc(), Appointment.appointment_id.desc())
    )
    return [TutorAppointmentResponse(**row._asdict()) for row in result.all()]


# ── Subjects ──────────────────────────────────────────────────

async def list_subjects(db: AsyncSession) -> List[SubjectResponse]:
    result = await db.execute(
        select(Subject.subject_id, Subject.subject_name).order_by(Subject.subject_name)
    )
    return [SubjectResponse(**row._asdict()) for row in result.all()]


async def tutor_subjects(db: AsyncSession, tutor_id: int) -> List[SubjectResponse]:
    result = await db.execute(
        select(Subject.subject_id, Subject.subject_name)
        .join(TutorSubject, TutorSubject.subject_id == Subject.subject_id)
        .where(TutorSubject.tutor_id == tutor_id)
        .order_by(Subject.subject_name)
    )
    return [SubjectResponse(**row._asdict()) for row in result.all()]


# ── Admin ─────────────────────────────────────────────────────

async def admin_availability_overview(db: AsyncSession) -> List[AdminAvailabilityRow]:
    """
    Every slot, newest date first, left-joined to its active appointment.
    Slots with no pending/accepted appointment come back with the
    appointment columns set to None.
    """
    result = await db.execute(
        select(
            *_SLOT_COLUMNS,
            Tutor.full_name.label("tutor_name"),
            Appointment.appointment_id,
            Appointment.status.label("appointment_status"),
            Subject.subject_name,
            Student.full_name.label("student_name"),
        )
        .join(Tutor, Tutor.user_id == Availability.tutor_id)
        .outerjoin(
            Appointment,
            and_(
                Appointment.availability_id == Availability.availability_id,
                Appointment.status.in_(_ACTIVE),
            ),
        )
        .outerjoin(Subject, Subject.subject_id == Appointment.subject_id)
        .outerjoin(Student, Student.user_id == Appointment.student_id)
        .order_by(
            Availability.available_date.desc(),
            Availability.start_time.desc(),
            Availability.availability_id.desc(),
        )
    )
    return [AdminAvailabilityRow(**row._asdict()) for row in result.all()]


async def admin_summary(db: AsyncSession) -> AdminSummaryResponse:
    users = await db.execute(
        select(
            func.count(User.user_id),
            func.count(case((User.role == UserRole.STUDENT, 1))),
            func.count(case((User.role == UserRole.TUTOR, 1))),
        )
    )
    total_users, total_students, total_tutors = users.one()

    appointments = await db.execute(
        select(
            func.count(Appointment.appointment_id),
            func.count(case((Appointment.status.in_(_ACTIVE), 1))),
            func.count(case((Appointment.status == AppointmentStatus.PENDING, 1))),
            func.count(case((Appointment.status == AppointmentStatus.ACCEPTED, 1))),
        )
    )
    total, active, pending, accepted = appointments.one()

    return AdminSummaryResponse(
        total_users=total_users,
        total_students=total_students,
        total_tutors=total_tutors,
        total_appointments=total,
        active_appointments=active,
        pending_appointments=pending,
        accepted_appointments=accepted,
    )
