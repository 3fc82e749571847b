"""
services/notification/emitter.py
Builds lifecycle notification messages and appends them to a user's inbox.

Builders are pure. emit() only adds the row to the caller's session so the
notification commits (or rolls back) together with the transition that
produced it.
"""

from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import unit_of_work
from config.settings import settings
from shared.models.models import AppointmentStatus, Notification, NotificationStatus
from shared.utils.exceptions import NotFoundError
from shared.utils.formatting import format_date, format_time, location_for_subject


# ── Message Builders ──────────────────────────────────────────

def request_message(student_name: Optional[str], subject_name: str, on: date, at: time) -> str:
    """Sent to the tutor when a student requests one of their slots."""
    who = student_name or "A student"
    return f"{who} requested a {subject_name} session on {format_date(on)} at {format_time(at)}."


def status_message(
    status: AppointmentStatus,
    tutor_name: str,
    subject_name: str,
    on: date,
    at: time,
) -> str:
    """Sent to the student after the tutor accepts, declines or completes."""
    when = f"{format_date(on)} at {format_time(at)}"
    if status == AppointmentStatus.ACCEPTED:
        message = f"{tutor_name} accepted your {subject_name} session on {when}."
        location = location_for_subject(subject_name)
        if location:
            message += f" Location: {location}."
        return message
    if status == AppointmentStatus.DECLINED:
        return f"{tutor_name} declined your {subject_name} session on {when}."
    if status == AppointmentStatus.COMPLETED:
        return f"Your {subject_name} session on {format_date(on)} was marked completed."
    raise ValueError(f"No student message for status {status!r}")


def admin_cancel_messages(
    student_name: str, subject_name: str, on: date, at: time
) -> Tuple[str, str]:
    """(student message, tutor message) for an administrative cancellation."""
    when = f"{format_date(on)} at {format_time(at)}"
    return (
        f"An administrator cancelled your {subject_name} session on {when}.",
        f"An administrator cancelled your {subject_name} session with {student_name} on {when}.",
    )


# ── Inbox ─────────────────────────────────────────────────────

def emit(db: AsyncSession, user_id: int, message: str) -> Notification:
    notif = Notification(user_id=user_id, message=message, status=NotificationStatus.UNREAD)
    db.add(notif)
    return notif


async def fetch_notifications(
    db: AsyncSession,
    user_id: int,
    limit: Optional[int] = None,
    unread_only: bool = False,
) -> List[Notification]:
    """Newest first, capped at NOTIFICATION_FETCH_LIMIT."""
    cap = min(limit or settings.NOTIFICATION_FETCH_LIMIT, settings.NOTIFICATION_FETCH_LIMIT)
    query = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.notification_id.desc())
        .limit(cap)
    )
    if unread_only:
        query = query.where(Notification.status == NotificationStatus.UNREAD)
    result = await db.execute(query)
    return list(result.scalars())


async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> None:
    """Idempotent: marking an already-read notification succeeds and changes nothing."""
    async with unit_of_work(db, "mark notification read"):
        notif = await db.scalar(
            select(Notification).where(
                Notification.notification_id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if notif is None:
            raise NotFoundError(
                "Notification not found",
                details={"notification_id": notification_id, "user_id": user_id},
            )
        if notif.status == NotificationStatus.UNREAD:
            notif.status = NotificationStatus.READ
            notif.read_at = datetime.now(timezone.utc)


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    async with unit_of_work(db, "mark all notifications read"):
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.status == NotificationStatus.UNREAD)
            .values(status=NotificationStatus.READ, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0
    return updated


async def unread_count(db: AsyncSession, user_id: int) -> int:
    count = await db.scalar(
        select(func.count(Notification.notification_id)).where(
            Notification.user_id == user_id,
            Notification.status == NotificationStatus.UNREAD,
        )
    )
    return count or 0
