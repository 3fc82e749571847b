"""
shared/models/models.py
All SQLAlchemy ORM models for the tutoring scheduler.
Integer primary keys; statuses are closed enumerations stored by value.
"""

from datetime import date, datetime, time
from enum import Enum as PyEnum
from typing import List, Optional, Type

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config.database import Base


# ── Enumerations ──────────────────────────────────────────────

class UserRole(str, PyEnum):
    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class SlotStatus(str, PyEnum):
    AVAILABLE = "available"
    PENDING = "pending"
    BOOKED = "booked"


class AppointmentStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"


class NotificationStatus(str, PyEnum):
    UNREAD = "unread"
    READ = "read"


def _status_enum(enum_cls: Type[PyEnum], name: str) -> Enum:
    """Store the lowercase value ("available"), not the member name."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ── Mixins ────────────────────────────────────────────────────

class CreatedAtMixin:
    """Adds created_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ── Models ────────────────────────────────────────────────────

class User(CreatedAtMixin, Base):
    """Student, tutor or administrator account."""
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[UserRole] = mapped_column(
        _status_enum(UserRole, "user_role"), nullable=False, default=UserRole.STUDENT
    )

    subjects: Mapped[List["Subject"]] = relationship(
        secondary="tutor_subjects", back_populates="tutors", order_by="Subject.subject_name"
    )
    slots: Mapped[List["Availability"]] = relationship(back_populates="tutor")
    notifications: Mapped[List["Notification"]] = relationship(back_populates="user")

    __table_args__ = (Index("ix_users_role", "role"),)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class Subject(Base):
    """Master list of subjects tutors can teach."""
    __tablename__ = "subjects"

    subject_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    tutors: Mapped[List["User"]] = relationship(
        secondary="tutor_subjects", back_populates="subjects"
    )


class TutorSubject(Base):
    """Link between a tutor and a subject they teach."""
    __tablename__ = "tutor_subjects"

    tutor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    subject_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("subjects.subject_id"), primary_key=True
    )


class Availability(Base):
    """
    One-hour slot published by a tutor.
    available → pending (requested) → booked (accepted); back to available
    on decline or admin cancel.
    """
    __tablename__ = "availability"

    availability_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tutor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    available_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[SlotStatus] = mapped_column(
        _status_enum(SlotStatus, "slot_status"), nullable=False, default=SlotStatus.AVAILABLE
    )

    tutor: Mapped["User"] = relationship(back_populates="slots")
    appointments: Mapped[List["Appointment"]] = relationship(back_populates="slot")

    __table_args__ = (
        UniqueConstraint("tutor_id", "available_date", "start_time", name="uq_availability_tutor_slot"),
        Index("ix_availability_status_date", "status", "available_date"),
    )


class Appointment(CreatedAtMixin, Base):
    """
    A student's request against a slot.
    pending → accepted → completed, or pending/accepted → declined.
    Never deleted; at most one active (pending/accepted) row per slot.
    """
    __tablename__ = "appointments"

    appointment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=False
    )
    tutor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=False
    )
    subject_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("subjects.subject_id"), nullable=False
    )
    availability_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("availability.availability_id"), nullable=False
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        _status_enum(AppointmentStatus, "appointment_status"),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )

    student: Mapped["User"] = relationship(foreign_keys=[student_id])
    tutor: Mapped["User"] = relationship(foreign_keys=[tutor_id])
    subject: Mapped["Subject"] = relationship()
    slot: Mapped["Availability"] = relationship(back_populates="appointments")

    __table_args__ = (
        Index("ix_appointments_student_status", "student_id", "status"),
        Index("ix_appointments_tutor_status", "tutor_id", "status"),
        Index("ix_appointments_availability_id", "availability_id"),
    )


class Notification(CreatedAtMixin, Base):
    """In-app notification, one row per affected user per transition."""
    __tablename__ = "notifications"

    notification_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        _status_enum(NotificationStatus, "notification_status"),
        nullable=False,
        default=NotificationStatus.UNREAD,
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship(back_populates="notifications")

    __table_args__ = (Index("ix_notifications_user_id_status", "user_id", "status"),)
