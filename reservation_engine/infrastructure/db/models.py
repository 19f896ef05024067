# reservation_engine/infrastructure/db/models.py

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.domain.state_machine import ReservationStatus
from reservation_engine.infrastructure.db.session import Base


class Performance(Base):
    """
    A production. Provisioned outside the engine,
    edited only through the capacity guard.
    """

    __tablename__ = "performances"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    # Stored exactly as the administrator entered it (ISO-8601 with offset).
    reservation_start_time: Mapped[str | None] = mapped_column(String(64), nullable=True)
    max_reservations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    admin_secret: Mapped[str] = mapped_column(String(128), nullable=False)
    survey_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("max_reservations >= 0", name="ck_max_reservations_nonnegative"),
    )


class Schedule(Base):
    __tablename__ = "schedules"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    performance_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("performances.id"),
        nullable=False,
        index=True,
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    # Seats held by tentative + confirmed reservations, maintained atomically.
    committed_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entry_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    __table_args__ = (
        CheckConstraint("total_seats >= 0", name="ck_total_seats_nonnegative"),
        CheckConstraint("committed_seats >= 0", name="ck_committed_seats_nonnegative"),
    )


class Reservation(Base):
    """
    Reservation record. Never deleted: terminal rows stay
    for audit and duplicate checks.
    """

    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    performance_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("performances.id"),
        nullable=False,
    )
    schedule_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("schedules.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    reserved_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status"),
        nullable=False,
        default=ReservationStatus.TENTATIVE,
    )
    confirmation_code: Mapped[str] = mapped_column(String(16), nullable=False)
    reminder_email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    survey_email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("reserved_seats > 0", name="ck_reserved_seats_positive"),
        Index("ix_reservations_performance_schedule", "performance_id", "schedule_id"),
        Index("ix_reservations_performance_email", "performance_id", "email"),
        Index("ix_reservations_status_created", "status", "created_at"),
    )


class Attendee(Base):
    __tablename__ = "attendees"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: f"ATT-{uuid4()}",
    )
    reservation_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("reservations.id"),
        nullable=False,
        index=True,
    )
    performance_id: Mapped[str] = mapped_column(String(64), nullable=False)
    schedule_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_attendees_performance_schedule", "performance_id", "schedule_id"),
    )
