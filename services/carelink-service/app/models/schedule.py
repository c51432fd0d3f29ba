"""
CareLink Service — Visiting schedule and appointment models

version_id on visiting_schedules is the optimistic locking column for
capacity reservations; every change to current_bookings bumps it.
"""
import uuid
from datetime import date as date_type, datetime, time
from enum import Enum as PyEnum

from sqlalchemy import (
    String, Integer, Boolean, Date, Time, DateTime, ForeignKey, Text, Index, CheckConstraint, func, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class AppointmentStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class VisitingSchedule(Base):
    __tablename__ = "visiting_schedules"
    __table_args__ = (
        CheckConstraint("max_capacity >= 1", name="ck_schedule_capacity_positive"),
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_capacity", name="ck_schedule_bookings_bounded"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    date: Mapped[date_type] = mapped_column(Date, index=True, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic lock
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    @property
    def available(self) -> int:
        return self.max_capacity - self.current_bookings


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one live booking per (user, slot)
        Index(
            "uq_appointments_active_user_schedule",
            "user_id",
            "schedule_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    schedule_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("visiting_schedules.id", ondelete="CASCADE"), index=True, nullable=False
    )
    num_visitors: Mapped[int] = mapped_column(Integer, nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AppointmentStatus.PENDING.value)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
