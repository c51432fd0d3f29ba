"""
CareLink Service — Schedule capacity ledger

current_bookings is only ever changed through adjust_bookings(), a single
conditional UPDATE, so a committed row always satisfies
0 <= current_bookings <= max_capacity.
"""
import logging
from collections import defaultdict
from datetime import date, time

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationError
from app.models.schedule import Appointment, AppointmentStatus, VisitingSchedule

logger = logging.getLogger(__name__)

LIVE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.APPROVED.value)


async def get_schedule(db: AsyncSession, schedule_id: str) -> VisitingSchedule:
    """Load a schedule, always re-reading the row rather than trusting the identity map."""
    result = await db.execute(
        select(VisitingSchedule)
        .where(VisitingSchedule.id == schedule_id)
        .execution_options(populate_existing=True)
    )
    schedule = result.scalar_one_or_none()
    if schedule is None:
        raise NotFound("Schedule slot not found")
    return schedule


async def list_schedules(
    db: AsyncSession,
    date_from: date | None = None,
    date_to: date | None = None,
    active_only: bool = False,
) -> list[VisitingSchedule]:
    query = select(VisitingSchedule).order_by(VisitingSchedule.date, VisitingSchedule.start_time)
    if date_from is not None:
        query = query.where(VisitingSchedule.date >= date_from)
    if date_to is not None:
        query = query.where(VisitingSchedule.date <= date_to)
    if active_only:
        query = query.where(VisitingSchedule.is_active.is_(True))
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


def _check_window(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")


async def create_schedule(
    db: AsyncSession,
    slot_date: date,
    start_time: time,
    end_time: time,
    max_capacity: int,
    created_by: str,
    is_active: bool = True,
) -> VisitingSchedule:
    if max_capacity < 1:
        raise ValidationError("Capacity must be at least 1")
    _check_window(start_time, end_time)

    schedule = VisitingSchedule(
        date=slot_date,
        start_time=start_time,
        end_time=end_time,
        max_capacity=max_capacity,
        current_bookings=0,
        is_active=is_active,
        created_by=created_by,
    )
    db.add(schedule)
    await db.commit()
    await db.refresh(schedule)
    logger.info("Schedule %s created for %s (%d seats)", schedule.id, slot_date, max_capacity)
    return schedule


async def update_schedule(db: AsyncSession, schedule_id: str, patch: dict) -> VisitingSchedule:
    """
    Partial update. Shrinking max_capacity below the seats already booked is
    refused; the guard lives in the UPDATE itself so a concurrent booking
    cannot slip in between check and write.
    """
    schedule = await get_schedule(db, schedule_id)
    values = {key: value for key, value in patch.items() if value is not None}
    if not values:
        return schedule

    if "max_capacity" in values and values["max_capacity"] < 1:
        raise ValidationError("Capacity must be at least 1")
    _check_window(values.get("start_time", schedule.start_time), values.get("end_time", schedule.end_time))

    stmt = (
        update(VisitingSchedule)
        .where(VisitingSchedule.id == schedule_id)
        .values(**values, version_id=VisitingSchedule.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    if "max_capacity" in values:
        stmt = stmt.where(VisitingSchedule.current_bookings <= values["max_capacity"])

    try:
        result = await db.execute(stmt)
        if result.rowcount == 0:
            current = await get_schedule(db, schedule_id)
            raise Conflict(
                f"Cannot reduce capacity below the {current.current_bookings} visitors already booked"
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return await get_schedule(db, schedule_id)


async def delete_schedule(db: AsyncSession, schedule_id: str) -> None:
    schedule = await get_schedule(db, schedule_id)

    live = await db.execute(
        select(func.count(Appointment.id)).where(
            Appointment.schedule_id == schedule_id,
            Appointment.status.in_(LIVE_STATUSES),
        )
    )
    if live.scalar_one() > 0:
        raise Conflict("Cannot delete a slot with pending or approved appointments")

    try:
        for appointment in (
            await db.execute(select(Appointment).where(Appointment.schedule_id == schedule_id))
        ).scalars():
            await db.delete(appointment)
        await db.delete(schedule)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Schedule %s deleted", schedule_id)


async def adjust_bookings(db: AsyncSession, schedule_id: str, delta: int) -> bool:
    """
    Compare-and-adjust current_bookings by `delta`, floored at zero.

    Positive deltas only apply while the result stays within max_capacity.
    Returns False when no row matched. Does not commit: the caller owns the
    transaction.
    """
    new_total = VisitingSchedule.current_bookings + delta
    stmt = (
        update(VisitingSchedule)
        .where(VisitingSchedule.id == schedule_id)
        .values(
            current_bookings=case((new_total < 0, 0), else_=new_total),
            version_id=VisitingSchedule.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if delta > 0:
        stmt = stmt.where(new_total <= VisitingSchedule.max_capacity)

    result = await db.execute(stmt)
    return result.rowcount > 0


async def daily_summary(db: AsyncSession, day: date) -> dict:
    """Every slot on `day` with all of its appointments, whatever their status."""
    schedules = await list_schedules(db, date_from=day, date_to=day)
    by_schedule = defaultdict(list)
    if schedules:
        result = await db.execute(
            select(Appointment)
            .where(Appointment.schedule_id.in_([s.id for s in schedules]))
            .order_by(Appointment.created_at)
            .execution_options(populate_existing=True)
        )
        for appointment in result.scalars():
            by_schedule[appointment.schedule_id].append(appointment)

    return {
        "date": day,
        "total_slots": len(schedules),
        "total_bookings": sum(s.current_bookings for s in schedules),
        "total_capacity": sum(s.max_capacity for s in schedules),
        "schedules": [{"schedule": s, "appointments": by_schedule[s.id]} for s in schedules],
    }
