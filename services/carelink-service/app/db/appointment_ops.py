"""
CareLink Service — Appointment booking workflow

    pending ──► approved ──► cancelled
       │
       ├──► rejected      (terminal, releases capacity)
       └──► cancelled     (terminal, releases capacity)

Booking reserves seats with a capacity-guarded conditional UPDATE inside the
same transaction that inserts the appointment:
  - READ:  fetch the slot, run the availability checks
  - WRITE: insert the appointment, then
           UPDATE ... SET current_bookings = current_bookings + n
                      WHERE current_bookings + n <= max_capacity
  - If other bookings took the seats first → StaleDataError → rollback + retry,
    and the retry re-runs the checks against fresh numbers. Unrelated edits
    to the slot (a new version_id) do not force a retry.
"""
import logging
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.core.optimistic_lock import StaleDataError, with_optimistic_retry
from app.db.schedule_ops import adjust_bookings, get_schedule
from app.models.schedule import Appointment, AppointmentStatus, VisitingSchedule

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (AppointmentStatus.APPROVED.value, AppointmentStatus.REJECTED.value)
CAPACITY_HOLDING_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.APPROVED.value)


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


async def get_appointment(db: AsyncSession, appointment_id: str) -> Appointment:
    result = await db.execute(
        select(Appointment)
        .where(Appointment.id == appointment_id)
        .execution_options(populate_existing=True)
    )
    appointment = result.scalar_one_or_none()
    if appointment is None:
        raise NotFound("Appointment not found")
    return appointment


async def list_appointments(
    db: AsyncSession,
    user_id: str | None = None,
    status: str | None = None,
    on_date: date | None = None,
) -> list[Appointment]:
    """List appointments, newest first. `user_id=None` means every user (admin view)."""
    query = select(Appointment).order_by(Appointment.created_at.desc())
    if user_id is not None:
        query = query.where(Appointment.user_id == user_id)
    if status is not None:
        query = query.where(Appointment.status == status)
    if on_date is not None:
        query = query.join(VisitingSchedule, VisitingSchedule.id == Appointment.schedule_id).where(
            VisitingSchedule.date == on_date
        )
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


@with_optimistic_retry()
async def book_appointment(
    db: AsyncSession,
    user_id: str,
    schedule_id: str,
    num_visitors: int,
    purpose: str | None = None,
) -> Appointment:
    if num_visitors < 1:
        raise ValidationError("At least 1 visitor required")

    try:
        schedule = await get_schedule(db, schedule_id)

        if not schedule.is_active:
            raise Conflict("This slot is no longer available")
        if schedule.date < _today():
            raise ValidationError("Cannot book a past date")

        available = schedule.available
        if available < num_visitors:
            raise Conflict(f"Only {available} spots available in this slot")

        existing = await db.execute(
            select(Appointment.id).where(
                Appointment.user_id == user_id,
                Appointment.schedule_id == schedule_id,
                Appointment.status != AppointmentStatus.CANCELLED.value,
            )
        )
        if existing.first() is not None:
            raise Conflict("You already have a booking for this slot")

        appointment = Appointment(
            user_id=user_id,
            schedule_id=schedule_id,
            num_visitors=num_visitors,
            purpose=purpose or None,
            status=AppointmentStatus.PENDING.value,
        )
        db.add(appointment)
        await db.flush()

        reserved = await adjust_bookings(db, schedule_id, num_visitors)
        if not reserved:
            raise StaleDataError(f"Schedule {schedule_id} filled up concurrently.")

        await db.commit()
    except IntegrityError as exc:
        # Partial unique index on (user_id, schedule_id) caught a parallel duplicate
        await db.rollback()
        raise Conflict("You already have a booking for this slot") from exc
    except Exception:
        await db.rollback()
        raise

    await db.refresh(appointment)
    logger.info(
        "Appointment %s booked: %d visitor(s) on schedule %s by user %s",
        appointment.id, num_visitors, schedule_id, user_id,
    )
    return appointment


async def _transition(
    db: AsyncSession,
    appointment: Appointment,
    new_status: str,
    **values,
) -> None:
    """Compare-and-set the status; StaleDataError if it moved since we read it."""
    result = await db.execute(
        update(Appointment)
        .where(Appointment.id == appointment.id, Appointment.status == appointment.status)
        .values(status=new_status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StaleDataError(f"Appointment {appointment.id} changed concurrently.")


@with_optimistic_retry()
async def update_appointment_status(
    db: AsyncSession,
    appointment_id: str,
    new_status: str,
    admin_notes: str | None,
    reviewer_id: str,
) -> Appointment:
    """
    Admin review. Only pending appointments can be reviewed; approving keeps
    the seats that were reserved at booking time, rejecting releases them.
    """
    if new_status not in REVIEW_STATUSES:
        raise ValidationError("Status must be 'approved' or 'rejected'")

    try:
        appointment = await get_appointment(db, appointment_id)
        if appointment.status != AppointmentStatus.PENDING.value:
            raise Conflict(f"Appointment is already {appointment.status}")

        await _transition(
            db,
            appointment,
            new_status,
            admin_notes=admin_notes or None,
            reviewed_by=reviewer_id,
            reviewed_at=datetime.now(tz=timezone.utc),
        )
        if new_status == AppointmentStatus.REJECTED.value:
            await adjust_bookings(db, appointment.schedule_id, -appointment.num_visitors)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Appointment %s %s by %s", appointment_id, new_status, reviewer_id)
    return await get_appointment(db, appointment_id)


async def _cancel(db: AsyncSession, appointment: Appointment) -> Appointment:
    if appointment.status == AppointmentStatus.CANCELLED.value:
        raise Conflict("Appointment already cancelled")
    if appointment.status == AppointmentStatus.REJECTED.value:
        raise Conflict("Rejected appointments cannot be cancelled")

    prior_status = appointment.status
    try:
        await _transition(db, appointment, AppointmentStatus.CANCELLED.value)
        if prior_status in CAPACITY_HOLDING_STATUSES:
            await adjust_bookings(db, appointment.schedule_id, -appointment.num_visitors)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Appointment %s cancelled (was %s)", appointment.id, prior_status)
    return await get_appointment(db, appointment.id)


@with_optimistic_retry()
async def cancel_appointment(db: AsyncSession, appointment_id: str, requesting_user_id: str) -> Appointment:
    """Owner cancellation."""
    appointment = await get_appointment(db, appointment_id)
    if appointment.user_id != requesting_user_id:
        raise Forbidden("You can only cancel your own appointments")
    return await _cancel(db, appointment)


@with_optimistic_retry()
async def admin_cancel_appointment(db: AsyncSession, appointment_id: str) -> Appointment:
    """Privileged cancellation: same effect as the owner path, no ownership check."""
    appointment = await get_appointment(db, appointment_id)
    return await _cancel(db, appointment)
