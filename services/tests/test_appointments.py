"""
Schedule capacity ledger and appointment workflow.

The capacity invariant 0 <= current_bookings <= max_capacity, with
current_bookings equal to the seats held by pending and approved
appointments, is checked after every step.
"""
import asyncio
from datetime import date, time, timedelta

import pytest
from sqlalchemy import func, select, update

from app.core.errors import Conflict, Forbidden, NotFound, TransientConflict, ValidationError
from app.db import appointment_ops, schedule_ops
from app.models import Appointment, VisitingSchedule
from conftest import ADMIN_ID, OTHER_USER_ID, USER_ID, add_schedule, next_week


async def _assert_capacity_consistent(session, schedule_id):
    schedule = await schedule_ops.get_schedule(session, schedule_id)
    held = await session.scalar(
        select(func.coalesce(func.sum(Appointment.num_visitors), 0)).where(
            Appointment.schedule_id == schedule_id,
            Appointment.status.in_(("pending", "approved")),
        )
    )
    assert 0 <= schedule.current_bookings <= schedule.max_capacity
    assert schedule.current_bookings == held
    return schedule


@pytest.mark.asyncio
async def test_book_reserves_seats(db):
    schedule_id = (await add_schedule(db, max_capacity=10)).id
    appointment = await appointment_ops.book_appointment(db, USER_ID, schedule_id, 3, "Birthday visit")

    assert appointment.status == "pending"
    assert appointment.purpose == "Birthday visit"
    schedule = await _assert_capacity_consistent(db, schedule_id)
    assert schedule.current_bookings == 3
    assert schedule.available == 7


@pytest.mark.asyncio
async def test_book_over_capacity_cites_remaining_seats(db):
    schedule_id = (await add_schedule(db, max_capacity=10, current_bookings=9)).id

    with pytest.raises(Conflict, match="Only 1 spots available"):
        await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)

    assert (await schedule_ops.get_schedule(db, schedule_id)).current_bookings == 9


@pytest.mark.asyncio
async def test_book_rejections(db):
    with pytest.raises(NotFound):
        await appointment_ops.book_appointment(db, USER_ID, "missing", 1)

    inactive_id = (await add_schedule(db, is_active=False)).id
    with pytest.raises(Conflict, match="no longer available"):
        await appointment_ops.book_appointment(db, USER_ID, inactive_id, 1)

    past_id = (await add_schedule(db, slot_date=date.today() - timedelta(days=2))).id
    with pytest.raises(ValidationError, match="past date"):
        await appointment_ops.book_appointment(db, USER_ID, past_id, 1)

    open_id = (await add_schedule(db)).id
    with pytest.raises(ValidationError):
        await appointment_ops.book_appointment(db, USER_ID, open_id, 0)


@pytest.mark.asyncio
async def test_one_live_booking_per_user_and_slot(db):
    schedule_id = (await add_schedule(db)).id
    first_id = (await appointment_ops.book_appointment(db, USER_ID, schedule_id, 1)).id

    with pytest.raises(Conflict, match="already have a booking"):
        await appointment_ops.book_appointment(db, USER_ID, schedule_id, 1)

    await appointment_ops.cancel_appointment(db, first_id, USER_ID)
    rebooked = await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)
    assert rebooked.status == "pending"
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 2


@pytest.mark.asyncio
async def test_reject_releases_seats(db):
    schedule_id = (await add_schedule(db, max_capacity=10)).id
    target_id = (await appointment_ops.book_appointment(db, USER_ID, schedule_id, 3)).id
    await appointment_ops.book_appointment(db, OTHER_USER_ID, schedule_id, 2)
    assert (await schedule_ops.get_schedule(db, schedule_id)).current_bookings == 5

    rejected = await appointment_ops.update_appointment_status(db, target_id, "rejected", "Full day", ADMIN_ID)

    assert rejected.status == "rejected"
    assert rejected.admin_notes == "Full day"
    assert rejected.reviewed_by == ADMIN_ID
    assert rejected.reviewed_at is not None
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 2


@pytest.mark.asyncio
async def test_review_only_from_pending(db):
    schedule_id = (await add_schedule(db)).id
    appointment_id = (await appointment_ops.book_appointment(db, USER_ID, schedule_id, 4)).id

    approved = await appointment_ops.update_appointment_status(db, appointment_id, "approved", None, ADMIN_ID)
    assert approved.status == "approved"
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 4

    with pytest.raises(Conflict):
        await appointment_ops.update_appointment_status(db, appointment_id, "rejected", None, ADMIN_ID)
    with pytest.raises(ValidationError):
        await appointment_ops.update_appointment_status(db, appointment_id, "cancelled", None, ADMIN_ID)
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 4


@pytest.mark.asyncio
async def test_cancel_rules(db):
    schedule_id = (await add_schedule(db)).id
    approved_id = (await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)).id
    rejected_id = (await appointment_ops.book_appointment(db, OTHER_USER_ID, schedule_id, 3)).id
    await appointment_ops.update_appointment_status(db, approved_id, "approved", None, ADMIN_ID)
    await appointment_ops.update_appointment_status(db, rejected_id, "rejected", None, ADMIN_ID)

    with pytest.raises(Forbidden):
        await appointment_ops.cancel_appointment(db, approved_id, OTHER_USER_ID)
    with pytest.raises(Conflict, match="Rejected"):
        await appointment_ops.cancel_appointment(db, rejected_id, OTHER_USER_ID)

    cancelled = await appointment_ops.cancel_appointment(db, approved_id, USER_ID)
    assert cancelled.status == "cancelled"
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 0

    with pytest.raises(Conflict, match="already cancelled"):
        await appointment_ops.cancel_appointment(db, approved_id, USER_ID)
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 0


@pytest.mark.asyncio
async def test_admin_cancel_skips_ownership(db):
    schedule_id = (await add_schedule(db)).id
    appointment_id = (await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)).id

    cancelled = await appointment_ops.admin_cancel_appointment(db, appointment_id)

    assert cancelled.status == "cancelled"
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 0


@pytest.mark.asyncio
async def test_capacity_invariant_across_mixed_sequence(db):
    schedule_id = (await add_schedule(db, max_capacity=6)).id
    users = [f"visitor-{i}" for i in range(4)]
    ids = []
    for user in users[:3]:
        ids.append((await appointment_ops.book_appointment(db, user, schedule_id, 2)).id)
        await _assert_capacity_consistent(db, schedule_id)

    with pytest.raises(Conflict):
        await appointment_ops.book_appointment(db, users[3], schedule_id, 1)

    await appointment_ops.update_appointment_status(db, ids[0], "approved", None, ADMIN_ID)
    await _assert_capacity_consistent(db, schedule_id)
    await appointment_ops.update_appointment_status(db, ids[1], "rejected", None, ADMIN_ID)
    await _assert_capacity_consistent(db, schedule_id)
    await appointment_ops.cancel_appointment(db, ids[0], users[0])
    await _assert_capacity_consistent(db, schedule_id)

    await appointment_ops.book_appointment(db, users[3], schedule_id, 4)
    schedule = await _assert_capacity_consistent(db, schedule_id)
    assert schedule.current_bookings == 6


@pytest.mark.asyncio
async def test_concurrent_bookings_for_last_seat(session_factory):
    async with session_factory() as session:
        schedule_id = (await add_schedule(session, max_capacity=1)).id

    async def _book(user_id):
        async with session_factory() as session:
            return await appointment_ops.book_appointment(session, user_id, schedule_id, 1)

    results = await asyncio.gather(_book(USER_ID), _book(OTHER_USER_ID), return_exceptions=True)

    assert sum(1 for r in results if isinstance(r, Conflict)) == 1
    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    async with session_factory() as session:
        schedule = await _assert_capacity_consistent(session, schedule_id)
        assert schedule.current_bookings == 1


@pytest.mark.asyncio
async def test_lost_capacity_race_is_retried(db, monkeypatch):
    schedule_id = (await add_schedule(db, max_capacity=5)).id
    real_adjust = appointment_ops.adjust_bookings
    attempts = []

    async def lose_first_race(session, sched_id, delta):
        attempts.append(delta)
        if len(attempts) == 1:
            return False
        return await real_adjust(session, sched_id, delta)

    monkeypatch.setattr(appointment_ops, "adjust_bookings", lose_first_race)
    appointment = await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)

    assert len(attempts) == 2
    assert appointment.status == "pending"
    assert await db.scalar(select(func.count(Appointment.id))) == 1
    assert (await _assert_capacity_consistent(db, schedule_id)).current_bookings == 2


@pytest.mark.asyncio
async def test_unrelated_slot_edit_does_not_force_a_retry(db, monkeypatch):
    schedule_id = (await add_schedule(db, max_capacity=5)).id
    real_get = appointment_ops.get_schedule
    real_adjust = appointment_ops.adjust_bookings
    reads, writes = [], []

    async def read_then_bump(session, sched_id):
        schedule = await real_get(session, sched_id)
        reads.append(schedule.version_id)
        # An admin edit lands between our read and our write
        await session.execute(
            update(VisitingSchedule)
            .where(VisitingSchedule.id == sched_id)
            .values(version_id=VisitingSchedule.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        return schedule

    async def record_adjust(session, sched_id, delta):
        reserved = await real_adjust(session, sched_id, delta)
        writes.append(reserved)
        return reserved

    monkeypatch.setattr(appointment_ops, "get_schedule", read_then_bump)
    monkeypatch.setattr(appointment_ops, "adjust_bookings", record_adjust)
    await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)

    assert len(reads) == 1
    assert writes == [True]
    schedule = await _assert_capacity_consistent(db, schedule_id)
    assert schedule.current_bookings == 2
    assert schedule.version_id == reads[0] + 2


@pytest.mark.asyncio
async def test_persistent_capacity_race_surfaces_transient_conflict(db, monkeypatch):
    schedule_id = (await add_schedule(db, max_capacity=5)).id

    async def always_stale(session, sched_id, delta):
        return False

    monkeypatch.setattr(appointment_ops, "adjust_bookings", always_stale)
    with pytest.raises(TransientConflict):
        await appointment_ops.book_appointment(db, USER_ID, schedule_id, 2)

    assert await db.scalar(select(func.count(Appointment.id))) == 0
    assert (await schedule_ops.get_schedule(db, schedule_id)).current_bookings == 0


@pytest.mark.asyncio
async def test_schedule_shrink_below_bookings_is_refused(db):
    schedule_id = (await add_schedule(db, max_capacity=10)).id
    await appointment_ops.book_appointment(db, USER_ID, schedule_id, 4)

    with pytest.raises(Conflict, match="4 visitors"):
        await schedule_ops.update_schedule(db, schedule_id, {"max_capacity": 3})

    updated = await schedule_ops.update_schedule(db, schedule_id, {"max_capacity": 4})
    assert updated.max_capacity == 4
    assert updated.available == 0


@pytest.mark.asyncio
async def test_schedule_crud_and_delete_guard(db):
    schedule = await schedule_ops.create_schedule(db, next_week(), time(9, 0), time(11, 0), 8, ADMIN_ID)
    schedule_id = schedule.id
    assert schedule.current_bookings == 0

    with pytest.raises(ValidationError):
        await schedule_ops.create_schedule(db, next_week(), time(11, 0), time(9, 0), 8, ADMIN_ID)
    with pytest.raises(ValidationError):
        await schedule_ops.create_schedule(db, next_week(), time(9, 0), time(11, 0), 0, ADMIN_ID)

    appointment_id = (await appointment_ops.book_appointment(db, USER_ID, schedule_id, 1)).id
    with pytest.raises(Conflict):
        await schedule_ops.delete_schedule(db, schedule_id)

    await appointment_ops.cancel_appointment(db, appointment_id, USER_ID)
    await schedule_ops.delete_schedule(db, schedule_id)
    with pytest.raises(NotFound):
        await schedule_ops.get_schedule(db, schedule_id)


@pytest.mark.asyncio
async def test_daily_summary_and_listing(db):
    day = next_week()
    first_id = (await add_schedule(db, max_capacity=10, slot_date=day)).id
    await add_schedule(db, max_capacity=5, slot_date=day)
    await add_schedule(db, max_capacity=7, slot_date=day + timedelta(days=1))
    await appointment_ops.book_appointment(db, USER_ID, first_id, 3)

    summary = await schedule_ops.daily_summary(db, day)
    assert summary["total_slots"] == 2
    assert summary["total_capacity"] == 15
    assert summary["total_bookings"] == 3
    slots = {slot["schedule"].id: slot["appointments"] for slot in summary["schedules"]}
    assert len(slots) == 2
    assert [(a.user_id, a.num_visitors) for a in slots[first_id]] == [(USER_ID, 3)]
    assert [appointments for sid, appointments in slots.items() if sid != first_id] == [[]]

    on_day = await appointment_ops.list_appointments(db, on_date=day)
    assert [a.schedule_id for a in on_day] == [first_id]
    assert await appointment_ops.list_appointments(db, user_id=OTHER_USER_ID) == []
