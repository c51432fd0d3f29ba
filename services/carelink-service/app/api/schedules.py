"""
CareLink Service — Visiting schedule routes
"""
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound
from app.core.security import CurrentUser, get_current_user, require_admin
from app.db import schedule_ops
from app.db.database import get_db
from app.schemas.schedule import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from app.schemas.types import EntityId

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


@router.get("", response_model=list[ScheduleResponse])
async def list_schedules(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    active_only: bool = Query(False),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Visitors only ever see bookable slots; admins can see inactive ones too."""
    return await schedule_ops.list_schedules(
        db, date_from=date_from, date_to=date_to, active_only=active_only or not user.is_admin
    )


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(
    schedule_id: EntityId,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    schedule = await schedule_ops.get_schedule(db, schedule_id)
    if not schedule.is_active and not user.is_admin:
        raise NotFound("Schedule slot not found")
    return schedule


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await schedule_ops.create_schedule(
        db,
        slot_date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        max_capacity=payload.max_capacity,
        created_by=admin.id,
        is_active=payload.is_active,
    )


@router.put("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: EntityId,
    payload: ScheduleUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await schedule_ops.update_schedule(db, schedule_id, payload.model_dump(exclude_unset=True))


@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: EntityId,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await schedule_ops.delete_schedule(db, schedule_id)
    return {"message": "Schedule deleted"}
