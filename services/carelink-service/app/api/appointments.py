"""
CareLink Service — Appointment routes
"""
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden
from app.core.security import CurrentUser, get_current_user, require_admin
from app.db import appointment_ops, schedule_ops
from app.db.database import get_db
from app.schemas.schedule import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    DailySummary,
)
from app.schemas.types import EntityId

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    status_filter: str | None = Query(None, alias="status"),
    on_date: date | None = Query(None, alias="date"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins see every appointment, everyone else only their own."""
    return await appointment_ops.list_appointments(
        db,
        user_id=None if user.is_admin else user.id,
        status=status_filter,
        on_date=on_date,
    )


@router.get("/daily-summary", response_model=DailySummary)
async def daily_summary(
    day: date = Query(..., alias="date"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await schedule_ops.daily_summary(db, day)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: EntityId,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    appointment = await appointment_ops.get_appointment(db, appointment_id)
    if not user.is_admin and appointment.user_id != user.id:
        raise Forbidden("You can only view your own appointments")
    return appointment


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    payload: AppointmentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_ops.book_appointment(
        db,
        user_id=user.id,
        schedule_id=payload.schedule_id,
        num_visitors=payload.num_visitors,
        purpose=payload.purpose,
    )


@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
async def review_appointment(
    appointment_id: EntityId,
    payload: AppointmentStatusUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_ops.update_appointment_status(
        db,
        appointment_id=appointment_id,
        new_status=payload.status,
        admin_notes=payload.admin_notes,
        reviewer_id=admin.id,
    )


@router.put("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: EntityId,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user.is_admin:
        return await appointment_ops.admin_cancel_appointment(db, appointment_id)
    return await appointment_ops.cancel_appointment(db, appointment_id, requesting_user_id=user.id)
