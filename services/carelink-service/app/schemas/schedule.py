"""
CareLink Service — Pydantic schemas for visiting schedules and appointments
"""
from datetime import date as date_type, datetime, time
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from app.schemas.types import EntityId


class ScheduleCreate(BaseModel):
    date: date_type
    start_time: time
    end_time: time
    max_capacity: int = Field(..., ge=1)
    is_active: bool = True

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleUpdate(BaseModel):
    date: date_type | None = None
    start_time: time | None = None
    end_time: time | None = None
    max_capacity: int | None = Field(None, ge=1)
    is_active: bool | None = None


class ScheduleResponse(BaseModel):
    id: str
    date: date_type
    start_time: time
    end_time: time
    max_capacity: int
    current_bookings: int
    available: int
    is_active: bool
    created_by: str | None = None

    model_config = {"from_attributes": True}


class AppointmentCreate(BaseModel):
    schedule_id: EntityId
    num_visitors: int = Field(..., ge=1)
    purpose: str | None = None


class AppointmentStatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]
    admin_notes: str | None = None


class AppointmentResponse(BaseModel):
    id: str
    user_id: str
    schedule_id: str
    num_visitors: int
    purpose: str | None = None
    status: str
    admin_notes: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class DailySlot(BaseModel):
    schedule: ScheduleResponse
    appointments: list[AppointmentResponse]

    model_config = {"from_attributes": True}


class DailySummary(BaseModel):
    date: date_type
    total_slots: int
    total_bookings: int
    total_capacity: int
    schedules: list[DailySlot]
