"""Scheduling domain schemas - Pydantic models for validation"""

import datetime as dt
from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, field_validator


class ScheduleEntryResponse(BaseModel):
    day_of_week: str
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class ScheduleEntryUpdate(BaseModel):
    start_time: str  # HH:MM
    end_time: str  # HH:MM


class FreeSlotsResponse(BaseModel):
    doctor_id: int
    date: dt.date
    granularity_minutes: int
    slots: list[str]  # HH:MM, ascending


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    patient_id: int
    doctor_id: int
    scheduled_at: datetime  # Clinic-local
    reason: Optional[str] = None

    @field_validator("scheduled_at")
    @classmethod
    def strip_timezone(cls, v):
        return v.replace(tzinfo=None)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    scheduled_at: datetime
    status: str
    reason: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentReport(BaseModel):
    total: int
    pending: int
    confirmed: int
    cancelled: int
    completed: int
    today: int
    this_week: int
    this_month: int
