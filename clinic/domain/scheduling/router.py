"""Scheduling router - FastAPI endpoints for slots, bookings and appointment status"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...config import NOTIFICATIONS_ENABLED, SLOT_GRANULARITY_MINUTES
from ...database import get_db
from ...models import Appointment
from ...services.notification_service import LoggingNotifier, Notifier, QueueNotifier
from .appointment_service import AppointmentService
from .booking_service import BookingService
from .schedule_service import ScheduleService
from .schemas import (
    AppointmentCreate,
    AppointmentReport,
    AppointmentResponse,
    FreeSlotsResponse,
    ScheduleEntryResponse,
    ScheduleEntryUpdate,
)
from .slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_notifier(background_tasks: BackgroundTasks) -> Notifier:
    """Queue notifications after the response when the worker is enabled"""
    if NOTIFICATIONS_ENABLED:
        return QueueNotifier(background_tasks)
    return LoggingNotifier()


def get_booking_service(
    db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> BookingService:
    return BookingService(db, notifier=notifier)


def get_appointment_service(
    db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> AppointmentService:
    return AppointmentService(db, notifier=notifier)


def get_slot_calculator(db: Session = Depends(get_db)) -> SlotCalculator:
    return SlotCalculator(db)


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        scheduled_at=appointment.scheduled_at,
        status=appointment.status,
        reason=appointment.reason,
        status_changed_at=appointment.status_changed_at,
        created_at=appointment.created_at,
        patient_name=appointment.patient.full_name if appointment.patient else None,
        doctor_name=appointment.doctor.full_name if appointment.doctor else None,
    )


# ============================================================================
# SCHEDULES AND SLOTS
# ============================================================================


@router.get("/doctors/{doctor_id}/schedule", response_model=list[ScheduleEntryResponse])
async def get_doctor_schedule(
    doctor_id: int,
    _actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Weekly availability of a doctor"""
    return service.get_weekly_schedule(doctor_id)


@router.put("/doctors/{doctor_id}/schedule/{day_of_week}", response_model=ScheduleEntryResponse)
async def set_doctor_schedule(
    doctor_id: int,
    day_of_week: str,
    data: ScheduleEntryUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Create or replace one weekday window (the doctor themselves or an admin)"""
    return service.set_entry(doctor_id, day_of_week, data.start_time, data.end_time, actor=actor)


@router.delete("/doctors/{doctor_id}/schedule/{day_of_week}")
async def delete_doctor_schedule(
    doctor_id: int,
    day_of_week: str,
    actor: Actor = Depends(get_current_actor),
    service: ScheduleService = Depends(get_schedule_service),
):
    service.remove_entry(doctor_id, day_of_week, actor=actor)
    return {"message": "Schedule entry deleted"}


@router.get("/doctors/{doctor_id}/slots", response_model=FreeSlotsResponse)
async def get_free_slots(
    doctor_id: int,
    day: date = Query(..., alias="date", description="YYYY-MM-DD"),
    _actor: Actor = Depends(get_current_actor),
    calculator: SlotCalculator = Depends(get_slot_calculator),
):
    """Free slot start times of a doctor on a date"""
    slots = calculator.free_slots(doctor_id, day)
    return FreeSlotsResponse(
        doctor_id=doctor_id,
        date=day,
        granularity_minutes=SLOT_GRANULARITY_MINUTES,
        slots=[slot.strftime("%H:%M") for slot in slots],
    )


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointments", response_model=AppointmentResponse, status_code=201)
def book_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: BookingService = Depends(get_booking_service),
):
    """Book a free slot; the appointment starts pending"""
    appointment = service.book_appointment(
        actor, data.patient_id, data.doctor_id, data.scheduled_at, data.reason
    )
    return to_response(appointment)


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    status: Optional[str] = Query(None, description="Filter by status"),
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments of the current user (all appointments for admins)"""
    return [to_response(a) for a in service.list_appointments(actor, status)]


@router.get("/appointments/reports/summary", response_model=AppointmentReport)
async def get_appointment_report(
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_report(actor)


@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_response(service.get_appointment(appointment_id, actor))


@router.post("/appointments/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_response(service.confirm(appointment_id, actor))


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel a pending or upcoming confirmed appointment; its slot becomes free again"""
    return to_response(service.cancel(appointment_id, actor))


@router.post("/appointments/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: AppointmentService = Depends(get_appointment_service),
):
    return to_response(service.complete(appointment_id, actor))
