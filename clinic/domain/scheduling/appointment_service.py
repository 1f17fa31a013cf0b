"""Appointment service - status transitions, listings and reports"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Actor, Role
from ...database import storage_errors
from ...errors import InvalidArgument, InvalidTransition, NotFound, PermissionDenied
from ...models import Appointment, AppointmentStatus, WeeklyScheduleEntry
from ...services.notification_service import (
    AppointmentStatusChanged,
    LoggingNotifier,
    Notifier,
    publish_safely,
)
from ...shared.clock import Clock, clinic_now
from ..profiles import ProfileDirectory
from .repository import AppointmentRepository, ScheduleRepository
from .state_machine import check_transition

logger = logging.getLogger(__name__)


class AppointmentService:
    """Service layer for appointment state changes and reads"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None, clock: Clock = clinic_now):
        self.db = db
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.repo = AppointmentRepository()
        self.schedules = ScheduleRepository()
        self.profiles = ProfileDirectory(db)

    def get_appointment(self, appointment_id: int, actor: Actor) -> Appointment:
        """Get an appointment the actor is party to"""
        with storage_errors(self.db):
            appointment = self.repo.get_by_id(self.db, appointment_id)
            if not appointment:
                raise NotFound(f"Appointment {appointment_id} not found")
            self._check_access(appointment, actor)
            return appointment

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def confirm(self, appointment_id: int, actor: Actor) -> Appointment:
        return self.transition(appointment_id, AppointmentStatus.CONFIRMED, actor)

    def cancel(self, appointment_id: int, actor: Actor) -> Appointment:
        return self.transition(appointment_id, AppointmentStatus.CANCELLED, actor)

    def complete(self, appointment_id: int, actor: Actor) -> Appointment:
        return self.transition(appointment_id, AppointmentStatus.COMPLETED, actor)

    def transition(
        self, appointment_id: int, requested: AppointmentStatus, actor: Actor
    ) -> Appointment:
        """
        Move an appointment to ``requested``.

        Raises:
            NotFound: Unknown appointment
            PermissionDenied: Actor is not a party, or their role may not make this move
            InvalidTransition: The move is not allowed from the current status
        """
        with storage_errors(self.db):
            appointment = self.repo.get_by_id(self.db, appointment_id)
            if not appointment:
                raise NotFound(f"Appointment {appointment_id} not found")
            self._check_access(appointment, actor)

            current = AppointmentStatus(appointment.status)
            now = self.clock()
            check_transition(current, requested, actor.role, appointment.scheduled_at, now)

            applied = self.repo.update_status(
                self.db,
                appointment.id,
                from_status=current.value,
                to_status=requested.value,
                changed_by=f"{actor.role.value}:{actor.user_id}",
                changed_at=now,
            )
            self.db.refresh(appointment)
            if not applied:
                # Another request changed the status between our read and write
                logger.warning(
                    f"Appointment {appointment.id} changed concurrently "
                    f"({current.value} -> {appointment.status}), rejecting {requested.value}"
                )
                raise InvalidTransition(appointment.status, requested.value)

        logger.info(
            f"Appointment {appointment.id}: {current.value} -> {requested.value} "
            f"by {actor.role.value} {actor.user_id}"
        )
        publish_safely(
            self.notifier,
            AppointmentStatusChanged(
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                doctor_id=appointment.doctor_id,
                old_status=current.value,
                new_status=requested.value,
                actor_role=actor.role.value,
            ),
        )
        return appointment

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_appointments(self, actor: Actor, status: Optional[str] = None) -> list[Appointment]:
        """The actor's own appointments, newest first; admins see all"""
        if status is not None:
            try:
                status = AppointmentStatus(status).value
            except ValueError as e:
                raise InvalidArgument(f"Unknown appointment status '{status}'") from e

        with storage_errors(self.db):
            if actor.role == Role.ADMIN:
                return self.repo.list_appointments(self.db, status=status)
            if actor.role == Role.DOCTOR:
                doctor_id = self.profiles.require_doctor_profile(actor)
                return self.repo.list_appointments(self.db, doctor_id=doctor_id, status=status)
            patient_id = self.profiles.require_patient_profile(actor)
            return self.repo.list_appointments(self.db, patient_id=patient_id, status=status)

    def get_weekly_schedule(self, doctor_id: int) -> list[WeeklyScheduleEntry]:
        with storage_errors(self.db):
            if self.profiles.get_doctor(doctor_id) is None:
                raise InvalidArgument(f"Doctor {doctor_id} does not exist")
            return self.schedules.get_entries(self.db, doctor_id)

    def get_report(self, actor: Actor) -> dict:
        """Appointment counts per status plus totals for today, this week and this month (admins only)"""
        if not actor.is_admin:
            raise PermissionDenied("Only administrators can view appointment reports")

        today = self.clock().date()
        week_start = today - timedelta(days=today.weekday())
        month_start = today.replace(day=1)
        next_month = (month_start + timedelta(days=32)).replace(day=1)
        with storage_errors(self.db):
            counts = self.repo.get_status_counts(self.db)
            today_count = self.repo.count_between(self.db, *_range(today, 1))
            week_count = self.repo.count_between(self.db, *_range(week_start, 7))
            month_count = self.repo.count_between(
                self.db, *_range(month_start, (next_month - month_start).days)
            )

        report = {"total": sum(counts.values())}
        for status in AppointmentStatus:
            report[status.value] = counts.get(status.value, 0)
        report["today"] = today_count
        report["this_week"] = week_count
        report["this_month"] = month_count
        return report

    def _check_access(self, appointment: Appointment, actor: Actor) -> None:
        if actor.role == Role.ADMIN:
            return
        if actor.role == Role.DOCTOR and self.profiles.doctor_id_for(actor) == appointment.doctor_id:
            return
        if actor.role == Role.PATIENT and self.profiles.patient_id_for(actor) == appointment.patient_id:
            return
        raise PermissionDenied("You are not a party to this appointment")


def _range(start_day: date, days: int) -> tuple[datetime, datetime]:
    start = datetime.combine(start_day, time.min)
    return start, start + timedelta(days=days)
