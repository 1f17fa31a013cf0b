"""Booking coordinator - creates appointments without double-booking a doctor"""

import logging
from datetime import datetime
from threading import Lock
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import Actor, Role
from ...config import SLOT_GRANULARITY_MINUTES
from ...database import storage_errors
from ...errors import (
    InvalidArgument,
    NotFound,
    OutsideSchedule,
    PermissionDenied,
    SlotAlreadyTaken,
)
from ...models import Appointment, AppointmentStatus
from ...services.notification_service import (
    AppointmentBooked,
    LoggingNotifier,
    Notifier,
    publish_safely,
)
from ...shared.clock import Clock, clinic_now
from ...shared.validators import clean_text, normalize_local_datetime
from ..profiles import ProfileDirectory
from .repository import AppointmentRepository
from .slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)

REASON_MAX_LENGTH = 1000

# Per-doctor locks serialize check-then-insert inside this process.
# Across processes the partial unique index on appointments decides the winner.
_doctor_locks: dict[int, Lock] = {}
_doctor_locks_guard = Lock()


def _lock_for_doctor(doctor_id: int) -> Lock:
    with _doctor_locks_guard:
        lock = _doctor_locks.get(doctor_id)
        if lock is None:
            lock = _doctor_locks[doctor_id] = Lock()
        return lock


class BookingService:
    """Validates booking requests, re-checks slot freedom and inserts appointments"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        clock: Clock = clinic_now,
        granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
    ):
        self.db = db
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.repo = AppointmentRepository()
        self.profiles = ProfileDirectory(db)
        self.slots = SlotCalculator(db, granularity_minutes=granularity_minutes, clock=clock)

    def book_appointment(
        self,
        actor: Actor,
        patient_id: int,
        doctor_id: int,
        scheduled_at: Union[str, datetime],
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Book ``scheduled_at`` with a doctor for a patient.

        The requested time is re-derived against the current free slots rather
        than trusted from the client. The appointment is created pending.

        Raises:
            InvalidArgument: Malformed time, past time, unknown patient or doctor
            PermissionDenied: A patient booking on behalf of someone else
            OutsideSchedule: The time is not a slot of the doctor's weekly window
            SlotAlreadyTaken: Another active appointment holds the slot
            StorageUnavailable: Storage failed; the outcome is unknown
        """
        try:
            scheduled_at = normalize_local_datetime(scheduled_at)
            reason = clean_text(reason, REASON_MAX_LENGTH)
        except ValueError as e:
            raise InvalidArgument(str(e)) from e

        with storage_errors(self.db):
            self._check_parties(actor, patient_id, doctor_id)

            now = self.clock()
            if scheduled_at <= now:
                raise InvalidArgument(
                    f"Appointment time {scheduled_at.isoformat()} must be in the future"
                )

            with _lock_for_doctor(doctor_id):
                self._ensure_slot_free(doctor_id, scheduled_at)
                try:
                    appointment = self.repo.create_appointment(
                        self.db,
                        patient_id=patient_id,
                        doctor_id=doctor_id,
                        scheduled_at=scheduled_at,
                        status=AppointmentStatus.PENDING.value,
                        reason=reason,
                    )
                except IntegrityError as e:
                    self.db.rollback()
                    logger.warning(
                        f"Booking race lost for doctor {doctor_id} at {scheduled_at.isoformat()}"
                    )
                    raise SlotAlreadyTaken(
                        f"The {scheduled_at.strftime('%Y-%m-%d %H:%M')} slot was just taken"
                    ) from e

        logger.info(
            f"Appointment {appointment.id} booked: patient {patient_id} with doctor {doctor_id} "
            f"at {scheduled_at.isoformat()} by {actor.role.value} {actor.user_id}"
        )
        publish_safely(
            self.notifier,
            AppointmentBooked(
                appointment_id=appointment.id,
                patient_id=patient_id,
                doctor_id=doctor_id,
                scheduled_at=scheduled_at,
            ),
        )
        return appointment

    def _check_parties(self, actor: Actor, patient_id: int, doctor_id: int) -> None:
        if self.profiles.get_patient(patient_id) is None:
            raise InvalidArgument(f"Patient {patient_id} does not exist")
        if self.profiles.get_doctor(doctor_id) is None:
            raise InvalidArgument(f"Doctor {doctor_id} does not exist")

        # Patients book only for themselves; doctors and admins for anyone
        if actor.role == Role.PATIENT and self.profiles.patient_id_for(actor) != patient_id:
            logger.warning(f"Patient user {actor.user_id} tried to book for patient {patient_id}")
            raise PermissionDenied("Patients can only book appointments for themselves")

    def _ensure_slot_free(self, doctor_id: int, scheduled_at: datetime) -> None:
        day = scheduled_at.date()
        try:
            free = self.slots.free_slots(doctor_id, day)
        except NotFound as e:
            raise OutsideSchedule(f"Doctor {doctor_id} has no weekly schedule") from e

        requested = scheduled_at.time()
        if requested in free:
            return
        if requested in self.slots.slot_grid(doctor_id, day):
            logger.info(f"Slot {scheduled_at.isoformat()} of doctor {doctor_id} is already booked")
            raise SlotAlreadyTaken(
                f"The {scheduled_at.strftime('%Y-%m-%d %H:%M')} slot is already booked"
            )
        raise OutsideSchedule(
            f"{scheduled_at.strftime('%A %H:%M')} is not within the doctor's schedule"
        )
