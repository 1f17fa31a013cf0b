"""
Slot calculation - turns a doctor's weekly window into bookable start times.

The pure functions here take plain values so they can be reused by the booking
coordinator to re-validate a requested time. ``SlotCalculator`` wires them to
the schedule and appointment stores.
"""

import logging
from datetime import date, datetime, time
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...config import SLOT_GRANULARITY_MINUTES
from ...errors import InvalidArgument, NotFound
from ...models import DayOfWeek, WeeklyScheduleEntry
from ...shared.clock import Clock, clinic_now
from ...shared.validators import validate_granularity
from ..profiles import ProfileDirectory
from .repository import AppointmentRepository, ScheduleRepository

logger = logging.getLogger(__name__)


def _to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def candidate_slots(start_time: time, end_time: time, granularity_minutes: int) -> list[time]:
    """Every start time from ``start_time`` stepping by the granularity whose
    slot ends no later than ``end_time``."""
    start = _to_minutes(start_time)
    last_start = _to_minutes(end_time) - granularity_minutes
    return [_from_minutes(m) for m in range(start, last_start + 1, granularity_minutes)]


def compute_free_slots(
    entry: Optional[WeeklyScheduleEntry],
    day: date,
    booked: Iterable[datetime],
    granularity_minutes: int,
    now: Optional[datetime] = None,
) -> list[time]:
    """
    Free slot start times for one doctor on one date.

    Args:
        entry: Weekly window for the weekday of ``day`` (None if the doctor is off)
        day: Target date
        booked: scheduled_at of the doctor's active appointments that day
        granularity_minutes: Slot length
        now: Clinic-local current time; when ``day`` is today, only slots
             strictly after it are returned

    Returns:
        Ascending list of time-of-day values
    """
    if entry is None:
        return []

    taken = {b.time().replace(second=0, microsecond=0) for b in booked if b.date() == day}
    slots = [
        slot
        for slot in candidate_slots(entry.start_time, entry.end_time, granularity_minutes)
        if slot not in taken
    ]
    if now is not None and day == now.date():
        current = now.time()
        slots = [slot for slot in slots if slot > current]
    return slots


class SlotCalculator:
    """Computes free slots from the schedule and appointment stores"""

    def __init__(
        self,
        db: Session,
        granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
        clock: Clock = clinic_now,
    ):
        self.db = db
        self.granularity = validate_granularity(granularity_minutes)
        self.clock = clock
        self.profiles = ProfileDirectory(db)
        self.schedules = ScheduleRepository()
        self.appointments = AppointmentRepository()

    def free_slots(self, doctor_id: int, day: date, include_past: bool = False) -> list[time]:
        """
        Free slots for ``doctor_id`` on ``day``.

        Raises:
            InvalidArgument: Unknown doctor, or a date before today (unless include_past)
            NotFound: The doctor has no weekly schedule at all
        """
        if not isinstance(day, date) or isinstance(day, datetime):
            raise InvalidArgument("Date must be a calendar date")
        if self.profiles.get_doctor(doctor_id) is None:
            raise InvalidArgument(f"Doctor {doctor_id} does not exist")

        now = self.clock()
        if day < now.date() and not include_past:
            raise InvalidArgument(f"Date {day.isoformat()} is in the past")

        if not self.schedules.has_schedule(self.db, doctor_id):
            raise NotFound(f"Doctor {doctor_id} has no weekly schedule")

        weekday = DayOfWeek.for_date(day)
        entry = self.schedules.get_entry(self.db, doctor_id, weekday) if weekday else None
        if entry is None:
            logger.debug(f"Doctor {doctor_id} does not work on {day.strftime('%A')}")
            return []

        booked = [a.scheduled_at for a in self.appointments.get_active_on_date(self.db, doctor_id, day)]
        return compute_free_slots(
            entry, day, booked, self.granularity, now=None if include_past else now
        )

    def slot_grid(self, doctor_id: int, day: date) -> list[time]:
        """All slot start times of the doctor's window on ``day``, booked or not"""
        weekday = DayOfWeek.for_date(day)
        entry = self.schedules.get_entry(self.db, doctor_id, weekday) if weekday else None
        if entry is None:
            return []
        return candidate_slots(entry.start_time, entry.end_time, self.granularity)
