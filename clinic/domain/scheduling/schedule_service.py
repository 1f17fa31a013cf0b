"""Weekly schedule maintenance, used by doctor management and the demo seeder"""

import logging
from datetime import time
from typing import Optional, Union

from sqlalchemy.orm import Session

from ...auth import Actor, Role
from ...database import storage_errors
from ...errors import InvalidArgument, NotFound, PermissionDenied
from ...models import DayOfWeek, WeeklyScheduleEntry
from ...shared.validators import parse_time_of_day
from ..profiles import ProfileDirectory
from .repository import ScheduleRepository

logger = logging.getLogger(__name__)


def parse_day_of_week(value: Union[str, DayOfWeek]) -> DayOfWeek:
    try:
        return DayOfWeek(value.lower() if isinstance(value, str) else value)
    except ValueError as e:
        raise InvalidArgument(f"Unknown working day '{value}', expected monday..saturday") from e


class ScheduleService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()
        self.profiles = ProfileDirectory(db)

    def set_entry(
        self,
        doctor_id: int,
        day: Union[str, DayOfWeek],
        start_time: Union[str, time],
        end_time: Union[str, time],
        actor: Optional[Actor] = None,
    ) -> WeeklyScheduleEntry:
        """Create or replace a doctor's window for one weekday. ``actor`` None means a system caller."""
        day = parse_day_of_week(day)
        try:
            start = parse_time_of_day(start_time)
            end = parse_time_of_day(end_time)
        except ValueError as e:
            raise InvalidArgument(str(e)) from e
        if start >= end:
            raise InvalidArgument("Start time must be before end time")

        with storage_errors(self.db):
            self._check_can_manage(doctor_id, actor)
            entry = self.repo.upsert_entry(self.db, doctor_id, day, start, end)
        logger.info(f"Doctor {doctor_id} works {day.value} {start:%H:%M}-{end:%H:%M}")
        return entry

    def remove_entry(self, doctor_id: int, day: Union[str, DayOfWeek], actor: Optional[Actor] = None) -> None:
        day = parse_day_of_week(day)
        with storage_errors(self.db):
            self._check_can_manage(doctor_id, actor)
            if not self.repo.delete_entry(self.db, doctor_id, day):
                raise NotFound(f"Doctor {doctor_id} has no {day.value} schedule")
        logger.info(f"Doctor {doctor_id} no longer works {day.value}")

    def _check_can_manage(self, doctor_id: int, actor: Optional[Actor]) -> None:
        if self.profiles.get_doctor(doctor_id) is None:
            raise InvalidArgument(f"Doctor {doctor_id} does not exist")
        if actor is None or actor.role == Role.ADMIN:
            return
        if actor.role == Role.DOCTOR and self.profiles.doctor_id_for(actor) == doctor_id:
            return
        raise PermissionDenied("Only the doctor or an administrator can change this schedule")
