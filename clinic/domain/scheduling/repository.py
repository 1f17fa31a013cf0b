"""Scheduling repository - Database operations for weekly schedules and appointments"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from ...models import ACTIVE_STATUSES, Appointment, DayOfWeek, WeeklyScheduleEntry


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class ScheduleRepository:
    """Repository for weekly schedule entries (read-mostly from the booking side)"""

    @staticmethod
    def get_entries(db: Session, doctor_id: int) -> list[WeeklyScheduleEntry]:
        """Get all weekly entries of a doctor in weekday order"""
        entries = db.query(WeeklyScheduleEntry).filter(WeeklyScheduleEntry.doctor_id == doctor_id).all()
        order = [d.value for d in DayOfWeek]
        return sorted(entries, key=lambda e: order.index(e.day_of_week))

    @staticmethod
    def get_entry(db: Session, doctor_id: int, day: DayOfWeek) -> Optional[WeeklyScheduleEntry]:
        """Get the entry for one weekday"""
        return (
            db.query(WeeklyScheduleEntry)
            .filter(
                WeeklyScheduleEntry.doctor_id == doctor_id,
                WeeklyScheduleEntry.day_of_week == day.value,
            )
            .first()
        )

    @staticmethod
    def has_schedule(db: Session, doctor_id: int) -> bool:
        return (
            db.query(WeeklyScheduleEntry.id)
            .filter(WeeklyScheduleEntry.doctor_id == doctor_id)
            .first()
            is not None
        )

    @staticmethod
    def upsert_entry(
        db: Session, doctor_id: int, day: DayOfWeek, start_time: time, end_time: time
    ) -> WeeklyScheduleEntry:
        """Create or replace the window of a doctor for one weekday"""
        entry = ScheduleRepository.get_entry(db, doctor_id, day)
        if entry:
            entry.start_time = start_time
            entry.end_time = end_time
        else:
            entry = WeeklyScheduleEntry(
                doctor_id=doctor_id,
                day_of_week=day.value,
                start_time=start_time,
                end_time=end_time,
            )
            db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def delete_entry(db: Session, doctor_id: int, day: DayOfWeek) -> bool:
        entry = ScheduleRepository.get_entry(db, doctor_id, day)
        if not entry:
            return False
        db.delete(entry)
        db.commit()
        return True


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_active_on_date(db: Session, doctor_id: int, day: date) -> list[Appointment]:
        """Appointments of a doctor on a date that occupy their slot"""
        start, end = _day_bounds(day)
        return (
            db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < end,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Appointment.scheduled_at)
            .all()
        )

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        """
        Insert a new appointment.
        Raises IntegrityError when the active-slot unique index rejects the row.
        """
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def update_status(
        db: Session,
        appointment_id: int,
        from_status: str,
        to_status: str,
        changed_by: str,
        changed_at: datetime,
    ) -> bool:
        """
        Conditionally move an appointment between statuses.
        Returns False when the row is no longer in ``from_status`` (concurrent change).
        """
        result = db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status == from_status)
            .values(status=to_status, status_changed_by=changed_by, status_changed_at=changed_at)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def list_appointments(
        db: Session,
        patient_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        """List appointments newest first, optionally filtered by party and status"""
        query = db.query(Appointment).options(
            joinedload(Appointment.patient), joinedload(Appointment.doctor)
        )
        if patient_id is not None:
            query = query.filter(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.scheduled_at.desc()).all()

    @staticmethod
    def doctor_treats_patient(db: Session, doctor_id: int, patient_id: int) -> bool:
        """True when the doctor has a non-cancelled appointment with the patient"""
        return (
            db.query(Appointment.id)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.patient_id == patient_id,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
            .first()
            is not None
        )

    @staticmethod
    def get_status_counts(db: Session) -> dict[str, int]:
        rows = (
            db.query(Appointment.status, func.count(Appointment.id))
            .group_by(Appointment.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def count_between(db: Session, start: datetime, end: datetime) -> int:
        return (
            db.query(func.count(Appointment.id))
            .filter(Appointment.scheduled_at >= start, Appointment.scheduled_at < end)
            .scalar()
            or 0
        )
