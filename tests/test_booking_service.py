"""Tests for the booking coordinator."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import time, timedelta

import pytest
from conftest import NEXT_MONDAY, FixedClock, at
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from clinic.auth import Actor, Role
from clinic.database import Base, build_engine
from clinic.domain.scheduling.booking_service import BookingService
from clinic.domain.scheduling.repository import AppointmentRepository
from clinic.domain.scheduling.slot_calculator import SlotCalculator
from clinic.errors import (
    InvalidArgument,
    OutsideSchedule,
    PermissionDenied,
    SlotAlreadyTaken,
    StorageUnavailable,
)
from clinic.models import Appointment, AppointmentStatus, Doctor, Patient, WeeklyScheduleEntry
from clinic.services.notification_service import AppointmentBooked, RecordingNotifier


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(db, clock, notifier):
    return BookingService(db, notifier=notifier, clock=clock)


class TestBookAppointment:
    def test_books_pending_appointment(self, service, doctor, patient, patient_actor):
        appointment = service.book_appointment(
            patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "08:00"), "Control"
        )

        assert appointment.id is not None
        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.scheduled_at == at(NEXT_MONDAY, "08:00")
        assert appointment.reason == "Control"

    def test_booked_slot_disappears_from_free_slots(self, db, service, clock, doctor, patient, patient_actor):
        service.book_appointment(patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "08:00"))

        assert SlotCalculator(db, clock=clock).free_slots(doctor.id, NEXT_MONDAY) == [time(9)]

    def test_publishes_booking_event(self, service, notifier, doctor, patient, patient_actor):
        appointment = service.book_appointment(
            patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "09:00")
        )

        assert notifier.events == [
            AppointmentBooked(
                appointment_id=appointment.id,
                patient_id=patient.id,
                doctor_id=doctor.id,
                scheduled_at=at(NEXT_MONDAY, "09:00"),
            )
        ]

    def test_accepts_iso_string(self, service, doctor, patient, patient_actor):
        appointment = service.book_appointment(
            patient_actor, patient.id, doctor.id, f"{NEXT_MONDAY.isoformat()}T09:00:00Z"
        )

        assert appointment.scheduled_at == at(NEXT_MONDAY, "09:00")

    def test_second_booking_of_same_slot_is_taken(self, service, doctor, patient, make_patient, patient_actor):
        other = make_patient(user_id="patient-2", full_name="Jorge Salazar")
        service.book_appointment(patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "08:00"))

        with pytest.raises(SlotAlreadyTaken):
            service.book_appointment(
                Actor(user_id=other.user_id, role=Role.PATIENT),
                other.id,
                doctor.id,
                at(NEXT_MONDAY, "08:00"),
            )

    def test_cancelled_appointment_frees_slot(self, db, service, doctor, patient, patient_actor):
        db.add(
            Appointment(
                patient_id=patient.id,
                doctor_id=doctor.id,
                scheduled_at=at(NEXT_MONDAY, "08:00"),
                status=AppointmentStatus.CANCELLED.value,
            )
        )
        db.commit()

        appointment = service.book_appointment(
            patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "08:00")
        )

        assert appointment.status == AppointmentStatus.PENDING.value

    @pytest.mark.parametrize("hhmm", ["07:00", "10:00", "08:30", "12:00"])
    def test_time_outside_window_or_grid(self, service, doctor, patient, patient_actor, hhmm):
        with pytest.raises(OutsideSchedule):
            service.book_appointment(patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, hhmm))

    def test_day_off_is_outside_schedule(self, service, doctor, patient, patient_actor):
        next_tuesday = NEXT_MONDAY + timedelta(days=1)

        with pytest.raises(OutsideSchedule):
            service.book_appointment(patient_actor, patient.id, doctor.id, at(next_tuesday, "08:00"))

    def test_doctor_without_schedule_is_outside_schedule(self, service, make_doctor, patient, patient_actor):
        idle = make_doctor(user_id="doctor-idle")

        with pytest.raises(OutsideSchedule):
            service.book_appointment(patient_actor, patient.id, idle.id, at(NEXT_MONDAY, "08:00"))

    def test_past_time_is_invalid(self, service, doctor, patient, patient_actor):
        last_monday = NEXT_MONDAY - timedelta(days=14)

        with pytest.raises(InvalidArgument):
            service.book_appointment(patient_actor, patient.id, doctor.id, at(last_monday, "08:00"))

    def test_malformed_time_is_invalid(self, service, doctor, patient, patient_actor):
        with pytest.raises(InvalidArgument):
            service.book_appointment(patient_actor, patient.id, doctor.id, "next monday at 8")

    def test_unknown_doctor_or_patient_is_invalid(self, service, doctor, patient, admin_actor):
        with pytest.raises(InvalidArgument):
            service.book_appointment(admin_actor, patient.id, 999, at(NEXT_MONDAY, "08:00"))
        with pytest.raises(InvalidArgument):
            service.book_appointment(admin_actor, 999, doctor.id, at(NEXT_MONDAY, "08:00"))

    def test_patient_cannot_book_for_someone_else(self, service, doctor, patient, make_patient):
        other = make_patient(user_id="patient-2", full_name="Jorge Salazar")

        with pytest.raises(PermissionDenied):
            service.book_appointment(
                Actor(user_id=other.user_id, role=Role.PATIENT),
                patient.id,
                doctor.id,
                at(NEXT_MONDAY, "08:00"),
            )

    def test_doctor_can_book_for_patient(self, service, doctor, patient, doctor_actor):
        appointment = service.book_appointment(
            doctor_actor, patient.id, doctor.id, at(NEXT_MONDAY, "09:00")
        )

        assert appointment.patient_id == patient.id


class TestRaceArbiter:
    def test_unique_index_rejects_second_active_row(self, db, doctor, patient):
        repo = AppointmentRepository()
        repo.create_appointment(
            db, patient_id=patient.id, doctor_id=doctor.id, scheduled_at=at(NEXT_MONDAY, "08:00")
        )

        with pytest.raises(IntegrityError):
            repo.create_appointment(
                db, patient_id=patient.id, doctor_id=doctor.id, scheduled_at=at(NEXT_MONDAY, "08:00")
            )
        db.rollback()

    def test_stale_free_slot_check_reports_slot_taken(self, db, service, monkeypatch, doctor, patient, patient_actor):
        """When the pre-check misses a concurrent insert, the constraint decides."""
        AppointmentRepository.create_appointment(
            db, patient_id=patient.id, doctor_id=doctor.id, scheduled_at=at(NEXT_MONDAY, "08:00")
        )
        monkeypatch.setattr(service, "_ensure_slot_free", lambda doctor_id, scheduled_at: None)

        with pytest.raises(SlotAlreadyTaken):
            service.book_appointment(patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "08:00"))

        assert db.query(Appointment).count() == 1

    def test_storage_failure_is_transient(self, service, monkeypatch, doctor, patient, patient_actor):
        def broken(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        monkeypatch.setattr(service.repo, "create_appointment", broken)

        with pytest.raises(StorageUnavailable):
            service.book_appointment(patient_actor, patient.id, doctor.id, at(NEXT_MONDAY, "08:00"))


class TestConcurrentBooking:
    def test_exactly_one_of_many_concurrent_bookings_wins(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        clock = FixedClock(at(NEXT_MONDAY - timedelta(days=7), "10:00"))
        attempts = 8

        setup = Session()
        doctor = Doctor(user_id="doctor-race", full_name="Dr. Race")
        setup.add(doctor)
        setup.commit()
        setup.add(
            WeeklyScheduleEntry(
                doctor_id=doctor.id, day_of_week="monday", start_time=time(8), end_time=time(10)
            )
        )
        patients = [Patient(user_id=f"patient-{i}", full_name=f"Patient {i}") for i in range(attempts)]
        setup.add_all(patients)
        setup.commit()
        doctor_id = doctor.id
        patient_ids = [p.id for p in patients]
        setup.close()

        barrier = threading.Barrier(attempts)

        def attempt(patient_id):
            session = Session()
            try:
                service = BookingService(session, notifier=RecordingNotifier(), clock=clock)
                barrier.wait()
                try:
                    service.book_appointment(
                        Actor(user_id="admin", role=Role.ADMIN),
                        patient_id,
                        doctor_id,
                        at(NEXT_MONDAY, "08:00"),
                    )
                    return "booked"
                except SlotAlreadyTaken:
                    return "taken"
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=attempts) as pool:
            results = list(pool.map(attempt, patient_ids))

        assert results.count("booked") == 1
        assert results.count("taken") == attempts - 1

        check = Session()
        active = (
            check.query(Appointment)
            .filter(Appointment.doctor_id == doctor_id, Appointment.status != "cancelled")
            .count()
        )
        check.close()
        engine.dispose()
        assert active == 1
