"""Notification hand-off and worker message tests."""

from datetime import datetime

from fastapi import BackgroundTasks

from clinic.services.notification_service import (
    AppointmentBooked,
    AppointmentStatusChanged,
    QueueNotifier,
    enqueue_appointment_event,
    publish_safely,
    serialize_event,
)
from clinic.worker import build_notification_message

BOOKED = AppointmentBooked(
    appointment_id=7, patient_id=1, doctor_id=2, scheduled_at=datetime(2026, 10, 26, 8, 0)
)


def test_serialize_event_is_json_friendly():
    assert serialize_event(BOOKED) == {
        "appointment_id": 7,
        "patient_id": 1,
        "doctor_id": 2,
        "scheduled_at": "2026-10-26T08:00:00",
        "event_type": "appointment_booked",
    }


def test_queue_notifier_defers_to_background_task():
    tasks = BackgroundTasks()

    QueueNotifier(tasks).publish(BOOKED)

    [task] = tasks.tasks
    assert task.func is enqueue_appointment_event
    assert task.args[0]["appointment_id"] == 7


def test_publish_safely_swallows_notifier_failure(caplog):
    class Broken:
        def publish(self, event):
            raise ConnectionError("redis down")

    publish_safely(Broken(), BOOKED)

    assert "Notifier failed" in caplog.text


def test_booking_message():
    message = build_notification_message(serialize_event(BOOKED), "Maria Quispe", "Dra. Ana Torres")

    assert message == "Appointment requested by Maria Quispe with Dra. Ana Torres for 2026-10-26T08:00:00"


def test_status_change_message():
    event = AppointmentStatusChanged(
        appointment_id=7,
        patient_id=1,
        doctor_id=2,
        old_status="pending",
        new_status="confirmed",
        actor_role="doctor",
    )

    message = build_notification_message(serialize_event(event), "Maria Quispe", "Dra. Ana Torres")

    assert "from pending to confirmed" in message
