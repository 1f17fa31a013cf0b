"""
Appointment Notification Service
Hands appointment events to the notification pipeline without blocking the caller.
Delivery (push, email) happens in the arq worker; failures here are logged, never raised.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Union

from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentBooked:
    appointment_id: int
    patient_id: int
    doctor_id: int
    scheduled_at: datetime
    event_type: str = field(default="appointment_booked", init=False)


@dataclass(frozen=True)
class AppointmentStatusChanged:
    appointment_id: int
    patient_id: int
    doctor_id: int
    old_status: str
    new_status: str
    actor_role: str
    event_type: str = field(default="appointment_status_changed", init=False)


AppointmentEvent = Union[AppointmentBooked, AppointmentStatusChanged]


def serialize_event(event: AppointmentEvent) -> dict:
    """Convert an event to a JSON-friendly dict for the job queue"""
    data = asdict(event)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


class Notifier(Protocol):
    def publish(self, event: AppointmentEvent) -> None:
        """Hand off an event. Must return promptly and never raise."""


class LoggingNotifier:
    """Default notifier: records events in the application log only"""

    def publish(self, event: AppointmentEvent) -> None:
        logger.info(f"Appointment event {event.event_type}: {serialize_event(event)}")


class RecordingNotifier:
    """Keeps published events in memory"""

    def __init__(self):
        self.events: list[AppointmentEvent] = []

    def publish(self, event: AppointmentEvent) -> None:
        self.events.append(event)


class QueueNotifier:
    """
    Queues events on the arq worker after the HTTP response has been sent.
    The request never waits on Redis or on delivery.
    """

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks

    def publish(self, event: AppointmentEvent) -> None:
        self.background_tasks.add_task(enqueue_appointment_event, serialize_event(event))


async def enqueue_appointment_event(payload: dict) -> Optional[str]:
    """Enqueue a serialized event for delivery; returns the job id when queued"""
    from arq import create_pool

    from ..worker import get_redis_settings

    try:
        pool = await create_pool(get_redis_settings())
        try:
            job = await pool.enqueue_job("deliver_appointment_event_task", payload)
        finally:
            await pool.close()
        if job is None:
            return None
        logger.info(f"Queued {payload.get('event_type')} for appointment {payload.get('appointment_id')}: {job.job_id}")
        return job.job_id
    except Exception as e:
        # Delivery is best effort: the appointment change is already committed
        logger.error(f"Failed to queue {payload.get('event_type')} notification: {e}")
        return None


def publish_safely(notifier: Notifier, event: AppointmentEvent) -> None:
    """Publish an event, logging instead of propagating notifier failures"""
    try:
        notifier.publish(event)
    except Exception as e:
        logger.error(f"Notifier failed for {event.event_type} (appointment {event.appointment_id}): {e}")
