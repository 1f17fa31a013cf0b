"""
Appointment state machine.

    pending ──confirm──▶ confirmed ──complete──▶ completed
       │                     │
       └──cancel──▶ cancelled ◀──cancel (before start)

Completed and cancelled are terminal. Admins may perform any doctor-side move.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ...auth import Role
from ...errors import InvalidTransition, PermissionDenied
from ...models import AppointmentStatus

# Precondition on (scheduled_at, now); returns an error reason or None
Guard = Callable[[datetime, datetime], Optional[str]]


def _starts_in_future(scheduled_at: datetime, now: datetime) -> Optional[str]:
    if scheduled_at <= now:
        return "the appointment time has already passed"
    return None


def _has_started(scheduled_at: datetime, now: datetime) -> Optional[str]:
    if scheduled_at > now:
        return "the appointment time has not arrived yet"
    return None


@dataclass(frozen=True)
class Transition:
    source: AppointmentStatus
    target: AppointmentStatus
    roles: frozenset
    guard: Optional[Guard] = None


_DOCTOR = frozenset({Role.DOCTOR, Role.ADMIN})
_EITHER_PARTY = frozenset({Role.PATIENT, Role.DOCTOR, Role.ADMIN})

TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], Transition] = {
    (t.source, t.target): t
    for t in (
        Transition(AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, _DOCTOR),
        Transition(AppointmentStatus.PENDING, AppointmentStatus.CANCELLED, _EITHER_PARTY),
        Transition(
            AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, _EITHER_PARTY, _starts_in_future
        ),
        Transition(
            AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED, _DOCTOR, _has_started
        ),
    )
}


def check_transition(
    current: AppointmentStatus,
    requested: AppointmentStatus,
    role: Role,
    scheduled_at: datetime,
    now: datetime,
) -> Transition:
    """
    Validate a status change and return the matching transition.

    Raises:
        InvalidTransition: The move is not in the table or its precondition fails
        PermissionDenied: The move exists but ``role`` may not trigger it
    """
    transition = TRANSITIONS.get((current, requested))
    if transition is None:
        raise InvalidTransition(current.value, requested.value)
    if role not in transition.roles:
        raise PermissionDenied(
            f"Role '{role.value}' cannot move an appointment from '{current.value}' to '{requested.value}'",
            current=current.value,
            requested=requested.value,
        )
    if transition.guard:
        reason = transition.guard(scheduled_at, now)
        if reason:
            raise InvalidTransition(current.value, requested.value, reason)
    return transition


def allowed_targets(current: AppointmentStatus, role: Role) -> list[AppointmentStatus]:
    """Statuses ``role`` could move an appointment to from ``current``, ignoring time guards"""
    return [t.target for (source, _), t in TRANSITIONS.items() if source == current and role in t.roles]
