"""Tests for the appointment transition table."""

from datetime import datetime, timedelta

import pytest

from clinic.auth import Role
from clinic.domain.scheduling.state_machine import allowed_targets, check_transition
from clinic.errors import InvalidTransition, PermissionDenied
from clinic.models import AppointmentStatus

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
CANCELLED = AppointmentStatus.CANCELLED
COMPLETED = AppointmentStatus.COMPLETED

NOW = datetime(2026, 10, 19, 10, 0)
FUTURE = NOW + timedelta(hours=2)
PAST = NOW - timedelta(hours=2)


class TestAllowedMoves:
    @pytest.mark.parametrize(
        "current, requested, role, scheduled_at",
        [
            (PENDING, CONFIRMED, Role.DOCTOR, FUTURE),
            (PENDING, CONFIRMED, Role.ADMIN, FUTURE),
            (PENDING, CANCELLED, Role.PATIENT, FUTURE),
            (PENDING, CANCELLED, Role.DOCTOR, PAST),
            (CONFIRMED, CANCELLED, Role.PATIENT, FUTURE),
            (CONFIRMED, CANCELLED, Role.DOCTOR, FUTURE),
            (CONFIRMED, COMPLETED, Role.DOCTOR, PAST),
            (CONFIRMED, COMPLETED, Role.DOCTOR, NOW),
            (CONFIRMED, COMPLETED, Role.ADMIN, PAST),
        ],
    )
    def test_move_is_accepted(self, current, requested, role, scheduled_at):
        transition = check_transition(current, requested, role, scheduled_at, NOW)

        assert (transition.source, transition.target) == (current, requested)


class TestRejectedMoves:
    @pytest.mark.parametrize(
        "current, requested",
        [
            (PENDING, COMPLETED),
            (PENDING, PENDING),
            (CONFIRMED, PENDING),
            (CONFIRMED, CONFIRMED),
            (CANCELLED, CANCELLED),
            (CANCELLED, PENDING),
            (CANCELLED, CONFIRMED),
            (COMPLETED, CANCELLED),
            (COMPLETED, CONFIRMED),
        ],
    )
    def test_moves_outside_table_are_invalid(self, current, requested):
        with pytest.raises(InvalidTransition) as exc_info:
            check_transition(current, requested, Role.ADMIN, FUTURE, NOW)

        assert exc_info.value.current == current.value
        assert exc_info.value.requested == requested.value

    def test_invalid_move_wins_over_missing_permission(self):
        """A patient asking to complete a pending visit learns the move is impossible."""
        with pytest.raises(InvalidTransition):
            check_transition(PENDING, COMPLETED, Role.PATIENT, PAST, NOW)

    def test_patient_cannot_confirm(self):
        with pytest.raises(PermissionDenied) as exc_info:
            check_transition(PENDING, CONFIRMED, Role.PATIENT, FUTURE, NOW)

        assert exc_info.value.to_dict()["current_status"] == "pending"
        assert exc_info.value.to_dict()["requested_status"] == "confirmed"

    def test_patient_cannot_complete(self):
        with pytest.raises(PermissionDenied):
            check_transition(CONFIRMED, COMPLETED, Role.PATIENT, PAST, NOW)

    def test_confirmed_cannot_be_cancelled_after_start(self):
        with pytest.raises(InvalidTransition) as exc_info:
            check_transition(CONFIRMED, CANCELLED, Role.PATIENT, NOW, NOW)

        assert "already passed" in exc_info.value.message

    def test_cannot_complete_before_start(self):
        with pytest.raises(InvalidTransition):
            check_transition(CONFIRMED, COMPLETED, Role.DOCTOR, FUTURE, NOW)


class TestAllowedTargets:
    def test_doctor_on_pending(self):
        assert set(allowed_targets(PENDING, Role.DOCTOR)) == {CONFIRMED, CANCELLED}

    def test_patient_on_confirmed(self):
        assert allowed_targets(CONFIRMED, Role.PATIENT) == [CANCELLED]

    @pytest.mark.parametrize("terminal", [CANCELLED, COMPLETED])
    def test_terminal_statuses_have_no_exits(self, terminal):
        for role in Role:
            assert allowed_targets(terminal, role) == []
