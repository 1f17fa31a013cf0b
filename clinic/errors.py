"""Error taxonomy for the scheduling and clinical services.

Every error a caller can recover from is a ``ClinicError``. The HTTP layer maps
them to responses in ``main.py``; services never translate them themselves.
"""

from typing import Optional


class ClinicError(Exception):
    """Base class for recoverable business errors"""

    code = "clinic_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class InvalidArgument(ClinicError):
    """Malformed input or an unknown referenced entity"""

    code = "invalid_argument"
    status_code = 422


class NotFound(ClinicError):
    code = "not_found"
    status_code = 404


class OutsideSchedule(ClinicError):
    """Requested time is not a slot of any weekly window"""

    code = "outside_schedule"
    status_code = 422


class SlotAlreadyTaken(ClinicError):
    """Another active appointment holds the slot; re-query free slots"""

    code = "slot_already_taken"
    status_code = 409


class InvalidTransition(ClinicError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str, reason: Optional[str] = None):
        message = f"Cannot move appointment from '{current}' to '{requested}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.requested = requested

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current_status"] = self.current
        data["requested_status"] = self.requested
        return data


class AppointmentNotCompleted(ClinicError):
    code = "appointment_not_completed"
    status_code = 409


class ClinicalRecordExists(ClinicError):
    code = "clinical_record_exists"
    status_code = 409


class PermissionDenied(ClinicError):
    """Actor may not perform the action. For a refused status change the
    current and requested statuses are included."""

    code = "permission_denied"
    status_code = 403

    def __init__(self, message: str, current: Optional[str] = None, requested: Optional[str] = None):
        super().__init__(message)
        self.current = current
        self.requested = requested

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.current is not None:
            data["current_status"] = self.current
            data["requested_status"] = self.requested
        return data


class StorageUnavailable(ClinicError):
    """Transient storage failure. The outcome of a write is unknown; callers
    should re-read current state before retrying with backoff."""

    code = "storage_unavailable"
    status_code = 503
