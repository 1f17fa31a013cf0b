"""Profile directory - existence lookups against the patient, doctor and medication catalogs"""

from typing import Optional

from sqlalchemy.orm import Session

from ..auth import Actor, Role
from ..errors import PermissionDenied
from ..models import Doctor, Medication, Patient


class ProfileDirectory:
    """Resolves doctor, patient and medication ids, and maps actors to their profile"""

    def __init__(self, db: Session):
        self.db = db

    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.id == doctor_id).first()

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.id == patient_id).first()

    def medication_exists(self, medication_id: int) -> bool:
        return (
            self.db.query(Medication.id).filter(Medication.id == medication_id).first() is not None
        )

    def doctor_id_for(self, actor: Actor) -> Optional[int]:
        """Doctor row of a doctor actor, None for any other role"""
        if actor.role != Role.DOCTOR:
            return None
        row = self.db.query(Doctor.id).filter(Doctor.user_id == actor.user_id).first()
        return row[0] if row else None

    def patient_id_for(self, actor: Actor) -> Optional[int]:
        """Patient row of a patient actor, None for any other role"""
        if actor.role != Role.PATIENT:
            return None
        row = self.db.query(Patient.id).filter(Patient.user_id == actor.user_id).first()
        return row[0] if row else None

    def require_doctor_profile(self, actor: Actor) -> int:
        doctor_id = self.doctor_id_for(actor)
        if doctor_id is None:
            raise PermissionDenied("Doctor profile not found for the current user")
        return doctor_id

    def require_patient_profile(self, actor: Actor) -> int:
        patient_id = self.patient_id_for(actor)
        if patient_id is None:
            raise PermissionDenied("Patient profile not found for the current user")
        return patient_id
