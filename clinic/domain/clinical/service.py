"""Clinical service - Records, treatments and prescriptions derived from completed visits"""

import logging
from datetime import date
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import Actor, Role
from ...database import storage_errors
from ...errors import (
    AppointmentNotCompleted,
    ClinicalRecordExists,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)
from ...models import AppointmentStatus, ClinicalRecord, Prescription, Treatment
from ...shared.validators import clean_text, parse_date
from ..profiles import ProfileDirectory
from ..scheduling.repository import AppointmentRepository
from .repository import ClinicalRepository

logger = logging.getLogger(__name__)

PRESCRIPTION_FIELD_MAX_LENGTH = 100


class ClinicalService:
    """Service layer for the clinical cascade"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClinicalRepository()
        self.appointments = AppointmentRepository()
        self.profiles = ProfileDirectory(db)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_clinical_record(
        self,
        actor: Actor,
        appointment_id: int,
        diagnosis: str,
        observations: Optional[str] = None,
    ) -> ClinicalRecord:
        """
        Record the outcome of a completed appointment.

        Raises:
            InvalidArgument: Empty diagnosis
            NotFound: Unknown appointment
            PermissionDenied: Actor is neither the appointment's doctor nor an admin
            AppointmentNotCompleted: The appointment is not completed
            ClinicalRecordExists: The appointment already has a record
        """
        diagnosis = self._required_text(diagnosis, "Diagnosis")
        observations = self._optional_text(observations)

        with storage_errors(self.db):
            appointment = self.appointments.get_by_id(self.db, appointment_id)
            if not appointment:
                raise NotFound(f"Appointment {appointment_id} not found")

            if not actor.is_admin and self.profiles.doctor_id_for(actor) != appointment.doctor_id:
                raise PermissionDenied("Only the appointment's doctor can record this visit")

            if appointment.status != AppointmentStatus.COMPLETED.value:
                raise AppointmentNotCompleted(
                    f"Appointment {appointment_id} is '{appointment.status}', "
                    "clinical records require a completed appointment"
                )

            if self.repo.get_record_for_appointment(self.db, appointment_id):
                raise ClinicalRecordExists(f"Appointment {appointment_id} already has a clinical record")

            try:
                record = self.repo.add(
                    self.db,
                    ClinicalRecord(
                        patient_id=appointment.patient_id,
                        appointment_id=appointment.id,
                        diagnosis=diagnosis,
                        observations=observations,
                    ),
                )
            except IntegrityError as e:
                self.db.rollback()
                raise ClinicalRecordExists(
                    f"Appointment {appointment_id} already has a clinical record"
                ) from e

        logger.info(f"Clinical record {record.id} created for appointment {appointment_id}")
        return record

    def create_treatment(
        self,
        actor: Actor,
        clinical_record_id: int,
        description: str,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
    ) -> Treatment:
        """
        Add a treatment to a clinical record.

        Raises:
            InvalidArgument: Empty description, malformed dates, end before start
            NotFound: Unknown clinical record
            PermissionDenied: Actor is not a treating doctor of the patient or an admin
        """
        description = self._required_text(description, "Description")
        try:
            start = parse_date(start_date) if start_date else None
            end = parse_date(end_date) if end_date else None
        except ValueError as e:
            raise InvalidArgument(str(e)) from e
        if start and end and end < start:
            raise InvalidArgument("End date cannot be before start date")

        with storage_errors(self.db):
            record = self.repo.get_record(self.db, clinical_record_id)
            if not record:
                raise NotFound(f"Clinical record {clinical_record_id} not found")
            self._check_can_treat(actor, record.patient_id)

            treatment = self.repo.add(
                self.db,
                Treatment(
                    clinical_record_id=record.id,
                    description=description,
                    start_date=start,
                    end_date=end,
                ),
            )

        logger.info(f"Treatment {treatment.id} added to clinical record {record.id}")
        return treatment

    def create_prescription(
        self,
        actor: Actor,
        treatment_id: int,
        medication_id: int,
        dosage: Optional[str] = None,
        frequency: Optional[str] = None,
        duration: Optional[str] = None,
    ) -> Prescription:
        """
        Prescribe a catalog medication under a treatment.
        Stock and interactions are the catalog's concern, only existence is checked.

        Raises:
            InvalidArgument: Unknown medication, or a field over 100 characters
            NotFound: Unknown treatment
            PermissionDenied: Actor is not a treating doctor of the patient or an admin
        """
        dosage = self._optional_text(dosage, PRESCRIPTION_FIELD_MAX_LENGTH)
        frequency = self._optional_text(frequency, PRESCRIPTION_FIELD_MAX_LENGTH)
        duration = self._optional_text(duration, PRESCRIPTION_FIELD_MAX_LENGTH)

        with storage_errors(self.db):
            treatment = self.repo.get_treatment(self.db, treatment_id)
            if not treatment:
                raise NotFound(f"Treatment {treatment_id} not found")
            self._check_can_treat(actor, treatment.clinical_record.patient_id)

            if not self.profiles.medication_exists(medication_id):
                raise InvalidArgument(f"Medication {medication_id} does not exist")

            prescription = self.repo.add(
                self.db,
                Prescription(
                    treatment_id=treatment.id,
                    medication_id=medication_id,
                    dosage=dosage,
                    frequency=frequency,
                    duration=duration,
                ),
            )

        logger.info(f"Prescription {prescription.id} added to treatment {treatment.id}")
        return prescription

    # ------------------------------------------------------------------
    # Updates (partial; None leaves a field unchanged)
    # ------------------------------------------------------------------

    def update_clinical_record(
        self,
        actor: Actor,
        record_id: int,
        diagnosis: Optional[str] = None,
        observations: Optional[str] = None,
    ) -> ClinicalRecord:
        updates = {}
        if diagnosis is not None:
            updates["diagnosis"] = self._required_text(diagnosis, "Diagnosis")
        if observations is not None:
            updates["observations"] = self._optional_text(observations)

        with storage_errors(self.db):
            record = self.repo.get_record(self.db, record_id)
            if not record:
                raise NotFound(f"Clinical record {record_id} not found")
            self._check_can_treat(actor, record.patient_id)
            record = self.repo.update(self.db, record, **updates)

        logger.info(f"Clinical record {record_id} updated: {sorted(updates)}")
        return record

    def update_treatment(
        self,
        actor: Actor,
        treatment_id: int,
        description: Optional[str] = None,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
    ) -> Treatment:
        """
        Change a treatment. The date order is checked against the stored value
        of whichever date is not being changed.

        Raises:
            InvalidArgument: Empty description, malformed dates, end before start
            NotFound: Unknown treatment
            PermissionDenied: Actor is not a treating doctor of the patient or an admin
        """
        updates = {}
        if description is not None:
            updates["description"] = self._required_text(description, "Description")
        try:
            if start_date is not None:
                updates["start_date"] = parse_date(start_date)
            if end_date is not None:
                updates["end_date"] = parse_date(end_date)
        except ValueError as e:
            raise InvalidArgument(str(e)) from e

        with storage_errors(self.db):
            treatment = self.repo.get_treatment(self.db, treatment_id)
            if not treatment:
                raise NotFound(f"Treatment {treatment_id} not found")
            self._check_can_treat(actor, treatment.clinical_record.patient_id)

            start = updates.get("start_date", treatment.start_date)
            end = updates.get("end_date", treatment.end_date)
            if start and end and end < start:
                raise InvalidArgument("End date cannot be before start date")

            treatment = self.repo.update(self.db, treatment, **updates)

        logger.info(f"Treatment {treatment_id} updated: {sorted(updates)}")
        return treatment

    def update_prescription(
        self,
        actor: Actor,
        prescription_id: int,
        dosage: Optional[str] = None,
        frequency: Optional[str] = None,
        duration: Optional[str] = None,
    ) -> Prescription:
        """Change dosage, frequency or duration; the medication itself is fixed"""
        updates = {}
        for field, value in (("dosage", dosage), ("frequency", frequency), ("duration", duration)):
            if value is not None:
                updates[field] = self._optional_text(value, PRESCRIPTION_FIELD_MAX_LENGTH)

        with storage_errors(self.db):
            prescription = self.repo.get_prescription(self.db, prescription_id)
            if not prescription:
                raise NotFound(f"Prescription {prescription_id} not found")
            self._check_can_treat(actor, prescription.treatment.clinical_record.patient_id)
            prescription = self.repo.update(self.db, prescription, **updates)

        logger.info(f"Prescription {prescription_id} updated: {sorted(updates)}")
        return prescription

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_clinical_record(self, actor: Actor, record_id: int) -> ClinicalRecord:
        with storage_errors(self.db):
            record = self.repo.get_record(self.db, record_id)
            if not record:
                raise NotFound(f"Clinical record {record_id} not found")
            self._check_can_read(actor, record.patient_id)
            return record

    def get_patient_history(self, actor: Actor, patient_id: int) -> list[ClinicalRecord]:
        """Every record of a patient with treatments and prescriptions, newest first"""
        with storage_errors(self.db):
            if self.profiles.get_patient(patient_id) is None:
                raise InvalidArgument(f"Patient {patient_id} does not exist")
            self._check_can_read(actor, patient_id)
            return self.repo.get_patient_history(self.db, patient_id)

    # ------------------------------------------------------------------
    # Deletion (admins only); children are removed with their parent
    # ------------------------------------------------------------------

    def delete_clinical_record(self, actor: Actor, record_id: int) -> None:
        self._require_admin(actor)
        with storage_errors(self.db):
            record = self.repo.get_record(self.db, record_id)
            if not record:
                raise NotFound(f"Clinical record {record_id} not found")
            treatments = len(record.treatments)
            self.repo.delete(self.db, record)
        logger.info(f"Clinical record {record_id} deleted with {treatments} treatment(s)")

    def delete_treatment(self, actor: Actor, treatment_id: int) -> None:
        self._require_admin(actor)
        with storage_errors(self.db):
            treatment = self.repo.get_treatment(self.db, treatment_id)
            if not treatment:
                raise NotFound(f"Treatment {treatment_id} not found")
            self.repo.delete(self.db, treatment)
        logger.info(f"Treatment {treatment_id} deleted")

    def delete_prescription(self, actor: Actor, prescription_id: int) -> None:
        self._require_admin(actor)
        with storage_errors(self.db):
            prescription = self.repo.get_prescription(self.db, prescription_id)
            if not prescription:
                raise NotFound(f"Prescription {prescription_id} not found")
            self.repo.delete(self.db, prescription)
        logger.info(f"Prescription {prescription_id} deleted")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_can_treat(self, actor: Actor, patient_id: int) -> None:
        """Admins, or a doctor with a non-cancelled appointment with the patient"""
        if actor.is_admin:
            return
        doctor_id = self.profiles.doctor_id_for(actor)
        if doctor_id is not None and self.appointments.doctor_treats_patient(self.db, doctor_id, patient_id):
            return
        raise PermissionDenied("Only a treating doctor can modify this patient's clinical records")

    def _check_can_read(self, actor: Actor, patient_id: int) -> None:
        if actor.role == Role.PATIENT:
            if self.profiles.patient_id_for(actor) == patient_id:
                return
            raise PermissionDenied("Patients can only view their own history")
        self._check_can_treat(actor, patient_id)

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise PermissionDenied("Only administrators can delete clinical data")

    @staticmethod
    def _required_text(value: Optional[str], label: str) -> str:
        try:
            value = clean_text(value)
        except ValueError as e:
            raise InvalidArgument(f"{label}: {e}") from e
        if not value:
            raise InvalidArgument(f"{label} is required")
        return value

    @staticmethod
    def _optional_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
        try:
            return clean_text(value, max_length)
        except ValueError as e:
            raise InvalidArgument(str(e)) from e
