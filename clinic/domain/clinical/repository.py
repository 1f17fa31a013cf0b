"""Clinical repository - Database operations for records, treatments and prescriptions"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import ClinicalRecord, Prescription, Treatment


class ClinicalRepository:
    """Repository for the clinical record → treatment → prescription chain"""

    @staticmethod
    def get_record(db: Session, record_id: int) -> Optional[ClinicalRecord]:
        """Get a record with its treatments and their prescriptions loaded"""
        return (
            db.query(ClinicalRecord)
            .options(selectinload(ClinicalRecord.treatments).selectinload(Treatment.prescriptions))
            .filter(ClinicalRecord.id == record_id)
            .first()
        )

    @staticmethod
    def get_record_for_appointment(db: Session, appointment_id: int) -> Optional[ClinicalRecord]:
        return db.query(ClinicalRecord).filter(ClinicalRecord.appointment_id == appointment_id).first()

    @staticmethod
    def get_patient_history(db: Session, patient_id: int) -> list[ClinicalRecord]:
        """All records of a patient, newest first"""
        return (
            db.query(ClinicalRecord)
            .options(selectinload(ClinicalRecord.treatments).selectinload(Treatment.prescriptions))
            .filter(ClinicalRecord.patient_id == patient_id)
            .order_by(ClinicalRecord.created_at.desc(), ClinicalRecord.id.desc())
            .all()
        )

    @staticmethod
    def get_treatment(db: Session, treatment_id: int) -> Optional[Treatment]:
        return db.query(Treatment).filter(Treatment.id == treatment_id).first()

    @staticmethod
    def get_prescription(db: Session, prescription_id: int) -> Optional[Prescription]:
        return db.query(Prescription).filter(Prescription.id == prescription_id).first()

    @staticmethod
    def add(db: Session, instance):
        """Insert a record, treatment or prescription.
        Raises IntegrityError if a unique or foreign key constraint rejects it."""
        db.add(instance)
        db.commit()
        db.refresh(instance)
        return instance

    @staticmethod
    def update(db: Session, instance, **updates):
        """Update an instance with the provided fields"""
        for key, value in updates.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        db.commit()
        db.refresh(instance)
        return instance

    @staticmethod
    def delete(db: Session, instance) -> None:
        """Delete an instance; owned children go with it"""
        db.delete(instance)
        db.commit()
