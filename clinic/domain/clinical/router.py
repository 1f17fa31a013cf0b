"""Clinical router - FastAPI endpoints for the record → treatment → prescription chain"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from .schemas import (
    ClinicalRecordCreate,
    ClinicalRecordResponse,
    ClinicalRecordUpdate,
    PrescriptionCreate,
    PrescriptionResponse,
    PrescriptionUpdate,
    TreatmentCreate,
    TreatmentResponse,
    TreatmentUpdate,
)
from .service import ClinicalService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Clinical"])


def get_clinical_service(db: Session = Depends(get_db)) -> ClinicalService:
    """Dependency injection for ClinicalService"""
    return ClinicalService(db)


# ============================================================================
# CLINICAL RECORDS
# ============================================================================


@router.post("/clinical-records", response_model=ClinicalRecordResponse, status_code=201)
def create_clinical_record(
    data: ClinicalRecordCreate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    """Record diagnosis and observations for a completed appointment"""
    return service.create_clinical_record(actor, data.appointment_id, data.diagnosis, data.observations)


@router.get("/clinical-records/{record_id}", response_model=ClinicalRecordResponse)
async def get_clinical_record(
    record_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return service.get_clinical_record(actor, record_id)


@router.patch("/clinical-records/{record_id}", response_model=ClinicalRecordResponse)
def update_clinical_record(
    record_id: int,
    data: ClinicalRecordUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return service.update_clinical_record(actor, record_id, data.diagnosis, data.observations)


@router.delete("/clinical-records/{record_id}")
def delete_clinical_record(
    record_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    """Delete a record together with its treatments and prescriptions"""
    service.delete_clinical_record(actor, record_id)
    return {"message": "Clinical record deleted"}


@router.get("/patients/{patient_id}/history", response_model=list[ClinicalRecordResponse])
async def get_patient_history(
    patient_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    """Full clinical history of a patient"""
    return service.get_patient_history(actor, patient_id)


# ============================================================================
# TREATMENTS AND PRESCRIPTIONS
# ============================================================================


@router.post("/treatments", response_model=TreatmentResponse, status_code=201)
def create_treatment(
    data: TreatmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return service.create_treatment(
        actor, data.clinical_record_id, data.description, data.start_date, data.end_date
    )


@router.patch("/treatments/{treatment_id}", response_model=TreatmentResponse)
def update_treatment(
    treatment_id: int,
    data: TreatmentUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    """Change description or dates; omitted fields keep their value"""
    return service.update_treatment(
        actor, treatment_id, data.description, data.start_date, data.end_date
    )


@router.delete("/treatments/{treatment_id}")
def delete_treatment(
    treatment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    service.delete_treatment(actor, treatment_id)
    return {"message": "Treatment deleted"}


@router.post("/prescriptions", response_model=PrescriptionResponse, status_code=201)
def create_prescription(
    data: PrescriptionCreate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return service.create_prescription(
        actor, data.treatment_id, data.medication_id, data.dosage, data.frequency, data.duration
    )


@router.patch("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
def update_prescription(
    prescription_id: int,
    data: PrescriptionUpdate,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    return service.update_prescription(
        actor, prescription_id, data.dosage, data.frequency, data.duration
    )


@router.delete("/prescriptions/{prescription_id}")
def delete_prescription(
    prescription_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ClinicalService = Depends(get_clinical_service),
):
    service.delete_prescription(actor, prescription_id)
    return {"message": "Prescription deleted"}
