"""Clinical domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class ClinicalRecordCreate(BaseModel):
    appointment_id: int
    diagnosis: str
    observations: Optional[str] = None


class TreatmentCreate(BaseModel):
    clinical_record_id: int
    description: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v, info):
        start = info.data.get("start_date")
        if v and start and v < start:
            raise ValueError("End date cannot be before start date")
        return v


class PrescriptionCreate(BaseModel):
    treatment_id: int
    medication_id: int
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None


class ClinicalRecordUpdate(BaseModel):
    diagnosis: Optional[str] = None
    observations: Optional[str] = None


class TreatmentUpdate(BaseModel):
    """Partial update; the date order is checked against stored values by the service"""

    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PrescriptionUpdate(BaseModel):
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None


class PrescriptionResponse(BaseModel):
    id: int
    treatment_id: int
    medication_id: int
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None

    class Config:
        from_attributes = True


class TreatmentResponse(BaseModel):
    id: int
    clinical_record_id: int
    description: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    prescriptions: list[PrescriptionResponse] = []

    class Config:
        from_attributes = True


class ClinicalRecordResponse(BaseModel):
    id: int
    patient_id: int
    appointment_id: Optional[int] = None
    diagnosis: str
    observations: Optional[str] = None
    created_at: Optional[datetime] = None
    treatments: list[TreatmentResponse] = []

    class Config:
        from_attributes = True
