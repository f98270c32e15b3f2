from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from mediconnect.domain.prescriptions.models import PrescriptionStatus


class ProfileSummary(BaseModel):
    id: str
    full_name: Optional[str] = None

    class Config:
        from_attributes = True


class PatientSummary(ProfileSummary):
    cnp: Optional[str] = None


class MedicSummary(ProfileSummary):
    department: Optional[str] = None


class PharmacySummary(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class DispenseRequest(BaseModel):
    pharmacy_id: str
    pharmacist_id: str
    notes: Optional[str] = Field(default=None, max_length=2000)
    idempotency_key: Optional[str] = Field(default=None, max_length=255)


class InvalidateRequest(BaseModel):
    pharmacist_id: str
    reason: str = Field(..., min_length=1, max_length=2000)


class DispensationResponse(BaseModel):
    id: str
    prescription_id: str
    pharmacy_id: str
    pharmacist_id: str
    dose_number: int
    notes: Optional[str] = None
    dispensed_at: datetime
    pharmacist: Optional[ProfileSummary] = None
    pharmacy: Optional[PharmacySummary] = None

    class Config:
        from_attributes = True


class PrescriptionResponse(BaseModel):
    id: str
    patient_id: str
    medic_id: str
    medication_name: str
    dosage: str
    frequency: str
    duration: str
    notes: Optional[str] = None
    prescribed_date: datetime
    total_doses: int
    doses_dispensed: int
    status: PrescriptionStatus
    is_invalidated: bool
    invalidated_at: Optional[datetime] = None
    invalidated_by: Optional[str] = None
    invalidation_reason: Optional[str] = None

    class Config:
        from_attributes = True


class PrescriptionSummary(PrescriptionResponse):
    patient: Optional[PatientSummary] = None
    medic: Optional[MedicSummary] = None


class PrescriptionDetail(PrescriptionSummary):
    dispensations: List[DispensationResponse] = []


class DispensedPrescription(BaseModel):
    id: str
    medication_name: str
    dosage: str
    patient: Optional[PatientSummary] = None

    class Config:
        from_attributes = True


class DispensationHistoryItem(DispensationResponse):
    prescription: Optional[DispensedPrescription] = None


class MedicalHistoryResponse(BaseModel):
    id: str
    patient_id: str
    medic_id: Optional[str] = None
    visit_date: datetime
    diagnosis: Optional[str] = None
    symptoms: Optional[str] = None
    treatment: Optional[str] = None
    notes: Optional[str] = None
    medic: Optional[MedicSummary] = None

    class Config:
        from_attributes = True
