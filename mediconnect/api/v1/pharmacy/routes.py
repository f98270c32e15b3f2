from fastapi import APIRouter, Depends, Header, Query, status
from typing import List, Optional

from mediconnect.api.deps import get_prescription_service
from mediconnect.core.config import settings
from mediconnect.domain.prescriptions.service import PrescriptionService
from mediconnect.api.v1.pharmacy.schemas import (
    DispenseRequest, InvalidateRequest, DispensationResponse, DispensationHistoryItem,
    PrescriptionResponse, PrescriptionSummary, PrescriptionDetail, MedicalHistoryResponse
)

router = APIRouter(tags=["Pharmacist"])


@router.get("/prescriptions", response_model=List[PrescriptionSummary])
async def search_prescriptions(
    patient_cnp: Optional[str] = Query(default=None, max_length=13),
    patient_name: Optional[str] = Query(default=None, max_length=255),
    medication_name: Optional[str] = Query(default=None, max_length=255),
    service: PrescriptionService = Depends(get_prescription_service),
):
    """Active prescriptions that can still be dispensed."""
    prescriptions = await service.search_prescriptions(
        patient_cnp=patient_cnp,
        patient_name=patient_name,
        medication_name=medication_name
    )
    return [PrescriptionSummary.model_validate(p) for p in prescriptions]


@router.get("/prescriptions/{prescription_id}", response_model=PrescriptionDetail)
async def read_prescription(
    prescription_id: str,
    service: PrescriptionService = Depends(get_prescription_service),
):
    prescription = await service.get_prescription(prescription_id)
    return PrescriptionDetail.model_validate(prescription)


@router.post(
    "/prescriptions/{prescription_id}/dispense",
    response_model=DispensationResponse,
    status_code=status.HTTP_201_CREATED
)
async def dispense(
    prescription_id: str,
    request: DispenseRequest,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key", max_length=255),
    service: PrescriptionService = Depends(get_prescription_service),
):
    await service.ensure_pharmacy(request.pharmacy_id)
    await service.ensure_pharmacist(request.pharmacist_id)

    dispensation = await service.dispense(
        prescription_id,
        pharmacy_id=request.pharmacy_id,
        pharmacist_id=request.pharmacist_id,
        notes=request.notes,
        idempotency_key=idempotency_key or request.idempotency_key
    )
    return DispensationResponse.model_validate(dispensation)


@router.post("/prescriptions/{prescription_id}/invalidate", response_model=PrescriptionResponse)
async def invalidate(
    prescription_id: str,
    request: InvalidateRequest,
    service: PrescriptionService = Depends(get_prescription_service),
):
    await service.ensure_pharmacist(request.pharmacist_id)
    prescription = await service.invalidate(prescription_id, request.pharmacist_id, request.reason)
    return PrescriptionResponse.model_validate(prescription)


@router.get("/prescriptions/{prescription_id}/dispensations", response_model=List[DispensationResponse])
async def list_dispensations(
    prescription_id: str,
    service: PrescriptionService = Depends(get_prescription_service),
):
    dispensations = await service.list_dispensations(prescription_id)
    return [DispensationResponse.model_validate(d) for d in dispensations]


@router.get("/patients/{patient_id}/prescriptions", response_model=List[PrescriptionSummary])
async def patient_prescriptions(
    patient_id: str,
    service: PrescriptionService = Depends(get_prescription_service),
):
    prescriptions = await service.get_patient_prescriptions(patient_id)
    return [PrescriptionSummary.model_validate(p) for p in prescriptions]


@router.get("/patients/{patient_id}/medical-history", response_model=List[MedicalHistoryResponse])
async def patient_medical_history(
    patient_id: str,
    service: PrescriptionService = Depends(get_prescription_service),
):
    await service.ensure_patient(patient_id)
    records = await service.get_patient_medical_history(patient_id)
    return [MedicalHistoryResponse.model_validate(r) for r in records]


@router.get("/pharmacies/{pharmacy_id}/dispensations", response_model=List[DispensationHistoryItem])
async def dispensation_history(
    pharmacy_id: str,
    limit: int = Query(default=settings.DISPENSATION_HISTORY_LIMIT, ge=1, le=500),
    service: PrescriptionService = Depends(get_prescription_service),
):
    dispensations = await service.get_dispensation_history(pharmacy_id, limit=limit)
    return [DispensationHistoryItem.model_validate(d) for d in dispensations]
