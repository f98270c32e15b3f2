from typing import Any, List, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from mediconnect.api.deps import get_prescription_service
from mediconnect.core.config import settings
from mediconnect.core.exceptions import ConfigurationError, ExternalServiceError, create_error_response
from mediconnect.domain.prescriptions.service import PrescriptionService
from mediconnect.services import ai_service

router = APIRouter()

FALLBACK_SEVERITY = ai_service.Severity.NORMAL


class SeverityRequest(BaseModel):
    reason: Optional[str] = None


class SeverityResponse(BaseModel):
    success: bool
    severity: ai_service.Severity
    details: str
    message: str
    error: Optional[str] = None


@router.get("/assess-severity")
async def severity_status() -> Any:
    return {"message": "API is running. Please use POST to assess severity."}


@router.post("/assess-severity", response_model=SeverityResponse)
async def assess_severity(request: SeverityRequest) -> Any:
    """
    Triage the reason for a visit. Failures degrade to normal severity so the
    appointment request can still go through.
    """
    if not request.reason or not request.reason.strip():
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid input", "message": "Reason for visit is required"}
        )

    try:
        assessment = await ai_service.assess_severity(request.reason)
    except ConfigurationError:
        logger.error("Severity assessment requested but AI service is not configured")
        return SeverityResponse(
            success=False,
            severity=FALLBACK_SEVERITY,
            details="AI service not configured.",
            message="AI service not configured. Defaulting to normal severity.",
            error="Configuration error"
        )
    except ExternalServiceError as e:
        logger.warning(f"Severity assessment failed: {create_error_response(e)}")
        return SeverityResponse(
            success=False,
            severity=FALLBACK_SEVERITY,
            details="AI service temporarily unavailable. Please proceed with your appointment request.",
            message="Failed to assess severity. Defaulting to normal.",
            error="Assessment failed"
        )

    return SeverityResponse(
        success=True,
        severity=assessment.severity,
        details=assessment.details,
        message=f"Severity assessed as {assessment.severity.value}"
    )


class ChatRequest(BaseModel):
    message: Optional[str] = None
    patient_id: Optional[str] = Field(default=None, alias="patientId")
    conversation_history: List[ai_service.ChatTurn] = Field(default_factory=list, alias="conversationHistory")

    class Config:
        populate_by_name = True


class ChatResponse(BaseModel):
    reply: str


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    """
    Patient chat assistant grounded in the patient's visits and active prescriptions.
    """
    if not request.message or not request.message.strip():
        return JSONResponse(status_code=400, content={"error": "Message is required"})
    if not request.patient_id:
        return JSONResponse(status_code=400, content={"error": "Patient ID is required"})
    if not settings.GEMINI_API_KEY:
        return JSONResponse(status_code=500, content={"error": "AI service not configured"})

    context = await service.get_patient_medical_context(request.patient_id)
    try:
        reply = await ai_service.chat(
            request.message,
            request.conversation_history,
            medical_history=context["medical_history"],
            prescriptions=context["prescriptions"]
        )
    except ExternalServiceError as e:
        logger.warning(f"Chat failed for patient {request.patient_id}: {create_error_response(e)}")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process chat message", "details": e.message}
        )

    return ChatResponse(reply=reply)
