import json
import re
from enum import Enum
from typing import Any, Iterable, List, Optional

import google.generativeai as genai
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from mediconnect.core.config import settings
from mediconnect.core.exceptions import (
    AIResponseFormatError, ConfigurationError, ExternalServiceError, ValidationError
)

# Bumped whenever the reply schema below changes
SEVERITY_SCHEMA_VERSION = "1"

SEVERITY_PROMPT = """Assess the severity of the provided symptoms. Respond with a JSON object containing:
- "severity": one of "low", "normal", "high", or "urgent"
- "details": concise reasoning for the severity selection and a brief treatment plan to follow until a medical appointment (maximum 30 words)

If symptoms are empty or invalid, output:
{{"severity": "unknown", "details": "Explanation of why severity can't be assessed."}}

Patient's symptoms: {reason}"""

_FENCED_JSON = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.DOTALL)


class Severity(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class _SeverityReply(BaseModel):
    """Wire shape of the model's reply"""
    model_config = ConfigDict(extra="forbid", strict=True)

    severity: str
    details: str


class SeverityAssessment(BaseModel):
    severity: Severity
    details: str


def parse_severity_response(text: str) -> SeverityAssessment:
    """Parse a severity reply. Anything outside the schema raises AIResponseFormatError."""
    if not isinstance(text, str) or not text.strip():
        raise AIResponseFormatError("Empty AI response")

    body = text.strip()
    fenced = _FENCED_JSON.match(body)
    if fenced:
        body = fenced.group("body")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise AIResponseFormatError("AI response is not valid JSON", details={"error": str(e)}) from e

    try:
        reply = _SeverityReply.model_validate(payload)
    except PydanticValidationError as e:
        raise AIResponseFormatError(
            "AI response does not match the severity schema",
            details={"schema_version": SEVERITY_SCHEMA_VERSION, "errors": e.errors(include_url=False)}
        ) from e

    label = reply.severity.strip().lower()
    if label == "unknown":
        label = Severity.NORMAL.value
    try:
        severity = Severity(label)
    except ValueError as e:
        raise AIResponseFormatError(
            "AI response has an unsupported severity",
            details={"schema_version": SEVERITY_SCHEMA_VERSION, "severity": reply.severity}
        ) from e

    details = reply.details.strip() or "No additional details provided."
    return SeverityAssessment(severity=severity, details=details)


def _get_model(system_instruction: Optional[str] = None) -> genai.GenerativeModel:
    if not settings.GEMINI_API_KEY:
        raise ConfigurationError("AI service not configured")

    genai.configure(api_key=settings.GEMINI_API_KEY)
    return genai.GenerativeModel(settings.GEMINI_MODEL, system_instruction=system_instruction)


async def generate_content(prompt: str) -> str:
    """
    Generates content using Gemini model.
    """
    model = _get_model()
    try:
        response = await model.generate_content_async(
            prompt,
            generation_config={"response_mime_type": "application/json"}
        )
        return response.text
    except Exception as e:
        logger.error(f"Gemini generation error: {e}")
        raise ExternalServiceError(
            message="External service gemini unavailable",
            details={"service_name": "gemini", "original_error": str(e)}
        ) from e


async def assess_severity(reason: str) -> SeverityAssessment:
    """
    Triage the reason for a visit into a severity level.
    """
    if not reason or not reason.strip():
        raise ValidationError("Reason for visit is required", details={"field": "reason"})

    content = await generate_content(SEVERITY_PROMPT.format(reason=reason.strip()))
    try:
        return parse_severity_response(content)
    except AIResponseFormatError:
        logger.warning(f"Rejected severity reply: {content[:200]!r}")
        raise


CHAT_SYSTEM_PROMPT = """You are MediConnect AI, a helpful medical assistant. You provide health information and support to patients.

IMPORTANT GUIDELINES:
- Always be empathetic, professional, and supportive
- Provide CLEAR, CONCISE responses (maximum 3-4 sentences)
- Use simple, everyday language - avoid medical jargon
- NEVER diagnose conditions - always recommend consulting with healthcare providers
- Help patients understand their medical records and prescriptions
- Encourage patients to seek professional medical help for concerning symptoms

PATIENT'S MEDICAL CONTEXT:
"""

CHAT_CLOSING = """
When the patient asks about their medical information, reference this context.
If asked about specific medications, explain their purpose and remind them to follow their doctor's instructions.
Always maintain patient privacy and confidentiality."""


class ChatTurn(BaseModel):
    role: str
    content: str


def _format_date(value: Any) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else "N/A"


def build_chat_system_prompt(medical_history: Iterable[Any], prescriptions: Iterable[Any]) -> str:
    """Render the patient's recent visits and active prescriptions into the system prompt."""
    lines = [CHAT_SYSTEM_PROMPT]

    visits = list(medical_history)
    if visits:
        lines.append("Recent Medical History:")
        for index, record in enumerate(visits, start=1):
            lines.append(
                f"{index}. Date: {_format_date(record.visit_date)}\n"
                f"   Diagnosis: {record.diagnosis or 'N/A'}\n"
                f"   Symptoms: {record.symptoms or 'N/A'}\n"
                f"   Treatment: {record.treatment or 'N/A'}\n"
                f"   Notes: {record.notes or 'N/A'}\n"
            )
    else:
        lines.append("No medical history on file.")

    active = list(prescriptions)
    if active:
        lines.append("Active Prescriptions:")
        for index, prescription in enumerate(active, start=1):
            lines.append(
                f"{index}. {prescription.medication_name} - {prescription.dosage}\n"
                f"   Frequency: {prescription.frequency}\n"
                f"   Duration: {prescription.duration or 'Ongoing'}\n"
                f"   Instructions: {prescription.notes or 'N/A'}\n"
                f"   Prescribed: {_format_date(prescription.prescribed_date)}\n"
            )
    else:
        lines.append("No active prescriptions.")

    lines.append(CHAT_CLOSING)
    return "\n".join(lines)


def build_chat_contents(message: str, history: Iterable[ChatTurn]) -> List[dict]:
    # Gemini only knows "user" and "model" turns
    contents = [
        {"role": "user" if turn.role == "user" else "model", "parts": [turn.content]}
        for turn in history
        if turn.content
    ]
    contents.append({"role": "user", "parts": [message]})
    return contents


async def chat(
    message: str,
    history: Iterable[ChatTurn],
    medical_history: Iterable[Any],
    prescriptions: Iterable[Any]
) -> str:
    """
    Answer a patient's message with their medical context in the system prompt.
    """
    if not message or not message.strip():
        raise ValidationError("Message is required", details={"field": "message"})

    model = _get_model(system_instruction=build_chat_system_prompt(medical_history, prescriptions))
    try:
        response = await model.generate_content_async(build_chat_contents(message.strip(), history))
        return response.text
    except Exception as e:
        logger.error(f"Gemini chat error: {e}")
        raise ExternalServiceError(
            message="External service gemini unavailable",
            details={"service_name": "gemini", "original_error": str(e)}
        ) from e
