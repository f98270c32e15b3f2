import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from httpx import AsyncClient

from mediconnect.core.exceptions import (
    AIResponseFormatError, ConfigurationError, ExternalServiceError, ValidationError
)
from mediconnect.services import ai_service
from mediconnect.services.ai_service import (
    ChatTurn, Severity, build_chat_contents, build_chat_system_prompt, parse_severity_response
)


pytestmark = pytest.mark.ai

ENDPOINT = "/api/v1/ai/assess-severity"
CHAT = "/api/v1/ai/chat"


class TestParseSeverityResponse:

    @pytest.mark.unit
    def test_plain_json(self):
        result = parse_severity_response('{"severity": "urgent", "details": "Chest pain, call 112."}')
        assert result.severity == Severity.URGENT
        assert result.details == "Chest pain, call 112."

    @pytest.mark.unit
    def test_fenced_json(self):
        text = '```json\n{"severity": "High", "details": "Persistent fever."}\n```'
        assert parse_severity_response(text).severity == Severity.HIGH

    @pytest.mark.unit
    def test_unknown_maps_to_normal(self):
        result = parse_severity_response('{"severity": "unknown", "details": "No symptoms given."}')
        assert result.severity == Severity.NORMAL

    @pytest.mark.unit
    def test_blank_details_get_placeholder(self):
        result = parse_severity_response('{"severity": "low", "details": "  "}')
        assert result.details == "No additional details provided."

    @pytest.mark.unit
    @pytest.mark.parametrize("text", [
        "",
        "The patient seems fine.",
        '{"severity": "critical", "details": "x"}',
        '{"severity": "low"}',
        '{"severity": "low", "details": "x", "confidence": 0.9}',
        '{"severity": 3, "details": "x"}',
        '["low", "x"]',
    ])
    def test_rejects_replies_outside_schema(self, text):
        with pytest.raises(AIResponseFormatError) as exc_info:
            parse_severity_response(text)
        assert exc_info.value.error_code == "AI_RESPONSE_FORMAT_ERROR"


class TestAssessSeverity:

    async def test_blank_reason(self):
        with pytest.raises(ValidationError):
            await ai_service.assess_severity("   ")

    async def test_missing_api_key(self):
        with patch.object(ai_service.settings, "GEMINI_API_KEY", None):
            with pytest.raises(ConfigurationError):
                await ai_service.assess_severity("headache")

    async def test_parses_model_reply(self):
        reply = '{"severity": "normal", "details": "Rest and hydrate."}'
        with patch.object(ai_service, "generate_content", new=AsyncMock(return_value=reply)) as generate:
            result = await ai_service.assess_severity("  mild headache  ")

        assert result.severity == Severity.NORMAL
        assert "mild headache" in generate.await_args.args[0]


class TestAssessSeverityEndpoint:

    async def test_status(self, client: AsyncClient):
        response = await client.get(ENDPOINT)
        assert response.status_code == 200
        assert "POST" in response.json()["message"]

    async def test_missing_reason(self, client: AsyncClient):
        response = await client.post(ENDPOINT, json={"reason": " "})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid input", "message": "Reason for visit is required"}

    async def test_success(self, client: AsyncClient):
        reply = '{"severity": "high", "details": "See a doctor within 24 hours."}'
        with patch.object(ai_service, "generate_content", new=AsyncMock(return_value=reply)):
            response = await client.post(ENDPOINT, json={"reason": "high fever for three days"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["severity"] == "high"
        assert data["message"] == "Severity assessed as high"

    async def test_malformed_reply_degrades_to_normal(self, client: AsyncClient):
        with patch.object(ai_service, "generate_content", new=AsyncMock(return_value="I think it is serious")):
            response = await client.post(ENDPOINT, json={"reason": "back pain"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["severity"] == "normal"
        assert data["error"] == "Assessment failed"

    async def test_provider_outage_degrades_to_normal(self, client: AsyncClient):
        outage = ExternalServiceError(message="External service gemini unavailable")
        with patch.object(ai_service, "generate_content", new=AsyncMock(side_effect=outage)):
            response = await client.post(ENDPOINT, json={"reason": "back pain"})

        assert response.json()["success"] is False
        assert response.json()["severity"] == "normal"

    async def test_not_configured(self, client: AsyncClient):
        with patch.object(ai_service.settings, "GEMINI_API_KEY", None):
            response = await client.post(ENDPOINT, json={"reason": "back pain"})

        data = response.json()
        assert response.status_code == 200
        assert data["success"] is False
        assert data["error"] == "Configuration error"


class TestChatPrompt:

    @pytest.mark.unit
    def test_empty_context(self):
        prompt = build_chat_system_prompt([], [])
        assert "No medical history on file." in prompt
        assert "No active prescriptions." in prompt

    @pytest.mark.unit
    def test_history_roles_map_to_gemini_turns(self):
        history = [ChatTurn(role="user", content="Hi"), ChatTurn(role="assistant", content="Hello!")]

        contents = build_chat_contents("What is Amoxicillin for?", history)

        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[-1]["parts"] == ["What is Amoxicillin for?"]


class TestChatEndpoint:

    @staticmethod
    def fake_model(reply="Take it with food."):
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=MagicMock(text=reply))
        return model

    async def test_missing_message(self, client: AsyncClient, patient):
        response = await client.post(CHAT, json={"message": "  ", "patientId": patient.id})
        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}

    async def test_missing_patient(self, client: AsyncClient):
        response = await client.post(CHAT, json={"message": "Hello"})
        assert response.status_code == 400
        assert response.json() == {"error": "Patient ID is required"}

    async def test_not_configured(self, client: AsyncClient, patient):
        with patch.object(ai_service.settings, "GEMINI_API_KEY", None):
            response = await client.post(CHAT, json={"message": "Hello", "patientId": patient.id})
        assert response.status_code == 500
        assert response.json() == {"error": "AI service not configured"}

    async def test_unknown_patient(self, client: AsyncClient):
        with patch.object(ai_service.settings, "GEMINI_API_KEY", "test-key"):
            response = await client.post(CHAT, json={"message": "Hello", "patientId": "nobody"})
        assert response.status_code == 404
        assert response.json()["error_code"] == "PATIENT_NOT_FOUND"

    async def test_reply_uses_patient_context(self, client: AsyncClient, patient, make_prescription, make_visit):
        await make_prescription(medication_name="Lisinopril", dosage="10mg")
        await make_visit(diagnosis="Hypertension")
        model = self.fake_model()

        with patch.object(ai_service.settings, "GEMINI_API_KEY", "test-key"), \
                patch.object(ai_service.genai, "configure"), \
                patch.object(ai_service.genai, "GenerativeModel", return_value=model) as model_cls:
            response = await client.post(CHAT, json={
                "message": "Why do I take Lisinopril?",
                "patientId": patient.id,
                "conversationHistory": [{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}]
            })

        assert response.status_code == 200
        assert response.json() == {"reply": "Take it with food."}
        system_prompt = model_cls.call_args.kwargs["system_instruction"]
        assert "Lisinopril - 10mg" in system_prompt
        assert "Diagnosis: Hypertension" in system_prompt
        contents = model.generate_content_async.await_args.args[0]
        assert len(contents) == 3

    async def test_provider_failure(self, client: AsyncClient, patient):
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=RuntimeError("quota exceeded"))

        with patch.object(ai_service.settings, "GEMINI_API_KEY", "test-key"), \
                patch.object(ai_service.genai, "configure"), \
                patch.object(ai_service.genai, "GenerativeModel", return_value=model):
            response = await client.post(CHAT, json={"message": "Hello", "patientId": patient.id})

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process chat message"
