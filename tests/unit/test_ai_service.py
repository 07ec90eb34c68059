"""Unit tests for AIService with the Gemini client mocked."""

from unittest.mock import Mock, patch

import pytest

from services.ai_service import AIService, AIServiceError


@pytest.fixture
def ai_service():
    """Create an AIService whose Gemini client is a Mock."""
    with patch("services.ai_service.Client") as client_cls:
        service = AIService(api_key="test_key")
        service.client = client_cls.return_value
        yield service


def test_generate_json_returns_response_text(ai_service):
    ai_service.client.models.generate_content.return_value = Mock(text='{"segments": []}')

    result = ai_service.generate_json("prompt", system_instruction="system", temperature=0.3)

    assert result == '{"segments": []}'
    kwargs = ai_service.client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-3-flash-preview"
    assert kwargs["contents"] == "prompt"
    assert kwargs["config"].response_mime_type == "application/json"
    assert kwargs["config"].temperature == 0.3


def test_generate_json_empty_response_raises(ai_service):
    ai_service.client.models.generate_content.return_value = Mock(text="")

    with pytest.raises(AIServiceError, match="Empty"):
        ai_service.generate_json("prompt")


def test_generate_json_wraps_client_errors(ai_service):
    ai_service.client.models.generate_content.side_effect = RuntimeError("quota")

    with pytest.raises(AIServiceError, match="quota"):
        ai_service.generate_json("prompt")
