"""AI service for structured text generation using Google GenAI."""

import logging
from typing import Optional

from google.genai import Client
from google.genai import types

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Raised when the text-generation service cannot produce a response."""

    pass


class AIService:
    """Thin wrapper around the Gemini client used by the script generator."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-3-flash-preview",
    ):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key
            model_name: Gemini model to use
        """
        self.api_key = api_key
        self.model_name = model_name
        self.client = Client(api_key=api_key)

        logger.info(f"Initialized AI service with model: {model_name}")

    def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.8,
        max_output_tokens: int = 1024,
    ) -> str:
        """Request a JSON response from Gemini.

        Args:
            prompt: User prompt
            system_instruction: Optional role/system instruction
            temperature: Sampling temperature
            max_output_tokens: Upper bound on the response length

        Returns:
            Raw response text (expected to be JSON, possibly fenced)

        Raises:
            AIServiceError: If the call fails or the response is empty
        """
        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    temperature=temperature,
                    max_output_tokens=max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except Exception as e:
            raise AIServiceError(f"Gemini request failed: {e}") from e

        if not response.text:
            raise AIServiceError("Empty AI response")

        return response.text
