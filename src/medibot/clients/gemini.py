"""
Gemini client implementation.

This module provides a concrete implementation of the BaseAIClient interface
for Google's Gemini ``generateContent`` REST endpoint.
"""

import logging
from typing import Any

import httpx

from ..config.settings import GenerationSettings
from ..core.models import TranscriptEntry
from .base import (
    NO_VALID_RESPONSE,
    BaseAIClient,
    ProviderConnectionError,
    ProviderHTTPError,
    ProviderResponseError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.0-flash"


class GeminiClient(BaseAIClient):
    """
    Gemini client implementing the BaseAIClient interface.

    Every request carries the same generation config and safety settings.
    Failures are never retried.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        generation: GenerationSettings | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__("gemini", api_key)

        if not api_key:
            raise ValueError("Gemini API key is required")

        self.model = model
        self.base_url = base_url.rstrip("/")
        self.generation = generation or GenerationSettings()

        self._http_client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    def build_payload(self, transcript: list[TranscriptEntry]) -> dict[str, Any]:
        """Build the generateContent request body."""
        return {
            "contents": [entry.model_dump(mode="json") for entry in transcript],
            "generationConfig": {
                "temperature": self.generation.temperature,
                "maxOutputTokens": self.generation.max_output_tokens,
                "topP": self.generation.top_p,
                "topK": self.generation.top_k,
            },
            "safetySettings": [
                {
                    "category": self.generation.safety_category,
                    "threshold": self.generation.safety_threshold,
                }
            ],
        }

    async def complete(self, transcript: list[TranscriptEntry]) -> str:
        """
        Execute a completion via the Gemini API.

        Args:
            transcript: Ordered transcript entries

        Returns:
            First candidate's first text part, or the fallback sentinel

        Raises:
            ProviderError: API, transport or decoding errors
        """
        payload = self.build_payload(transcript)
        logger.debug(
            f"Requesting completion from {self.model} with {len(transcript)} entries"
        )

        try:
            response = await self._http_client.post(
                self.endpoint, params={"key": self.api_key}, json=payload
            )
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {type(e).__name__}")
            raise ProviderConnectionError(
                f"AI API request failed: {e}",
                provider=self.provider_name,
                model=self.model,
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            body = response.text
            logger.error(f"Gemini returned status {response.status_code}")
            raise ProviderHTTPError(
                f"AI API returned non-OK status {response.status_code}: {body}",
                provider=self.provider_name,
                status_code=response.status_code,
                body=body,
                model=self.model,
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"Failed to decode Gemini API response: {e}",
                provider=self.provider_name,
                model=self.model,
            ) from e

        return self._extract_text(data)

    def _extract_text(self, data: Any) -> str:
        """
        Pull the first candidate's first text part out of a response.

        Missing candidates, content, parts or text give the fallback sentinel.
        Any of them present with the wrong JSON type is a ProviderResponseError.
        """
        candidates = self._expect(data, dict, "response").get("candidates")
        if not candidates:
            logger.warning("Gemini returned no candidates")
            return NO_VALID_RESPONSE

        candidate = self._expect(self._expect(candidates, list, "candidates")[0], dict, "candidate")
        content = candidate.get("content")
        parts = self._expect(content, dict, "candidate content").get("parts") if content else None
        if not parts:
            logger.warning("Gemini candidate has no content parts")
            return NO_VALID_RESPONSE

        part = self._expect(self._expect(parts, list, "content parts")[0], dict, "content part")
        if "text" not in part:
            logger.warning("Gemini content part carries no text")
            return NO_VALID_RESPONSE
        return self._expect(part["text"], str, "part text")

    def _expect(self, value: Any, expected: type, what: str) -> Any:
        if not isinstance(value, expected):
            raise ProviderResponseError(
                f"Unexpected Gemini response shape: {what} is {type(value).__name__}, "
                f"expected {expected.__name__}",
                provider=self.provider_name,
                model=self.model,
            )
        return value

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()
