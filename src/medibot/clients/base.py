"""
Abstract base client interface for generative-AI providers.

This module defines the interface the orchestrator talks to, along with the
error types a provider failure is reported as.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from ..core.models import TranscriptEntry

logger = logging.getLogger(__name__)

NO_VALID_RESPONSE = "AI did not provide a valid response."


class ClientError(Exception):
    """Base exception for client errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.provider = provider
        self.model = model
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"{self.provider}: {self.message}"]
        if self.model:
            parts.append(f"Model: {self.model}")
        return " | ".join(parts)


class ProviderError(ClientError):
    """The AI provider could not produce a completion."""

    pass


class ProviderConnectionError(ProviderError):
    """The provider could not be reached."""

    pass


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-success status."""

    def __init__(
        self, message: str, provider: str, status_code: int, body: str, **kwargs: Any
    ) -> None:
        super().__init__(message, provider, **kwargs)
        self.status_code = status_code
        self.body = body


class ProviderResponseError(ProviderError):
    """The provider's response body could not be decoded or has an unexpected shape."""

    pass


class BaseAIClient(ABC):
    """
    Abstract base client for AI providers.

    A client accepts an ordered transcript and returns generated reply text.
    Generation parameters are fixed at construction time.
    """

    def __init__(self, provider_name: str, api_key: str | None = None) -> None:
        self.provider_name = provider_name
        self.api_key = api_key

        logger.info(f"Initialized {self.provider_name} client")

    @abstractmethod
    async def complete(self, transcript: list[TranscriptEntry]) -> str:
        """
        Request a completion for a transcript.

        Args:
            transcript: Ordered role-tagged entries, oldest first

        Returns:
            Text of the first candidate, or NO_VALID_RESPONSE when the
            provider returned no usable candidate

        Raises:
            ProviderError: Transport failure, non-success status or
                undecodable response
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        pass

    async def __aenter__(self) -> "BaseAIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider='{self.provider_name}')"
