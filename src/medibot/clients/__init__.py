"""
Client implementations for generative-AI providers.

This package exposes the BaseAIClient abstraction and the Gemini client
that implements it.
"""

from ..config.settings import AppSettings, get_settings
from .base import (
    NO_VALID_RESPONSE,
    BaseAIClient,
    ClientError,
    ProviderConnectionError,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
)
from .gemini import GeminiClient

__all__ = [
    "BaseAIClient",
    "ClientError",
    "ProviderError",
    "ProviderConnectionError",
    "ProviderHTTPError",
    "ProviderResponseError",
    "NO_VALID_RESPONSE",
    "GeminiClient",
    "create_client",
]


def create_client(settings: AppSettings | None = None) -> BaseAIClient:
    """
    Create the AI client described by the application settings.

    Args:
        settings: Settings to read; defaults to the global settings

    Returns:
        Configured client instance

    Raises:
        ValueError: If no Gemini API key is configured

    Example:
        >>> client = create_client()
        >>> reply = await client.complete(transcript)
    """
    settings = settings or get_settings()

    if not settings.gemini_api_key:
        raise ValueError("Gemini API key is required but not provided")

    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini.model,
        base_url=settings.gemini.base_url,
        generation=settings.gemini.to_generation_settings(),
        timeout=settings.gemini.timeout,
    )
