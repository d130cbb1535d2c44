"""
Base classes for the LLM provider layer.

This module defines the interface the assistant pipeline talks to and the
errors a provider may raise.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..errors import ErrorCode


@dataclass
class AIResponse:
    """
    Standardized response structure from AI providers.

    Attributes:
        content: The text content returned by the AI model
        model: The model identifier used for the request
        provider: The provider name (e.g., 'openrouter')
        usage: Token usage statistics (input_tokens, output_tokens)
        latency_ms: Request latency in milliseconds
    """
    content: str
    model: str
    provider: str
    usage: dict[str, int] | None = None
    latency_ms: float = 0.0


class AIProvider(ABC):
    """
    Abstract base class for chat-completion providers.

    The pipeline only depends on this interface, so tests can swap in a fake
    provider without touching the network.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AIResponse:
        """
        Send a chat completion request to the AI provider.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Optional model override (uses default if not specified)
            temperature: Sampling temperature (0.0 to 1.0)
            max_tokens: Maximum tokens in the response

        Returns:
            AIResponse with the model's response and metadata

        Raises:
            ProviderError: If the request fails
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name identifier."""
        pass


class ProviderError(Exception):
    """Base exception for provider-related errors."""

    code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(ProviderError):
    """Raised when authentication fails (invalid API key, expired token)."""
    pass


class RateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        provider: str,
        retry_after: float | None = None,
        detail: Any = None,
    ):
        super().__init__(message, provider, status_code=429, detail=detail)
        self.retry_after = retry_after


class QuotaExceededError(ProviderError):
    """Raised when quota/credits are exhausted."""
    pass
