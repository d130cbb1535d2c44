"""
LLM provider layer.

The assistant talks to a single OpenRouter chat-completion endpoint through
the ``AIProvider`` interface.
"""

from .base import (
    AIProvider,
    AIResponse,
    AuthenticationError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
)
from .openrouter import OpenRouterProvider

__all__ = [
    "AIProvider",
    "AIResponse",
    "AuthenticationError",
    "OpenRouterProvider",
    "ProviderError",
    "QuotaExceededError",
    "RateLimitError",
]
