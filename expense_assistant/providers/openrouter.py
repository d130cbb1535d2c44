"""
OpenRouter chat-completion provider.

OpenRouter speaks the OpenAI API format: POST /chat/completions with Bearer
token authentication. It additionally accepts the HTTP-Referer and X-Title
attribution headers identifying the calling application.
"""

import time
from typing import Any

import httpx
from loguru import logger

from .base import (
    AIProvider,
    AIResponse,
    AuthenticationError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "gpt-4o-mini"


class OpenRouterProvider(AIProvider):
    """
    AI Provider implementation for the OpenRouter API.

    Attributes:
        api_key: The API key for authentication
        base_url: The API base URL (including the /api/v1 prefix)
        model: The model to use
        timeout: Request timeout in seconds, None to wait indefinitely
        referer: Value for the HTTP-Referer attribution header
        title: Value for the X-Title attribution header
    """

    provider_name = "openrouter"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = 30.0,
        referer: str | None = None,
        title: str | None = None,
    ):
        """
        Initialize the OpenRouter provider.

        Raises:
            AuthenticationError: If api_key is missing or empty
        """
        if not api_key or not api_key.strip():
            raise AuthenticationError(
                message="API key is required for openrouter provider",
                provider=self.provider_name,
            )

        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/") if base_url else DEFAULT_BASE_URL
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self.referer = referer
        self.title = title

    @property
    def name(self) -> str:
        """Return the provider name identifier."""
        return self.provider_name

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return headers

    def _get_endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AIResponse:
        """
        Send a chat completion request to OpenRouter.

        Raises:
            AuthenticationError: If authentication fails
            RateLimitError: If rate limit is exceeded
            QuotaExceededError: If credits are exhausted
            ProviderError: For other API or transport errors
        """
        effective_model = model or self.model
        payload = self.build_request_payload(
            messages=messages,
            model=effective_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        logger.debug(
            "Sending request to OpenRouter",
            model=effective_model,
            base_url=self.base_url,
            message_count=len(messages),
        )

        start_time = time.perf_counter()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self._get_endpoint(),
                    headers=self._get_headers(),
                    json=payload,
                )

                if response.status_code >= 400:
                    self._raise_for_status(response)

                data = response.json()

        except httpx.TimeoutException as e:
            raise ProviderError(
                message=f"openrouter request timed out after {self.timeout}s",
                provider=self.provider_name,
            ) from e
        except httpx.ConnectError as e:
            raise ProviderError(
                message=f"Failed to connect to openrouter at {self.base_url}",
                provider=self.provider_name,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                message=f"openrouter request failed: {e}",
                provider=self.provider_name,
            ) from e
        except ValueError as e:
            raise ProviderError(
                message="openrouter returned a response that is not valid JSON",
                provider=self.provider_name,
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                message="openrouter returned an unexpected response body",
                provider=self.provider_name,
                detail=data,
            )

        latency_ms = (time.perf_counter() - start_time) * 1000

        content = self._extract_content(data)
        usage = self._extract_usage(data)

        logger.debug(
            "OpenRouter response received",
            model=effective_model,
            latency_ms=round(latency_ms, 2),
            response_length=len(content),
            usage=usage,
        )

        return AIResponse(
            content=content,
            model=data.get("model") or effective_model,
            provider=self.provider_name,
            usage=usage,
            latency_ms=latency_ms,
        )

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map an error response to the matching ProviderError subclass."""
        status_code = response.status_code
        detail = self._extract_error_detail(response)
        suffix = f": {detail}" if detail else ""

        if status_code == 401:
            raise AuthenticationError(
                message=f"Authentication failed for openrouter{suffix}",
                provider=self.provider_name,
                status_code=401,
                detail=detail,
            )
        if status_code == 429:
            retry_after = response.headers.get("retry-after")
            try:
                retry_after_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_after_seconds = None
            raise RateLimitError(
                message=f"Rate limit exceeded for openrouter{suffix}",
                provider=self.provider_name,
                retry_after=retry_after_seconds,
                detail=detail,
            )
        if status_code in (402, 403):
            raise QuotaExceededError(
                message=f"Quota exceeded or access denied for openrouter{suffix}",
                provider=self.provider_name,
                status_code=status_code,
                detail=detail,
            )
        raise ProviderError(
            message=f"openrouter returned error: {status_code}{suffix}",
            provider=self.provider_name,
            status_code=status_code,
            detail=detail,
        )

    @staticmethod
    def _extract_error_detail(response: httpx.Response) -> str | None:
        """Pull the provider's error message out of an error body, if any."""
        try:
            error_data = response.json()
        except ValueError:
            text = response.text.strip()
            return text[:500] or None
        if isinstance(error_data, dict):
            error = error_data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
        return None

    def _extract_content(self, data: dict[str, Any]) -> str:
        try:
            choices = data.get("choices") or []
            if choices:
                message = choices[0].get("message") or {}
                return message.get("content") or ""
        except (AttributeError, IndexError, TypeError):
            logger.warning(
                "Failed to extract content from response",
                provider=self.provider_name,
                response_keys=list(data.keys()),
            )
        return ""

    def _extract_usage(self, data: dict[str, Any]) -> dict[str, int] | None:
        usage = data.get("usage")
        if isinstance(usage, dict):
            return {
                "input_tokens": usage.get("prompt_tokens", 0),
                "output_tokens": usage.get("completion_tokens", 0),
            }
        return None

    @staticmethod
    def build_request_payload(
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """
        Build a request payload for the chat completions endpoint.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model name to use
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response

        Returns:
            Dict with the request payload
        """
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }

        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        return payload
