"""
Expense assistant pipeline.

``ExpenseAssistant`` ties the prompt builders, the LLM provider and the
response shaper together for one request. It handles:
- Provider creation from the explicit Settings object
- Request/response logging with secret redaction in debug mode
- The Q&A and expense-extraction flows
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from loguru import logger

from .config import Settings
from .errors import ConfigurationError
from .prompts import build_analysis_messages, build_extraction_messages
from .providers.base import AIProvider, AIResponse, ProviderError
from .providers.openrouter import OpenRouterProvider
from .schemas import AddExpenseResponse, AnalyzeResponse, Expense
from .shaping import DecodeResult, decode_extraction, normalize_expense_data, summarize_expenses

API_KEY_MISSING_MESSAGE = "OpenRouter API key not configured"
EMPTY_ANSWER_FALLBACK = "Unable to process your question."
PARSE_FAILURE_ANSWER = "Sorry, I couldn't understand that. Please try rephrasing your expense."

# Sampling parameters per mode; extraction favors deterministic output
ANALYSIS_TEMPERATURE = 0.7
ANALYSIS_MAX_TOKENS = 500
EXTRACTION_TEMPERATURE = 0.3
EXTRACTION_MAX_TOKENS = 300

# Patterns for redacting sensitive data in logs
SENSITIVE_PATTERNS = [
    (re.compile(r'(api[_-]?key|apikey|authorization|bearer|token|secret|password|credential)["\']?\s*[:=]\s*["\']?([^"\'\s,}\]]+)', re.IGNORECASE), r'\1: [REDACTED]'),
    (re.compile(r'(sk-[a-zA-Z0-9-]{20,})', re.IGNORECASE), '[REDACTED_API_KEY]'),
    (re.compile(r'(Bearer\s+)[^\s"\']+', re.IGNORECASE), r'\1[REDACTED]'),
]


def redact_sensitive_data(data: Any) -> Any:
    """
    Redact sensitive information from data for safe logging.

    Args:
        data: Data to redact (can be dict, list, or string)

    Returns:
        Data with sensitive information redacted
    """
    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            lower_key = str(key).lower()
            if any(sensitive in lower_key for sensitive in ['api_key', 'apikey', 'secret', 'password', 'token', 'authorization', 'credential']):
                redacted[key] = '[REDACTED]'
            else:
                redacted[key] = redact_sensitive_data(value)
        return redacted
    elif isinstance(data, list):
        return [redact_sensitive_data(item) for item in data]
    elif isinstance(data, str):
        result = data
        for pattern, replacement in SENSITIVE_PATTERNS:
            result = pattern.sub(replacement, result)
        return result
    else:
        return data


@dataclass
class ExtractionResult:
    """Decoded model reply plus the body to send back to the caller."""
    decoded: DecodeResult
    response: AddExpenseResponse

    @property
    def parsed(self) -> bool:
        return self.decoded.ok


class ExpenseAssistant:
    """
    Runs the prompt → LLM → shaping pipeline for both assistant modes.

    Attributes:
        settings: The application settings
        provider: The chat-completion provider, None when no API key is set
    """

    def __init__(
        self,
        settings: Settings,
        provider: AIProvider | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self.settings = settings
        self._clock = clock
        self._debug_logging = settings.ai_debug_logging
        if provider is None and settings.has_api_key:
            provider = OpenRouterProvider(
                api_key=settings.openrouter_api_key,
                base_url=settings.openrouter_base_url,
                model=settings.openrouter_model,
                timeout=settings.ai_timeout,
                referer=settings.openrouter_referer,
                title=settings.openrouter_app_title,
            )
        self.provider = provider

    @property
    def is_configured(self) -> bool:
        return self.provider is not None

    def _require_provider(self) -> AIProvider:
        if self.provider is None:
            raise ConfigurationError(API_KEY_MISSING_MESSAGE)
        return self.provider

    async def analyze(self, question: str, expenses: Sequence[Expense]) -> AnalyzeResponse:
        """Answer a free-form question about the caller's expenses."""
        provider = self._require_provider()
        messages = build_analysis_messages(
            question, expenses, currency=self.settings.currency_symbol
        )
        response = await self._complete(
            provider,
            messages,
            temperature=ANALYSIS_TEMPERATURE,
            max_tokens=ANALYSIS_MAX_TOKENS,
            mode="analyze",
        )
        return AnalyzeResponse(
            answer=response.content or EMPTY_ANSWER_FALLBACK,
            summary=summarize_expenses(expenses),
        )

    async def add_expense(
        self,
        text: str,
        available_categories: Sequence[str],
        recent_expenses: Sequence[Expense] | None = None,
    ) -> ExtractionResult:
        """Turn a natural-language command into a normalized expense record."""
        provider = self._require_provider()
        today = self._clock()
        messages = build_extraction_messages(
            text,
            available_categories,
            recent_expenses=recent_expenses,
            currency=self.settings.currency_symbol,
            today=today,
        )
        response = await self._complete(
            provider,
            messages,
            temperature=EXTRACTION_TEMPERATURE,
            max_tokens=EXTRACTION_MAX_TOKENS,
            mode="add_expense",
        )

        decoded = decode_extraction(response.content)
        if decoded.status == "unparsable":
            logger.warning(
                "Model reply could not be parsed as expense data",
                error_code=decoded.error_code,
                error=decoded.error,
                response_length=len(response.content),
            )
            body = AddExpenseResponse(answer=PARSE_FAILURE_ANSWER, expense_data=None)
        elif decoded.status == "not_expense":
            logger.info("Model reported input is not an expense")
            body = AddExpenseResponse(answer=decoded.answer, expense_data=None)
        else:
            body = AddExpenseResponse(
                answer=decoded.answer,
                expense_data=normalize_expense_data(
                    decoded.expense_data, available_categories, today=today
                ),
            )
        return ExtractionResult(decoded=decoded, response=body)

    async def _complete(
        self,
        provider: AIProvider,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
        mode: str,
    ) -> AIResponse:
        request_timestamp = self._log_request(provider, messages, temperature, max_tokens, mode)
        try:
            response = await provider.chat_completion(
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except ProviderError as e:
            elapsed_ms = (datetime.now(timezone.utc) - request_timestamp).total_seconds() * 1000
            logger.error(
                "AI request failed",
                provider=provider.name,
                mode=mode,
                error_type=type(e).__name__,
                error_code=e.code,
                error_message=str(e),
                status_code=e.status_code,
                detail=e.detail,
                retry_after=getattr(e, "retry_after", None),
                elapsed_ms=round(elapsed_ms, 2),
            )
            raise
        self._log_response(response, request_timestamp, mode)
        return response

    def _log_request(
        self,
        provider: AIProvider,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
        mode: str,
    ) -> datetime:
        timestamp = datetime.now(timezone.utc)
        logger.info(
            "AI request started",
            provider=provider.name,
            model=self.settings.openrouter_model,
            mode=mode,
            timestamp=timestamp.isoformat(),
            message_count=len(messages),
        )
        if self._debug_logging:
            logger.debug(
                "AI request payload",
                provider=provider.name,
                messages=redact_sensitive_data(messages),
                temperature=temperature,
                max_tokens=max_tokens,
            )
        return timestamp

    def _log_response(
        self,
        response: AIResponse,
        request_timestamp: datetime,
        mode: str,
    ) -> None:
        response_time_ms = (datetime.now(timezone.utc) - request_timestamp).total_seconds() * 1000
        log_data: dict[str, Any] = {
            "provider": response.provider,
            "model": response.model,
            "mode": mode,
            "response_time_ms": round(response_time_ms, 2),
            "latency_ms": round(response.latency_ms, 2),
        }
        if response.usage:
            log_data["input_tokens"] = response.usage.get("input_tokens", 0)
            log_data["output_tokens"] = response.usage.get("output_tokens", 0)
        logger.info("AI response received", **log_data)

        if self._debug_logging:
            content = response.content
            logger.debug(
                "AI response payload",
                **redact_sensitive_data({
                    "content": content[:500] + "..." if len(content) > 500 else content,
                    "model": response.model,
                }),
            )
