"""
Error taxonomy for the expense assistant.

Every failure a request can hit maps to one ``ErrorCode``. Routes answer with
the error's ``status_code`` and log its ``code``. Provider failures live in
``providers.base`` and carry ``ErrorCode.UPSTREAM_ERROR``.
"""

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    CONFIG_ERROR = "CONFIG_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    PARSE_ERROR = "PARSE_ERROR"


class AssistantError(Exception):
    """Base exception for errors raised inside the request pipeline."""

    code: ErrorCode = ErrorCode.UPSTREAM_ERROR
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(AssistantError):
    """Raised when the caller's payload does not have the required shape."""

    code = ErrorCode.INVALID_INPUT
    status_code = 400


class ConfigurationError(AssistantError):
    """Raised when a required setting (the OpenRouter API key) is missing."""

    code = ErrorCode.CONFIG_ERROR
    status_code = 500
