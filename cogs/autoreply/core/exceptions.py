"""
Custom Exceptions for Auto-Reply Module
=======================================

Defines the exception hierarchy shared by the scheduler, backends and
response interpreter.
"""

from typing import Any, Optional


class ChatException(Exception):
    """Base exception for the auto-reply module."""

    def __init__(self, message: str, original_error: Exception = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self):
        if self.original_error:
            return f"{self.message} (Caused by: {self.original_error})"
        return self.message


class ConfigurationException(ChatException):
    """Exception raised for configuration errors. Never retried."""

    def __init__(self, config_key: str, message: str = None):
        self.config_key = config_key
        msg = message or f"Configuration error for key: {config_key}"
        super().__init__(msg)


class ProviderException(ChatException):
    """Exception raised when a backend call fails in transport."""

    def __init__(self, provider_name: str, message: str, original_error: Exception = None):
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}", original_error)


class AdaptersExhaustedException(ProviderException):
    """Every configured backend failed during one turn."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        super().__init__(
            "switcher",
            f"All {attempts} configured backends failed",
            last_error
        )


class ResponseParseException(ChatException):
    """Exception raised when model output cannot be turned into a response."""

    def __init__(self, reason: str, raw_content: str = ""):
        self.reason = reason
        self.raw_content = raw_content
        super().__init__(f"{reason}\nRaw response:\n{raw_content}" if raw_content else reason)


class NumberCoercionException(ResponseParseException):
    """A numeric field held a value that is not a number."""

    def __init__(self, field_name: str, value: Any):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid number value for '{field_name}': {value!r}")
