"""
Translation exceptions.

Kept in their own module so providers, the orchestrator and the service
can share them without circular imports.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

PROVIDER_ERROR_PREFIX = "Error in the translation service: "


class TranslationError(Exception):
    """Translation error with optional code and details."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class InvalidSubtitleError(TranslationError):
    """Input is not a valid SRT document."""

    def __init__(self, message: str = "The file does not have a valid SRT format"):
        super().__init__(message, code="invalid_format")


class ProviderError(TranslationError):
    """Provider answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: str = "provider_error",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)
        self.status_code = status_code


class ProviderAuthError(ProviderError):
    """401/403: credentials rejected or access denied."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, code="auth")


class ProviderRateLimitError(ProviderError):
    """429: usage limit exceeded."""

    def __init__(self, message: str, status_code: Optional[int] = 429, retry_after: Optional[float] = None):
        super().__init__(message, status_code=status_code, code="rate_limit")
        self.retry_after = retry_after


class ProviderResponseError(ProviderError):
    """Success status but no usable translation in the body."""

    def __init__(self, message: str = "No translations received", status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, code="protocol")


class ProviderConnectionError(TranslationError):
    """The provider could not be reached."""

    def __init__(self, message: str = "Could not connect to the translation service. Please try again later."):
        super().__init__(message, code="connection")


class TranslationTimeoutError(TranslationError):
    """The whole request ran past its deadline."""

    def __init__(self, timeout: float):
        super().__init__(f"Translation did not finish within {timeout:g}s", code="timeout")
        self.timeout = timeout


def status_error(status_code: int, reason: str = "", retry_after: Optional[float] = None) -> ProviderError:
    """Map a provider HTTP status to the matching exception."""
    if status_code == 401:
        return ProviderAuthError(PROVIDER_ERROR_PREFIX + "Invalid API key", status_code)
    if status_code == 403:
        return ProviderAuthError(PROVIDER_ERROR_PREFIX + "Access denied", status_code)
    if status_code == 429:
        return ProviderRateLimitError(
            PROVIDER_ERROR_PREFIX + "Usage limit exceeded. Please try again later",
            status_code,
            retry_after=retry_after,
        )
    return ProviderError(PROVIDER_ERROR_PREFIX + (reason or f"HTTP {status_code}"), status_code)
