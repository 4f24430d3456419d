"""
Base classes for the hosted language model layer.

This module defines the provider interface, the standardized response
structure and the error taxonomy shared by the extraction, assistant and
insight services.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


# Message fragments that identify a failure class when no status code is known
RATE_LIMIT_PATTERN = re.compile(r"429|quota|rate[ _-]?limit|\brate\b|resource_exhausted", re.IGNORECASE)
MODEL_ERROR_PATTERN = re.compile(r"not found|not supported|unavailable", re.IGNORECASE)


@dataclass
class AIResponse:
    """
    Standardized response structure from a model provider.

    Attributes:
        content: The text content returned by the model
        model: The model identifier used for the request
        provider: The provider name (e.g., 'gemini')
        usage: Token usage statistics (input_tokens, output_tokens)
        latency_ms: Request latency in milliseconds
        raw_response: The original response from the provider (for debugging)
    """
    content: str
    model: str
    provider: str
    usage: dict[str, int] | None = None
    latency_ms: float = 0.0
    raw_response: dict[str, Any] | None = field(default=None, repr=False)


class AIProvider(ABC):
    """
    Abstract base class for hosted model providers.

    Implementations send a single non-streaming generation request and raise
    one of the ``ProviderError`` subclasses below on failure, so that the
    model-fallback manager can decide between switching models, backing off
    or giving up.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AIResponse:
        """
        Send a generation request for the given conversation.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model identifier to use for this request
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
        """Provider name identifier (e.g., 'gemini')."""
        pass


class ProviderError(Exception):
    """Base exception for provider-related errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class AuthenticationError(ProviderError):
    """Raised when authentication fails (missing or invalid API key)."""
    pass


class RateLimitError(ProviderError):
    """Raised when the rate limit or quota is exceeded."""

    def __init__(self, message: str, provider: str, retry_after: float | None = None):
        super().__init__(message, provider, status_code=429, retryable=True)
        self.retry_after = retry_after


class ModelUnavailableError(ProviderError):
    """Raised when the requested model is unknown, unsupported or unavailable."""
    pass


class MalformedResponseError(ProviderError):
    """Raised when the model output is not valid JSON or misses required fields."""

    def __init__(self, message: str, provider: str, content: str | None = None):
        super().__init__(message, provider, retryable=True)
        self.content = content


class NetworkError(ProviderError):
    """Raised on timeouts and connection failures."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, provider, retryable=True)


class RetryBudgetExhaustedError(ProviderError):
    """Raised by the manager when every allowed attempt has failed."""

    def __init__(self, message: str, provider: str, last_error: Exception | None = None):
        super().__init__(message, provider, retryable=False)
        self.last_error = last_error


def classify_error(error: Exception, provider: str = "unknown") -> ProviderError:
    """
    Map an arbitrary exception onto the provider error taxonomy.

    Errors that are already ``ProviderError`` instances of a specific class
    are returned unchanged. Plain ``ProviderError`` instances and foreign
    exceptions are inspected by status code and message keywords.

    Args:
        error: The exception to classify
        provider: Provider name to attach to a newly created error

    Returns:
        A RateLimitError, ModelUnavailableError or the original/general
        ProviderError
    """
    if isinstance(error, ProviderError) and type(error) is not ProviderError:
        return error

    message = str(error)
    status_code = getattr(error, "status_code", None)
    provider = getattr(error, "provider", provider)

    if status_code == 429 or RATE_LIMIT_PATTERN.search(message):
        return RateLimitError(message=message, provider=provider)
    if status_code == 404 or MODEL_ERROR_PATTERN.search(message):
        return ModelUnavailableError(message=message, provider=provider, status_code=status_code)
    if isinstance(error, ProviderError):
        return error
    return ProviderError(message=message, provider=provider, status_code=status_code)
