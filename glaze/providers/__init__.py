"""
Hosted language model layer.

This module provides the Gemini provider, the error taxonomy and the
model-fallback manager shared by the extraction, assistant and insight
services.
"""

from .base import (
    AIProvider,
    AIResponse,
    AuthenticationError,
    MalformedResponseError,
    ModelUnavailableError,
    NetworkError,
    ProviderError,
    RateLimitError,
    RetryBudgetExhaustedError,
    classify_error,
)
from .gemini import GeminiProvider
from .manager import ModelFallbackManager, redact_sensitive_data

__all__ = [
    "AIProvider",
    "AIResponse",
    "AuthenticationError",
    "GeminiProvider",
    "MalformedResponseError",
    "ModelFallbackManager",
    "ModelUnavailableError",
    "NetworkError",
    "ProviderError",
    "RateLimitError",
    "RetryBudgetExhaustedError",
    "classify_error",
    "redact_sensitive_data",
]
