"""
Model-fallback manager.

This module provides the ModelFallbackManager class that handles:
- The ordered model-fallback list and its cursor
- A rate gate enforcing a minimum spacing between dispatched requests
- Bounded retries with exponential backoff on rate limits and malformed output
- Heuristic fallback when the hosted model cannot produce a result
- Request/response logging with debug mode

One manager is shared by every service talking to the hosted model, so the
rate gate and the model cursor apply across extraction, chat and insights.
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from loguru import logger

from ..config import Settings
from .base import (
    AIProvider,
    AIResponse,
    MalformedResponseError,
    ModelUnavailableError,
    RateLimitError,
    RetryBudgetExhaustedError,
    ProviderError,
    classify_error,
)
from .gemini import GeminiProvider


T = TypeVar("T")

# Patterns for redacting sensitive data in logs
SENSITIVE_PATTERNS = [
    (re.compile(r'(api[_-]?key|apikey|authorization|bearer|token|secret|password|credential)["\']?\s*[:=]\s*["\']?([^"\'\s,}\]]+)', re.IGNORECASE), r'\1: [REDACTED]'),
    (re.compile(r'([?&]key=)[^&\s"\']+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(AIza[0-9A-Za-z_\-]{20,})'), '[REDACTED_API_KEY]'),
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
            lower_key = key.lower()
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


def _last_user_message(messages: list[dict[str, str]]) -> str:
    for msg in reversed(messages):
        if msg.get("role") == "user":
            return msg.get("content", "")
    return ""


class ModelFallbackManager:
    """
    Sends requests to a hosted model with model fallback, rate gating and retries.

    Request policy, per call to ``complete``:
    - Wait on the rate gate, then dispatch to the current model.
    - On a model error or rate limit, switch to the next model in the list
      and retry immediately. Switching does not consume the retry budget.
    - On a rate limit (with no model left to switch to) or a malformed
      response, back off ``2**attempt * backoff_base`` seconds and retry
      while the budget lasts, then raise RetryBudgetExhaustedError.
    - Any other error is raised immediately.

    The cursor never moves back: a model that failed stays skipped for the
    life of the manager.

    Attributes:
        provider: The hosted model provider
        models: Ordered model identifiers, first is preferred
        min_request_interval: Minimum seconds between two dispatches
        max_retries: Retries allowed beyond the first attempt
        backoff_base: Backoff unit in seconds
    """

    def __init__(
        self,
        provider: AIProvider,
        models: list[str],
        min_request_interval: float = 2.0,
        max_retries: int = 2,
        backoff_base: float = 3.0,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        debug_logging: bool = False,
    ):
        """
        Initialize the manager.

        Args:
            provider: Provider used for every request
            models: Model-fallback list, must not be empty
            min_request_interval: Rate gate spacing in seconds
            max_retries: Retry budget beyond the first attempt
            backoff_base: Backoff unit in seconds
            clock: Monotonic clock returning seconds (defaults to time.monotonic)
            sleep: Awaitable sleep (defaults to asyncio.sleep)
            debug_logging: Log redacted request and response payloads

        Raises:
            ValueError: If the model list is empty
        """
        if not models:
            raise ValueError("At least one model identifier is required")

        self.provider = provider
        self.models = list(models)
        self.min_request_interval = min_request_interval
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._debug_logging = debug_logging
        self._model_index = 0
        self._last_request_at: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "ModelFallbackManager | None":
        """
        Build a Gemini-backed manager from settings.

        Args:
            settings: Application settings
            **kwargs: Extra constructor arguments (clock, sleep, transport)

        Returns:
            The manager, or None when no API key is configured
        """
        if not settings.has_ai_credentials():
            logger.warning("Gemini API key not configured, deterministic fallbacks will be used")
            return None

        provider = GeminiProvider(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout=settings.ai_timeout,
            transport=kwargs.pop("transport", None),
        )
        logger.info("Gemini provider initialized", models=settings.gemini_models)
        return cls(
            provider=provider,
            models=settings.gemini_models,
            min_request_interval=settings.ai_min_request_interval,
            max_retries=settings.ai_max_retries,
            backoff_base=settings.ai_backoff_base,
            debug_logging=settings.ai_debug_logging,
            **kwargs,
        )

    @property
    def current_model(self) -> str:
        """Model identifier the next request will use."""
        return self.models[self._model_index]

    @property
    def has_fallback_model(self) -> bool:
        """Check if a model remains after the current one."""
        return self._model_index < len(self.models) - 1

    @property
    def last_request_at(self) -> float | None:
        """Clock reading of the last dispatch, None before the first request."""
        return self._last_request_at

    def switch_to_fallback_model(self) -> bool:
        """
        Advance the cursor to the next model.

        Returns:
            True if the cursor moved, False if the list is exhausted
        """
        if not self.has_fallback_model:
            return False
        self._model_index += 1
        logger.warning("Switching to fallback model", model=self.current_model)
        return True

    async def wait_for_rate_gate(self) -> None:
        """Sleep until the minimum spacing since the last dispatch has elapsed."""
        if self._last_request_at is None:
            return
        elapsed = self._clock() - self._last_request_at
        if elapsed < self.min_request_interval:
            await self._sleep(self.min_request_interval - elapsed)

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retrying after the given zero-based attempt."""
        return (2 ** attempt) * self.backoff_base

    def _log_request(
        self,
        model: str,
        messages: list[dict[str, str]],
        attempt: int,
        temperature: float,
        max_tokens: int | None,
    ) -> datetime:
        timestamp = datetime.now(timezone.utc)

        logger.info(
            "AI request started",
            provider=self.provider.name,
            model=model,
            attempt=attempt + 1,
            timestamp=timestamp.isoformat(),
            message_count=len(messages),
        )

        if self._debug_logging:
            logger.debug(
                "AI request payload",
                provider=self.provider.name,
                model=model,
                messages=redact_sensitive_data(messages),
                temperature=temperature,
                max_tokens=max_tokens,
            )

        return timestamp

    def _log_response(self, response: AIResponse, request_timestamp: datetime) -> None:
        response_time_ms = (datetime.now(timezone.utc) - request_timestamp).total_seconds() * 1000

        log_data: dict[str, Any] = {
            "provider": response.provider,
            "model": response.model,
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
                    "provider": response.provider,
                }),
            )

    def _log_error(
        self,
        model: str,
        error: Exception,
        attempt: int,
        request_timestamp: datetime,
    ) -> None:
        elapsed_ms = (datetime.now(timezone.utc) - request_timestamp).total_seconds() * 1000
        logger.error(
            "AI request failed",
            provider=self.provider.name,
            model=model,
            attempt=attempt + 1,
            error_type=type(error).__name__,
            error_message=redact_sensitive_data(str(error)),
            elapsed_ms=round(elapsed_ms, 2),
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        parse: Callable[[str], T] | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> T | str:
        """
        Send a request following the fallback, gating and retry policy.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            parse: Optional converter applied to the response text; ValueError
                and TypeError raised by it count as malformed responses
            temperature: Sampling temperature (0.0 to 1.0)
            max_tokens: Maximum tokens in response

        Returns:
            The parsed result, or the raw response text when no parser is given

        Raises:
            RetryBudgetExhaustedError: If rate limits or malformed output
                persist past the retry budget
            ProviderError: For any other upstream failure
        """
        attempt = 0
        while True:
            model = self.current_model
            await self.wait_for_rate_gate()
            request_timestamp = self._log_request(model, messages, attempt, temperature, max_tokens)
            self._last_request_at = self._clock()

            try:
                response = await self.provider.chat_completion(
                    messages=messages,
                    model=model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
                self._log_response(response, request_timestamp)
                if parse is None:
                    return response.content
                try:
                    return parse(response.content)
                except ProviderError:
                    raise
                except (ValueError, TypeError) as e:
                    raise MalformedResponseError(
                        message=f"Unparseable model output: {e}",
                        provider=self.provider.name,
                        content=response.content,
                    ) from e
            except Exception as exc:
                error = classify_error(exc, provider=self.provider.name)
                self._log_error(model, error, attempt, request_timestamp)

                if isinstance(error, (ModelUnavailableError, RateLimitError)):
                    if self.switch_to_fallback_model():
                        continue

                if isinstance(error, (RateLimitError, MalformedResponseError)):
                    if attempt < self.max_retries:
                        delay = self.backoff_delay(attempt)
                        logger.info(
                            "Retrying after backoff",
                            model=model,
                            attempt=attempt + 1,
                            backoff_seconds=delay,
                        )
                        await self._sleep(delay)
                        attempt += 1
                        continue

                    logger.warning(
                        "AI retry budget exhausted",
                        provider=self.provider.name,
                        model=model,
                        attempts=attempt + 1,
                        error_type=type(error).__name__,
                    )
                    raise RetryBudgetExhaustedError(
                        message=f"Retry budget exhausted after {attempt + 1} attempts: {error}",
                        provider=self.provider.name,
                        last_error=error,
                    ) from error

                if error is exc:
                    raise
                raise error from exc

    async def complete_with_heuristic_fallback(
        self,
        messages: list[dict[str, str]],
        heuristic_fn: Callable[[str], Any],
        parse: Callable[[str], T] | None = None,
        heuristic_input: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> tuple[T | str | None, Any]:
        """
        Send a request with heuristic fallback on total failure.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            heuristic_fn: Callable that takes the input text and returns a result
            parse: Optional converter applied to the response text
            heuristic_input: Text given to the heuristic (defaults to the last
                user message)
            temperature: Sampling temperature (0.0 to 1.0)
            max_tokens: Maximum tokens in response

        Returns:
            Tuple of (model result or None, heuristic result or None)
            - If the model succeeds: (result, None)
            - If the heuristic is used: (None, heuristic_result)
        """
        try:
            result = await self.complete(
                messages=messages,
                parse=parse,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return result, None
        except ProviderError as e:
            logger.warning(
                "Hosted model failed, using heuristic fallback",
                error_type=type(e).__name__,
                error=redact_sensitive_data(str(e)),
            )

        text = heuristic_input if heuristic_input is not None else _last_user_message(messages)
        heuristic_timestamp = datetime.now(timezone.utc)
        heuristic_result = heuristic_fn(text)
        elapsed_ms = (datetime.now(timezone.utc) - heuristic_timestamp).total_seconds() * 1000
        logger.info(
            "Heuristic fallback succeeded",
            provider="heuristic",
            input_length=len(text),
            response_time_ms=round(elapsed_ms, 2),
        )
        return None, heuristic_result
