"""
Gemini generateContent client.

One request per call, no streaming. HTTP failures are translated into the
provider error taxonomy, which is what the fallback manager branches on.
The model list itself lives in ``Settings.gemini_models``.
"""

import time
from typing import Any

import httpx
from loguru import logger

from .base import (
    AIProvider,
    AIResponse,
    AuthenticationError,
    MalformedResponseError,
    ModelUnavailableError,
    NetworkError,
    ProviderError,
    RateLimitError,
    classify_error,
)


class GeminiProvider(AIProvider):
    """
    Provider for Google's Gemini models.

    Requests go to ``POST /v1beta/models/{model}:generateContent`` with the
    API key as a query parameter. The model is picked per request by the
    fallback manager, so the provider holds no model state.

    Attributes:
        api_key: The Google API key
        base_url: The API base URL (default: https://generativelanguage.googleapis.com)
        timeout: Request timeout in seconds
    """

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the Gemini provider.

        Args:
            api_key: Google API key
            base_url: Optional custom base URL
            timeout: Request timeout in seconds (defaults to 30.0)
            transport: Optional httpx transport, used to stub the API in tests

        Raises:
            AuthenticationError: If api_key is missing or empty
        """
        if not api_key or not api_key.strip():
            raise AuthenticationError(
                message="API key is required for Gemini provider",
                provider="gemini",
            )

        self.api_key = api_key.strip()
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        """Return the provider name identifier."""
        return "gemini"

    def _get_endpoint(self, model: str) -> str:
        return self.build_endpoint_url(self.base_url, model, self.api_key)

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AIResponse:
        """
        Send a generateContent request to the Gemini API.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model identifier
            temperature: Sampling temperature (0.0 to 1.0)
            max_tokens: Maximum tokens in response

        Returns:
            AIResponse with the model's response

        Raises:
            AuthenticationError: If authentication fails
            RateLimitError: If rate limit or quota is exceeded
            ModelUnavailableError: If the model does not exist or is unavailable
            NetworkError: On timeouts and connection failures
            ProviderError: For other API errors
        """
        payload = self.build_request_payload(
            messages=messages,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        logger.debug(
            "Sending request to Gemini API",
            model=model,
            base_url=self.base_url,
            content_count=len(payload["contents"]),
        )

        start_time = time.perf_counter()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self._get_endpoint(model),
                    headers={"Content-Type": "application/json"},
                    json=payload,
                )

                if response.status_code >= 400:
                    raise self._error_from_response(response, model)

                try:
                    data = response.json()
                except ValueError as e:
                    raise MalformedResponseError(
                        message="Gemini returned a non-JSON body",
                        provider=self.name,
                        content=response.text[:500],
                    ) from e

        except httpx.TimeoutException as e:
            raise NetworkError(
                message=f"Gemini request timed out after {self.timeout}s",
                provider=self.name,
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                message=f"Failed to connect to Gemini at {self.base_url}",
                provider=self.name,
            ) from e

        latency_ms = (time.perf_counter() - start_time) * 1000

        content = self.parse_candidates(data.get("candidates", []))
        usage = self._extract_usage(data)

        logger.debug(
            "Gemini response received",
            model=model,
            latency_ms=round(latency_ms, 2),
            response_length=len(content),
            usage=usage,
        )

        return AIResponse(
            content=content,
            model=model,
            provider=self.name,
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )

    def _error_from_response(self, response: httpx.Response, model: str) -> ProviderError:
        """
        Build the error matching a failed Gemini HTTP response.

        Args:
            response: The failed HTTP response
            model: The model that was requested

        Returns:
            A ProviderError subclass describing the failure
        """
        status_code = response.status_code
        try:
            error_msg = self._extract_error_message(response.json())
        except ValueError:
            error_msg = response.text or f"HTTP {status_code}"

        if status_code == 429:
            retry_after = response.headers.get("retry-after")
            return RateLimitError(
                message=f"Rate limit exceeded for Gemini: {error_msg}",
                provider=self.name,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status_code == 404:
            return ModelUnavailableError(
                message=f"Gemini model {model} not found: {error_msg}",
                provider=self.name,
                status_code=status_code,
            )
        if status_code in (401, 403) or (
            status_code == 400 and ("API_KEY" in error_msg.upper() or "API key" in error_msg)
        ):
            return AuthenticationError(
                message=f"Authentication failed for Gemini: {error_msg}",
                provider=self.name,
                status_code=status_code,
            )

        return classify_error(
            ProviderError(
                message=f"Gemini returned error {status_code}: {error_msg}",
                provider=self.name,
                status_code=status_code,
                retryable=status_code >= 500,
            )
        )

    def _extract_usage(self, data: dict[str, Any]) -> dict[str, int] | None:
        metadata = data.get("usageMetadata")
        if not metadata:
            return None
        return {
            "input_tokens": metadata.get("promptTokenCount", 0),
            "output_tokens": metadata.get("candidatesTokenCount", 0),
        }

    def _extract_error_message(self, data: Any) -> str:
        """Pull ``error.message`` out of a Gemini error body."""
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return str(data)

    @staticmethod
    def build_request_payload(
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """
        Convert chat messages into a generateContent body.

        System messages are joined into ``systemInstruction``; assistant
        turns use Gemini's ``model`` role and everything else is a user turn.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model identifier (part of the URL, not the body)
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response

        Returns:
            Dict with the request payload in Gemini format
        """
        system_parts = [m.get("content", "") for m in messages if m.get("role") == "system"]
        contents = [
            {
                "role": "model" if m.get("role") == "assistant" else "user",
                "parts": [{"text": m.get("content", "")}],
            }
            for m in messages
            if m.get("role") != "system"
        ]

        generation_config: dict[str, Any] = {"temperature": temperature}
        if max_tokens:
            generation_config["maxOutputTokens"] = max_tokens

        payload: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if any(system_parts):
            payload["systemInstruction"] = {"parts": [{"text": "\n".join(system_parts)}]}
        return payload

    @staticmethod
    def build_endpoint_url(base_url: str, model: str, api_key: str) -> str:
        """generateContent URL for a model; Gemini takes the key as a query parameter."""
        return f"{base_url.rstrip('/')}/v1beta/models/{model}:generateContent?key={api_key}"

    @staticmethod
    def parse_candidates(candidates: list[dict[str, Any]]) -> str:
        """
        Text of the first candidate, parts concatenated.

        Returns an empty string for a missing or oddly shaped candidate.
        """
        if not candidates:
            return ""
        try:
            parts = candidates[0].get("content", {}).get("parts", [])
            return "".join(part["text"] for part in parts if "text" in part)
        except (AttributeError, TypeError):
            return ""
