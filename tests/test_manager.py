"""
Unit tests untuk model-fallback manager

Test cases mencakup:
- Jeda minimum antar request (rate gate)
- Pindah model saat model error atau rate limit
- Exponential backoff dan habisnya retry budget
- Heuristic fallback
- Redaksi data sensitif di log
"""

import asyncio

import pytest

from glaze.config import Settings
from glaze.providers import (
    AuthenticationError,
    GeminiProvider,
    MalformedResponseError,
    ModelFallbackManager,
    ModelUnavailableError,
    NetworkError,
    ProviderError,
    RateLimitError,
    RetryBudgetExhaustedError,
)
from glaze.providers.manager import redact_sensitive_data


MESSAGES = [{"role": "user", "content": "Ngopi 25rb"}]


def rate_limited() -> RateLimitError:
    return RateLimitError(message="429 RESOURCE_EXHAUSTED", provider="fake")


def model_missing() -> ModelUnavailableError:
    return ModelUnavailableError(message="model not found", provider="fake", status_code=404)


class TestRateGate:
    """Tests for the minimum spacing between requests"""

    def test_first_request_does_not_wait(self, make_manager, sleep, clock):
        manager, _ = make_manager(["ok"])

        assert asyncio.run(manager.complete(MESSAGES)) == "ok"

        assert sleep.delays == []
        assert manager.last_request_at == clock.now

    def test_back_to_back_requests_wait_full_interval(self, make_manager, sleep):
        manager, _ = make_manager(["ok"])

        asyncio.run(manager.complete(MESSAGES))
        asyncio.run(manager.complete(MESSAGES))

        assert sleep.delays == [2.0]

    def test_waits_only_the_remaining_interval(self, make_manager, sleep, clock):
        manager, _ = make_manager(["ok"])

        asyncio.run(manager.complete(MESSAGES))
        clock.advance(0.5)
        asyncio.run(manager.complete(MESSAGES))

        assert sleep.delays == [1.5]

    def test_no_wait_after_interval_elapsed(self, make_manager, sleep, clock):
        manager, _ = make_manager(["ok"])

        asyncio.run(manager.complete(MESSAGES))
        clock.advance(5)
        asyncio.run(manager.complete(MESSAGES))

        assert sleep.delays == []

    def test_custom_interval(self, make_manager, sleep):
        manager, _ = make_manager(["ok"], min_request_interval=0.25)

        asyncio.run(manager.complete(MESSAGES))
        asyncio.run(manager.complete(MESSAGES))

        assert sleep.delays == [0.25]


class TestModelFallback:
    """Tests for switching along the model list"""

    def test_model_error_switches_to_next_model(self, make_manager, sleep):
        manager, provider = make_manager([model_missing(), "ok"])

        assert asyncio.run(manager.complete(MESSAGES)) == "ok"

        assert provider.models_used == ["model-a", "model-b"]
        # only the rate gate, no backoff
        assert sleep.delays == [2.0]

    def test_rate_limit_switches_before_backing_off(self, make_manager, sleep):
        manager, provider = make_manager([rate_limited(), "ok"])

        assert asyncio.run(manager.complete(MESSAGES)) == "ok"

        assert provider.models_used == ["model-a", "model-b"]
        assert sleep.delays == [2.0]

    def test_cursor_persists_across_calls(self, make_manager, clock):
        manager, provider = make_manager([model_missing(), "ok"])

        asyncio.run(manager.complete(MESSAGES))
        clock.advance(10)
        asyncio.run(manager.complete(MESSAGES))

        assert provider.models_used == ["model-a", "model-b", "model-b"]
        assert manager.current_model == "model-b"

    def test_model_error_on_last_model_is_raised(self, make_manager, sleep):
        manager, provider = make_manager([model_missing()], models=["only"])

        with pytest.raises(ModelUnavailableError):
            asyncio.run(manager.complete(MESSAGES))

        assert len(provider.calls) == 1
        assert sleep.delays == []

    def test_switch_reports_exhausted_list(self, make_manager):
        manager, _ = make_manager(["ok"])
        assert manager.switch_to_fallback_model() is True
        assert manager.switch_to_fallback_model() is False
        assert manager.current_model == "model-b"

    def test_empty_model_list_is_rejected(self):
        with pytest.raises(ValueError):
            ModelFallbackManager(provider=None, models=[])


class TestBackoff:
    """Tests for exponential backoff and the retry budget"""

    def test_backoff_delay_doubles(self, make_manager):
        manager, _ = make_manager(["ok"])
        assert [manager.backoff_delay(n) for n in range(3)] == [3.0, 6.0, 12.0]

    def test_rate_limit_on_last_model_backs_off_then_succeeds(self, make_manager, sleep):
        manager, provider = make_manager([rate_limited(), rate_limited(), "ok"], models=["only"])

        assert asyncio.run(manager.complete(MESSAGES)) == "ok"

        assert len(provider.calls) == 3
        assert sleep.delays == [3.0, 6.0]

    def test_budget_exhaustion_raises(self, make_manager, sleep):
        manager, provider = make_manager([rate_limited()], models=["only"])

        with pytest.raises(RetryBudgetExhaustedError) as exc_info:
            asyncio.run(manager.complete(MESSAGES))

        assert len(provider.calls) == 3
        assert sleep.delays == [3.0, 6.0]
        assert isinstance(exc_info.value.last_error, RateLimitError)

    def test_switch_does_not_consume_budget(self, make_manager, sleep):
        manager, provider = make_manager([rate_limited()])

        with pytest.raises(RetryBudgetExhaustedError):
            asyncio.run(manager.complete(MESSAGES))

        assert provider.models_used == ["model-a", "model-b", "model-b", "model-b"]
        assert sleep.delays == [2.0, 3.0, 6.0]

    def test_malformed_output_is_retried(self, make_manager, sleep):
        manager, provider = make_manager(["not json", "42"], models=["only"])

        assert asyncio.run(manager.complete(MESSAGES, parse=int)) == 42

        assert len(provider.calls) == 2
        assert sleep.delays == [3.0]

    def test_malformed_output_does_not_switch_models(self, make_manager):
        manager, provider = make_manager(["not json", "42"])
        asyncio.run(manager.complete(MESSAGES, parse=int))
        assert provider.models_used == ["model-a", "model-a"]

    def test_malformed_output_exhausts_budget(self, make_manager):
        manager, provider = make_manager(
            [MalformedResponseError(message="bad", provider="fake")], models=["only"]
        )

        with pytest.raises(RetryBudgetExhaustedError) as exc_info:
            asyncio.run(manager.complete(MESSAGES))

        assert isinstance(exc_info.value.last_error, MalformedResponseError)
        assert len(provider.calls) == 3

    def test_zero_retry_budget(self, make_manager, sleep):
        manager, provider = make_manager([rate_limited()], models=["only"], max_retries=0)

        with pytest.raises(RetryBudgetExhaustedError):
            asyncio.run(manager.complete(MESSAGES))

        assert len(provider.calls) == 1
        assert sleep.delays == []


class TestOtherErrors:
    """Errors outside the retry policy surface immediately"""

    @pytest.mark.parametrize(
        "error",
        [
            AuthenticationError(message="API key not valid", provider="fake", status_code=403),
            NetworkError(message="connection reset", provider="fake"),
        ],
    )
    def test_raised_without_retry(self, make_manager, sleep, error):
        manager, provider = make_manager([error])

        with pytest.raises(type(error)):
            asyncio.run(manager.complete(MESSAGES))

        assert len(provider.calls) == 1
        assert sleep.delays == []

    def test_foreign_exception_is_wrapped(self, make_manager):
        manager, _ = make_manager([RuntimeError("boom")])

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(manager.complete(MESSAGES))

        assert type(exc_info.value) is ProviderError
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_foreign_rate_limit_message_is_classified(self, make_manager):
        manager, provider = make_manager([RuntimeError("429 Too Many Requests"), "ok"])

        assert asyncio.run(manager.complete(MESSAGES)) == "ok"

        assert provider.models_used == ["model-a", "model-b"]


class TestHeuristicFallback:
    """Tests for complete_with_heuristic_fallback"""

    def test_success_returns_model_result(self, make_manager):
        manager, _ = make_manager(["ok"])

        result, heuristic = asyncio.run(
            manager.complete_with_heuristic_fallback(MESSAGES, heuristic_fn=str.upper)
        )

        assert (result, heuristic) == ("ok", None)

    def test_failure_uses_last_user_message(self, make_manager):
        manager, _ = make_manager([AuthenticationError(message="denied", provider="fake")])
        messages = [
            {"role": "user", "content": "system prompt"},
            {"role": "assistant", "content": "hi"},
            {"role": "user", "content": "beli kopi"},
        ]

        result, heuristic = asyncio.run(
            manager.complete_with_heuristic_fallback(messages, heuristic_fn=str.upper)
        )

        assert result is None
        assert heuristic == "BELI KOPI"

    def test_failure_prefers_explicit_heuristic_input(self, make_manager):
        manager, _ = make_manager([rate_limited()], models=["only"])

        _, heuristic = asyncio.run(
            manager.complete_with_heuristic_fallback(
                MESSAGES, heuristic_fn=str.upper, heuristic_input="raw text"
            )
        )

        assert heuristic == "RAW TEXT"


class TestFromSettings:
    def test_without_key_returns_none(self):
        assert ModelFallbackManager.from_settings(Settings(gemini_api_key=None)) is None

    def test_builds_gemini_manager(self):
        settings = Settings(
            gemini_api_key="test-key",
            gemini_models=["m1", "m2"],
            ai_min_request_interval=1.0,
            ai_max_retries=3,
        )

        manager = ModelFallbackManager.from_settings(settings)

        assert isinstance(manager.provider, GeminiProvider)
        assert manager.models == ["m1", "m2"]
        assert manager.min_request_interval == 1.0
        assert manager.max_retries == 3


class TestRedaction:
    def test_query_key_is_masked(self):
        url = "https://example.test/v1beta/models/m:generateContent?key=AIzaSyD-secret-value-1234567890"
        assert "secret" not in redact_sensitive_data(url)

    def test_sensitive_dict_keys_are_masked(self):
        data = {"api_key": "abc", "nested": {"token": "t"}, "model": "m"}
        assert redact_sensitive_data(data) == {
            "api_key": "[REDACTED]",
            "nested": {"token": "[REDACTED]"},
            "model": "m",
        }

    def test_lists_are_walked(self):
        assert redact_sensitive_data(["password=hunter2"]) == ["password: [REDACTED]"]
