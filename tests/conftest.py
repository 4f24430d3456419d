from __future__ import annotations

import itertools
from datetime import datetime
from typing import Any

import pytest

from glaze.models import Transaction
from glaze.providers.base import AIProvider, AIResponse
from glaze.providers.manager import ModelFallbackManager


# Thursday; its week runs Mon 2026-10-12 .. Sun 2026-10-18
FIXED_NOW = datetime(2026, 10, 15, 12, 0, 0)

_ids = itertools.count(1)


def make_tx(
    amount: float,
    date: datetime,
    category: str = "Food",
    type: str | None = "expense",
    title: str = "tx",
    source_wallet: str = "Cash",
) -> Transaction:
    return Transaction(
        id=f"tx-{next(_ids)}",
        title=title,
        amount=amount,
        category=category,
        source_wallet=source_wallet,
        date=date,
        icon="",
        type=type,
    )


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep that records delays and advances the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


class ScriptedProvider(AIProvider):
    """
    Provider returning scripted outcomes in order.

    Each outcome is either a string (response content) or an exception
    instance to raise. The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: list[Any]):
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AIResponse:
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return AIResponse(content=outcome, model=model, provider=self.name)

    @property
    def models_used(self) -> list[str]:
        return [call["model"] for call in self.calls]


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def make_manager(clock: FakeClock, sleep: RecordingSleep):
    """Build a manager around a scripted provider with the fake clock and sleep."""

    def _make(outcomes: list[Any], models: list[str] | None = None, **kwargs: Any):
        provider = ScriptedProvider(outcomes)
        manager = ModelFallbackManager(
            provider=provider,
            models=models or ["model-a", "model-b"],
            clock=clock,
            sleep=sleep,
            **kwargs,
        )
        return manager, provider

    return _make
